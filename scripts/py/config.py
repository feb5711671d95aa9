from __future__ import annotations

import json
import os
try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    try:
        import tomli as tomllib  # type: ignore
    except ModuleNotFoundError as exc:  # pragma: no cover
        raise RuntimeError(
            "TOML parser unavailable. Use Python 3.11+ or install tomli for Python 3.10."
        ) from exc
from copy import deepcopy
from pathlib import Path
from typing import Any

from list_format import LIST_FORMATS
from session_parser import AgentType
from session_store import default_sessions_dir
from view_runner import VIEW_FORMATS


CONFIG_ENV = "AGENTLOG_CONFIG"
AGENT_ENV = "AGENTLOG_AGENT"
SESSIONS_DIR_ENV = "AGENTLOG_SESSIONS_DIR"

DEFAULT_CONFIG: dict[str, Any] = {
    "agent": {
        "default": "claude",
    },
    "sessions": {
        "codex_dir": "",
        "claude_dir": "",
    },
    "view": {
        "format": "text",
        "wrap": 0,
        "max_events": 0,
        "pager": "",
    },
    "list": {
        "format": "table",
        "summary_width": 160,
        "limit": 0,
    },
}


class ConfigError(RuntimeError):
    pass


def default_config_path() -> Path:
    env_path = os.getenv(CONFIG_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".config" / "agentlog" / "config.toml"


def render_default_config() -> str:
    def q(value: str) -> str:
        # JSON string escaping is TOML-basic-string compatible.
        return json.dumps(value, ensure_ascii=False)

    view = DEFAULT_CONFIG["view"]
    listing = DEFAULT_CONFIG["list"]
    return f"""[agent]
# codex or claude
default = {q(str(DEFAULT_CONFIG["agent"]["default"]))}

[sessions]
# Empty means ~/.codex/sessions and ~/.claude/projects.
codex_dir = {q(str(DEFAULT_CONFIG["sessions"]["codex_dir"]))}
claude_dir = {q(str(DEFAULT_CONFIG["sessions"]["claude_dir"]))}

[view]
format = {q(str(view["format"]))}
wrap = {int(view["wrap"])}
max_events = {int(view["max_events"])}
pager = {q(str(view["pager"]))}

[list]
format = {q(str(listing["format"]))}
summary_width = {int(listing["summary_width"])}
limit = {int(listing["limit"])}
"""


def write_default_config(cfg_path: Path, force: bool = False) -> Path:
    if cfg_path.exists() and not force:
        raise ConfigError(f"config already exists: {cfg_path} (use --force to overwrite)")
    try:
        cfg_path.parent.mkdir(parents=True, exist_ok=True)
        cfg_path.write_text(render_default_config(), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"write config {cfg_path}: {exc}") from exc
    return cfg_path


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = deepcopy(base)
    for key, value in incoming.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _check_choice(section: dict[str, Any], key: str, choices: tuple[str, ...], prefix: str) -> str:
    value = str(section.get(key, "")).strip().lower()
    if value not in choices:
        raise ConfigError(f"{prefix}.{key} must be one of: {', '.join(choices)}")
    section[key] = value
    return value


def _check_count(section: dict[str, Any], key: str, prefix: str) -> None:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{prefix}.{key} must be an integer >= 0")


def validate_config(merged: dict[str, Any]) -> dict[str, Any]:
    for section in DEFAULT_CONFIG:
        if not isinstance(merged.get(section), dict):
            raise ConfigError(f"[{section}] must be a table")

    _check_choice(merged["agent"], "default", tuple(agent.value for agent in AgentType), "agent")
    _check_choice(merged["view"], "format", VIEW_FORMATS, "view")
    _check_choice(merged["list"], "format", LIST_FORMATS, "list")

    for key in ("wrap", "max_events"):
        _check_count(merged["view"], key, "view")
    for key in ("summary_width", "limit"):
        _check_count(merged["list"], key, "list")

    for key in ("codex_dir", "claude_dir"):
        if not isinstance(merged["sessions"].get(key), str):
            raise ConfigError(f"sessions.{key} must be a string")
    if not isinstance(merged["view"].get("pager"), str):
        raise ConfigError("view.pager must be a string")

    return merged


def load_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    cfg_path = Path(config_path).expanduser() if config_path else default_config_path()

    if not cfg_path.exists():
        return deepcopy(DEFAULT_CONFIG), cfg_path

    try:
        parsed = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {cfg_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"read config {cfg_path}: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigError(f"invalid config root (expected table): {cfg_path}")

    return validate_config(_deep_merge(DEFAULT_CONFIG, parsed)), cfg_path


def resolve_context(
    config: dict[str, Any],
    agent_arg: str | None = None,
    sessions_dir_arg: str | None = None,
    config_path: Path | None = None,
) -> dict[str, Any]:
    agent_src = agent_arg or os.getenv(AGENT_ENV) or str(config["agent"]["default"])
    try:
        agent = AgentType(agent_src.strip().lower())
    except ValueError:
        raise ConfigError(f"unknown agent type: {agent_src}") from None

    configured_dir = str(config["sessions"][f"{agent.value}_dir"])
    sessions_src = sessions_dir_arg or os.getenv(SESSIONS_DIR_ENV) or configured_dir
    sessions_dir = Path(sessions_src).expanduser() if sessions_src else default_sessions_dir(agent)

    return {
        "agent": agent.value,
        "sessions_dir": str(sessions_dir),
        "config_path": str(config_path) if config_path else "",
        "config_exists": bool(config_path and config_path.exists()),
        "view": dict(config["view"]),
        "list": dict(config["list"]),
    }
