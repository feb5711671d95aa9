from __future__ import annotations

from dataclasses import dataclass

import claude_decoder
import codex_decoder
from event_model import KNOWN_ROLES, ROLE_ASSISTANT, ROLE_USER, Event
from session_parser import AgentType, parse_agent


class FilterError(RuntimeError):
    pass


@dataclass(frozen=True)
class ViewFilters:
    """Inclusion sets applied to each event; ``None`` leaves a dimension open."""

    entry_kinds: frozenset[str] | None
    payload_types: frozenset[str] | None
    event_msg_types: frozenset[str] | None
    roles: frozenset[str] | None


@dataclass(frozen=True)
class FilterProfile:
    entry_kinds: tuple[str, ...]
    message_kinds: frozenset[str]
    payload_types: tuple[str, ...]
    event_msg_types: tuple[str, ...]


PROFILES: dict[AgentType, FilterProfile] = {
    AgentType.CODEX: FilterProfile(
        entry_kinds=codex_decoder.ENTRY_KINDS,
        message_kinds=frozenset({codex_decoder.ENTRY_RESPONSE_ITEM}),
        payload_types=codex_decoder.RESPONSE_ITEM_TYPES,
        event_msg_types=codex_decoder.EVENT_MSG_TYPES,
    ),
    AgentType.CLAUDE: FilterProfile(
        entry_kinds=claude_decoder.ENTRY_KINDS,
        message_kinds=frozenset({claude_decoder.ENTRY_USER, claude_decoder.ENTRY_ASSISTANT}),
        payload_types=(claude_decoder.PAYLOAD_MESSAGE, claude_decoder.PAYLOAD_SUMMARY),
        event_msg_types=(),
    ),
}

ALL_FILTER_CONFLICT = "--all cannot be used with -E, -T, -M, or -R flags"
DEFAULT_PAYLOAD_TYPES = frozenset({"message"})
DEFAULT_ROLES = frozenset({ROLE_USER, ROLE_ASSISTANT})


def parse_csv(arg: str | None) -> list[str]:
    if not arg or not arg.strip():
        return []
    tokens = (part.strip().lower() for part in arg.split(","))
    return [token for token in tokens if token]


def _parse_set(
    arg: str | None, valid: tuple[str, ...] | frozenset[str] | set[str], label: str
) -> tuple[frozenset[str] | None, bool]:
    values = parse_csv(arg)
    if not values:
        return None, False
    if values == ["all"]:
        return None, True
    for token in values:
        if token not in valid:
            raise FilterError(f"unknown {label} '{token}'")
    return frozenset(values), True


def build_view_filters(
    agent: AgentType | str,
    all_filter: bool = False,
    entry_arg: str | None = None,
    payload_type_arg: str | None = None,
    event_msg_type_arg: str | None = None,
    role_arg: str | None = None,
) -> ViewFilters:
    if all_filter:
        if any(parse_csv(arg) for arg in (entry_arg, payload_type_arg, event_msg_type_arg, role_arg)):
            raise FilterError(ALL_FILTER_CONFLICT)
        return ViewFilters(None, None, None, None)

    profile = PROFILES[parse_agent(agent)]

    entry_kinds, entry_given = _parse_set(entry_arg, profile.entry_kinds, "entry type")
    payload_types, payload_given = _parse_set(payload_type_arg, profile.payload_types, "response type")
    event_msg_types, _ = _parse_set(event_msg_type_arg, profile.event_msg_types, "event_msg type")
    roles, roles_given = _parse_set(role_arg, KNOWN_ROLES, "payload role")

    return ViewFilters(
        entry_kinds=entry_kinds if entry_given else profile.message_kinds,
        payload_types=payload_types if payload_given else DEFAULT_PAYLOAD_TYPES,
        event_msg_types=event_msg_types,
        roles=roles if roles_given else DEFAULT_ROLES,
    )


def event_matches(event: Event, filters: ViewFilters, agent: AgentType | str) -> bool:
    profile = PROFILES[parse_agent(agent)]

    if filters.entry_kinds is not None and event.kind not in filters.entry_kinds:
        return False

    if event.kind in profile.message_kinds:
        if filters.payload_types is not None and event.payload_type not in filters.payload_types:
            return False
        if filters.roles is not None and event.role not in filters.roles:
            return False

    if event.kind == codex_decoder.ENTRY_EVENT_MSG:
        if filters.event_msg_types is not None and event.payload_type not in filters.event_msg_types:
            return False

    return True
