import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
ENGINE = ROOT / "scripts" / "py" / "engine.py"


CODEX_RECORDS = [
    {
        "timestamp": "2025-01-01T10:00:00.000Z",
        "type": "session_meta",
        "payload": {
            "id": "0199-codex-1",
            "timestamp": "2025-01-01T10:00:00.000Z",
            "cwd": "/work/demo",
            "originator": "codex_cli_rs",
            "cli_version": "0.46.0",
        },
    },
    {
        "timestamp": "2025-01-01T10:00:01.000Z",
        "type": "response_item",
        "payload": {"type": "message", "role": "user", "content": [{"type": "input_text", "text": "show   status\nnow"}]},
    },
    {
        "timestamp": "2025-01-01T10:00:06.000Z",
        "type": "response_item",
        "payload": {"type": "message", "role": "assistant", "content": [{"type": "output_text", "text": "All good."}]},
    },
    {
        "timestamp": "2025-01-01T10:00:06.500Z",
        "type": "event_msg",
        "payload": {"type": "token_count", "info": None},
    },
]


class EngineCliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.tmp = Path(self._td.name)
        self.sessions = self.tmp / "sessions"
        self.session_path = self.sessions / "2025" / "01" / "01" / "rollout-2025-01-01.jsonl"
        self.session_path.parent.mkdir(parents=True)
        self.session_path.write_text("".join(json.dumps(r) + "\n" for r in CODEX_RECORDS), encoding="utf-8")

        self.env = {k: v for k, v in os.environ.items() if not k.startswith("AGENTLOG_")}
        self.env["HOME"] = str(self.tmp)
        self.env["AGENTLOG_CONFIG"] = str(self.tmp / "missing.toml")
        self.env["NO_COLOR"] = "1"
        self.env.pop("PAGER", None)

    def tearDown(self) -> None:
        self._td.cleanup()

    def run_cli(self, *args: str) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [sys.executable, str(ENGINE), *args],
            cwd=self.tmp,
            env=self.env,
            capture_output=True,
            text=True,
            check=False,
        )

    def codex(self, *args: str) -> subprocess.CompletedProcess[str]:
        return self.run_cli(*args, "--agent", "codex", "--sessions-dir", str(self.sessions))

    def test_view_text_by_path(self) -> None:
        proc = self.run_cli("view", str(self.session_path), "--agent", "codex")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("[#001] user | 2025-01-01T10:00:01Z", proc.stdout)
        self.assertIn("[#002] assistant | 2025-01-01T10:00:06Z", proc.stdout)
        self.assertNotIn("[#003]", proc.stdout)
        self.assertNotIn("\x1b[", proc.stdout)

    def test_view_raw_all_by_id(self) -> None:
        proc = self.codex("view", "0199-codex-1", "--all", "--format", "raw")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(len(proc.stdout.splitlines()), 4)

    def test_view_by_id_prefix(self) -> None:
        proc = self.codex("view", "0199", "--format", "RAW")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(len(proc.stdout.splitlines()), 2)

    def test_view_flag_errors(self) -> None:
        cases = [
            (("--all", "-E", "event_msg"), "Error: --all cannot be used with -E, -T, -M, or -R flags"),
            (("--color", "--no-color"), "Error: --color and --no-color cannot be used together"),
            (("-E", "bogus"), "Error: unknown entry type 'bogus'"),
        ]
        for flags, message in cases:
            with self.subTest(flags=flags):
                proc = self.codex("view", str(self.session_path), *flags)
                self.assertEqual(proc.returncode, 1)
                self.assertEqual(proc.stdout, "")
                self.assertIn(message, proc.stderr)

    def test_view_flags_checked_before_session_lookup(self) -> None:
        proc = self.codex("view", "nope", "-E", "bogus")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Error: unknown entry type 'bogus'", proc.stderr)
        self.assertNotIn("not found", proc.stderr)

        proc = self.codex("view", "nope", "--color", "--no-color")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Error: --color and --no-color cannot be used together", proc.stderr)

    def test_view_all_ignores_blank_filter_lists(self) -> None:
        proc = self.codex("view", "0199-codex-1", "--all", "-E", " ", "--format", "raw")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(len(proc.stdout.splitlines()), 4)

    def test_view_unknown_session(self) -> None:
        proc = self.codex("view", "zzzz")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("not found", proc.stderr)

    def test_list_json_for_cwd(self) -> None:
        proc = self.codex("list", "--cwd", "/work/demo", "--format", "json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        data = json.loads(proc.stdout)
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["id"], "0199-codex-1")
        self.assertEqual(data[0]["duration_seconds"], 6)
        self.assertEqual(data[0]["message_count"], 2)

    def test_list_defaults_to_current_directory(self) -> None:
        proc = self.codex("list", "--format", "plain", "--no-header")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout, "")

    def test_list_all_rejects_cwd(self) -> None:
        proc = self.codex("list", "--all", "--cwd", "/work/demo")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Error: --cwd cannot be used with --all", proc.stderr)

    def test_list_warns_on_broken_files(self) -> None:
        (self.sessions / "broken.jsonl").write_text("{nope\n", encoding="utf-8")
        proc = self.codex("list", "--all", "--format", "jsonl")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(len(proc.stdout.splitlines()), 1)
        self.assertIn("warning: parse meta", proc.stderr)

    def test_info_json(self) -> None:
        proc = self.codex("info", "0199-codex-1", "--format", "json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["session_id"], "0199-codex-1")
        self.assertEqual(payload["duration_display"], "00:00:06")
        self.assertEqual(payload["summary"], "show   status\nnow")

    def test_info_text(self) -> None:
        proc = self.codex("info", str(self.session_path))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        lines = proc.stdout.splitlines()
        self.assertEqual(lines[0], "Session ID    : 0199-codex-1")
        self.assertIn("Originator    : codex_cli_rs", lines)
        self.assertIn("Summary       : show status now", lines)

    def test_config_env_and_init(self) -> None:
        proc = self.run_cli("config", "--format", "env")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("AGENTLOG_AGENT=claude", proc.stdout)
        self.assertIn("LIST_SUMMARY_WIDTH=160", proc.stdout)

        target = self.tmp / "cfg" / "agentlog.toml"
        proc = self.run_cli("config", "--init", "--config", str(target))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertTrue(target.exists())

        proc = self.run_cli("config", "--init", "--config", str(target))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("config already exists", proc.stderr)

        proc = self.run_cli("config", "--config", str(target))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertTrue(json.loads(proc.stdout)["config_exists"])


if __name__ == "__main__":
    unittest.main()
