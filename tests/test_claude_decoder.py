import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts" / "py"))

from claude_decoder import decode_line
from event_model import ContentBlock, DecodeError, TokenUsage


def _entry(kind: str, **fields) -> str:
    record = {
        "type": kind,
        "uuid": "u-1",
        "parentUuid": "u-0",
        "sessionId": "5f0c-claude",
        "cwd": "/work/demo",
        "version": "1.0.42",
        "timestamp": "2025-03-01T09:30:00.000Z",
    }
    record.update(fields)
    return json.dumps(record)


class ClaudeDecoderTests(unittest.TestCase):
    def test_user_string_message(self) -> None:
        event = decode_line(_entry("user", message={"role": "user", "content": "fix the build"}))
        self.assertEqual(event.kind, "user")
        self.assertEqual(event.role, "user")
        self.assertEqual(event.payload_type, "message")
        self.assertEqual(event.content, (ContentBlock(type="text", text="fix the build"),))
        self.assertEqual(event.session_id, "5f0c-claude")
        self.assertEqual(event.cwd, "/work/demo")
        self.assertEqual(event.version, "1.0.42")
        self.assertEqual(event.uuid, "u-1")
        self.assertEqual(event.parent_uuid, "u-0")

    def test_assistant_tool_use_with_usage(self) -> None:
        raw = _entry(
            "assistant",
            requestId="req_1",
            message={
                "id": "msg_1",
                "role": "assistant",
                "model": "claude-sonnet",
                "content": [
                    {"type": "text", "text": "Running it."},
                    {"type": "tool_use", "id": "toolu_1", "name": "Bash", "input": {"command": "make"}},
                ],
                "usage": {
                    "input_tokens": 12,
                    "cache_creation_input_tokens": 4,
                    "cache_read_input_tokens": 100,
                    "output_tokens": 30,
                    "service_tier": "standard",
                },
            },
        )
        event = decode_line(raw.encode("utf-8"))
        self.assertEqual([b.type for b in event.content], ["text", "tool_use"])
        self.assertEqual(event.content[1].text, 'Tool: Bash (ID: toolu_1)\nInput: {"command":"make"}')
        self.assertEqual(event.message_id, "msg_1")
        self.assertEqual(event.request_id, "req_1")
        self.assertEqual(event.model, "claude-sonnet")
        self.assertEqual(event.usage, TokenUsage(12, 4, 100, 30, "standard"))
        self.assertEqual(event.tool_call_ids, ("toolu_1",))
        self.assertEqual(event.raw, raw)

    def test_role_falls_back_to_entry_kind(self) -> None:
        event = decode_line(_entry("assistant", message={"content": "hi"}))
        self.assertEqual(event.role, "assistant")

    def test_summary_entry(self) -> None:
        raw = json.dumps({"type": "summary", "summary": "Build fix session", "leafUuid": "leaf-9"})
        event = decode_line(raw)
        self.assertEqual(event.kind, "summary")
        self.assertEqual(event.payload_type, "summary")
        self.assertEqual(event.summary_text, "Build fix session")
        self.assertEqual(event.leaf_uuid, "leaf-9")
        self.assertEqual(event.content, (ContentBlock(type="text", text="Build fix session"),))
        self.assertIsNone(event.timestamp)

    def test_unknown_kind_keeps_whole_record(self) -> None:
        raw = json.dumps({"type": "system", "content": "hook ran", "timestamp": "2025-03-01T09:30:00Z"})
        event = decode_line(raw)
        self.assertEqual(event.kind, "system")
        self.assertEqual(event.role, "")
        self.assertEqual(len(event.content), 1)
        self.assertEqual(event.content[0].type, "json")
        self.assertEqual(json.loads(event.content[0].text), json.loads(raw))

    def test_malformed_input_raises(self) -> None:
        with self.assertRaises(DecodeError):
            decode_line("{oops")
        with self.assertRaises(DecodeError):
            decode_line(_entry("user", message="not an object"))
        with self.assertRaises(DecodeError):
            decode_line(_entry("user", timestamp="03/01/2025"))


if __name__ == "__main__":
    unittest.main()
