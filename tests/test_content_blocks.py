import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts" / "py"))

from content_blocks import build_summary_text, compact_json, normalize_content, tool_call_ids
from event_model import ContentBlock


class NormalizeContentTests(unittest.TestCase):
    def test_plain_string_matches_single_text_element(self) -> None:
        self.assertEqual(
            normalize_content("hello there"),
            normalize_content([{"type": "text", "text": "hello there"}]),
        )
        self.assertEqual(normalize_content("hello there"), [ContentBlock(type="text", text="hello there")])

    def test_missing_content_yields_no_blocks(self) -> None:
        self.assertEqual(normalize_content(None), [])
        self.assertEqual(normalize_content([]), [])

    def test_typed_text_parts_keep_their_type(self) -> None:
        blocks = normalize_content(
            [
                {"type": "input_text", "text": "first"},
                {"type": "output_text", "text": "second"},
            ]
        )
        self.assertEqual([b.type for b in blocks], ["input_text", "output_text"])
        self.assertEqual([b.text for b in blocks], ["first", "second"])

    def test_tool_use_is_rendered_with_compact_input(self) -> None:
        blocks = normalize_content(
            [{"type": "tool_use", "id": "toolu_1", "name": "Bash", "input": {"command": "ls -la"}}]
        )
        self.assertEqual(len(blocks), 1)
        self.assertEqual(blocks[0].type, "tool_use")
        self.assertEqual(blocks[0].text, 'Tool: Bash (ID: toolu_1)\nInput: {"command":"ls -la"}')

    def test_tool_result_decodes_nested_content(self) -> None:
        blocks = normalize_content(
            [
                {
                    "type": "tool_result",
                    "tool_use_id": "toolu_1",
                    "is_error": True,
                    "content": [{"type": "text", "text": "line one"}, {"type": "text", "text": "line two"}],
                }
            ]
        )
        self.assertEqual(blocks[0].type, "tool_result")
        self.assertEqual(blocks[0].text, "Tool Result (ID: toolu_1) [error]\nOutput: line one\nline two")

    def test_tool_result_with_string_content(self) -> None:
        blocks = normalize_content([{"type": "tool_result", "tool_use_id": "t2", "content": "done"}])
        self.assertEqual(blocks[0].text, "Tool Result (ID: t2)\nOutput: done")

    def test_thinking_block_keeps_text(self) -> None:
        blocks = normalize_content([{"type": "thinking", "thinking": "pondering", "signature": "x"}])
        self.assertEqual(blocks, [ContentBlock(type="thinking", text="pondering")])

    def test_unknown_shapes_become_json_blocks(self) -> None:
        self.assertEqual(normalize_content({"a": 1}), [ContentBlock(type="json", text='{"a":1}')])
        blocks = normalize_content([{"type": "image", "source": {"data": "xx"}}, 7])
        self.assertEqual([b.type for b in blocks], ["json", "json"])
        self.assertEqual(blocks[1].text, "7")

    def test_json_blocks_hold_canonical_values(self) -> None:
        value = json.loads('{"a": 1.0e5, "b": [1E2, "x y"], "c": {"d": null}}')
        blocks = normalize_content(value)
        self.assertEqual(blocks, [ContentBlock(type="json", text='{"a":100000.0,"b":[100.0,"x y"],"c":{"d":null}}')])
        self.assertEqual(json.loads(blocks[0].text), value)


class HelperTests(unittest.TestCase):
    def test_compact_json_keeps_unicode(self) -> None:
        self.assertEqual(compact_json({"k": "日本"}), '{"k":"日本"}')

    def test_tool_call_ids_collects_use_and_result_ids(self) -> None:
        ids = tool_call_ids(
            [
                {"type": "text", "text": "x"},
                {"type": "tool_use", "id": "a"},
                {"type": "tool_result", "tool_use_id": "b"},
            ]
        )
        self.assertEqual(ids, ("a", "b"))
        self.assertEqual(tool_call_ids("plain"), ())

    def test_summary_text_joins_trimmed_blocks(self) -> None:
        blocks = [
            ContentBlock(type="text", text="  first  "),
            ContentBlock(type="text", text=""),
            ContentBlock(type="text", text="second\n"),
        ]
        self.assertEqual(build_summary_text(blocks), "first second")

    def test_summary_text_stops_after_limit(self) -> None:
        blocks = [ContentBlock(type="text", text="a" * 200), ContentBlock(type="text", text="tail")]
        self.assertEqual(build_summary_text(blocks), "a" * 200)


if __name__ == "__main__":
    unittest.main()
