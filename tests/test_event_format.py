import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts" / "py"))

from event_format import format_json, render_blocks, render_event_lines, wrap_body
from event_model import ContentBlock, Event


class RenderBlocksTests(unittest.TestCase):
    def test_text_blocks_are_trimmed(self) -> None:
        blocks = [ContentBlock("input_text", "  hi there \n"), ContentBlock("output_text", "bye")]
        self.assertEqual(render_blocks(blocks), "hi there\nbye")

    def test_json_block_is_pretty_printed(self) -> None:
        self.assertEqual(render_blocks([ContentBlock("json", '{"a":1,"b":[true]}')]), '{\n  "a": 1,\n  "b": [\n    true\n  ]\n}')

    def test_function_blocks(self) -> None:
        blocks = [
            ContentBlock("function_name", "shell"),
            ContentBlock("function_arguments", '{"cmd":"ls"}'),
        ]
        self.assertEqual(render_blocks(blocks), 'Function: shell\nArguments:\n{\n  "cmd": "ls"\n}')

    def test_non_json_arguments_and_output_stay_inline(self) -> None:
        self.assertEqual(render_blocks([ContentBlock("function_arguments", "ls -la")]), "Arguments: ls -la")
        self.assertEqual(render_blocks([ContentBlock("function_output", "exit 0")]), "Output: exit 0")

    def test_other_types_are_prefixed(self) -> None:
        rendered = render_blocks([ContentBlock("tool_use", "Tool: Bash (ID: t1)")])
        self.assertEqual(rendered, "[tool_use] Tool: Bash (ID: t1)")

    def test_wrapping_applies_to_text(self) -> None:
        rendered = render_blocks([ContentBlock("text", "one two three four")], wrap_width=9)
        self.assertEqual(rendered.split("\n"), ["one two", "three", "four"])

    def test_empty_event_has_no_lines(self) -> None:
        self.assertEqual(render_event_lines(Event(timestamp=None, kind="event_msg")), [])

    def test_event_lines_split_on_newlines(self) -> None:
        event = Event(timestamp=None, kind="user", content=(ContentBlock("text", "a\n\nb"),))
        self.assertEqual(render_event_lines(event), ["a", "", "b"])


class HelperTests(unittest.TestCase):
    def test_format_json_leaves_invalid_text(self) -> None:
        self.assertEqual(format_json("not json"), "not json")
        self.assertEqual(format_json(""), "")

    def test_wrap_body_keeps_paragraphs(self) -> None:
        self.assertEqual(wrap_body("aa bb\ncc", 2), "aa\nbb\ncc")
        self.assertEqual(wrap_body("aa bb", 0), "aa bb")


if __name__ == "__main__":
    unittest.main()
