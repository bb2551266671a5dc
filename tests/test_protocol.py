"""Tests for the tagged tool-call wire format."""

import pytest

from devcrew.crew.protocol import describe_tools, format_tool_result, parse_tool_call
from devcrew.tools import ToolDefinition, ToolParameter, ToolResult

CALL = '{"tool": "write_file", "params": {"path": "a.ts", "content": "x"}}'


class TestParseToolCall:

    def test_well_formed(self):
        call = parse_tool_call(f"I'll write it.\n<tool_call>\n{CALL}\n</tool_call>")
        assert call.tool == "write_file"
        assert call.params == {"path": "a.ts", "content": "x"}
        assert call.call_id is None

    @pytest.mark.parametrize("closer", ["</tool_call}", "</tool_call]", "</tool_call)", "</tool_call", ""])
    def test_malformed_closers(self, closer):
        call = parse_tool_call(f"<tool_call>{CALL}{closer}")
        assert call is not None
        assert call.tool == "write_file"
        assert call.params["path"] == "a.ts"

    def test_trailing_garbage_after_last_brace(self):
        call = parse_tool_call(f"<tool_call>{CALL} trailing words ]]</tool_call>")
        assert call.tool == "write_file"

    def test_stray_extra_brace(self):
        call = parse_tool_call(f"<tool_call>{CALL}}}</tool_call>")
        assert call.tool == "write_file"

    def test_non_dict_params_become_empty(self):
        call = parse_tool_call('<tool_call>{"tool": "list_directory", "params": "."}</tool_call>')
        assert call.tool == "list_directory"
        assert call.params == {}

    @pytest.mark.parametrize("text", [
        "",
        None,
        "no tags at all",
        "<tool_call>not json</tool_call>",
        '<tool_call>{"params": {}}</tool_call>',
        '<tool_call>{"tool": "  ", "params": {}}</tool_call>',
        "<tool_call>[1, 2]</tool_call>",
    ])
    def test_no_call(self, text):
        assert parse_tool_call(text) is None

    def test_only_first_call_is_taken(self):
        second = '{"tool": "read_file", "params": {"path": "b"}}'
        call = parse_tool_call(f"<tool_call>{CALL}</tool_call>\n<tool_call>{second}</tool_call>")
        assert call.tool == "write_file"


class TestFormatting:

    def test_success_result(self):
        text = format_tool_result("read_file", ToolResult.ok("hello"))
        assert text == '<tool_result>\nTool "read_file" executed successfully:\nhello\n</tool_result>'

    def test_failure_result(self):
        text = format_tool_result("read_file", ToolResult.fail("File not found: x"))
        assert text.startswith('<tool_result>\nTool "read_file" failed:')
        assert "File not found: x" in text

    def test_catalogue_lists_tools(self):
        catalogue = describe_tools([ToolDefinition("read_file", "Read a file", (
            ToolParameter("path", "string", "Path"),))])
        assert "## Available Tools" in catalogue
        assert "**read_file**" in catalogue
        assert "path (string, required)" in catalogue

    def test_empty_catalogue(self):
        assert describe_tools([]) == ""
