"""Tagged tool-call wire format used when the backend has no native tool calls.

A call is a JSON object wrapped in tags::

    <tool_call>
    {"tool": "write_file", "params": {"path": "src/app.ts", "content": "..."}}
    </tool_call>

Results are echoed back inside ``<tool_result>`` tags.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from ..tools.types import ToolDefinition, ToolResult

OPEN_TAG = "<tool_call>"
_OPEN_RE = re.compile(r"<tool_call\s*>", re.IGNORECASE)
# Accepts the well-formed closer plus common near misses: </tool_call}, </tool_call], </tool_call
_CLOSE_RE = re.compile(r"</tool_call\s*[>}\])]?", re.IGNORECASE)

TRUNCATION_MARKER = "\n\n[Max iterations reached]"

_DECODER = json.JSONDecoder()


@dataclass
class ParsedToolCall:
    tool: str
    params: Dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None


def parse_tool_call(content: Optional[str]) -> Optional[ParsedToolCall]:
    """Extract the first tagged tool call from ``content``.

    Returns None when there is no call or the payload cannot be decoded.
    """
    if not content:
        return None
    opened = _OPEN_RE.search(content)
    if not opened:
        return None

    rest = content[opened.end():]
    closed = _CLOSE_RE.search(rest)
    payload = rest[:closed.start()] if closed else rest

    start = payload.find("{")
    end = payload.rfind("}")
    if start == -1 or end < start:
        return None

    try:
        parsed = json.loads(payload[start:end + 1])
    except json.JSONDecodeError:
        # Stray braces after the object: take the first complete JSON value.
        try:
            parsed, _ = _DECODER.raw_decode(payload[start:])
        except json.JSONDecodeError:
            return None
    if not isinstance(parsed, dict):
        return None

    tool = parsed.get("tool")
    if not isinstance(tool, str) or not tool.strip():
        return None
    params = parsed.get("params")
    if not isinstance(params, dict):
        params = {}
    return ParsedToolCall(tool=tool.strip(), params=params)


def format_tool_result(tool_name: str, result: ToolResult) -> str:
    if result.success:
        body = f'Tool "{tool_name}" executed successfully:\n{result.output or ""}'
    else:
        body = f'Tool "{tool_name}" failed:\n{result.error or result.output or "unknown error"}'
    return f"<tool_result>\n{body}\n</tool_result>"


def describe_tools(definitions: Iterable[ToolDefinition]) -> str:
    """Render the tool catalogue and calling convention for a system prompt."""
    blocks = []
    for d in definitions:
        params = "\n".join(
            f"  - {p.name} ({p.type}{', required' if p.required else ''}): {p.description}"
            for p in d.parameters
        ) or "  (none)"
        blocks.append(f"**{d.name}**: {d.description}\nParameters:\n{params}")
    if not blocks:
        return ""

    return (
        "## Available Tools\n\n"
        "You have access to the following tools. To use a tool, respond with a tool call "
        "in this exact format:\n"
        f"{OPEN_TAG}\n"
        '{"tool": "tool_name", "params": {"param1": "value1", "param2": "value2"}}\n'
        "</tool_call>\n\n"
        + "\n\n".join(blocks)
        + "\n\nWhen you need to use a tool, output the tool_call block. "
        "The system will execute it and provide the result."
    )
