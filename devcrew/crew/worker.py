"""Worker: one role-scoped agent driving the bounded tool-invocation loop."""

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..llm import LLMAdapter, LLMResponse, forced_tool_choice
from ..logger import get_logger
from ..tools.registry import ToolRegistry
from ..tools.types import ToolResult
from .protocol import ParsedToolCall, TRUNCATION_MARKER, describe_tools, format_tool_result, parse_tool_call

_log = get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 10
MAX_HISTORY_SIZE = 100


@dataclass
class ToolCallMetrics:
    """Tool calls made since the last reset, owned by one worker."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    by_tool: Counter = field(default_factory=Counter)

    def record(self, tool_name: str, success: bool) -> None:
        self.total += 1
        self.by_tool[tool_name] += 1
        if success:
            self.successful += 1
        else:
            self.failed += 1

    def reset(self) -> None:
        self.total = self.successful = self.failed = 0
        self.by_tool = Counter()

    def count(self, tool_name: str) -> int:
        return self.by_tool.get(tool_name, 0)

    def snapshot(self) -> "ToolCallMetrics":
        return ToolCallMetrics(self.total, self.successful, self.failed, Counter(self.by_tool))


class Worker:
    """Runs instructions against the completion backend with a fixed toolset.

    Each worker owns its conversation history and metrics; nothing here is
    shared between instances.
    """

    def __init__(self, name: str, llm: LLMAdapter, tools: ToolRegistry,
                 system_prompt: str = "", max_iterations: int = DEFAULT_MAX_ITERATIONS):
        self.name = name
        self.llm = llm
        self.tools = tools
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self.metrics = ToolCallMetrics()
        # (tool name, params, result) for every call since the last metrics reset
        self.call_log: List[Tuple[str, Dict[str, Any], ToolResult]] = []
        self._history: List[Dict[str, Any]] = []

    # ── History ──

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def reset_history(self) -> None:
        self._history = []

    def _append(self, message: Dict[str, Any]) -> None:
        self._history.append(message)
        overflow = len(self._history) - MAX_HISTORY_SIZE
        if overflow > 0:
            del self._history[:overflow]
        # A tool reply cannot lead the exchange once its request was dropped.
        while self._history and self._history[0].get("role") == "tool":
            self._history.pop(0)

    # ── Metrics ──

    def reset_metrics(self) -> None:
        self.metrics.reset()
        self.call_log = []

    # ── Prompting ──

    def build_system_prompt(self) -> str:
        catalogue = describe_tools(self.tools.definitions())
        if not catalogue:
            return self.system_prompt
        return f"{self.system_prompt}\n\n{catalogue}"

    def ask(self, prompt: str) -> str:
        """Single completion with no tool execution."""
        self._append({"role": "user", "content": prompt})
        response = self.llm.chat(self._history, system=self.build_system_prompt())
        self._append({"role": "assistant", "content": response.text})
        return response.text

    # ── Tool loop ──

    def execute_tool(self, tool_name: str, params: Dict[str, Any]) -> ToolResult:
        result = self.tools.execute(tool_name, params)
        self.metrics.record(tool_name, result.success)
        self.call_log.append((tool_name, dict(params or {}), result))
        _log.info("%s: %s -> %s", self.name, tool_name, "ok" if result.success else "failed")
        return result

    def run_with_tools(self, instruction: str, max_iterations: Optional[int] = None,
                       tool_choice: Optional[str] = None) -> str:
        """Exchange messages until no tool is requested or the bound is hit.

        ``tool_choice`` pins the first round to one tool when the backend
        supports native calls and the tool is available to this worker.
        """
        bound = max_iterations or self.max_iterations
        system = self.build_system_prompt()
        native = self.llm.supports_native_tools and len(self.tools) > 0
        schemas = self.tools.schemas if native else None
        forced = forced_tool_choice(tool_choice) if (
            native and tool_choice and self.tools.has(tool_choice)) else None

        self._append({"role": "user", "content": instruction})
        final_text = ""
        stopped = False
        iterations = 0

        while iterations < bound:
            iterations += 1
            response = self.llm.chat(self._history, system=system, tools=schemas,
                                     tool_choice=forced if iterations == 1 else None)
            call = self._detect_call(response)
            final_text = response.text

            if call is None:
                self._append({"role": "assistant", "content": response.text})
                stopped = True
                break

            result = self.execute_tool(call.tool, call.params)
            self._record_exchange(response, call, format_tool_result(call.tool, result))

        if not stopped:
            _log.warning("%s: stopped after %d iterations without a final answer", self.name, bound)
            final_text += TRUNCATION_MARKER
        return final_text

    def _detect_call(self, response: LLMResponse) -> Optional[ParsedToolCall]:
        if response.has_tool_calls():
            tc = response.tool_calls[0]
            return ParsedToolCall(tool=tc.name, params=dict(tc.arguments or {}), call_id=tc.id or None)
        return parse_tool_call(response.content)

    def _record_exchange(self, response: LLMResponse, call: ParsedToolCall, result_text: str) -> None:
        if call.call_id is None:
            self._append({"role": "assistant", "content": response.text})
            self._append({"role": "user", "content": result_text})
            return
        tc = response.tool_calls[0]
        self._append({
            "role": "assistant",
            "content": response.content,
            "tool_calls": [{
                "id": tc.id, "type": "function",
                "function": {"name": tc.name, "arguments": json.dumps(tc.arguments or {})},
            }],
        })
        self._append({"role": "tool", "tool_call_id": tc.id, "content": result_text})
