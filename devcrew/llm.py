"""Completion backend adapter via litellm."""

import json
import threading
from typing import List, Dict, Any, Optional
from dataclasses import dataclass

import litellm
litellm.suppress_debug_info = True


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class LLMResponse:
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    usage: Optional[Dict] = None

    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @property
    def text(self) -> str:
        return self.content or ""


def forced_tool_choice(tool_name: str) -> Dict[str, Any]:
    """OpenAI-style tool_choice payload that pins the call to one function."""
    return {"type": "function", "function": {"name": tool_name}}


class LLMAdapter:
    """Unified completion interface. Passes api_key/api_base directly to litellm,
    avoiding env-var pollution when several teams use different providers."""

    def __init__(self, model: str, temperature: float = 0.0,
                 max_tokens: int = 4096, api_base: Optional[str] = None,
                 api_key: Optional[str] = None, native_tools: bool = True):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_base = api_base
        self.api_key = api_key
        self.native_tools = native_tools
        self._usage_lock = threading.Lock()
        self.total_tokens = 0
        self.request_count = 0

    @property
    def supports_native_tools(self) -> bool:
        return self.native_tools

    def chat(self, messages: List[Dict[str, Any]], system: Optional[str] = None,
             tools: Optional[List[Dict]] = None,
             tool_choice: Optional[Any] = None) -> LLMResponse:
        if system:
            messages = [{"role": "system", "content": system}] + list(messages)
        kwargs: Dict[str, Any] = {
            "model": self.model, "messages": messages,
            "temperature": self.temperature, "max_tokens": self.max_tokens,
        }
        if tools and self.native_tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = tool_choice or "auto"
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key

        try:
            response = litellm.completion(**kwargs)
        except litellm.exceptions.AuthenticationError as e:
            raise ConnectionError(f"Auth failed. Check API key.\n{e}")
        except litellm.exceptions.APIConnectionError as e:
            raise ConnectionError(f"Cannot connect: model={self.model}, base={self.api_base or 'default'}\n{e}")
        except Exception as e:
            raise ConnectionError(f"LLM error: {type(e).__name__}: {e}")

        msg = response.choices[0].message

        tool_calls = None
        if getattr(msg, "tool_calls", None):
            tool_calls = []
            for tc in msg.tool_calls:
                try:
                    args = json.loads(tc.function.arguments or "{}")
                except json.JSONDecodeError:
                    args = {"_raw": tc.function.arguments}
                if not isinstance(args, dict):
                    args = {"_raw": args}
                tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=args))

        usage = None
        if getattr(response, "usage", None):
            usage = {"prompt_tokens": response.usage.prompt_tokens,
                     "completion_tokens": response.usage.completion_tokens,
                     "total_tokens": response.usage.total_tokens}
        self._record_usage(usage)

        return LLMResponse(content=msg.content, tool_calls=tool_calls, usage=usage)

    def _record_usage(self, usage: Optional[Dict]) -> None:
        # Teams running in parallel may share one adapter.
        with self._usage_lock:
            self.request_count += 1
            if usage:
                self.total_tokens += int(usage.get("total_tokens") or 0)
