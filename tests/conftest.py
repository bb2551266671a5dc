"""Shared fixtures for devcrew tests."""

import json
import os
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import yaml

from devcrew.llm import LLMResponse, ToolCall
from devcrew.tools.registry import build_default_registry


def tool_call_text(tool: str, **params) -> str:
    """A tagged tool call as a text-protocol model would write it."""
    return f'<tool_call>\n{json.dumps({"tool": tool, "params": params})}\n</tool_call>'


def native_call(tool: str, call_id: str = "call_1", **params) -> LLMResponse:
    return LLMResponse(content=None, tool_calls=[ToolCall(id=call_id, name=tool, arguments=params)])


class FakeLLM:
    """LLM stub that returns a sequence of pre-set responses.

    Entries may be strings, LLMResponse objects or exceptions (raised). The
    last entry repeats once the script runs out. A ``responder`` callable,
    when given, replaces the script: it receives the user prompt that opened
    the exchange and the call's ``tool_choice``.
    """

    def __init__(self, responses: Optional[List[Any]] = None, native_tools: bool = False,
                 responder: Optional[Callable[[str, Any], Any]] = None):
        self._responses = list(responses or ["Done."])
        self._responder = responder
        self.native_tools = native_tools
        self.calls: List[Dict[str, Any]] = []
        self.model = "test-model"

    @property
    def supports_native_tools(self) -> bool:
        return self.native_tools

    def chat(self, messages, system=None, tools=None, tool_choice=None):
        self.calls.append({
            "messages": list(messages),
            "system": system,
            "tools": tools,
            "tool_choice": tool_choice,
        })
        if self._responder is not None:
            prompts = [m["content"] for m in messages if m.get("role") == "user"
                       and not str(m.get("content", "")).startswith("<tool_result>")]
            reply = self._responder(prompts[-1] if prompts else "", tool_choice)
        else:
            idx = min(len(self.calls) - 1, len(self._responses) - 1)
            reply = self._responses[idx]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return LLMResponse(content=reply)
        return reply


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory and cd into it."""
    orig = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(orig)


@pytest.fixture
def registry(tmp_path):
    """Built-in tools rooted at a temporary project directory."""
    return build_default_registry(str(tmp_path))


@pytest.fixture
def sample_config_data():
    """Minimal .devcrew.yml data dict."""
    return {
        "active-model": "local",
        "command-timeout": 30,
        "verbose": False,
        "models": {
            "local": {
                "provider": "local",
                "model": "openai/model",
                "description": "Local test model",
                "temperature": 0.0,
                "max-tokens": 8192,
                "api-base": "http://localhost:8080/v1",
                "api-key": "not-needed",
                "native-tools": False,
            }
        },
        "orchestration": {
            "max-tool-iterations": 6,
            "max-team-iterations": 3,
            "max-parallel-teams": 2,
            "teams": ["frontend", {"name": "backend"}],
        },
    }


@pytest.fixture
def config_yaml_file(tmp_dir, sample_config_data):
    """Write a config YAML to tmp_dir and return its Path."""
    path = tmp_dir / ".devcrew.yml"
    with open(path, "w") as f:
        yaml.dump(sample_config_data, f, default_flow_style=False)
    return path


@pytest.fixture
def mock_console():
    """A mock Rich Console that silently accepts all print calls."""
    c = MagicMock()
    c.print = MagicMock()
    return c
