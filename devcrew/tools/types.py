"""Tool contract, capability roles and the role filter."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple


class AgentRole(str, Enum):
    """Closed set of worker roles a tool can be scoped to."""

    PM = "pm"
    DEV = "dev"
    QA = "qa"
    DEVOPS = "devops"
    OPS = "ops"
    CONTENT = "content"
    MONITORING = "monitoring"
    INCIDENT = "incident"

    @classmethod
    def parse(cls, value: "str | AgentRole") -> "AgentRole":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(r.value for r in cls)
            raise ValueError(f"Unknown role '{value}'. Valid roles: {valid}")


# JSON-schema primitive tags accepted for tool parameters.
PARAM_TYPES = ("string", "number", "integer", "boolean", "object", "array")


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str
    description: str
    required: bool = True

    def __post_init__(self):
        if self.type not in PARAM_TYPES:
            raise ValueError(f"Unsupported parameter type '{self.type}' for '{self.name}'")


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = ()

    def to_schema(self) -> dict:
        """Build an OpenAI-compatible function schema."""
        properties = {
            p.name: {"type": p.type, "description": p.description}
            for p in self.parameters
        }
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }


@dataclass
class ToolResult:
    success: bool
    output: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: str = "") -> "ToolResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


class Tool:
    """A named capability a worker can invoke.

    ``roles`` of ``None`` means the tool is visible to every role; an empty
    set hides it from all roles.
    """

    def __init__(self, definition: ToolDefinition,
                 roles: Optional[Iterable[AgentRole]] = None):
        self.definition = definition
        self.roles: Optional[FrozenSet[AgentRole]] = (
            None if roles is None else frozenset(AgentRole.parse(r) for r in roles)
        )

    @property
    def name(self) -> str:
        return self.definition.name

    def visible_to(self, role: AgentRole) -> bool:
        if self.roles is None:
            return True
        return role in self.roles

    def execute(self, params: Dict[str, Any]) -> ToolResult:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"


class FunctionTool(Tool):
    """Tool backed by a plain callable returning a string or a ToolResult."""

    def __init__(self, definition: ToolDefinition,
                 handler: Callable[..., Any],
                 roles: Optional[Iterable[AgentRole]] = None):
        super().__init__(definition, roles)
        self._handler = handler

    def execute(self, params: Dict[str, Any]) -> ToolResult:
        missing = [p.name for p in self.definition.parameters
                   if p.required and p.name not in params]
        if missing:
            return ToolResult.fail(f"Missing required parameter(s): {', '.join(missing)}")
        result = self._handler(**params)
        if isinstance(result, ToolResult):
            return result
        return ToolResult.ok("" if result is None else str(result))


def filter_tools_by_role(tools: Iterable[Tool], role: "AgentRole | str") -> List[Tool]:
    """Return the tools visible to ``role``, preserving input order."""
    role = AgentRole.parse(role)
    return [tool for tool in tools if tool.visible_to(role)]
