from .types import AgentRole, Tool, FunctionTool, ToolDefinition, ToolParameter, ToolResult, filter_tools_by_role
from .registry import ToolRegistry, build_default_registry
__all__ = [
    "AgentRole", "Tool", "FunctionTool", "ToolDefinition", "ToolParameter",
    "ToolResult", "filter_tools_by_role", "ToolRegistry", "build_default_registry",
]
