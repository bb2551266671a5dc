"""Tool registry: name-keyed dispatch over an immutable tool tuple."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import ToolError, ShellBlockedError, ShellTimeoutError
from ..logger import get_logger
from .file_ops import FileOps, FileOperationError
from .shell import ShellExecutor
from .templates import TemplateGenerator
from .types import AgentRole, Tool, ToolDefinition, ToolParameter, ToolResult, FunctionTool, filter_tools_by_role

_log = get_logger(__name__)

# Shorthand helpers for parameter definitions
_S = lambda name, desc, required=True: ToolParameter(name, "string", desc, required)
_I = lambda name, desc, required=False: ToolParameter(name, "integer", desc, required)

# Tools every engineering role may use.
_BUILDERS = (AgentRole.DEV, AgentRole.QA, AgentRole.DEVOPS)


class ToolRegistry:
    """Holds the tools wired for one process.

    The tool set is fixed once constructed; ``for_role`` returns a narrowed
    registry sharing the same tool objects.
    """

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: Tuple[Tool, ...] = ()
        self._by_name: Dict[str, Tool] = {}
        for tool in tools:
            self._add(tool)

    def _add(self, tool: Tool) -> None:
        if tool.name in self._by_name:
            raise ValueError(f"Duplicate tool name: {tool.name}")
        self._tools = self._tools + (tool,)
        self._by_name[tool.name] = tool

    @property
    def tools(self) -> Tuple[Tool, ...]:
        return self._tools

    @property
    def names(self) -> List[str]:
        return [t.name for t in self._tools]

    def get(self, name: str) -> Optional[Tool]:
        return self._by_name.get(name)

    def has(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self):
        return iter(self._tools)

    def for_role(self, role: "AgentRole | str") -> "ToolRegistry":
        return ToolRegistry(filter_tools_by_role(self._tools, role))

    @property
    def schemas(self) -> List[dict]:
        return [t.definition.to_schema() for t in self._tools]

    def definitions(self) -> List[ToolDefinition]:
        return [t.definition for t in self._tools]

    def execute(self, tool_name: str, params: Dict[str, Any]) -> ToolResult:
        """Dispatch a tool call by name. Never raises."""
        tool = self._by_name.get(tool_name)
        if tool is None:
            return ToolResult.fail(f"Tool not found: {tool_name}")
        if not isinstance(params, dict):
            params = {}

        try:
            return tool.execute(params)
        except (FileOperationError, ToolError, ShellBlockedError, ShellTimeoutError) as e:
            return ToolResult.fail(str(e))
        except TypeError as e:
            return ToolResult.fail(f"Invalid arguments for {tool_name}: {e}")
        except Exception as e:
            _log.warning("Tool %s raised %s: %s", tool_name, type(e).__name__, e)
            return ToolResult.fail(f"{tool_name} error: {type(e).__name__}: {e}")


def build_default_registry(project_root: str, blocked_commands: Optional[list] = None,
                           command_timeout: int = 120) -> ToolRegistry:
    """Wire the built-in file, shell and template tools for ``project_root``."""
    files = FileOps(project_root)
    shell = ShellExecutor(project_root, blocked_commands, command_timeout)
    templates = TemplateGenerator(project_root)
    F = FunctionTool
    D = ToolDefinition

    def _run_command(command: str) -> ToolResult:
        result = shell.run(command)
        if result.exit_code != 0:
            return ToolResult(success=False, output=result.output,
                              error=f"Command exited with code {result.exit_code}\n{result.output}")
        return ToolResult.ok(result.output)

    return ToolRegistry([
        # ── File operations ──
        F(D("read_file", "Read file contents with line numbers.",
            (_S("path", "File path relative to project root"),
             _I("start_line", "Start line (1-indexed)"),
             _I("end_line", "End line (inclusive)"))),
          lambda path, start_line=None, end_line=None: files.read_file(path, start_line, end_line)),
        F(D("write_file", "Create or overwrite a file with the given content.",
            (_S("path", "File path relative to project root"),
             _S("content", "Full file content"))),
          lambda path, content: files.write_file(path, content),
          roles=_BUILDERS),
        F(D("list_directory", "List files and directories in tree format.",
            (_S("path", "Directory path (default: .)", required=False),
             _I("max_depth", "Max depth (default 3)"))),
          lambda path=".", max_depth=3: files.list_directory(path, max_depth)),

        # ── Execution ──
        F(D("run_command", "Execute a shell command in the project directory.",
            (_S("command", "Shell command to run"),)),
          _run_command,
          roles=(AgentRole.DEV, AgentRole.QA, AgentRole.DEVOPS, AgentRole.OPS)),

        # ── Project templates ──
        F(D("list_templates", "List available project templates.", ()),
          lambda: templates.list_templates(),
          roles=(AgentRole.PM, AgentRole.DEV)),
        F(D("generate_project", "Generate a new project from a template.",
            (_S("template", "Template name: react, express or fullstack"),
             _S("projectName", "Directory name for the new project"),
             _S("description", "Short project description", required=False))),
          lambda template, projectName, description="": templates.generate(template, projectName, description),
          roles=(AgentRole.DEV,)),
    ])
