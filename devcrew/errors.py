"""Structured error types for the orchestration engine."""


class DevcrewError(Exception):
    """Base error for all devcrew operations."""
    pass


class ToolError(DevcrewError):
    """Error raised during tool execution."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"{tool_name} error: {message}")


class PlanningError(DevcrewError):
    """Raised when a plan cannot be produced for a task or goal."""

    def __init__(self, message: str):
        super().__init__(f"Planning failed: {message}")


class ConfigError(DevcrewError):
    """Raised when configuration values are invalid."""
    pass


class ShellBlockedError(DevcrewError):
    """Raised when a shell command is blocked by safety guards."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Blocked: {reason}")


class ShellTimeoutError(DevcrewError):
    """Raised when a shell command exceeds its timeout."""

    def __init__(self, timeout: int):
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s")
