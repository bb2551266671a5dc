"""Shell command execution with safety guards."""

import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ..errors import ShellBlockedError, ShellTimeoutError
from ..logger import get_logger

_log = get_logger(__name__)

MAX_STDOUT_CHARS = 8000
MAX_STDERR_CHARS = 4000


@dataclass
class CommandResult:
    exit_code: int
    output: str


class ShellExecutor:
    """Run commands in the project directory, refusing dangerous payloads."""

    # Regex signatures for high-risk commands.
    DANGEROUS_PATTERNS = [
        r"\brm\b\s+-[^\s;|&]*r[^\s;|&]*f[^\s;|&]*\s+/(?:\s|$|\*)",
        r"\b(?:mkfs(?:\.[a-z0-9_+\-]+)?|fdisk|parted|wipefs)\b",
        r"\bdd\b[^\n;|&]*\bif\s*=",
        r"\bchmod\b\s+(?:-[^\s]+\s+)?0?777\b",
        r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:",
        r"(?:>|>>)\s*/dev/sd[a-z]\d*",
        r"\bcurl\b[^\n;|&]*\|\s*(?:sh|bash|zsh)\b",
        r"\bwget\b[^\n;|&]*\|\s*(?:sh|bash|zsh)\b",
        r"\bsudo\b",
    ]

    def __init__(self, project_root: str, blocked_commands: list = None, timeout: int = 120):
        self.project_root = Path(project_root).resolve()
        self.timeout = timeout
        self.blocked = [b for b in (blocked_commands or []) if b.strip()]
        self._dangerous_regexes = [
            re.compile(pattern, re.IGNORECASE) for pattern in self.DANGEROUS_PATTERNS
        ]

    @staticmethod
    def _canonicalize_command(command: str) -> str:
        """Normalize shell syntax noise so quoted variants are easier to match."""
        normalized = command.lower().replace("\\\n", " ")
        normalized = re.sub(r"[\'\"`\\]", "", normalized)
        normalized = re.sub(r"\s+", " ", normalized)
        return normalized.strip()

    def block_reason(self, command: str):
        canonical = self._canonicalize_command(command)
        compact = canonical.replace(" ", "")
        for blocked in self.blocked:
            rule = self._canonicalize_command(blocked)
            if rule in canonical or rule.replace(" ", "") in compact:
                return f"matches blocked command '{blocked}'"
        for pattern in self._dangerous_regexes:
            if pattern.search(command) or pattern.search(canonical):
                return f"matches dangerous pattern '{pattern.pattern}'"
        return None

    def run(self, command: str) -> CommandResult:
        reason = self.block_reason(command)
        if reason:
            _log.warning("Command blocked: %s", reason)
            raise ShellBlockedError(reason)

        _log.debug("Executing command: %s", command[:100])
        try:
            result = subprocess.run(
                ["bash", "-c", command],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(self.project_root),
                env={**os.environ, "TERM": "dumb", "CI": "1"},
            )
        except subprocess.TimeoutExpired:
            raise ShellTimeoutError(self.timeout)

        parts = []
        if result.stdout:
            out = result.stdout
            if len(out) > MAX_STDOUT_CHARS:
                half = MAX_STDOUT_CHARS // 2
                out = out[:half] + "\n...(truncated)...\n" + out[-half:]
            parts.append(out)
        if result.stderr:
            err = result.stderr
            if len(err) > MAX_STDERR_CHARS:
                half = MAX_STDERR_CHARS // 2
                err = err[:half] + "\n...(truncated)...\n" + err[-half:]
            parts.append(f"[stderr]\n{err}")
        if result.returncode != 0:
            parts.append(f"[exit code: {result.returncode}]")

        output = "\n".join(parts).strip()
        return CommandResult(exit_code=result.returncode, output=output or "(no output)")
