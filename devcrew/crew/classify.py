"""Task classification and response-evidence heuristics.

Everything here is a pure function over text. The keyword tables are data so
they can be tuned without touching the control flow that consumes them.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

# ── Keyword tables ──

SCAFFOLD_KEYWORDS = (
    "scaffold",
    "generate_project",
    "template=",
    "create project structure",
    "fullstack",
    "do not write files manually",
)

SIMPLE_CREATION_PHRASES = (
    "create a simple fullstack",
    "create a fullstack project",
    "create a simple react",
    "create a react project",
    "create a simple express",
    "create an express api project",
    "create a simple api project",
    "create an api project",
)

# Concrete feature requirements mean the task needs planning, not bare templating.
CONCRETE_REQUIREMENT_KEYWORDS = (
    "endpoint",
    "api:",
    "route",
    "get /",
    "post /",
    "put /",
    "patch /",
    "delete /",
    "component",
    "model:",
    "with:",
    "requirements:",
    "must have",
    "should have",
)

CUSTOMIZE_KEYWORDS = (
    "customize",
    "working directory:",
    "add/modify files",
    "modify files",
    "update src/",
    "create component",
    "add a new route",
    "add new route",
    "add endpoint",
    "existing project",
    "existing express",
    "existing react",
    "write_file tool",
    "use write_file",
)

CUSTOMIZE_PATTERNS = (
    re.compile(r"\badd\s+(?:[\w/:.{}-]+\s+){0,3}routes?\b"),     # "add route", "add a GET /users route"
    re.compile(r"\badd\s+(?:[\w/:.{}-]+\s+){0,3}endpoints?\b"),  # "add items endpoint"
    re.compile(r"\bcreate\s+\w+\s+component\b"),                 # "create Todo component"
    re.compile(r"\bupdate\s+\S+\.\w+"),                           # "update app.ts"
    re.compile(r"\bmodify\s+\S+\.\w+"),                           # "modify routes.ts"
)

NEW_PROJECT_KEYWORDS = (
    "new project",
    "new application",
    "new app",
    "fullstack",
    "full-stack",
    "full stack",
    "todo application",
    "todo app",
    "web application",
    "web app",
)

HARD_FAILURE_MARKERS = (
    "error:",
    "exception:",
    "failed to write",
    "permission denied",
    "enoent",
    "eacces",
    "syntax error",
    "compilation failed",
)

SOFT_FAILURE_MARKERS = (
    "failed to",
    "could not",
    "unable to",
    "cannot complete",
    "blocked by",
)

TOOL_USAGE_MARKERS = (
    "tool_call",
    "tool_result",
    "wrote to",
    "file created",
    "file updated",
    "files created",
    "files written",
    "generated project",
    "scaffolded",
    "contents of",
    "i created",
    "i wrote",
)

PROJECT_NAME_PATTERNS = (
    re.compile(r"projectName[=:]\s*[\"']?([a-zA-Z0-9_-]+)[\"']?", re.IGNORECASE),
    re.compile(r"called\s+[\"']([a-zA-Z0-9_-]+)[\"']", re.IGNORECASE),
    re.compile(r"\b(?:named|name)\s+[\"']?([a-zA-Z0-9_-]+)[\"']?", re.IGNORECASE),
    re.compile(r"\bdirectory\s*[\"']?([a-zA-Z0-9_-]+)[\"']?", re.IGNORECASE),
    re.compile(r"\bfolder\s*[\"']?([a-zA-Z0-9_-]+)[\"']?", re.IGNORECASE),
    re.compile(r"[\"']([a-zA-Z0-9_-]+)[\"']\s*(?:directory|folder|project)", re.IGNORECASE),
    re.compile(r"project\s+[\"']([a-zA-Z0-9_-]+)[\"']", re.IGNORECASE),
)

DEFAULT_PROJECT_NAME = "my-project"

# Tools whose calls count as evidence for each task class.
GENERATE_TOOL = "generate_project"
WRITE_TOOL = "write_file"


class TaskClass(Enum):
    SCAFFOLD = "scaffold"
    CUSTOMIZE = "customize"
    GENERAL = "general"


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(k in text for k in keywords)


def has_concrete_requirements(text: str) -> bool:
    return _contains_any(text.lower(), CONCRETE_REQUIREMENT_KEYWORDS)


def is_scaffold_text(text: str) -> bool:
    lowered = text.lower()
    asks_for_scaffold = (_contains_any(lowered, SCAFFOLD_KEYWORDS)
                         or _contains_any(lowered, SIMPLE_CREATION_PHRASES))
    return asks_for_scaffold and not has_concrete_requirements(lowered)


def is_customize_text(text: str) -> bool:
    lowered = text.lower()
    if _contains_any(lowered, CUSTOMIZE_KEYWORDS):
        return True
    return any(p.search(lowered) for p in CUSTOMIZE_PATTERNS)


def is_new_project_text(text: str) -> bool:
    return _contains_any(text.lower(), NEW_PROJECT_KEYWORDS)


def classify_task(title: str, description: str) -> TaskClass:
    """Scaffold wins over customize; anything else is general."""
    text = f"{title} {description}"
    if is_scaffold_text(text):
        return TaskClass.SCAFFOLD
    if is_customize_text(text):
        return TaskClass.CUSTOMIZE
    return TaskClass.GENERAL


def extract_project_name(text: str, default: str = DEFAULT_PROJECT_NAME) -> str:
    for pattern in PROJECT_NAME_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).lower() not in ("the", "a", "an"):
            return match.group(1)
    return default


def detect_template(text: str, default: str = "fullstack") -> str:
    lowered = text.lower()
    if "react" in lowered and "express" not in lowered and "backend" not in lowered:
        return "react"
    if "express" in lowered and "react" not in lowered and "frontend" not in lowered:
        return "express"
    return default


# ── Evidence ──


@dataclass(frozen=True)
class Insufficiency:
    """Why an attempt did not count as doing the work."""

    reason: str
    required: List[str] = field(default_factory=list)


def check_evidence(task_class: TaskClass, metrics) -> Optional[Insufficiency]:
    """Return None when ``metrics`` satisfy the rule for ``task_class``."""
    if task_class is TaskClass.SCAFFOLD:
        if metrics.count(GENERATE_TOOL) == 0:
            return Insufficiency(
                "Scaffold task requires generate_project tool call. "
                "You described what to do instead of doing it.",
                [GENERATE_TOOL],
            )
        return None
    if task_class is TaskClass.CUSTOMIZE:
        if metrics.count(WRITE_TOOL) == 0:
            return Insufficiency(
                "Customize task requires at least one write_file call. "
                "You described changes instead of making them.",
                [WRITE_TOOL],
            )
        return None
    if metrics.total == 0:
        return Insufficiency(
            "No tool calls were made. You must use tools to complete the task, "
            "not just describe what you would do."
        )
    return None


def analyze_response(response: str, successful_calls: int) -> bool:
    """Decide whether an attempt that passed the evidence rule succeeded."""
    lowered = (response or "").lower()
    if successful_calls > 0 and not _contains_any(lowered, HARD_FAILURE_MARKERS):
        return True
    if _contains_any(lowered, SOFT_FAILURE_MARKERS):
        return False
    return _contains_any(lowered, TOOL_USAGE_MARKERS)


_WROTE_TO_RE = re.compile(r"wrote\s+to\s+['\"]?([\w./-]+)['\"]?", re.IGNORECASE)
_CREATED_RE = re.compile(r"created\s+['\"]?([^\s'\">]+\.[a-z]+)['\"]?", re.IGNORECASE)


def extract_modified_files(response: str) -> List[str]:
    """File paths the response claims to have written, in order, deduplicated."""
    found = [m.group(1).rstrip(".") for m in _WROTE_TO_RE.finditer(response or "")]
    found += [m.group(1).rstrip(".") for m in _CREATED_RE.finditer(response or "")]
    return list(dict.fromkeys(f for f in found if f))
