"""Role definitions, worker factory and developer-role selection."""

import re
from dataclasses import dataclass
from typing import Dict, Optional, TYPE_CHECKING

from ..tools.types import AgentRole

if TYPE_CHECKING:
    from ..llm import LLMAdapter
    from ..tools.registry import ToolRegistry
    from .tasks import Task


@dataclass
class RoleSpec:
    """Specification for a team role — drives worker construction."""

    name: str
    capability: AgentRole
    description: str
    system_prompt: str
    max_iterations: Optional[int] = None


_TOOLS_OR_FAIL = (
    "You do the work by CALLING TOOLS, not by describing code.\n"
    "Describing what you would do counts as failure and the task will be retried.\n"
    "Read existing files before changing them and write complete file contents."
)

DEFAULT_ROLES: Dict[str, RoleSpec] = {
    "dev": RoleSpec(
        name="dev",
        capability=AgentRole.DEV,
        description="General software developer",
        system_prompt=(
            "You are a Developer in an autonomous software team.\n"
            f"{_TOOLS_OR_FAIL}\n"
            "Use generate_project for new projects and write_file for every change."
        ),
    ),
    "frontend": RoleSpec(
        name="frontend",
        capability=AgentRole.DEV,
        description="Frontend developer (React, TypeScript, CSS)",
        system_prompt=(
            "You are a Frontend Developer specialised in React with TypeScript.\n"
            f"{_TOOLS_OR_FAIL}\n"
            "Put components in src/components/ and hooks in src/hooks/, and update "
            "App.tsx so new components are rendered."
        ),
    ),
    "backend": RoleSpec(
        name="backend",
        capability=AgentRole.DEV,
        description="Backend developer (Node.js, Express, REST APIs)",
        system_prompt=(
            "You are a Backend Developer specialised in Node.js and Express.\n"
            f"{_TOOLS_OR_FAIL}\n"
            "Put routes in src/routes/ and register every new router in src/app.ts. "
            "Return proper status codes, including 404 for missing resources."
        ),
    ),
    "qa": RoleSpec(
        name="qa",
        capability=AgentRole.QA,
        description="Quality assurance: runs tests and reviews code",
        system_prompt=(
            "You are a QA Engineer in an autonomous software team.\n"
            "Verify work by reading code and running the test suite with run_command.\n"
            "Report results as 'N passed, M failed'. State clearly whether the tests "
            "passed or the verification failed, and list every issue found."
        ),
    ),
    "pm": RoleSpec(
        name="pm",
        capability=AgentRole.PM,
        description="Project manager: plans work and decides on failures",
        system_prompt=(
            "You are a Project Manager for an autonomous software team.\n"
            "Break work into small, concrete developer and QA tasks and decide how "
            "to react when a task fails. Follow the requested output format exactly."
        ),
    ),
    "coordinator": RoleSpec(
        name="coordinator",
        capability=AgentRole.PM,
        description="Executive coordinator: turns goals into projects for teams",
        system_prompt=(
            "You are the executive coordinator of several software teams.\n"
            "Turn strategic goals into a small number of concrete projects and "
            "decide when a problem needs a human. Follow the requested output format exactly."
        ),
    ),
}


def load_roles(overrides: Optional[Dict[str, dict]] = None) -> Dict[str, RoleSpec]:
    """Merge ``roles:`` overrides from the orchestration config onto the defaults."""
    roles = dict(DEFAULT_ROLES)
    for name, spec in (overrides or {}).items():
        base = roles.get(name)
        roles[name] = RoleSpec(
            name=name,
            capability=AgentRole.parse(spec.get("capability", base.capability if base else "dev")),
            description=spec.get("description", base.description if base else name),
            system_prompt=spec.get("instructions", base.system_prompt if base else ""),
            max_iterations=spec.get("max-iterations", base.max_iterations if base else None),
        )
    return roles


def create_worker(role: RoleSpec, llm: "LLMAdapter", tools: "ToolRegistry",
                  max_iterations: int, worker_cls=None, **kwargs):
    """Build a worker for ``role`` seeing only the tools its capability allows."""
    from .worker import Worker

    cls = worker_cls or Worker
    return cls(
        name=role.name,
        llm=llm,
        tools=tools.for_role(role.capability),
        system_prompt=role.system_prompt,
        max_iterations=role.max_iterations or max_iterations,
        **kwargs,
    )


# ── Developer selection ──

FRONTEND_KEYWORDS = frozenset({
    "react", "component", "tsx", "jsx", "ui", "frontend",
    "css", "tailwind", "styled", "button", "form", "modal",
    "page", "layout", "view", "hook", "state", "props",
    "dashboard", "sidebar", "navbar", "header", "footer",
    "responsive", "mobile", "desktop", "animation", "transition",
})

BACKEND_KEYWORDS = frozenset({
    "api", "endpoint", "route", "router", "express", "backend",
    "server", "database", "db", "model", "schema", "migration",
    "middleware", "authentication", "auth", "jwt", "session",
    "rest", "graphql", "controller", "service", "repository",
    "query", "mutation", "resolver", "handler", "prisma", "sql",
})

FRONTEND_FILE_SUFFIXES = (".tsx", ".jsx", ".css", ".scss", ".vue", ".html")
BACKEND_FILE_HINTS = ("route", "api", "server", ".py")
FILE_HINT_WEIGHT = 2
MIN_SCORE = 2

GENERAL = "dev"
FRONTEND = "frontend"
BACKEND = "backend"

_WORD_RE = re.compile(r"[a-z0-9]+")


def select_dev_role(task: "Task") -> str:
    """Pick ``frontend``, ``backend`` or the general ``dev`` role for a task."""
    context = task.context or {}
    explicit = str(context.get("agent_type") or "").strip().lower()
    if explicit in (FRONTEND, BACKEND):
        return explicit

    words = set(_WORD_RE.findall(f"{task.title} {task.description}".lower()))
    frontend = len(words & FRONTEND_KEYWORDS)
    backend = len(words & BACKEND_KEYWORDS)

    files = context.get("files") or []
    if isinstance(files, str):
        files = [files]
    for f in files:
        name = str(f).lower()
        if name.endswith(FRONTEND_FILE_SUFFIXES):
            frontend += FILE_HINT_WEIGHT
        if any(hint in name for hint in BACKEND_FILE_HINTS):
            backend += FILE_HINT_WEIGHT

    if frontend > backend and frontend >= MIN_SCORE:
        return FRONTEND
    if backend > frontend and backend >= MIN_SCORE:
        return BACKEND
    return GENERAL
