"""ProjectManager: breaks a parent task into dev/QA sub-tasks and rules on failures."""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..errors import PlanningError
from ..logger import get_logger
from .board import TaskBoard
from .classify import (
    DEFAULT_PROJECT_NAME, detect_template, extract_project_name,
    is_customize_text, is_new_project_text,
)
from .tasks import (
    DEV, QA, OrderItem, Task, TaskBreakdown, TaskKind, TaskResult, TaskStatus,
    can_retry, create_task,
)
from .worker import Worker

_log = get_logger(__name__)

PLANNING_ITERATIONS = 3

# Vocabulary that sends a task straight to the template generator.
FAST_TRACK_KEYWORDS = ("scaffold", "generate_project", "template=")

_DEV_SECTION_RE = re.compile(r"DEV_TASKS:?\s*([\s\S]*?)(?=QA_TASKS:|EXECUTION_ORDER:|$)", re.IGNORECASE)
_QA_SECTION_RE = re.compile(r"QA_TASKS:?\s*([\s\S]*?)(?=EXECUTION_ORDER:|DEV_TASKS:|$)", re.IGNORECASE)
_ORDER_SECTION_RE = re.compile(r"EXECUTION_ORDER:?\s*([\s\S]*?)$", re.IGNORECASE)
_TASK_LINE_RE = re.compile(r"\d+\.\s*\[?([^\]\n-]+)\]?\s*[-:]\s*([^\n]+)")
_ORDER_LINE_RE = re.compile(r"\d+\.\s*(DEV|QA):(\d+)", re.IGNORECASE)

_SECTION_RE = "{name}[^:\\n]*:\\s*([\\s\\S]*?)(?=FRONTEND|BACKEND|REQUIREMENTS:|$)"
_REQUIREMENT_MARKERS = ("requirements:", "with:", "must have")

_BACKEND_HINTS = ("route", "endpoint", "api", "express", "server", "backend", "database", "middleware")
_FRONTEND_HINTS = ("component", "react", "frontend", "ui", "view", "page", "button", "form", "jsx", "tsx")

PLAN_FORMAT = """\
Please break this down into specific tasks for the Developer and QA agents.

Format your response as:
DEV_TASKS:
1. [Title] - [Description]
2. [Title] - [Description]

QA_TASKS:
1. [Title] - [Description]

EXECUTION_ORDER:
1. DEV:1
2. QA:1
3. DEV:2
"""

NEW_PROJECT_NOTE = """\
**IMPORTANT**: This is a new project. The first dev task MUST scaffold it with
the generate_project tool (template="fullstack", "react" or "express") instead of
writing package.json and config files by hand. Later tasks customize the result.
"""

ANALYZE_PROMPT = """\
## Task Failed - Analyze

**Task**: {title}
**Agent**: {role}
**Attempt**: {attempts}/{max_attempts}

**Result**:
{result}

Should this task be retried? Provide brief guidance for the next attempt.
"""


class DecisionAction(Enum):
    PROCEED = "proceed"
    RETRY = "retry"
    ESCALATE = "escalate"


@dataclass(frozen=True)
class Decision:
    action: DecisionAction
    feedback: Optional[str] = None


# ── Parsing ──


def _parse_task_lines(section: str, kind: TaskKind, parent: Task,
                      created_by: str, max_attempts: int) -> List[Task]:
    tasks = []
    for title, description in _TASK_LINE_RE.findall(section):
        tasks.append(create_task(
            kind, title.strip(), description.strip(),
            created_by=created_by, priority=parent.priority,
            parent_id=parent.id, max_attempts=max_attempts,
        ))
    return tasks


def parse_breakdown(response: str, parent: Task, created_by: str = "pm",
                    max_attempts: int = 3) -> TaskBreakdown:
    """Read DEV_TASKS / QA_TASKS / EXECUTION_ORDER sections into a breakdown.

    Returns an empty breakdown when nothing parses; callers decide the fallback.
    """
    text = response or ""
    breakdown = TaskBreakdown()

    match = _DEV_SECTION_RE.search(text)
    if match:
        breakdown.dev_tasks = _parse_task_lines(match.group(1), TaskKind.IMPLEMENT,
                                                parent, created_by, max_attempts)
    match = _QA_SECTION_RE.search(text)
    if match:
        breakdown.qa_tasks = _parse_task_lines(match.group(1), TaskKind.TEST,
                                               parent, created_by, max_attempts)

    match = _ORDER_SECTION_RE.search(text)
    if match:
        for role, index in _ORDER_LINE_RE.findall(match.group(1)):
            pool = breakdown.dev_tasks if role.upper() == "DEV" else breakdown.qa_tasks
            position = int(index) - 1
            if 0 <= position < len(pool):
                breakdown.order.append(OrderItem(role.lower(), pool[position].id))

    if not breakdown.order:
        breakdown.order = ([OrderItem(DEV, t.id) for t in breakdown.dev_tasks]
                           + [OrderItem(QA, t.id) for t in breakdown.qa_tasks])
    return breakdown


def detect_agent_type(text: str) -> Optional[str]:
    lowered = text.lower()
    backend = any(k in lowered for k in _BACKEND_HINTS)
    frontend = any(k in lowered for k in _FRONTEND_HINTS)
    if backend and not frontend:
        return "backend"
    if frontend and not backend:
        return "frontend"
    return None


def extract_section(text: str, section: str) -> Optional[str]:
    """Body of a ``BACKEND:``/``FRONTEND:`` block up to the next block."""
    match = re.search(_SECTION_RE.format(name=section), text, re.IGNORECASE)
    if not match or not match.group(1).strip():
        return None
    return match.group(1).strip()


def _customize_description(side: str, project: str, requirements: str) -> str:
    root = f"{project}/{side}"
    if side == "backend":
        steps = (
            f"1. Use read_file to check the existing {root}/src/app.ts\n"
            f"2. Create route files in {root}/src/routes/ for each endpoint group\n"
            f"3. Update {root}/src/app.ts to import and register the new routes\n"
        )
    else:
        steps = (
            f"1. Use read_file to check the existing {root}/src/App.tsx\n"
            f"2. Create component files in {root}/src/components/\n"
            f"3. Update {root}/src/App.tsx to render the new components\n"
        )
    return (
        f"## Customize {side.capitalize()} for {project}\n\n"
        f"Project root: {root}/\n\n"
        f"Requirements:\n{requirements}\n\n"
        f"Steps (ALL paths must start with {root}/):\n{steps}\n"
        "IMPORTANT: Use write_file to create or modify files. Do NOT just describe what to do."
    )


class ProjectManager(Worker):
    """Planning and decision collaborator for a team.

    Owns the team's TaskBoard: every task it plans is tracked there, and
    every result it rules on updates the board.
    """

    def __init__(self, *args, board: Optional[TaskBoard] = None,
                 max_retries: int = 3, workspace: str = ".", **kwargs):
        super().__init__(*args, **kwargs)
        self.board = board if board is not None else TaskBoard()
        self.max_retries = max_retries
        self.workspace = workspace

    # ── Planning ──

    @staticmethod
    def is_fast_track(task: Task) -> bool:
        """Plain scaffold requests are broken down without a model call."""
        text = f"{task.title} {task.description}".lower()
        if any(k in text for k in FAST_TRACK_KEYWORDS):
            return True
        return is_new_project_text(text) and not is_customize_text(text)

    def plan_task(self, task: Task) -> TaskBreakdown:
        """Produce the breakdown for ``task``.

        An unreachable backend raises PlanningError; other errors propagate.
        """
        if self.is_fast_track(task):
            breakdown = self.scaffold_breakdown(task)
            _log.info("%s: fast-track breakdown for %s (%d tasks)",
                      self.name, task.id, len(breakdown.dev_tasks))
        else:
            try:
                response = self.run_with_tools(self.build_planning_prompt(task),
                                               max_iterations=PLANNING_ITERATIONS)
            except ConnectionError as e:
                raise PlanningError(f"{task.id}: {e}") from e
            breakdown = parse_breakdown(response, task, created_by=self.name,
                                        max_attempts=self.max_retries)
            if not breakdown.dev_tasks:
                _log.warning("%s: no DEV_TASKS in plan for %s, using fallback", self.name, task.id)
                breakdown = self._fallback_breakdown(task)
        self.board.track_all(breakdown.all_tasks())
        return breakdown

    def build_planning_prompt(self, task: Task) -> str:
        prompt = (
            f"## Plan Task\n\n"
            f"**Type**: {task.kind.value}\n"
            f"**Priority**: {task.priority.value}\n\n"
            f"**Description**:\n{task.description}\n\n"
        )
        if task.context:
            prompt += f"**Context**:\n{json.dumps(task.context, indent=2, default=str)}\n\n"
        prompt += f"**Workspace**: {self.workspace}\n\n"
        if is_new_project_text(f"{task.title} {task.description}"):
            prompt += NEW_PROJECT_NOTE + "\n"
        return prompt + PLAN_FORMAT

    def scaffold_breakdown(self, task: Task) -> TaskBreakdown:
        text = task.description
        project = extract_project_name(text, DEFAULT_PROJECT_NAME)
        template = detect_template(text)
        breakdown = TaskBreakdown()

        breakdown.append_dev_task(self._subtask(
            task, "Scaffold Project",
            f'IMMEDIATELY call generate_project tool with template="{template}" and '
            f'projectName="{project}". Do NOT write files manually.',
            max_attempts=1,
        ))

        sections = {side: extract_section(text, side.upper()) for side in ("backend", "frontend")}
        for side, requirements in sections.items():
            if requirements:
                breakdown.append_dev_task(self._subtask(
                    task, f"Customize {side.capitalize()}",
                    _customize_description(side, project, requirements),
                    context={"agent_type": side},
                ))

        lowered = text.lower()
        if not any(sections.values()) and any(m in lowered for m in _REQUIREMENT_MARKERS):
            context = {}
            agent_type = detect_agent_type(text)
            if agent_type:
                context["agent_type"] = agent_type
            breakdown.append_dev_task(self._subtask(
                task, "Customize for Requirements",
                f'Customize the scaffolded "{project}" project to meet these requirements:\n\n'
                f"{text}\n\n"
                "IMPORTANT: Use read_file to check what the template created first, "
                "then write_file to modify specific files.",
                context=context,
            ))

        if "test" in lowered and ("backend" in lowered or "frontend" in lowered):
            breakdown.append_dev_task(self._subtask(
                task, "Add Tests",
                f'Add tests to the "{project}" project covering the customized features. '
                "Use write_file to create the test files.",
                max_attempts=2,
            ))
        return breakdown

    def _fallback_breakdown(self, task: Task) -> TaskBreakdown:
        breakdown = TaskBreakdown()
        if is_new_project_text(f"{task.title} {task.description}"):
            project = extract_project_name(task.description, DEFAULT_PROJECT_NAME)
            breakdown.append_dev_task(self._subtask(
                task, "Scaffold Project",
                f'Use generate_project with template="{detect_template(task.description)}" '
                f'and projectName="{project}".',
            ))
            breakdown.append_dev_task(self._subtask(
                task, "Customize Project",
                f'Customize the scaffolded "{project}" project using write_file:\n\n{task.description}',
            ))
        else:
            breakdown.append_dev_task(self._subtask(task, task.title, task.description))
        return breakdown

    def _subtask(self, parent: Task, title: str, description: str,
                 max_attempts: Optional[int] = None, context: Optional[dict] = None) -> Task:
        return create_task(
            TaskKind.IMPLEMENT, title, description,
            created_by=self.name, priority=parent.priority, parent_id=parent.id,
            max_attempts=max_attempts or self.max_retries, context=context,
        )

    # ── Decisions ──

    def handle_task_result(self, task: Task, result: TaskResult, role: str) -> Decision:
        """Rule on a sub-task outcome: proceed, retry once more, or escalate."""
        if result.success:
            self.board.update_status(task.id, TaskStatus.COMPLETED, result)
            return Decision(DecisionAction.PROCEED)

        task.result = result
        self.board.record_attempt(task.id)
        if not can_retry(task):
            self.board.update_status(task.id, TaskStatus.FAILED, result)
            last = result.error or result.output or "no output"
            return Decision(
                DecisionAction.ESCALATE,
                f'Task "{task.title}" failed after {task.attempts} attempts. Last error: {last}',
            )

        guidance = self._analyze_failure(task, result, role)
        self.board.reset(task.id)
        return Decision(DecisionAction.RETRY, guidance)

    def _analyze_failure(self, task: Task, result: TaskResult, role: str) -> str:
        prompt = ANALYZE_PROMPT.format(
            title=task.title,
            role=role,
            attempts=task.attempts,
            max_attempts=task.max_attempts,
            result=result.error or result.output or "no output",
        )
        try:
            return self.ask(prompt)
        except Exception as e:
            _log.warning("%s: failure analysis for %s failed: %s", self.name, task.id, e)
            return result.error or result.output or ""
