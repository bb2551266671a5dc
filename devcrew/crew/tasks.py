"""Task, result and plan types shared by teams, workers and the coordinator."""

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TaskKind(str, Enum):
    IMPLEMENT = "implement"
    FIX = "fix"
    TEST = "test"
    REVIEW = "review"
    PLAN = "plan"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: Any, default: "Priority" = None) -> "Priority":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default or cls.MEDIUM


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.BLOCKED})


def _base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out or "0"


def new_id(prefix: str) -> str:
    """Time-ordered identifier such as ``task_lx2k9a_3f9c1e``."""
    return f"{prefix}_{_base36(int(time.time() * 1000))}_{secrets.token_hex(3)}"


@dataclass
class TaskResult:
    """Outcome of one task execution."""

    success: bool
    output: str = ""
    error: Optional[str] = None
    files_modified: List[str] = field(default_factory=list)
    tests_run: Optional[int] = None
    tests_passed: Optional[int] = None

    @property
    def feedback(self) -> str:
        """Text handed to whoever has to act on this result."""
        if self.success:
            return self.output
        return self.output or self.error or ""


@dataclass
class Task:
    """A unit of work tracked on a TaskBoard."""

    id: str
    kind: TaskKind
    title: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    priority: Priority = Priority.MEDIUM
    created_by: str = "system"
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    attempts: int = 0
    max_attempts: int = 3
    parent_id: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    result: Optional[TaskResult] = None


def create_task(kind: "TaskKind | str", title: str, description: str,
                created_by: str = "system", priority: "Priority | str" = Priority.MEDIUM,
                parent_id: Optional[str] = None, max_attempts: int = 3,
                context: Optional[Dict[str, Any]] = None) -> Task:
    return Task(
        id=new_id("task"),
        kind=TaskKind(kind),
        title=title,
        description=description,
        priority=Priority.parse(priority),
        created_by=created_by,
        parent_id=parent_id,
        max_attempts=max_attempts,
        context=dict(context or {}),
    )


def can_retry(task: Task) -> bool:
    return task.attempts < task.max_attempts


def is_terminal(task: Task) -> bool:
    return task.status in TERMINAL_STATUSES


# Role labels used in execution order entries.
DEV = "dev"
QA = "qa"


@dataclass(frozen=True)
class OrderItem:
    role: str  # "dev" | "qa"
    task_id: str


@dataclass
class TaskBreakdown:
    """Plan for one parent task. Entries are only ever appended."""

    dev_tasks: List[Task] = field(default_factory=list)
    qa_tasks: List[Task] = field(default_factory=list)
    order: List[OrderItem] = field(default_factory=list)

    def all_tasks(self) -> List[Task]:
        return self.dev_tasks + self.qa_tasks

    def append_dev_task(self, task: Task) -> None:
        self.dev_tasks.append(task)
        self.order.append(OrderItem(DEV, task.id))


# (sub-task, outcome) pairs in execution order.
Outcome = Tuple[Task, TaskResult]


@dataclass(frozen=True)
class WorkflowResult:
    """Outcome of one team run over a TaskBreakdown."""

    success: bool
    task: Task
    breakdown: TaskBreakdown
    dev_results: Tuple[Outcome, ...] = ()
    qa_results: Tuple[Outcome, ...] = ()
    iterations: int = 0
    escalated: bool = False
    escalation_reason: Optional[str] = None
