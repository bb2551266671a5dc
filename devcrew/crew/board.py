"""TaskBoard: thread-safe task registry with monotonic status transitions."""

import threading
import time
from typing import Dict, List, Optional

from ..logger import get_logger
from .tasks import Task, TaskResult, TaskStatus, TERMINAL_STATUSES, is_terminal

_log = get_logger(__name__)

# Forward moves allowed by update_status. Anything else needs reset().
_ALLOWED = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, *TERMINAL_STATUSES}),
    TaskStatus.IN_PROGRESS: TERMINAL_STATUSES,
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.BLOCKED: frozenset(),
}


class TaskBoard:
    """Registry of every task a team touches during a run.

    Tasks are never removed. Status changes are idempotent: applying the
    current status again is a no-op. Terminal tasks only move again through
    ``reset``.
    """

    def __init__(self):
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.RLock()

    # ── Task management ───────────────────────────────────────

    def track(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def track_all(self, tasks: List[Task]) -> None:
        with self._lock:
            for task in tasks:
                self._tasks[task.id] = task

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def all_tasks(self) -> List[Task]:
        with self._lock:
            return list(self._tasks.values())

    # ── State transitions ─────────────────────────────────────

    def update_status(self, task_id: str, status: TaskStatus,
                      result: Optional[TaskResult] = None) -> bool:
        """Move a task to ``status``. Returns True when the status is now ``status``."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return False
            if result is not None:
                task.result = result
            if task.status == status:
                return True
            if status not in _ALLOWED[task.status]:
                _log.debug("Ignoring %s -> %s for %s", task.status.value, status.value, task_id)
                return False
            task.status = status
            task.updated_at = time.time()
            return True

    def reset(self, task_id: str, clear_attempts: bool = False) -> None:
        """Explicitly return a task to pending, e.g. for a verification re-run."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return
            task.status = TaskStatus.PENDING
            if clear_attempts:
                task.attempts = 0
            task.updated_at = time.time()

    def record_attempt(self, task_id: str) -> int:
        with self._lock:
            task = self._tasks[task_id]
            task.attempts += 1
            task.updated_at = time.time()
            return task.attempts

    # ── Queries ───────────────────────────────────────────────

    def active(self) -> List[Task]:
        """Tasks that are not in a terminal state."""
        with self._lock:
            return [t for t in self._tasks.values() if not is_terminal(t)]

    def children_of(self, parent_id: str) -> List[Task]:
        with self._lock:
            return [t for t in self._tasks.values() if t.parent_id == parent_id]

    def all_completed(self, parent_id: str) -> bool:
        """True when every task under ``parent_id`` is completed."""
        with self._lock:
            children = [t for t in self._tasks.values() if t.parent_id == parent_id]
            return all(t.status == TaskStatus.COMPLETED for t in children)

    def counts(self) -> Dict[str, int]:
        with self._lock:
            out = {s.value: 0 for s in TaskStatus}
            for task in self._tasks.values():
                out[task.status.value] += 1
            return out
