"""Team: plan → execute → verify → fix workflow over one parent task."""

from typing import Dict, List, Optional

from ..logger import get_logger
from .events import EventBus, EventType
from .planner import DecisionAction, ProjectManager
from .roles import GENERAL, select_dev_role
from .tasks import (
    DEV, QA, Outcome, Priority, Task, TaskBreakdown, TaskKind, TaskResult, TaskStatus,
    WorkflowResult, create_task,
)
from .worker import Worker

_log = get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 5


class Team:
    """One project manager, a set of developers and a QA worker.

    Sub-tasks run strictly one after another in the breakdown's order. The
    project manager's board is the team's task registry.
    """

    def __init__(self, name: str, pm: ProjectManager, developers: Dict[str, Worker],
                 qa: Worker, events: Optional[EventBus] = None,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS, workspace: str = "."):
        if not developers:
            raise ValueError("A team needs at least one developer")
        self.name = name
        self.pm = pm
        self.developers = dict(developers)
        self.qa = qa
        self.events = events if events is not None else EventBus()
        self.max_iterations = max_iterations
        self.workspace = workspace

    @property
    def board(self):
        return self.pm.board

    def agent_roles(self) -> List[str]:
        return [self.pm.name, *self.developers, self.qa.name]

    # ── Workflow ──

    def execute_task(self, description: str, priority: "Priority | str" = Priority.MEDIUM,
                     title: Optional[str] = None) -> WorkflowResult:
        parent = create_task(TaskKind.IMPLEMENT, title or description, description,
                             created_by="user", priority=priority)
        self.board.track(parent)
        self.board.update_status(parent.id, TaskStatus.IN_PROGRESS)
        dev_results: List[Outcome] = []
        qa_results: List[Outcome] = []
        iterations = 0

        self._emit(EventType.TASK_STARTED, "Planning task...", parent)
        try:
            breakdown = self.pm.plan_task(parent)
        except Exception as e:
            _log.error("%s: planning %s raised %s: %s", self.name, parent.id, type(e).__name__, e)
            reason = f"Failed to plan task: {e}"
            return self._escalate(parent, TaskBreakdown(), dev_results, qa_results, iterations, reason)

        self.board.track_all(breakdown.all_tasks())
        self._emit(
            EventType.TASK_PLANNED,
            f"Planned {len(breakdown.dev_tasks)} dev tasks and {len(breakdown.qa_tasks)} QA tasks",
            parent,
        )

        while iterations < self.max_iterations:
            iterations += 1
            _log.info("%s: iteration %d/%d for %s", self.name, iterations, self.max_iterations, parent.id)
            qa_failures: List[Outcome] = []

            for item in list(breakdown.order):
                task = self.board.get(item.task_id)
                if task is None or task.status == TaskStatus.COMPLETED:
                    continue

                result = self._dispatch(item.role, task, dev_results, qa_results)
                decision = self.pm.handle_task_result(task, result, item.role)

                if decision.action is DecisionAction.RETRY:
                    self._emit(EventType.TASK_RETRY, f"Retrying: {task.title}", task)
                    task.context["previous_attempt_feedback"] = decision.feedback
                    result = self._dispatch(item.role, task, dev_results, qa_results)
                    decision = self.pm.handle_task_result(task, result, item.role)

                if decision.action is DecisionAction.ESCALATE:
                    reason = decision.feedback or f'Task "{task.title}" failed after max attempts'
                    return self._escalate(parent, breakdown, dev_results, qa_results, iterations, reason)

                if item.role == QA and not result.success:
                    qa_failures.append((task, result))

            if not qa_failures or iterations >= self.max_iterations:
                break

            _log.info("%s: QA found %d issues, creating fix tasks", self.name, len(qa_failures))
            for qa_task, result in qa_failures:
                self._add_fix_task(parent, breakdown, qa_task, result)

        if self.board.all_completed(parent.id):
            self.board.update_status(parent.id, TaskStatus.COMPLETED)
            self._emit(EventType.TASK_FINISHED, "All tasks completed successfully", parent, success=True)
            return WorkflowResult(
                success=True, task=parent, breakdown=breakdown,
                dev_results=tuple(dev_results), qa_results=tuple(qa_results),
                iterations=iterations,
            )

        if iterations >= self.max_iterations:
            reason = f"Max iterations ({self.max_iterations}) reached without completing all tasks"
            return self._escalate(parent, breakdown, dev_results, qa_results, iterations, reason)

        pending = [t for t in self.board.children_of(parent.id) if t.status != TaskStatus.COMPLETED]
        self.board.update_status(parent.id, TaskStatus.FAILED)
        self._emit(EventType.TASK_FINISHED, f"{len(pending)} sub-tasks incomplete", parent, success=False)
        return WorkflowResult(
            success=False, task=parent, breakdown=breakdown,
            dev_results=tuple(dev_results), qa_results=tuple(qa_results),
            iterations=iterations,
            escalation_reason=f"{len(pending)} sub-tasks incomplete after {iterations} iterations",
        )

    def _dispatch(self, role: str, task: Task, dev_results: List[Outcome],
                  qa_results: List[Outcome]) -> TaskResult:
        if role == DEV:
            worker = self.select_developer(task)
            label = f"{worker.name} working on: {task.title}"
        else:
            worker = self.qa
            label = f"QA testing: {task.title}"

        self.board.update_status(task.id, TaskStatus.IN_PROGRESS)
        self._emit(EventType.TASK_STARTED, label, task, worker=worker.name)
        try:
            result = worker.execute_task(task)
        except Exception as e:
            _log.error("%s: %s raised on %s: %s", self.name, worker.name, task.id, e)
            result = TaskResult(success=False, error=str(e) or type(e).__name__)

        (dev_results if role == DEV else qa_results).append((task, result))
        self._emit(EventType.TASK_FINISHED, task.title, task,
                   worker=worker.name, success=result.success)
        return result

    def select_developer(self, task: Task) -> Worker:
        role = select_dev_role(task)
        worker = self.developers.get(role) or self.developers.get(GENERAL)
        return worker or next(iter(self.developers.values()))

    def _add_fix_task(self, parent: Task, breakdown: TaskBreakdown, qa_task: Task,
                      result: TaskResult) -> Task:
        feedback = result.feedback or "Unknown issues"
        fix = create_task(
            TaskKind.FIX,
            f"Fix issues from: {qa_task.title}",
            f"QA found issues:\n{feedback}\n\nPlease fix these issues.",
            created_by=self.pm.name,
            priority=parent.priority,
            parent_id=parent.id,
            max_attempts=self.pm.max_retries,
            context={"qa_task_id": qa_task.id, "qa_feedback": feedback},
        )
        breakdown.append_dev_task(fix)
        self.board.track(fix)
        self.board.reset(qa_task.id, clear_attempts=True)
        self._emit(EventType.FIX_TASK_CREATED, fix.title, fix, qa_task_id=qa_task.id)
        return fix

    def _escalate(self, parent: Task, breakdown: TaskBreakdown, dev_results: List[Outcome],
                  qa_results: List[Outcome], iterations: int, reason: str) -> WorkflowResult:
        self.board.update_status(parent.id, TaskStatus.FAILED)
        _log.warning("%s: escalating %s: %s", self.name, parent.id, reason)
        self._emit(EventType.TASK_ESCALATED, reason, parent)
        return WorkflowResult(
            success=False, task=parent, breakdown=breakdown,
            dev_results=tuple(dev_results), qa_results=tuple(qa_results),
            iterations=iterations, escalated=True, escalation_reason=reason,
        )

    def _emit(self, type: EventType, message: str, subject=None, **metadata) -> None:
        self.events.emit(type, self.name, message, subject, **metadata)
