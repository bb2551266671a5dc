"""Task-orchestration engine: workers, teams and the coordinator."""

from .board import TaskBoard
from .classify import TaskClass, classify_task
from .coordinator import Coordinator, GoalResult, MultiTeamResult, Project, ProjectStatus
from .crew import Crew, OrchestrationConfig, build_team
from .developer import DevWorker
from .events import CrewEvent, EventBus, EventType
from .planner import Decision, DecisionAction, ProjectManager
from .qa import QAWorker
from .roles import RoleSpec, create_worker, select_dev_role
from .tasks import Task, TaskBreakdown, TaskResult, TaskStatus, WorkflowResult, create_task
from .team import Team
from .worker import ToolCallMetrics, Worker

__all__ = [
    "TaskBoard",
    "TaskClass",
    "classify_task",
    "Coordinator",
    "GoalResult",
    "MultiTeamResult",
    "Project",
    "ProjectStatus",
    "Crew",
    "OrchestrationConfig",
    "build_team",
    "DevWorker",
    "CrewEvent",
    "EventBus",
    "EventType",
    "Decision",
    "DecisionAction",
    "ProjectManager",
    "QAWorker",
    "RoleSpec",
    "create_worker",
    "select_dev_role",
    "Task",
    "TaskBreakdown",
    "TaskResult",
    "TaskStatus",
    "WorkflowResult",
    "create_task",
    "Team",
    "ToolCallMetrics",
    "Worker",
]
