"""Crew entry point: builds teams from config and hands goals to the Coordinator."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..config import Config
from ..llm import LLMAdapter
from ..logger import get_logger
from ..tools.registry import ToolRegistry, build_default_registry
from .coordinator import Coordinator, GoalResult, MultiTeamResult
from .developer import DevWorker
from .events import EventBus
from .planner import ProjectManager
from .qa import QAWorker
from .roles import BACKEND, FRONTEND, GENERAL, RoleSpec, create_worker, load_roles
from .team import Team

_log = get_logger(__name__)


@dataclass
class TeamSpec:
    name: str
    workspace: Optional[str] = None


@dataclass
class OrchestrationConfig:
    """Bounds and team layout, parsed from the ``orchestration:`` section of ``.devcrew.yml``."""

    max_tool_iterations: int = 10
    max_task_attempts: int = 3
    max_team_iterations: int = 5
    max_retries: int = 3
    max_parallel_teams: int = 4
    teams: List[TeamSpec] = field(default_factory=lambda: [TeamSpec("default")])
    roles: Dict[str, dict] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "OrchestrationConfig":
        if not data:
            return cls()

        coerce = Config._coerce_positive_int
        teams = []
        for entry in data.get("teams") or []:
            if isinstance(entry, str):
                teams.append(TeamSpec(entry))
            elif isinstance(entry, dict) and entry.get("name"):
                teams.append(TeamSpec(str(entry["name"]), entry.get("workspace")))

        return cls(
            max_tool_iterations=coerce(data.get("max-tool-iterations"), 10, max_value=100),
            max_task_attempts=coerce(data.get("max-task-attempts"), 3, max_value=10),
            max_team_iterations=coerce(data.get("max-team-iterations"), 5, max_value=50),
            max_retries=coerce(data.get("max-retries"), 3, max_value=10),
            max_parallel_teams=coerce(data.get("max-parallel-teams"), 4, max_value=32),
            teams=teams or [TeamSpec("default")],
            roles=dict(data.get("roles") or {}),
        )


def build_team(name: str, llm: LLMAdapter, registry: ToolRegistry,
               settings: Optional[OrchestrationConfig] = None,
               events: Optional[EventBus] = None, workspace: str = ".",
               roles: Optional[Dict[str, RoleSpec]] = None) -> Team:
    """Assemble a PM, three developers and a QA worker sharing one backend."""
    settings = settings or OrchestrationConfig()
    roles = roles or load_roles(settings.roles)
    bound = settings.max_tool_iterations

    pm = create_worker(roles["pm"], llm, registry, bound, worker_cls=ProjectManager,
                       max_retries=settings.max_retries, workspace=workspace)
    developers = {
        key: create_worker(roles[key], llm, registry, bound, worker_cls=DevWorker,
                           max_attempts=settings.max_task_attempts, workspace=workspace)
        for key in (GENERAL, FRONTEND, BACKEND)
    }
    qa = create_worker(roles["qa"], llm, registry, bound, worker_cls=QAWorker, workspace=workspace)
    return Team(name, pm, developers, qa, events=events,
                max_iterations=settings.max_team_iterations, workspace=workspace)


class Crew:
    """Top-level interface used by the CLI."""

    def __init__(self, config: Config, llm: Optional[LLMAdapter] = None,
                 events: Optional[EventBus] = None):
        self.config = config
        self.settings = OrchestrationConfig.from_dict(config.orchestration)
        self.events = events if events is not None else EventBus()
        self.llm = llm or LLMAdapter(**config.get_active_preset().get_llm_kwargs())
        self.roles = load_roles(self.settings.roles)

        root = config.project_root or "."
        self.registry = build_default_registry(root, config.blocked_commands, config.command_timeout)
        planner = create_worker(self.roles["coordinator"], self.llm, self.registry,
                                self.settings.max_tool_iterations)
        self.coordinator = Coordinator(planner, events=self.events,
                                       max_parallel_teams=self.settings.max_parallel_teams)

        for spec in self.settings.teams:
            workspace = spec.workspace or root
            registry = self.registry if workspace == root else build_default_registry(
                workspace, config.blocked_commands, config.command_timeout)
            team = build_team(spec.name, self.llm, registry, self.settings,
                              events=self.events, workspace=workspace, roles=self.roles)
            self.coordinator.register_team(spec.name, team)
        _log.info("Crew ready: teams=%s model=%s", self.coordinator.teams(), self.llm.model)

    def run(self, goal: str, team: Optional[str] = None,
            multi_team: bool = False) -> Union[GoalResult, MultiTeamResult]:
        if multi_team:
            return self.coordinator.execute_goal_multi_team(goal)
        return self.coordinator.execute_goal(goal, team or self.coordinator.teams()[0])

    def status(self) -> Dict[str, Any]:
        return self.coordinator.coordination_status()
