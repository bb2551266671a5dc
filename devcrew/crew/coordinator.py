"""Coordinator: turns goals into projects and runs them on one or more teams."""

import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..logger import get_logger
from .classify import DEFAULT_PROJECT_NAME, detect_template, extract_project_name, is_scaffold_text
from .events import EventBus, EventType
from .tasks import Priority, WorkflowResult, new_id
from .team import Team
from .worker import Worker

_log = get_logger(__name__)

PLANNING_ITERATIONS = 3
DEFAULT_MAX_PARALLEL_TEAMS = 4

PLAN_PROJECTS_PROMPT = """\
## Strategic Goal

{goal}

Please analyze this goal and break it down into projects.

For each project, provide:
PROJECTS:
1. [Title] | [Priority: low/medium/high/critical] | [Description]
2. [Title] | [Priority] | [Description]

Keep projects focused and achievable by a single team.
Prioritize based on value and dependencies.
"""

ASSIGN_TEAMS_PROMPT = """\
## Strategic Goal

{goal}

You have access to the following teams:
{teams}

Please analyze this goal and assign projects to appropriate teams.
For each team, list the projects they should work on:

TEAM_ASSIGNMENTS:
TEAM: [TeamName]
1. [Title] | [Priority: low/medium/high/critical] | [Description]
2. [Title] | [Priority] | [Description]

TEAM: [AnotherTeam]
1. [Title] | [Priority] | [Description]

Assign work based on team specialization: frontend teams handle UI and
components, backend teams handle APIs, data and server logic.
"""

ESCALATION_PROMPT = """\
## Escalation from Team

**Project**: {title}
**Issue**: {issue}

The team has escalated this issue and cannot proceed.

Please analyze:
1. Can you make a decision to unblock the team?
2. Is this something that requires human input?

Respond with:
DECISION: [Your decision or guidance]
ESCALATE_TO_HUMAN: [yes/no]
REASON: [Why you made this decision]
"""

_PROJECT_LINE_RE = re.compile(
    r"\d+\.\s*\[?([^\]|\n]+)\]?\s*\|\s*\[?(?:Priority:\s*)?([^\]|\n]+)\]?\s*\|\s*(.+)",
    re.IGNORECASE,
)
_PROJECTS_SECTION_RE = re.compile(r"PROJECTS:?\s*([\s\S]*?)$", re.IGNORECASE)
_ASSIGNMENTS_SECTION_RE = re.compile(r"TEAM_ASSIGNMENTS:?\s*([\s\S]*?)$", re.IGNORECASE)
_TEAM_SPLIT_RE = re.compile(r"TEAM:\s*", re.IGNORECASE)
_ESCALATE_RE = re.compile(r"ESCALATE_TO_HUMAN:\s*(yes|no)", re.IGNORECASE)
_REASON_RE = re.compile(r"REASON:\s*(.+)", re.IGNORECASE)


class ProjectStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


@dataclass
class Project:
    id: str
    title: str
    description: str
    priority: Priority = Priority.MEDIUM
    status: ProjectStatus = ProjectStatus.PENDING
    created_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None
    result: Optional[WorkflowResult] = None
    team: Optional[str] = None


def create_project(title: str, description: str, priority: "Priority | str" = Priority.MEDIUM) -> Project:
    return Project(id=new_id("proj"), title=title, description=description,
                   priority=Priority.parse(priority))


@dataclass
class GoalResult:
    success: bool
    projects: List[Project] = field(default_factory=list)
    completed_projects: int = 0
    failed_projects: int = 0
    escalated_to_human: bool = False
    human_escalation_reason: Optional[str] = None


@dataclass
class MultiTeamResult:
    success: bool
    team_results: Dict[str, GoalResult] = field(default_factory=dict)
    total_projects: int = 0
    total_completed: int = 0
    total_failed: int = 0
    escalated_to_human: bool = False
    human_escalation_reason: Optional[str] = None


@dataclass(frozen=True)
class EscalationDecision:
    escalate_to_human: bool
    reason: str


# ── Parsing ──


def _parse_project_lines(lines) -> List[Project]:
    projects = []
    for line in lines:
        match = _PROJECT_LINE_RE.search(line)
        if match:
            title, priority, description = (g.strip() for g in match.groups())
            projects.append(create_project(title, description, priority))
    return projects


def parse_projects(response: str) -> List[Project]:
    """Projects from a ``PROJECTS:`` block; empty when none parse."""
    match = _PROJECTS_SECTION_RE.search(response or "")
    if not match:
        return []
    return _parse_project_lines(match.group(1).splitlines())


def parse_team_assignments(response: str, team_names: List[str]) -> Dict[str, List[Project]]:
    """Map registered team names to their assigned projects.

    Team headers match case-insensitively; blocks naming an unknown team are
    dropped. Teams with no projects are left out.
    """
    match = _ASSIGNMENTS_SECTION_RE.search(response or "")
    if not match:
        return {}
    assignments: Dict[str, List[Project]] = {}
    for block in _TEAM_SPLIT_RE.split(match.group(1)):
        if not block.strip():
            continue
        lines = block.splitlines()
        header = lines[0].strip().lower()
        team = next((name for name in team_names if name.lower() in header), None)
        if team is None:
            continue
        projects = _parse_project_lines(lines[1:])
        if projects:
            assignments.setdefault(team, []).extend(projects)
    return assignments


def parse_escalation_decision(response: str, default_reason: str) -> EscalationDecision:
    escalate = _ESCALATE_RE.search(response or "")
    reason = _REASON_RE.search(response or "")
    return EscalationDecision(
        escalate_to_human=bool(escalate) and escalate.group(1).lower() == "yes",
        reason=reason.group(1).strip() if reason else default_reason,
    )


def scaffold_project(goal: str) -> Project:
    """Single project for a plain scaffold goal, no planning call."""
    name = extract_project_name(goal, DEFAULT_PROJECT_NAME)
    description = (
        f"{goal}\n\nIMPORTANT: Use generate_project tool with "
        f'template="{detect_template(goal)}" and projectName="{name}".'
    )
    return create_project(f"Scaffold {name}", description, Priority.HIGH)


def fallback_project(goal: str) -> Project:
    return create_project(goal[:50], goal)


class Coordinator:
    """Top of the hierarchy: plans goals into projects and hands them to teams.

    Public methods never raise; failures come back as results with
    ``escalated_to_human`` set and a reason.
    """

    def __init__(self, planner: Worker, events: Optional[EventBus] = None,
                 max_parallel_teams: int = DEFAULT_MAX_PARALLEL_TEAMS):
        self.planner = planner
        self.events = events if events is not None else EventBus()
        self.max_parallel_teams = max(1, max_parallel_teams)
        self._teams: Dict[str, Team] = {}
        self._projects: Dict[str, Project] = {}
        self._goal_log: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        # The planner keeps one conversation; team pipelines share it.
        self._planner_lock = threading.Lock()

    # ── Teams ──

    def register_team(self, name: str, team: Team) -> Team:
        self._teams[name] = team
        return team

    def teams(self) -> List[str]:
        return list(self._teams)

    def get_team(self, name: str) -> Optional[Team]:
        return self._teams.get(name)

    # ── Single team ──

    def execute_goal(self, goal: str, team_name: str = "default") -> GoalResult:
        team = self._teams.get(team_name)
        if team is None:
            return GoalResult(success=False, escalated_to_human=True,
                              human_escalation_reason=f"No team registered with name: {team_name}")
        self._start_goal()

        if is_scaffold_text(goal):
            _log.info("Scaffold goal, skipping project planning")
            projects = [scaffold_project(goal)]
        else:
            projects = self.plan_projects(goal)

        result = self._run_projects(team_name, team, projects)
        self._log_goal(goal, {team_name: result})
        return result

    def _start_goal(self) -> None:
        # Each goal is planned from a clean conversation.
        with self._planner_lock:
            self.planner.reset_history()

    def plan_projects(self, goal: str) -> List[Project]:
        try:
            with self._planner_lock:
                response = self.planner.run_with_tools(PLAN_PROJECTS_PROMPT.format(goal=goal),
                                                       max_iterations=PLANNING_ITERATIONS)
        except Exception as e:
            _log.warning("Project planning failed, using the goal as one project: %s", e)
            return [fallback_project(goal)]
        return parse_projects(response) or [fallback_project(goal)]

    def _run_projects(self, team_name: str, team: Team, projects: List[Project]) -> GoalResult:
        """Run projects in order on one team.

        A failing or escalated project never stops the rest of the list; the
        first human escalation supplies the reported reason.
        """
        completed = failed = 0
        escalated = False
        reason: Optional[str] = None

        for project in projects:
            project.team = team_name
            with self._lock:
                self._projects[project.id] = project
            project.status = ProjectStatus.IN_PROGRESS
            self.events.emit(EventType.PROJECT_STARTED, team_name, project.title, project)

            try:
                outcome = team.execute_task(project.description, project.priority, title=project.title)
            except Exception as e:
                _log.error("Project %s on team %s raised: %s", project.id, team_name, e)
                project.status = ProjectStatus.BLOCKED
                failed += 1
                escalated = True
                message = f'Project "{project.title}" failed with error: {e}'
                reason = reason or message
                self._escalate_to_human(message, project)
                continue

            project.result = outcome
            if outcome.success:
                project.status = ProjectStatus.COMPLETED
                project.completed_at = time.time()
                completed += 1
            elif outcome.escalated:
                decision = self.handle_escalation(project, outcome)
                failed += 1
                if decision.escalate_to_human:
                    project.status = ProjectStatus.BLOCKED
                    escalated = True
                    reason = reason or decision.reason
                    self._escalate_to_human(decision.reason, project)
                else:
                    project.status = ProjectStatus.COMPLETED
                    project.completed_at = time.time()
            else:
                project.status = ProjectStatus.COMPLETED
                project.completed_at = time.time()
                failed += 1
            self.events.emit(EventType.PROJECT_FINISHED, team_name, project.title, project,
                             success=outcome.success)

        return GoalResult(
            success=failed == 0 and not escalated,
            projects=list(projects),
            completed_projects=completed,
            failed_projects=failed,
            escalated_to_human=escalated,
            human_escalation_reason=reason,
        )

    def handle_escalation(self, project: Project, result: WorkflowResult) -> EscalationDecision:
        """Ask the planner whether a team escalation needs a human."""
        issue = result.escalation_reason or "Unknown reason"
        try:
            with self._planner_lock:
                response = self.planner.ask(ESCALATION_PROMPT.format(title=project.title, issue=issue))
        except Exception as e:
            _log.warning("Escalation review failed for %s: %s", project.id, e)
            return EscalationDecision(escalate_to_human=True, reason=issue)
        return parse_escalation_decision(response, issue)

    def _escalate_to_human(self, reason: str, project: Project) -> None:
        _log.warning("Human escalation for %s: %s", project.id, reason)
        self.events.emit(EventType.ESCALATION, project.team or "coordinator", reason, project)

    # ── Multiple teams ──

    def execute_goal_multi_team(self, goal: str) -> MultiTeamResult:
        if not self._teams:
            return MultiTeamResult(success=False, escalated_to_human=True,
                                   human_escalation_reason="No teams registered")
        self._start_goal()

        assignments = self.assign_projects(goal)
        team_results: Dict[str, GoalResult] = {}
        workers = min(len(assignments), self.max_parallel_teams)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="team") as pool:
            futures = {name: pool.submit(self._run_team, name, projects)
                       for name, projects in assignments.items()}
            for name, future in futures.items():
                try:
                    team_results[name] = future.result()
                except Exception as e:
                    _log.error("Team %s pipeline raised: %s", name, e)
                    projects = assignments[name]
                    for project in projects:
                        if project.status != ProjectStatus.COMPLETED:
                            project.status = ProjectStatus.BLOCKED
                    team_results[name] = GoalResult(
                        success=False, projects=projects,
                        completed_projects=sum(p.status == ProjectStatus.COMPLETED for p in projects),
                        failed_projects=sum(p.status != ProjectStatus.COMPLETED for p in projects),
                        escalated_to_human=True,
                        human_escalation_reason=f"Team {name} failed: {e}",
                    )

        result = MultiTeamResult(success=True, team_results=team_results)
        for outcome in team_results.values():
            result.total_projects += len(outcome.projects)
            result.total_completed += outcome.completed_projects
            result.total_failed += outcome.failed_projects
            if outcome.escalated_to_human and not result.escalated_to_human:
                result.escalated_to_human = True
                result.human_escalation_reason = outcome.human_escalation_reason
        result.success = result.total_failed == 0 and not result.escalated_to_human
        self._log_goal(goal, team_results)
        return result

    def assign_projects(self, goal: str) -> Dict[str, List[Project]]:
        names = self.teams()
        prompt = ASSIGN_TEAMS_PROMPT.format(goal=goal, teams="\n".join(f"- {n}" for n in names))
        try:
            with self._planner_lock:
                response = self.planner.run_with_tools(prompt, max_iterations=PLANNING_ITERATIONS)
        except Exception as e:
            _log.warning("Team assignment failed, giving the goal to %s: %s", names[0], e)
            response = ""
        return parse_team_assignments(response, names) or {names[0]: [fallback_project(goal)]}

    def _run_team(self, name: str, projects: List[Project]) -> GoalResult:
        self.events.emit(EventType.TEAM_STARTED, name, f"{len(projects)} projects")
        outcome = self._run_projects(name, self._teams[name], projects)
        self.events.emit(EventType.TEAM_FINISHED, name, "done", success=outcome.success)
        return outcome

    # ── Status ──

    def active_projects(self) -> List[Project]:
        with self._lock:
            return list(self._projects.values())

    def get_project(self, project_id: str) -> Optional[Project]:
        with self._lock:
            return self._projects.get(project_id)

    def coordination_status(self) -> Dict[str, Any]:
        with self._lock:
            projects = list(self._projects.values())
        by_status = {s.value: 0 for s in ProjectStatus}
        by_team: Dict[str, int] = {name: 0 for name in self._teams}
        for project in projects:
            by_status[project.status.value] += 1
            if project.team:
                by_team[project.team] = by_team.get(project.team, 0) + 1
        boards = {name: team.board for name, team in self._teams.items()}
        return {
            "teams": self.teams(),
            "total_projects": len(projects),
            "by_status": by_status,
            "by_team": by_team,
            "tasks_by_team": {name: board.counts() for name, board in boards.items()},
            "active_tasks": sum(len(board.active()) for board in boards.values()),
            "escalations": len(self.events.get_history(EventType.ESCALATION)),
            "goal_log": self.goal_log(),
        }

    def goal_log(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._goal_log)

    def _log_goal(self, goal: str, results: Dict[str, GoalResult]) -> None:
        entry = {
            "goal": goal[:100],
            "finished_at": time.time(),
            "projects": [(p.title, p.status.value, p.priority.value)
                         for r in results.values() for p in r.projects],
            "succeeded": sum(r.completed_projects for r in results.values()),
            "failed": sum(r.failed_projects for r in results.values()),
        }
        with self._lock:
            self._goal_log.append(entry)
