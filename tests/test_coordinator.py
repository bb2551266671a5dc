"""Tests for goal planning, escalation review and multi-team coordination."""

import threading
from unittest.mock import MagicMock

import pytest
from conftest import FakeLLM

from devcrew.crew.coordinator import (
    Coordinator, ProjectStatus, parse_escalation_decision, parse_projects, parse_team_assignments,
)
from devcrew.crew.events import EventType
from devcrew.crew.tasks import Priority, TaskBreakdown, WorkflowResult, create_task
from devcrew.crew.worker import Worker

PROJECTS = """\
Here is my plan.

PROJECTS:
1. [Catalogue API] | [Priority: high] | Build the catalogue endpoints
2. Catalogue UI | medium | Build the catalogue pages
3. this line is not a project
"""

ONE_PROJECT = "PROJECTS:\n1. [Catalogue API] | [Priority: high] | Build the catalogue endpoints\n"

ASSIGNMENTS = """\
TEAM_ASSIGNMENTS:
TEAM: Frontend Team
1. [Catalogue UI] | [Priority: high] | Build the pages

TEAM: backend
1. [Catalogue API] | [Priority: high] | Build the endpoints
2. [Search API] | [Priority: low] | Add search

TEAM: mobile
1. [App] | [Priority: low] | Build the app
"""

GOAL = "Build a product catalogue"


def _wf(success=True, escalated=False, reason=None):
    return WorkflowResult(success=success, task=create_task("implement", "t", "d"),
                          breakdown=TaskBreakdown(), escalated=escalated, escalation_reason=reason)


def _team(*outcomes):
    team = MagicMock()
    if outcomes:
        team.execute_task.side_effect = list(outcomes)
    else:
        team.execute_task.return_value = _wf()
    return team


def _coordinator(registry, responses=None, max_parallel_teams=4):
    llm = FakeLLM(responses or ["nothing useful"])
    planner = Worker("coordinator", llm, registry.for_role("pm"), system_prompt="coordinator")
    return Coordinator(planner, max_parallel_teams=max_parallel_teams), llm


class TestParsing:

    def test_parse_projects(self):
        projects = parse_projects(PROJECTS)
        assert [p.title for p in projects] == ["Catalogue API", "Catalogue UI"]
        assert [p.priority for p in projects] == [Priority.HIGH, Priority.MEDIUM]
        assert projects[0].description == "Build the catalogue endpoints"
        assert projects[0].id != projects[1].id

    def test_parse_projects_without_block(self):
        assert parse_projects("1. [A] | high | b") == []

    def test_team_assignments_match_case_insensitively(self):
        assignments = parse_team_assignments(ASSIGNMENTS, ["frontend", "backend"])
        assert list(assignments) == ["frontend", "backend"]
        assert [p.title for p in assignments["backend"]] == ["Catalogue API", "Search API"]
        assert assignments["backend"][1].priority is Priority.LOW

    def test_team_assignments_without_block(self):
        assert parse_team_assignments("no idea", ["frontend"]) == {}

    def test_escalation_decision(self):
        decision = parse_escalation_decision(
            "DECISION: wait\nESCALATE_TO_HUMAN: Yes\nREASON: needs a budget call", "fallback")
        assert decision.escalate_to_human
        assert decision.reason == "needs a budget call"

        decision = parse_escalation_decision("I think it is fine.", "team reason")
        assert not decision.escalate_to_human
        assert decision.reason == "team reason"


class TestExecuteGoal:

    def test_unknown_team(self, registry):
        coordinator, _ = _coordinator(registry)
        result = coordinator.execute_goal(GOAL, "ghost")
        assert not result.success
        assert result.escalated_to_human
        assert result.human_escalation_reason == "No team registered with name: ghost"

    def test_scaffold_goal_skips_planning(self, registry):
        coordinator, llm = _coordinator(registry)
        team = coordinator.register_team("default", _team())
        result = coordinator.execute_goal("Scaffold a project named demo-app")

        assert llm.calls == []
        assert result.success
        assert result.completed_projects == 1
        description, priority = team.execute_task.call_args[0]
        assert 'projectName="demo-app"' in description
        assert priority is Priority.HIGH
        assert team.execute_task.call_args[1] == {"title": "Scaffold demo-app"}

    def test_planned_projects_run_in_order(self, registry):
        coordinator, llm = _coordinator(registry, [PROJECTS])
        team = coordinator.register_team("default", _team())
        result = coordinator.execute_goal(GOAL)

        assert result.success
        assert result.completed_projects == 2
        assert [c[1]["title"] for c in team.execute_task.call_args_list] == ["Catalogue API", "Catalogue UI"]
        assert all(p.status is ProjectStatus.COMPLETED and p.team == "default" for p in result.projects)
        assert GOAL in llm.calls[0]["messages"][-1]["content"]

    def test_each_goal_plans_from_a_fresh_conversation(self, registry):
        coordinator, llm = _coordinator(registry, [PROJECTS])
        coordinator.register_team("default", _team())
        coordinator.execute_goal(GOAL)
        coordinator.execute_goal(GOAL)
        assert len(llm.calls) == 2
        assert len(llm.calls[1]["messages"]) == 1

    @pytest.mark.parametrize("responses", [["no projects here"], [RuntimeError("planner down")]])
    def test_planning_fallback_is_one_project(self, registry, responses):
        coordinator, _ = _coordinator(registry, responses)
        team = coordinator.register_team("default", _team())
        result = coordinator.execute_goal(GOAL)
        assert len(result.projects) == 1
        assert result.projects[0].title == GOAL[:50]
        assert team.execute_task.call_args[0][0] == GOAL

    def test_team_failure_without_escalation_counts_as_failed(self, registry):
        coordinator, _ = _coordinator(registry, [PROJECTS])
        coordinator.register_team("default", _team(_wf(success=False), _wf()))
        result = coordinator.execute_goal(GOAL)
        assert not result.success
        assert not result.escalated_to_human
        assert result.completed_projects == 1
        assert result.failed_projects == 1

    def test_escalation_resolved_by_coordinator(self, registry):
        review = "DECISION: skip it\nESCALATE_TO_HUMAN: no\nREASON: minor"
        coordinator, llm = _coordinator(registry, [PROJECTS, review])
        team = coordinator.register_team("default", _team(_wf(False, True, "stuck"), _wf()))
        result = coordinator.execute_goal(GOAL)

        assert team.execute_task.call_count == 2
        assert not result.escalated_to_human
        assert result.failed_projects == 1
        assert result.completed_projects == 1
        assert "**Issue**: stuck" in llm.calls[1]["messages"][-1]["content"]

    def test_escalation_to_human_keeps_running_remaining_projects(self, registry):
        review = "DECISION: wait\nESCALATE_TO_HUMAN: yes\nREASON: needs a budget call"
        coordinator, _ = _coordinator(registry, [PROJECTS, review])
        heard = []
        coordinator.events.on_escalation(lambda reason, project: heard.append((reason, project.title)))
        team = coordinator.register_team("default", _team(_wf(False, True, "stuck"), _wf()))
        result = coordinator.execute_goal(GOAL)

        assert team.execute_task.call_count == 2
        assert result.escalated_to_human
        assert result.human_escalation_reason == "needs a budget call"
        assert result.projects[0].status is ProjectStatus.BLOCKED
        assert result.projects[1].status is ProjectStatus.COMPLETED
        assert result.failed_projects == 1
        assert result.completed_projects == 1
        assert heard == [("needs a budget call", "Catalogue API")]

    def test_review_failure_escalates_with_team_reason(self, registry):
        coordinator, _ = _coordinator(registry, [ONE_PROJECT, RuntimeError("planner down")])
        coordinator.register_team("default", _team(_wf(False, True, "stuck")))
        result = coordinator.execute_goal(GOAL)
        assert result.escalated_to_human
        assert result.human_escalation_reason == "stuck"

    def test_team_exception_blocks_project(self, registry):
        coordinator, _ = _coordinator(registry, [PROJECTS])
        team = coordinator.register_team("default", _team(RuntimeError("boom"), _wf()))
        result = coordinator.execute_goal(GOAL)

        assert result.escalated_to_human
        assert result.human_escalation_reason == 'Project "Catalogue API" failed with error: boom'
        assert team.execute_task.call_count == 2
        assert result.failed_projects == 1
        assert result.completed_projects == 1
        assert result.projects[0].status is ProjectStatus.BLOCKED
        assert result.projects[1].status is ProjectStatus.COMPLETED
        assert len(coordinator.events.get_history(EventType.ESCALATION)) == 1

    def test_every_project_counted_when_all_raise(self, registry):
        coordinator, _ = _coordinator(registry, [PROJECTS])
        coordinator.register_team("default", _team(RuntimeError("boom"), RuntimeError("bust")))
        result = coordinator.execute_goal(GOAL)

        assert result.failed_projects == 2
        assert result.completed_projects == 0
        assert result.human_escalation_reason == 'Project "Catalogue API" failed with error: boom'
        assert [p.status for p in result.projects] == [ProjectStatus.BLOCKED, ProjectStatus.BLOCKED]
        assert len(coordinator.events.get_history(EventType.ESCALATION)) == 2
        assert coordinator.coordination_status()["escalations"] == 2


class TestMultiTeam:

    def test_no_teams(self, registry):
        coordinator, _ = _coordinator(registry)
        result = coordinator.execute_goal_multi_team(GOAL)
        assert result.escalated_to_human
        assert result.human_escalation_reason == "No teams registered"

    def test_assignments_run_and_aggregate(self, registry):
        coordinator, _ = _coordinator(registry, [ASSIGNMENTS], max_parallel_teams=2)
        frontend = coordinator.register_team("frontend", _team())
        backend = coordinator.register_team("backend", _team())
        result = coordinator.execute_goal_multi_team(GOAL)

        assert result.success
        assert set(result.team_results) == {"frontend", "backend"}
        assert result.total_projects == 3
        assert result.total_completed == 3
        assert result.total_failed == 0
        assert frontend.execute_task.call_count == 1
        assert backend.execute_task.call_count == 2
        assert len(coordinator.events.get_history(EventType.TEAM_STARTED)) == 2

    def test_unparseable_assignment_goes_to_first_team(self, registry):
        coordinator, _ = _coordinator(registry, ["I cannot decide."])
        first = coordinator.register_team("frontend", _team())
        second = coordinator.register_team("backend", _team())
        result = coordinator.execute_goal_multi_team(GOAL)

        assert list(result.team_results) == ["frontend"]
        assert first.execute_task.call_args[0][0] == GOAL
        second.execute_task.assert_not_called()

    def test_failing_team_does_not_stop_others(self, registry):
        coordinator, _ = _coordinator(registry, [ASSIGNMENTS])
        coordinator.register_team("frontend", _team())
        backend = coordinator.register_team("backend", _team(RuntimeError("db down"), _wf()))
        result = coordinator.execute_goal_multi_team(GOAL)

        assert not result.success
        assert result.team_results["frontend"].success
        assert result.escalated_to_human
        assert result.human_escalation_reason == 'Project "Catalogue API" failed with error: db down'
        assert backend.execute_task.call_count == 2
        assert [c[1]["title"] for c in backend.execute_task.call_args_list] == ["Catalogue API", "Search API"]
        assert result.team_results["backend"].projects[1].status is ProjectStatus.COMPLETED
        assert result.total_projects == 3
        assert result.total_completed == 2
        assert result.total_failed == 1

    def test_team_pipelines_run_concurrently(self, registry):
        coordinator, _ = _coordinator(registry, [ASSIGNMENTS], max_parallel_teams=2)
        both_running = threading.Barrier(2, timeout=5)
        backend_titles = []

        def run_frontend(description, priority, title=None):
            both_running.wait()
            return _wf()

        def run_backend(description, priority, title=None):
            backend_titles.append(title)
            if len(backend_titles) == 1:
                both_running.wait()
            return _wf()

        frontend = coordinator.register_team("frontend", MagicMock())
        frontend.execute_task.side_effect = run_frontend
        backend = coordinator.register_team("backend", MagicMock())
        backend.execute_task.side_effect = run_backend
        result = coordinator.execute_goal_multi_team(GOAL)

        assert result.success
        assert result.total_completed == 3
        assert backend_titles == ["Catalogue API", "Search API"]


class TestStatus:

    def test_coordination_status_and_log(self, registry):
        coordinator, _ = _coordinator(registry, [ASSIGNMENTS])
        coordinator.register_team("frontend", _team())
        coordinator.register_team("backend", _team())
        coordinator.register_team("idle", _team())
        coordinator.execute_goal_multi_team(GOAL)

        status = coordinator.coordination_status()
        assert status["teams"] == ["frontend", "backend", "idle"]
        assert status["total_projects"] == 3
        assert status["by_status"]["completed"] == 3
        assert status["by_team"] == {"frontend": 1, "backend": 2, "idle": 0}

        assert status["escalations"] == 0
        assert status["active_tasks"] == 0
        log = status["goal_log"]
        assert len(log) == 1
        assert log[0]["goal"] == GOAL
        assert log[0]["succeeded"] == 3

        project = coordinator.active_projects()[0]
        assert coordinator.get_project(project.id) is project
