"""End-to-end runs through Crew with a scripted model and real tools."""

import pytest
from conftest import FakeLLM, tool_call_text

import devcrew.config as config_module
from devcrew.config import Config
from devcrew.crew.crew import Crew, OrchestrationConfig, build_team
from devcrew.crew.events import EventType
from devcrew.crew.developer import DevWorker
from devcrew.crew.planner import ProjectManager
from devcrew.crew.qa import QAWorker


@pytest.fixture
def config(monkeypatch, tmp_path):
    monkeypatch.setattr(config_module, "CONFIG_DIR", tmp_path / "home")
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "home" / "config.yml")
    monkeypatch.delenv("DEVCREW_MAX_TEAM_ITERATIONS", raising=False)
    return Config.load(str(tmp_path))


class TestBuildTeam:

    def test_roles_and_bounds(self, registry):
        settings = OrchestrationConfig(max_tool_iterations=4, max_task_attempts=2, max_retries=5,
                                       max_team_iterations=7)
        team = build_team("alpha", FakeLLM(), registry, settings)

        assert isinstance(team.pm, ProjectManager)
        assert team.pm.max_retries == 5
        assert set(team.developers) == {"dev", "frontend", "backend"}
        assert all(isinstance(d, DevWorker) and d.max_attempts == 2 for d in team.developers.values())
        assert isinstance(team.qa, QAWorker)
        assert team.max_iterations == 7
        assert team.qa.max_iterations == 4
        assert "generate_project" not in team.pm.tools.names
        assert "generate_project" not in team.qa.tools.names


class TestCrew:

    def test_teams_from_settings(self, config):
        config.orchestration = {"teams": ["frontend", "backend"], "max-parallel-teams": 3}
        crew = Crew(config, llm=FakeLLM())
        assert crew.coordinator.teams() == ["frontend", "backend"]
        assert crew.coordinator.max_parallel_teams == 3
        assert crew.status()["teams"] == ["frontend", "backend"]

    def test_scaffold_goal_generates_project(self, config, tmp_path):
        llm = FakeLLM([
            tool_call_text("generate_project", template="fullstack", projectName="demo-app"),
            "Generated project demo-app.",
        ])
        crew = Crew(config, llm=llm)
        result = crew.run("Scaffold a project named demo-app")

        assert result.success
        assert result.completed_projects == 1
        assert result.projects[0].title == "Scaffold demo-app"
        assert (tmp_path / "demo-app-frontend").is_dir()
        assert (tmp_path / "demo-app-backend").is_dir()
        # planning was skipped at both levels, so the developer made every call
        assert len(llm.calls) == 2
        assert "## Task: Scaffold Project" in llm.calls[0]["messages"][-1]["content"]
        assert 'projectName="demo-app"' in llm.calls[0]["messages"][-1]["content"]

        status = crew.status()
        assert status["active_tasks"] == 0
        assert status["tasks_by_team"]["default"]["completed"] == 2
        assert status["tasks_by_team"]["default"]["failed"] == 0

    def test_describing_instead_of_doing_escalates(self, config):
        llm = FakeLLM(["I would call generate_project now."])
        crew = Crew(config, llm=llm)
        heard = []
        crew.events.on_escalation(lambda reason, project: heard.append(reason))
        result = crew.run("Scaffold a project named demo-app")

        assert not result.success
        assert result.failed_projects == 1
        # three attempts for the scaffold task, then one escalation review by the coordinator
        assert len(llm.calls) == 4
        assert len(crew.events.get_history(EventType.TASK_ESCALATED)) == 1
        # the coordinator review did not ask for a human
        assert not result.escalated_to_human
        assert heard == []
        status = crew.status()
        assert status["active_tasks"] == 0
        assert status["tasks_by_team"]["default"]["failed"] == 2
