"""Tests for the click CLI and the crew console renderer."""

import pytest
from click.testing import CliRunner
from conftest import FakeLLM, tool_call_text
from rich.console import Console

import devcrew.config as config_module
import devcrew.logger as logger_module
import devcrew.main as main_module
import devcrew.theme as theme_module
from devcrew import __version__
from devcrew.crew.coordinator import GoalResult, ProjectStatus, create_project
from devcrew.crew.crew import Crew
from devcrew.crew.events import CrewEvent, EventType
from devcrew.crew.rendering import CrewRenderer
from devcrew.main import cli


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.setattr(main_module, "console", Console(width=200))
    monkeypatch.setattr(config_module, "CONFIG_DIR", tmp_path / "home")
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "home" / "config.yml")
    monkeypatch.setattr(logger_module, "DEFAULT_LOG_FILE", tmp_path / "logs" / "devcrew.log")
    monkeypatch.setattr(theme_module, "_active", theme_module.PALETTES["dark"])
    monkeypatch.setattr(theme_module, "_use_unicode", True)
    monkeypatch.delenv("DEVCREW_MODEL", raising=False)
    return CliRunner()


class TestCli:

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_tools_for_role(self, runner, tmp_path):
        result = runner.invoke(cli, ["tools", "--role", "pm", "-d", str(tmp_path)])
        assert result.exit_code == 0
        assert "list_templates" in result.output
        assert "write_file" not in result.output

    def test_tools_lists_untagged_as_all(self, runner, tmp_path):
        result = runner.invoke(cli, ["tools", "-d", str(tmp_path)])
        assert result.exit_code == 0
        assert "generate_project" in result.output
        assert "all" in result.output

    def test_unknown_role_rejected(self, runner):
        result = runner.invoke(cli, ["tools", "--role", "janitor"])
        assert result.exit_code != 0

    def test_run_requires_goal(self, runner):
        result = runner.invoke(cli, ["run"])
        assert result.exit_code != 0

    def test_run_bad_directory(self, runner, tmp_path):
        result = runner.invoke(cli, ["run", "hello", "-d", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "not a valid directory" in result.output

    def test_run_unknown_team(self, runner, tmp_path):
        result = runner.invoke(cli, ["run", "hello", "--team", "ghost", "-d", str(tmp_path)])
        assert result.exit_code == 1
        assert "unknown team 'ghost'" in result.output

    def test_run_scaffold_goal(self, runner, monkeypatch, tmp_path):
        llm = FakeLLM([
            tool_call_text("generate_project", template="express", projectName="api"),
            "Generated project api.",
        ])
        monkeypatch.setattr(main_module, "Crew", lambda config: Crew(config, llm=llm))
        result = runner.invoke(cli, ["run", "Scaffold", "an", "express", "project", "named", "api",
                                     "-d", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Goal Summary" in result.output
        assert (tmp_path / "api").is_dir()

    def test_run_needing_a_human_exits_2(self, runner, monkeypatch, tmp_path):
        describe = "I would call generate_project now."
        llm = FakeLLM([describe, describe, describe, "ESCALATE_TO_HUMAN: yes\nREASON: pick a database"])
        monkeypatch.setattr(main_module, "Crew", lambda config: Crew(config, llm=llm))
        result = runner.invoke(cli, ["run", "Scaffold", "a", "project", "named", "api", "-d", str(tmp_path)])
        assert result.exit_code == 2, result.output
        assert "pick a database" in result.output

    @pytest.mark.parametrize("model, shown", [("deepseek-chat", "deepseek/deepseek-chat"),
                                              ("openai/gpt-x", "openai/gpt-x")])
    def test_run_model_option(self, runner, monkeypatch, tmp_path, model, shown):
        llm = FakeLLM([
            tool_call_text("generate_project", template="express", projectName="api"),
            "Generated project api.",
        ])
        monkeypatch.setattr(main_module, "Crew", lambda config: Crew(config, llm=llm))
        result = runner.invoke(cli, ["run", "Scaffold", "an", "express", "project", "named", "api",
                                     "-m", model, "-d", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert f"model {shown}" in result.output

    def test_models_marks_active_preset(self, runner, tmp_path):
        result = runner.invoke(cli, ["models", "-d", str(tmp_path)])
        assert result.exit_code == 0
        assert "deepseek" in result.output
        active_line = next(line for line in result.output.splitlines() if "●" in line)
        assert "local" in active_line

    def test_ascii_and_theme_options(self, runner, tmp_path):
        result = runner.invoke(cli, ["--ascii", "--theme", "light", "models", "-d", str(tmp_path)])
        assert result.exit_code == 0
        assert "●" not in result.output
        assert theme_module.get_icon("●") == "*"
        assert theme_module.get_theme() is theme_module.PALETTES["light"]

    def test_unknown_theme_rejected(self, runner):
        result = runner.invoke(cli, ["--theme", "neon", "models"])
        assert result.exit_code != 0


class TestRenderer:

    def test_event_line(self, mock_console):
        renderer = CrewRenderer(mock_console)
        renderer.handle(CrewEvent(EventType.TASK_RETRY, "alpha", "Retrying: Build"))
        line = mock_console.print.call_args[0][0]
        assert "alpha" in line
        assert "Retrying: Build" in line

    def test_task_finished_hidden_unless_verbose(self, mock_console):
        event = CrewEvent(EventType.TASK_FINISHED, "alpha", "Build", metadata={"success": False})
        CrewRenderer(mock_console).handle(event)
        mock_console.print.assert_not_called()
        CrewRenderer(mock_console, verbose=True).handle(event)
        mock_console.print.assert_called_once()

    def test_goal_result_with_escalation(self, mock_console):
        project = create_project("Catalogue API", "Build it", "high")
        project.status = ProjectStatus.BLOCKED
        result = GoalResult(success=False, projects=[project], failed_projects=1,
                            escalated_to_human=True, human_escalation_reason="needs a budget call")
        CrewRenderer(mock_console).render_goal_result(result)
        assert mock_console.print.call_count == 2
        assert "needs a budget call" in mock_console.print.call_args[0][0]

    def test_status_footer_shows_active_tasks(self, mock_console):
        status = {"teams": ["alpha"], "by_status": {"completed": 1}, "active_tasks": 2, "escalations": 1}
        CrewRenderer(mock_console).render_status(status)
        panel = mock_console.print.call_args[0][0]
        assert "active tasks: 2" in panel.subtitle
        assert "escalations: 1" in panel.subtitle
        assert "alpha" in panel.subtitle
