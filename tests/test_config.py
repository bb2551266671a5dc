"""Tests for YAML config loading and the orchestration section."""

import pytest

import devcrew.config as config_module
from devcrew.config import Config
from devcrew.crew.crew import OrchestrationConfig, TeamSpec
from devcrew.errors import ConfigError


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for var in ("DEVCREW_MODEL", "DEVCREW_VERBOSE", "DEVCREW_COMMAND_TIMEOUT",
                "DEVCREW_MAX_TEAM_ITERATIONS"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config_module, "CONFIG_DIR", tmp_path / "home")
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "home" / "config.yml")


class TestConfigLoad:

    def test_project_yaml(self, config_yaml_file):
        config = Config.load(str(config_yaml_file.parent))
        assert config.active_model == "local"
        assert config.command_timeout == 30
        preset = config.get_active_preset()
        assert preset.native_tools is False
        assert preset.max_tokens == 8192
        assert config.orchestration["max-team-iterations"] == 3
        assert config.project_root == str(config_yaml_file.parent.resolve())

    def test_defaults_without_yaml(self, tmp_dir):
        config = Config.load(str(tmp_dir))
        assert "local" in config.models
        assert config.orchestration == {}

    def test_env_overrides(self, config_yaml_file, monkeypatch):
        monkeypatch.setenv("DEVCREW_COMMAND_TIMEOUT", "1")
        monkeypatch.setenv("DEVCREW_MAX_TEAM_ITERATIONS", "7")
        config = Config.load(str(config_yaml_file.parent))
        assert config.command_timeout == 5
        assert config.orchestration["max-team-iterations"] == "7"
        assert OrchestrationConfig.from_dict(config.orchestration).max_team_iterations == 7

    def test_dotenv_does_not_override(self, tmp_dir, monkeypatch):
        monkeypatch.setenv("DEVCREW_MODEL", "from-shell")
        (tmp_dir / ".env").write_text("DEVCREW_MODEL=from-dotenv\n", encoding="utf-8")
        assert Config.load(str(tmp_dir)).active_model == "from-shell"

    def test_non_mapping_yaml_rejected(self, tmp_dir):
        (tmp_dir / ".devcrew.yml").write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            Config.load(str(tmp_dir))

    def test_log_file_setting(self, tmp_dir):
        (tmp_dir / ".devcrew.yml").write_text("log-file: false\n", encoding="utf-8")
        assert Config.load(str(tmp_dir)).log_file is False

    def test_set_active_model(self, config_yaml_file):
        config = Config.load(str(config_yaml_file.parent))
        assert not config.set_active_model("missing")
        assert config.set_active_model("local")


class TestOrchestrationConfig:

    def test_defaults(self):
        settings = OrchestrationConfig.from_dict(None)
        assert settings.max_tool_iterations == 10
        assert settings.max_task_attempts == 3
        assert settings.max_team_iterations == 5
        assert settings.max_parallel_teams == 4
        assert settings.teams == [TeamSpec("default")]

    def test_parses_teams_and_bounds(self, sample_config_data):
        settings = OrchestrationConfig.from_dict(sample_config_data["orchestration"])
        assert settings.max_tool_iterations == 6
        assert settings.max_team_iterations == 3
        assert settings.max_parallel_teams == 2
        assert [t.name for t in settings.teams] == ["frontend", "backend"]

    def test_bad_values_clamped_or_defaulted(self):
        settings = OrchestrationConfig.from_dict({
            "max-tool-iterations": 0,
            "max-team-iterations": "lots",
            "max-parallel-teams": 1000,
            "teams": [{"workspace": "nameless"}, 42],
        })
        assert settings.max_tool_iterations == 1
        assert settings.max_team_iterations == 5
        assert settings.max_parallel_teams == 32
        assert settings.teams == [TeamSpec("default")]
