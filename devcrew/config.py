"""
Configuration — model presets plus the orchestration section.

Loading priority:
  1. Project dir .devcrew.yml
  2. Git root .devcrew.yml
  3. Global ~/.devcrew/config.yml

Environment files (~/.devcrew/.env, <project>/.env) are loaded first and never
override variables that are already set.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, List, Any

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

CONFIG_DIR = Path.home() / ".devcrew"
CONFIG_FILE = CONFIG_DIR / "config.yml"
PROJECT_CONFIG_NAME = ".devcrew.yml"


@dataclass
class ModelPreset:
    name: str
    provider: str
    model: str
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 4096
    native_tools: bool = True
    description: str = ""

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        env_map = {
            "openai": "OPENAI_API_KEY", "anthropic": "ANTHROPIC_API_KEY",
            "deepseek": "DEEPSEEK_API_KEY", "gemini": "GEMINI_API_KEY",
        }
        env_var = env_map.get(self.provider)
        return os.environ.get(env_var) if env_var else None

    def get_llm_kwargs(self) -> dict:
        """Return kwargs dict for LLMAdapter constructor — direct, no env vars."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "api_base": self.api_base,
            "api_key": self.resolve_api_key(),
            "native_tools": self.native_tools,
        }


@dataclass
class Config:
    active_model: str = "local"
    models: Dict[str, ModelPreset] = field(default_factory=dict)
    blocked_commands: List[str] = field(
        default_factory=lambda: [
            "rm -rf /", "rm -rf /*", "mkfs", "dd if=", "> /dev/sda",
            "sudo ", "chmod 777", "curl|sh", "curl|bash", "wget|sh",
            ":(){:|:&};:",  # fork bomb
        ]
    )
    command_timeout: int = 120
    verbose: bool = False
    log_file: Optional[Any] = None  # path, or False to disable file logging
    orchestration: Dict[str, Any] = field(default_factory=dict)  # orchestration: section from YAML
    project_root: Optional[str] = None
    _config_source: str = ""

    @classmethod
    def load(cls, project_dir: str = ".") -> "Config":
        config = cls()
        project_path = Path(project_dir).resolve()

        for env_path in [CONFIG_DIR / ".env", project_path / ".env"]:
            if env_path.exists():
                load_dotenv(env_path, override=False)

        git_root = cls._find_git_root(project_path)
        config_loaded = False
        for candidate in [
            project_path / PROJECT_CONFIG_NAME,
            (git_root / PROJECT_CONFIG_NAME) if git_root and git_root != project_path else None,
            CONFIG_FILE,
        ]:
            if candidate and candidate.exists():
                config._load_yaml(candidate)
                config._config_source = str(candidate)
                config_loaded = True
                break

        if not config_loaded:
            config._add_default_presets()

        config._apply_env()
        config.project_root = str(project_path)
        return config

    @classmethod
    def get_default_presets(cls) -> Dict[str, ModelPreset]:
        return {
            "local": ModelPreset(
                name="local", provider="local", model="openai/model",
                api_base="http://localhost:8080/v1", api_key="not-needed",
                native_tools=False,
                description="Local model (vLLM / llama.cpp on :8080)",
            ),
            "deepseek-chat": ModelPreset(
                name="deepseek-chat", provider="deepseek",
                model="deepseek/deepseek-chat",
                api_key_env="DEEPSEEK_API_KEY",
                description="DeepSeek chat",
            ),
            "gpt-4o-mini": ModelPreset(
                name="gpt-4o-mini", provider="openai",
                model="openai/gpt-4o-mini",
                api_key_env="OPENAI_API_KEY",
                description="OpenAI GPT-4o mini",
            ),
            "claude-sonnet": ModelPreset(
                name="claude-sonnet", provider="anthropic",
                model="anthropic/claude-3-5-sonnet-latest",
                api_key_env="ANTHROPIC_API_KEY",
                max_tokens=8192,
                description="Anthropic Claude Sonnet",
            ),
        }

    def _add_default_presets(self):
        self.models = self.get_default_presets()
        self.active_model = "local"

    def _load_yaml(self, filepath: Path):
        try:
            with open(filepath) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read {filepath}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"{filepath}: top level must be a mapping")

        self.active_model = data.get("active-model", "local")
        self.command_timeout = self._coerce_positive_int(
            data.get("command-timeout", 120), default=120, min_value=5, max_value=3600
        )
        self.verbose = self._coerce_bool(data.get("verbose", False), default=False)
        if "log-file" in data:
            self.log_file = data["log-file"]
        if "blocked-commands" in data:
            self.blocked_commands = [str(item) for item in data["blocked-commands"] or []]

        self.orchestration = data.get("orchestration", {}) or {}

        self.models = {}
        for name, m in (data.get("models", {}) or {}).items():
            self.models[name] = ModelPreset(
                name=name, provider=m.get("provider", "openai"),
                model=m.get("model", "openai/gpt-4o-mini"),
                api_base=m.get("api-base"), api_key=m.get("api-key"),
                api_key_env=m.get("api-key-env"),
                temperature=m.get("temperature", 0.0),
                max_tokens=m.get("max-tokens", 4096),
                native_tools=self._coerce_bool(m.get("native-tools", True), default=True),
                description=m.get("description", ""),
            )
        if not self.models:
            self._add_default_presets()

    def _apply_env(self):
        env_map = {
            "DEVCREW_MODEL": ("active_model", str),
            "DEVCREW_VERBOSE": ("verbose", lambda v: v.lower() in ("true", "1")),
            "DEVCREW_COMMAND_TIMEOUT": (
                "command_timeout",
                lambda v: self._coerce_positive_int(v, default=self.command_timeout, min_value=5, max_value=3600),
            ),
        }
        for env_var, (attr, conv) in env_map.items():
            val = os.environ.get(env_var)
            if val:
                setattr(self, attr, conv(val))

        # Orchestration bounds can be tightened per run without editing YAML.
        team_iters = os.environ.get("DEVCREW_MAX_TEAM_ITERATIONS")
        if team_iters:
            self.orchestration = dict(self.orchestration)
            self.orchestration["max-team-iterations"] = team_iters

    def get_active_preset(self) -> ModelPreset:
        if self.active_model in self.models:
            return self.models[self.active_model]
        if self.models:
            return next(iter(self.models.values()))
        raise ConfigError("No model presets configured")

    def set_active_model(self, name: str) -> bool:
        if name in self.models:
            self.active_model = name
            return True
        return False

    def list_models(self) -> List[Dict]:
        return [
            {"name": p.name, "model": p.model, "provider": p.provider,
             "description": p.description, "active": p.name == self.active_model}
            for p in self.models.values()
        ]

    @staticmethod
    def _coerce_bool(value, default: bool) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("1", "true", "yes", "on"):
                return True
            if text in ("0", "false", "no", "off"):
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        return default

    @staticmethod
    def _coerce_positive_int(value, default: int, min_value: int = 1, max_value: int = 100000) -> int:
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return default
        if parsed < min_value:
            return min_value
        if parsed > max_value:
            return max_value
        return parsed

    @staticmethod
    def _find_git_root(path: Path) -> Optional[Path]:
        current = path
        while current != current.parent:
            if (current / ".git").exists():
                return current
            current = current.parent
        return None
