"""Site-wide pipeline settings loaded from config/settings.yaml and the environment."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from dotenv import load_dotenv

load_dotenv()

PROVIDER_DEFAULT_MODELS: dict[str, str] = {
    "gigachat": "GigaChat-Max",
    "openai": "gpt-4o",
    "mock": "mock",
}

SECRET_ENV_VARS: dict[str, str] = {
    "gigachat": "GIGACHAT_AUTH_KEY",
    "openai": "OPENAI_API_KEY",
}


@dataclass(frozen=True)
class PipelineSettings:
    provider: str = "gigachat"
    secret: str = ""
    model: str = ""
    timeout: float = 30.0
    file_timeout: float = 60.0
    question_count: int = 10
    temperature: float = 0.7
    tag_temperature: float = 0.0
    max_tokens: Union[int, None] = None
    max_attempts: int = 5
    retry_pause: float = 1.0
    max_inline_chars: int = 10_000
    verify_ssl: bool = True
    scope_level: str = "site"

    @property
    def resolved_model(self) -> str:
        return self.model or PROVIDER_DEFAULT_MODELS.get(self.provider, "")

    def with_overrides(self, **overrides: Any) -> "PipelineSettings":
        """Return a copy where every non-empty override shadows the current value."""
        known = {f.name for f in dataclasses.fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        applied = {k: v for k, v in overrides.items() if v not in (None, "")}
        return dataclasses.replace(self, **applied)


def _env_overrides(provider: str) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    secret_env = SECRET_ENV_VARS.get(provider)
    if secret_env and os.environ.get(secret_env):
        overrides["secret"] = os.environ[secret_env]
    if os.environ.get("LLM_QBANK_MODEL"):
        overrides["model"] = os.environ["LLM_QBANK_MODEL"]
    return overrides


class SettingsLoader:
    """Loads site-wide defaults from config/settings.yaml."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "settings.yaml"
        self.config_path = config_path
        self._config: dict[str, Any] | None = None

    def _load_config(self) -> None:
        if self._config is not None:
            return
        if not self.config_path.exists():
            self._config = {}
            return
        with self.config_path.open("r", encoding="utf-8") as handle:
            self._config = yaml.safe_load(handle) or {}

    def site_settings(self) -> PipelineSettings:
        """Built-in defaults, then the YAML ``site`` section, then the environment."""
        self._load_config()
        section = (self._config or {}).get("site", {})
        if not isinstance(section, dict):
            section = {}
        yaml_provider = section.get("provider") or "gigachat"
        provider = os.environ.get("LLM_QBANK_PROVIDER") or yaml_provider
        section = dict(section, provider=provider)
        if provider != yaml_provider:
            # the YAML model belongs to the provider the environment replaced
            section.pop("model", None)
        settings = PipelineSettings().with_overrides(**section)
        return settings.with_overrides(**_env_overrides(provider))


settings_loader = SettingsLoader()
