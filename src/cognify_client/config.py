"""Client configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Directory holding config/settings.yaml: the checkout root, or the cwd once installed."""
    for parent in Path(__file__).resolve().parents:
        if (parent / "pyproject.toml").is_file():
            return parent
    return Path.cwd()


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Reads the `api:` and `storage:` sections of config/settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        # Values come from __call__
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if "api" in data:
            flattened["api_url"] = data["api"].get("url")
            flattened["request_timeout_seconds"] = data["api"].get("timeout_seconds")
            flattened["client_type"] = data["api"].get("client_type")
        if "storage" in data:
            flattened["storage_dir"] = data["storage"].get("dir")
            flattened["storage_scope"] = data["storage"].get("scope")

        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Backend address, timeouts and local storage location of the client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend
    api_url: str = Field(default="http://localhost:8000")
    request_timeout_seconds: float = Field(default=10.0)
    client_type: str = Field(default="mobile")

    # Local storage
    storage_dir: Path | None = Field(default=None)
    storage_scope: str = Field(default="cognify")

    # "development" or "production" (selects log format)
    env: str = Field(default="development")

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def resolved_storage_dir(self) -> Path:
        d = self.storage_dir or self.project_root / "data" / "storage"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Explicit arguments beat the environment, which beats the YAML defaults."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Process-wide settings, built once."""
    return Settings()
