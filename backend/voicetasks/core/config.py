"""Settings for voicetasks, read with pydantic-settings.

Sources, highest priority first:

1. Keyword arguments to Settings()
2. Environment variables (VOICETASKS_*, plus the usual OPENAI_API_KEY and
   MICROSOFT_* names for credentials)
3. A .env file in the working directory
4. <data_dir>/config/settings.json, where the openai, microsoft and match
   sections may be nested: {"match": {"minimum_similarity": 0.6}}
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

APP_VERSION = "0.1.0"

# backend/data, independent of the working directory
DEFAULT_DATA_DIR = (Path(__file__).parent.parent.parent / "data").resolve()

NESTED_SECTIONS = ("openai", "microsoft", "match")


def _credential(name: str) -> Any:
    """Accept both VOICETASKS_<NAME> and the bare <NAME> environment variable."""
    return AliasChoices(f"voicetasks_{name}", name)


def json_config_settings_source() -> dict[str, Any]:
    """Values from settings.json, flattened to field names.

    VOICETASKS_DATA_DIR is read directly because the file location depends
    on it. A missing or malformed file contributes nothing.
    """
    data_dir = Path(os.environ.get("VOICETASKS_DATA_DIR") or DEFAULT_DATA_DIR)
    settings_file = data_dir / "config" / "settings.json"

    try:
        raw = json.loads(settings_file.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    if not isinstance(raw, dict):
        return {}

    values: dict[str, Any] = {}
    for key, value in raw.items():
        if key in NESTED_SECTIONS and isinstance(value, dict):
            values.update({f"{key}_{sub_key}".lower(): sub for sub_key, sub in value.items()})
        else:
            values[key.lower()] = value
    return values


class Settings(BaseSettings):
    """Runtime configuration (see module docstring for where values come from)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VOICETASKS_",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # First source wins
        return (  # type: ignore[return-value]
            init_settings,
            env_settings,
            dotenv_settings,
            json_config_settings_source,
        )

    env: Literal["development", "production", "testing"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    host_bind_address: str = "127.0.0.1"
    host_port: int = Field(default=8000, ge=1, le=65535)

    data_dir: Path = Field(
        default_factory=lambda: DEFAULT_DATA_DIR,
        description="Holds config/, database/ and logs/",
    )

    # OpenAI
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("voicetasks_openai_api_key", "openai_api_key", "openai_key"),
    )
    openai_model: str = Field(default="gpt-4o", description="Model that interprets voice commands")
    openai_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    score_new_tasks: bool = Field(
        default=True,
        description="Ask the model for a priority score when a task is created without one",
    )

    # Microsoft To Do; credentials here are fallbacks for when none are stored
    microsoft_client_id: str = Field(default="", validation_alias=_credential("microsoft_client_id"))
    microsoft_tenant_id: str = Field(default="", validation_alias=_credential("microsoft_tenant_id"))
    microsoft_client_secret: str = Field(
        default="", validation_alias=_credential("microsoft_client_secret")
    )
    microsoft_access_token: str = Field(
        default="", validation_alias=_credential("microsoft_access_token")
    )
    graph_api_base_url: str = "https://graph.microsoft.com/v1.0"
    microsoft_login_base_url: str = "https://login.microsoftonline.com"
    oauth_redirect_base_url: str = Field(
        default="",
        description="Public URL the OAuth callback is served under; https://<request host> when empty",
    )
    microsoft_push_new_tasks: bool = Field(
        default=False,
        description="Also create tasks added through the API in Microsoft To Do",
    )

    # Matching spoken task references to stored titles
    match_minimum_similarity: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="A title must score strictly above this to be picked",
    )
    match_containment_score: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Score when one title contains the other",
    )

    @property
    def config_dir(self) -> Path:
        return self.data_dir / "config"

    @property
    def database_dir(self) -> Path:
        return self.data_dir / "database"

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def database_file(self) -> Path:
        return self.database_dir / "voicetasks.db"

    @property
    def is_debug(self) -> bool:
        """Development mode, or DEBUG requested explicitly."""
        return self.env == "development" or self.log_level == "DEBUG"

    def model_post_init(self, __context: object) -> None:
        self.data_dir = self.data_dir.resolve()
        for directory in (self.config_dir, self.database_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, built on first use."""
    return Settings()


def reload_settings() -> Settings:
    """Rebuild settings from all sources (after the environment or settings.json changed)."""
    get_settings.cache_clear()
    return get_settings()
