"""Settings and configuration management using Pydantic."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

CONFIG_FILE = Path("config.yaml")


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    Settings source that loads values from a config.yaml file in the
    current working directory.
    """

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        data = self._load()
        return data.get(field_name), field_name, False

    def _load(self) -> Dict[str, Any]:
        if not CONFIG_FILE.exists():
            return {}

        encoding = self.config.get("env_file_encoding")
        try:
            content = yaml.safe_load(CONFIG_FILE.read_text(encoding))
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Failed to load {CONFIG_FILE}: {e}")
            return {}

        return content if isinstance(content, dict) else {}

    def __call__(self) -> Dict[str, Any]:
        return self._load()


class Settings(BaseSettings):
    """Course Player configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="COURSE_PLAYER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Env vars win over config.yaml
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # Object storage
    storage_url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the storage backend",
    )
    storage_key: str = Field(
        default="",
        description="API key sent with storage requests",
    )
    course_video_bucket: str = Field(
        default="course-videos",
        description="Bucket holding publicly served course videos",
    )
    lesson_video_bucket: str = Field(
        default="videos",
        description="Bucket holding access-controlled lesson videos",
    )
    signed_url_expiry: int = Field(
        default=3600,
        ge=60,
        description="Lifetime of signed video URLs in seconds",
    )
    resolution_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Seconds to wait for a video URL before giving up",
    )

    # Progress tracking
    progress_min_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds of playback between progress reports",
    )
    progress_min_percent: float = Field(
        default=3.0,
        gt=0,
        le=100,
        description="Percent of duration that forces a progress report",
    )
    resume_ceiling: float = Field(
        default=0.95,
        gt=0,
        le=1,
        description="Saved positions at or past this fraction of duration are not resumed",
    )

    # Player
    default_volume: float = Field(
        default=0.7,
        ge=0,
        le=1,
        description="Volume restored on unmute when none was saved",
    )
    controls_hide_delay: float = Field(
        default=3.0,
        gt=0,
        description="Seconds of pointer inactivity before controls hide",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///~/.course_player/progress.db",
        description="Database connection URL for the progress store",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: Path = Field(
        default=Path("~/.course_player/logs/player.log"),
        description="Log file path",
    )

    # Web
    web_port: int = Field(
        default=8001,
        ge=1024,
        le=65535,
        description="Port for the player web app",
    )

    # Development
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    @field_validator("storage_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Storage URLs are joined with '/', so drop any trailing slash."""
        return v.rstrip("/")

    @field_validator("log_file", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        """Expand environment variables and user paths."""
        if isinstance(v, Path):
            v = str(v)
        return Path(os.path.expandvars(os.path.expanduser(v)))

    @field_validator("database_url", mode="before")
    @classmethod
    def expand_db_url(cls, v: str) -> str:
        """Expand environment variables in database URL."""
        if v.startswith("sqlite:///") and v != "sqlite:///:memory:":
            path_part = v.replace("sqlite:///", "", 1)
            expanded_path = os.path.expandvars(os.path.expanduser(path_part))
            return f"sqlite:///{expanded_path}"
        return v

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        if self.database_url.startswith("sqlite:///") and ":memory:" not in self.database_url:
            db_path = Path(self.database_url.replace("sqlite:///", "", 1))
            db_path.parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
