import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


class LogfireConfig(BaseModel):
    token: str | None = None
    service_name: str = "toggle-analysis"
    environment: str = "development"

    @property
    def is_enabled(self) -> bool:
        return bool(self.token)


class AnalysisScopeConfig(BaseModel):
    """Default scope and window used by the CLI when flags are omitted."""

    project_key: str | None = None
    environment_key: str | None = None
    toggle_key: str | None = None
    start: str | None = None
    end: str | None = None

    @field_validator("project_key", "environment_key", "toggle_key")
    @classmethod
    def validate_key_not_blank(cls, v) -> str | None:
        """Reject keys that are present but blank."""
        if v is not None and not v.strip():
            raise ValueError("scope keys must not be blank")
        return v


class Settings(BaseSettings):
    analysis_api_base_url: str = "http://localhost:4009"
    analysis_api_token: str = ""
    analysis_api_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    log_path: Path = Path("data/logs/toggle_analysis.jsonl")
    logfire: LogfireConfig = Field(default_factory=LogfireConfig)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_nested_delimiter="__", extra="ignore"
    )

    @property
    def timeout_seconds(self) -> int:
        """Short alias for analysis_api_timeout_seconds."""
        return self.analysis_api_timeout_seconds

    @field_validator("analysis_api_base_url")
    @classmethod
    def validate_base_url(cls, v) -> str:
        """Strip trailing slashes so paths can be appended directly."""
        if not v or not v.strip():
            raise ValueError("analysis_api_base_url must not be empty")
        return v.rstrip("/")

    @field_validator("analysis_api_timeout_seconds", mode="before")
    @classmethod
    def validate_timeout_seconds(cls, v) -> int:
        """Validate the request timeout, falling back to the default if invalid."""
        if v is None:
            return DEFAULT_TIMEOUT_SECONDS

        try:
            timeout = int(v)
            if timeout <= 0:
                logger.warning(
                    f"Invalid analysis_api_timeout_seconds value: {v}. "
                    f"Using default: {DEFAULT_TIMEOUT_SECONDS}s"
                )
                return DEFAULT_TIMEOUT_SECONDS
            return timeout
        except (ValueError, TypeError):
            logger.warning(
                f"Invalid analysis_api_timeout_seconds value: {v}. "
                f"Using default: {DEFAULT_TIMEOUT_SECONDS}s"
            )
            return DEFAULT_TIMEOUT_SECONDS
