"""fieldsync configuration settings using pydantic-settings."""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fieldsync.errors import ConfigValidationError


class SyncMode(str, Enum):
    """Which pipeline variant a sync run uses."""

    UPLOAD = "upload"  # local files -> WebDAV -> API -> local layer
    DB_ONLY = "db_only"  # photos already on WebDAV, confirm URLs in the API

    @property
    def required_keys(self) -> tuple[str, ...]:
        """Configuration keys that must be non-blank for this mode."""
        api_keys = ("api_url", "api_token", "db_table", "photo_field")
        if self is SyncMode.UPLOAD:
            return ("webdav_url", "webdav_username", "webdav_password", *api_keys)
        return api_keys


# Project variable names used by the field app's project file
PROJECT_VARIABLES = {
    "render_webdav_url": "webdav_url",
    "render_webdav_username": "webdav_username",
    "render_webdav_password": "webdav_password",
    "render_api_url": "api_url",
    "render_api_token": "api_token",
    "render_db_table": "db_table",
    "render_photo_field": "photo_field",
}


class SyncConfig(BaseModel):
    """Immutable configuration for one sync run.

    Built from Settings once, validated before any batch starts and then
    shared read-only by the orchestrator and the batch coordinator.
    """

    model_config = ConfigDict(frozen=True)

    webdav_url: str = ""
    webdav_username: str = ""
    webdav_password: str = ""
    api_url: str = ""
    api_token: str = ""
    db_table: str = "design.verify_poles"
    photo_field: str = "photo"
    mode: SyncMode = SyncMode.UPLOAD
    commit_local: bool = True

    max_retries: int = 3
    retry_base_delay: float = 2.0

    # Timeouts (seconds)
    health_timeout: float = 10.0
    status_timeout: float = 15.0
    api_timeout: float = 30.0
    batch_timeout: float = 60.0
    upload_timeout: float = 120.0

    @property
    def endpoint_urls(self) -> dict[str, str]:
        """Endpoint URLs that are set, keyed by config name."""
        urls = {"webdav_url": self.webdav_url, "api_url": self.api_url}
        return {key: value for key, value in urls.items() if value}

    @property
    def upload_enabled(self) -> bool:
        """Whether WebDAV credentials are present for the upload step."""
        return bool(self.webdav_url.strip())


class Settings(BaseSettings):
    """Configuration settings for fieldsync.

    Settings are loaded from environment variables with the FIELDSYNC_ prefix.
    For example, FIELDSYNC_API_URL=https://sync.example.com sets api_url.
    """

    model_config = SettingsConfigDict(
        env_prefix="FIELDSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # WebDAV store
    webdav_url: str = ""
    webdav_username: str = ""
    webdav_password: str = ""

    # Sync API
    api_url: str = ""
    api_token: str = ""
    db_table: str = "design.verify_poles"
    photo_field: str = "photo"

    # Pipeline
    mode: SyncMode = SyncMode.UPLOAD
    commit_local: bool = True
    max_retries: int = 3
    retry_base_delay: float = 2.0

    # Timeouts (seconds)
    health_timeout: float = 10.0
    status_timeout: float = 15.0
    api_timeout: float = 30.0
    batch_timeout: float = 60.0
    upload_timeout: float = 120.0

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        """Ensure at least one attempt is made."""
        if v < 1:
            raise ValueError("max_retries must be at least 1")
        return v

    @field_validator(
        "health_timeout", "status_timeout", "api_timeout", "batch_timeout", "upload_timeout"
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Ensure every step has a positive ceiling."""
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("retry_base_delay")
    @classmethod
    def validate_retry_base_delay(cls, v: float) -> float:
        """Ensure retry delay is not negative."""
        if v < 0:
            raise ValueError("retry_base_delay must not be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    def with_project_variables(self, project_file: Path) -> "Settings":
        """Return a copy overlaid with values from a YAML project file.

        The file holds the field project's custom variables, e.g.::

            render_api_url: https://sync.example.com
            render_db_table: design.verify_poles

        Blank values in the file do not override the environment.

        Raises:
            ConfigValidationError: If the file cannot be read or parsed
        """
        try:
            with open(project_file) as f:
                variables = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            raise ConfigValidationError(
                f"Failed to load project variables from {project_file}: {e}"
            ) from e

        if not isinstance(variables, dict):
            raise ConfigValidationError(f"Project file {project_file} must contain a mapping")

        overrides: dict[str, Any] = {}
        for variable, key in PROJECT_VARIABLES.items():
            value = variables.get(variable)
            if value is not None and str(value).strip():
                overrides[key] = str(value)
        return self.model_copy(update=overrides)

    def to_sync_config(self, mode: SyncMode | None = None) -> SyncConfig:
        """Freeze the sync-relevant settings into a SyncConfig."""
        data = self.model_dump(include=set(SyncConfig.model_fields))
        if mode is not None:
            data["mode"] = mode
        return SyncConfig(**data)
