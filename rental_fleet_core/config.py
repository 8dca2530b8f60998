"""
Application configuration.

Every setting has a default and most can be overridden from the
environment; values are read when the config object is built. Pydantic
validates the result, so a bad environment fails at startup rather than in
the middle of a request.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import (
    DEFAULT_LOCATION_COUNTRY,
    HEADQUARTERS_NAME_TEMPLATE,
    NEW_LOCATION_MARKERS,
    EnvironmentVariable,
    LogLevel,
    Timeouts,
)


def _env(variable: EnvironmentVariable, default: str) -> str:
    return os.getenv(variable.value, default)


def _env_flag(variable: EnvironmentVariable) -> bool:
    return _env(variable, "false").lower() == "true"


def _timeout(variable: EnvironmentVariable, default: float, description: str):
    return Field(
        default_factory=lambda: float(_env(variable, str(default))),
        gt=0,
        description=description,
    )


class QueueConfig(BaseModel):
    """Where structured log entries are shipped."""

    connection_string: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.AZURE_STORAGE_CONNECTION, "")
    )
    logs_queue_name: str = "logs-queue"


class LoggingConfig(BaseModel):
    level: str = Field(default_factory=lambda: _env(EnvironmentVariable.LOG_LEVEL, LogLevel.INFO.value))

    @field_validator("level")
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LogLevel.__members__:
            raise ValueError(f"Unknown log level {v!r}; expected one of {list(LogLevel.__members__)}")
        return level


class FeatureFlags(BaseModel):
    enable_logs_queue: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_LOGS_QUEUE),
        description="Ship structured logs to the Azure logs queue",
    )


class TimeoutConfig(BaseModel):
    """Upper bounds for store reads and writes, in seconds."""

    query: float = _timeout(EnvironmentVariable.STORE_TIMEOUT_QUERY, Timeouts.QUERY, "Reads")
    insert: float = _timeout(EnvironmentVariable.STORE_TIMEOUT_INSERT, Timeouts.INSERT, "Inserts")
    update: float = _timeout(
        EnvironmentVariable.STORE_TIMEOUT_UPDATE,
        Timeouts.UPDATE,
        "Updates, including association replacement",
    )
    delete: float = _timeout(EnvironmentVariable.STORE_TIMEOUT_DELETE, Timeouts.DELETE, "Deletes")
    default: float = Field(default=Timeouts.DEFAULT, gt=0)


class LocationConfig(BaseModel):
    new_location_markers: List[str] = Field(
        default_factory=lambda: list(NEW_LOCATION_MARKERS),
        description="Values the UI sends to request an inline new location",
    )
    headquarters_name_template: str = Field(
        default=HEADQUARTERS_NAME_TEMPLATE,
        description="Name of auto-provisioned headquarters; formatted with tenant_name",
    )
    default_country: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.LOCATION_DEFAULT_COUNTRY, DEFAULT_LOCATION_COUNTRY),
        description="Country used when a location is created without one",
    )

    @field_validator("headquarters_name_template")
    def mentions_tenant_name(cls, v: str) -> str:
        if "{tenant_name}" not in v:
            raise ValueError("headquarters_name_template must contain '{tenant_name}'")
        return v


class AppConfig(BaseModel):
    environment: str = Field(default_factory=lambda: _env(EnvironmentVariable.APP_ENV, "development"))
    debug: bool = Field(default_factory=lambda: _env_flag(EnvironmentVariable.DEBUG))

    queue: QueueConfig = Field(default_factory=QueueConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    locations: LocationConfig = Field(default_factory=LocationConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls()


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """The process-wide config, built from the environment on first use."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    global _config
    _config = config


def reset_config() -> None:
    global _config
    _config = None
