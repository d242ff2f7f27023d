"""Application and logging configuration models.

This module contains configuration models for application-level
settings and logging configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from feedsync.shared.constants.application import Application
from feedsync.shared.constants.logging import LogConfig


class AppSettings(BaseModel):
    """Application configuration.

    This class manages application-level settings including
    name, version and debug mode.
    """

    name: str = Field(default=Application.NAME, description="Application name")
    version: str = Field(default=Application.VERSION, description="Application version")
    description: str = Field(
        default=Application.DESCRIPTION,
        description="Application description",
    )
    debug: bool = Field(default=False, description="Enable debug mode")


class LoggingSettings(BaseModel):
    """Logging configuration.

    This class manages logging behavior including level, file output,
    console output and the JSON line format.
    """

    level: str = Field(default=LogConfig.DEFAULT_LEVEL, description="Logging level")
    file: str | None = Field(default=None, description="Optional log file path (JSON lines)")
    console_output: bool = Field(
        default=LogConfig.DEFAULT_CONSOLE_OUTPUT,
        description="Enable rich console logging",
    )
    json_format: bool = Field(
        default=LogConfig.DEFAULT_JSON_FORMAT,
        description="Emit JSON lines on the console instead of rich output",
    )

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in LogConfig.LEVELS:
            msg = f"Unknown log level: {value}"
            raise ValueError(msg)
        return normalized


__all__ = [
    "AppSettings",
    "LoggingSettings",
]
