"""Pydantic models for bencodec.

Provides validated configuration models for the codec and for logging.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CodecConfig(BaseModel):
    """Decoder strictness and safety limits."""

    strict_integers: bool = Field(
        default=True,
        description="Reject integers and lengths with leading zeros or negative zero",
    )
    reject_duplicate_keys: bool = Field(
        default=False,
        description="Treat a repeated dict key as malformed input instead of overwriting",
    )
    allow_trailing_data: bool = Field(
        default=True,
        description="Accept bytes left over after the top-level value",
    )
    max_depth: int = Field(
        default=256,
        ge=1,
        le=10000,
        description="Maximum list/dict nesting depth",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Use structured JSON logging for the log file",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )
    rich_console: bool = Field(
        default=True,
        description="Render console logs with rich",
    )


class Config(BaseModel):
    """Main configuration model."""

    codec: CodecConfig = Field(
        default_factory=CodecConfig,
        description="Codec configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
