"""Configuration contract for cargocore.

Pydantic-validated settings shared by every service that embeds the
authorization core (LOG_LEVEL, REDIS_URL, enforcement mode, projection
retry budget).

Direct os.environ/os.getenv usage is limited to load_config_from_env();
everything else receives a CargoConfig instance.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnforcementMode(str, Enum):
    """Three-state authorization enforcement toggle.

    - ``off``     — no checks at the gRPC boundary, only caller logging.
    - ``warn``    — evaluate, log denials as WARNING, let the call through.
    - ``enforce`` — evaluate and reject denied calls (production).
    """

    OFF = "off"
    WARN = "warn"
    ENFORCE = "enforce"


class CargoConfig(BaseModel):
    """Settings for services embedding cargocore.

    Services extend this model with their own fields.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the service",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Redis (shipment store)
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (e.g., redis://localhost:6379/0)",
    )
    redis_key_prefix: str = Field(
        default="cargocore",
        description="Key namespace for the Redis shipment store",
    )

    # Service identification
    service_name: Optional[str] = Field(
        default=None,
        description="Service name used in log records",
    )

    # Tracking projection
    projection_max_retries: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Attempts at the status compare-and-set before surfacing a conflict",
    )

    # Authorization boundary
    enforcement: EnforcementMode = Field(
        default=EnforcementMode.ENFORCE,
        description="gRPC interceptor enforcement mode",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @field_validator("enforcement", mode="before")
    @classmethod
    def validate_enforcement(cls, v: str | EnforcementMode) -> EnforcementMode:
        if isinstance(v, EnforcementMode):
            return v
        if isinstance(v, str):
            try:
                return EnforcementMode(v.strip().lower())
            except ValueError:
                raise ValueError(f"Invalid enforcement mode: {v}. Must be one of off, warn, enforce")
        raise ValueError(f"Enforcement must be string or EnforcementMode enum, got {type(v)}")

    model_config = {
        "extra": "forbid",
    }


_TRUTHY = ("true", "1", "yes", "on")


def load_config_from_env() -> CargoConfig:
    """Load configuration from environment variables.

    This is the ONLY place where os.getenv is allowed for cargocore settings.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL
    - CARGOCORE_REDIS_PREFIX: Key namespace for the shipment store
    - SERVICE_NAME: Service name for log records
    - PROJECTION_MAX_RETRIES: Compare-and-set attempts for status projection
    - SECURITY_ENFORCEMENT: off | warn | enforce

    Returns:
        CargoConfig instance with values from environment or defaults.
    """
    import os

    return CargoConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in _TRUTHY,
        redis_url=os.getenv("REDIS_URL"),
        redis_key_prefix=os.getenv("CARGOCORE_REDIS_PREFIX", "cargocore"),
        service_name=os.getenv("SERVICE_NAME"),
        projection_max_retries=int(os.getenv("PROJECTION_MAX_RETRIES", "3")),
        enforcement=os.getenv("SECURITY_ENFORCEMENT", "enforce"),
    )


__all__ = [
    "CargoConfig",
    "EnforcementMode",
    "LogLevel",
    "load_config_from_env",
]
