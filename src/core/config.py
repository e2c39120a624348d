"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support.

The defaults describe the service as it ships: listen on every interface at
port 8080, drain for at most ten seconds on shutdown, serve the API
description at ``/openapi/schema.json`` and the documentation UI at ``/docs``.
Every value can be overridden through environment variables (nested values
use the ``__`` delimiter, e.g. ``CORS_CONFIG__MAX_AGE=600``) or a ``.env``
file.

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
"""

import os
import re
import signal
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    excluded_paths: list[str] = Field(
        default_factory=list,
        description="Paths to exclude from request logging",
    )
    slow_request_threshold_ms: int = Field(
        default=1000,
        gt=0,
        description="Threshold for slow request warnings (milliseconds)",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "api_key",
            "authorization",
        ],
        description="Field names to redact",
    )


class CorsConfig(BaseModel):
    """Cross-origin resource sharing policy.

    Origins accept ``*`` wildcards (``https://*`` matches any HTTPS origin).
    """

    allowed_origins: list[str] = Field(
        default_factory=lambda: ["https://*", "http://*"],
        description="Allowed origins, '*' matches any sequence of characters",
    )
    allowed_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        description="HTTP methods allowed for cross-origin requests",
    )
    allowed_headers: list[str] = Field(
        default_factory=lambda: [
            "Accept",
            "Authorization",
            "Content-Type",
            "X-CSRF-Token",
        ],
        description="Request headers allowed for cross-origin requests",
    )
    exposed_headers: list[str] = Field(
        default_factory=lambda: ["Link"],
        description="Response headers exposed to the browser",
    )
    allow_credentials: bool = Field(
        default=False,
        description="Whether cookies and credentials are allowed",
    )
    max_age: int = Field(
        default=300,
        ge=0,
        description="Seconds browsers may cache preflight responses",
    )

    def origin_regex(self) -> str | None:
        """Compile the wildcard origins into one anchored regular expression.

        Returns:
            str | None: Alternation of all origin patterns, or None when no
                origin is allowed.
        """
        if not self.allowed_origins:
            return None
        patterns = [
            ".*".join(re.escape(part) for part in origin.split("*"))
            for origin in self.allowed_origins
        ]
        return "|".join(f"(?:{pattern})" for pattern in patterns)


class ObservabilityConfig(BaseModel):
    """Metrics and tracing configuration."""

    enable_metrics: bool = Field(
        default=True,
        description="Enable request metrics collection",
    )
    enable_tracing: bool = Field(
        default=True,
        description="Enable OpenTelemetry tracing",
    )
    exporter_type: Literal["console", "otlp", "none"] = Field(
        default="console",
        description="Telemetry exporter type. Defaults to console for development.",
    )
    exporter_endpoint: str | None = Field(
        default=None,
        description="OTLP exporter endpoint",
    )
    trace_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Trace sampling rate (0.0 to 1.0)",
    )
    metrics_export_interval_ms: int = Field(
        default=60000,
        gt=0,
        description="Interval between metric exports (milliseconds)",
    )
    metrics_excluded_paths: list[str] = Field(
        default_factory=list,
        description="Paths the metrics collector does not record",
    )

    @field_validator("exporter_endpoint", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
    )

    # Application settings
    app_name: str = Field(
        default="Template project Backend API", description="Application name"
    )
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # Server settings
    api_host: str = Field(default="0.0.0.0", description="Address to bind")  # noqa: S104
    api_port: int = Field(default=8080, ge=0, le=65535, description="Port to bind")
    shutdown_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for draining in-flight requests on shutdown",
    )
    shutdown_signals: list[str] = Field(
        default_factory=lambda: ["SIGINT"],
        description="OS signals that trigger a graceful shutdown",
    )

    # API surface
    api_base_path: str = Field(
        default="/", description="Path where declared operations are mounted"
    )
    api_description_path: Path | None = Field(
        default=None,
        description="OpenAPI document to serve. Uses the bundled one if unset.",
    )
    openapi_url: str = Field(
        default="/openapi/schema.json", description="API description URL"
    )
    docs_url: str | None = Field(default="/docs", description="Swagger UI URL")

    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )
    cors_config: CorsConfig = Field(
        default_factory=CorsConfig, description="CORS policy"
    )
    observability_config: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig, description="Observability configuration"
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

    def _detect_formatter(self) -> Literal["console", "json"]:
        """Auto-detect log formatter based on environment."""
        if os.getenv("K_SERVICE") or os.getenv("AWS_EXECUTION_ENV"):
            return "json"
        if self.environment == "development":
            return "console"
        return "json"

    @field_validator("shutdown_signals", mode="after")
    @classmethod
    def validate_signal_names(cls, v: list[str]) -> list[str]:
        """Reject names that are not signals on this platform."""
        names = [name.upper() for name in v]
        for name in names:
            if not isinstance(getattr(signal, name, None), signal.Signals):
                msg = f"Unknown signal: {name}"
                raise ValueError(msg)
        return names

    @field_validator("api_base_path", mode="after")
    @classmethod
    def validate_base_path(cls, v: str) -> str:
        """Base paths are absolute."""
        if not v.startswith("/"):
            msg = "api_base_path must start with '/'"
            raise ValueError(msg)
        return v

    @field_validator("docs_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if v == "":
            return None
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
