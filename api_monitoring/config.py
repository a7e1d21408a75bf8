from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """application settings with environment variables support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # server
    host: str = Field(default="0.0.0.0", alias="HOST", description="host to bind")
    port: int = Field(default=3000, ge=1, le=65535, alias="PORT", description="port to bind")
    service_name: str = Field(
        default="api-monitoring-service", alias="SERVICE_NAME", description="service name"
    )

    # demo routes
    slow_delay_ms: int = Field(
        default=2000, ge=0, alias="SLOW_DELAY_MS", description="delay of the slow endpoint"
    )

    # logging
    log_level: str = Field(default="info", alias="LOG_LEVEL", description="logging level")
    log_format: str = Field(
        default="json", alias="LOG_FORMAT", description="log format: json or console"
    )

    # tracing
    enable_tracing: bool = Field(
        default=True, alias="ENABLE_TRACING", description="enable opentelemetry tracing"
    )
    otlp_endpoint: str = Field(
        default="http://otel-collector:4318/v1/traces",
        alias="OTEL_EXPORTER_OTLP_ENDPOINT",
        description="otlp http endpoint for spans",
    )
    otlp_logs_endpoint: str | None = Field(
        default=None,
        alias="OTEL_EXPORTER_OTLP_LOGS_ENDPOINT",
        description="otlp http endpoint for logs, push disabled when unset",
    )

    # metrics
    metrics_port: int = Field(
        default=9464, ge=0, le=65535, alias="METRICS_PORT", description="prometheus exporter port"
    )
    metrics_endpoint: str = Field(
        default="/metrics", alias="METRICS_ENDPOINT", description="prometheus exposition path"
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level == "warn":
            level = "warning"
        if level not in {"debug", "info", "warning", "error", "critical"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in {"json", "console"}:
            raise ValueError(f"unknown log format: {value}")
        return value

    @field_validator("metrics_endpoint")
    @classmethod
    def _check_metrics_endpoint(cls, value: str) -> str:
        if not value.startswith("/"):
            return "/" + value
        return value

    @field_validator("otlp_logs_endpoint")
    @classmethod
    def _blank_is_unset(cls, value: str | None) -> str | None:
        return value or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
