"""Application configuration using Pydantic Settings."""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    PROJECT_NAME: str = "IPAM Operator"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./ipam_operator.db"
    DATABASE_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or console

    # OpenTelemetry Configuration
    OTEL_SERVICE_NAME: str = "ipam-operator"
    OTEL_TRACE_SAMPLE_RATE: float = 1.0  # 1.0 = 100% sampling
    OTEL_EXPORT_CONSOLE: bool = False

    # Redis/Celery configuration
    REDIS_URL: str = "redis://localhost:6379"
    CELERY_QUEUE_NAME: str = "ipam:queue"

    # Celery Worker Configuration
    CELERY_WORKER_POOL: str = "prefork"  # prefork, threads, gevent, solo
    CELERY_WORKER_CONCURRENCY: int = 4
    CELERY_TASK_SOFT_TIME_LIMIT: int = 60  # soft limit cancels the pass
    CELERY_TASK_HARD_TIME_LIMIT: int = 90

    # Reconciliation
    RECONCILE_REQUEUE_AFTER: float = 30.0  # paused / dependency not ready
    RECONCILE_LOCK_TIMEOUT: int = 120
    RECONCILE_LOCK_RETRY_SECONDS: float = 1.0
    RECONCILE_MAX_RETRIES: Optional[int] = None  # None = retry forever
    RECONCILE_MAX_BACKOFF: int = 300
    RESYNC_PERIOD_SECONDS: float = 600.0
    REQUEUE_ON_MISSING_CLUSTER: bool = True

    # Watches
    WATCH_FILTER_VALUE: Optional[str] = None
    PROVIDER_NAME: str = "ipam-metal3"
    ENABLE_IPCLAIM_WATCH: bool = True
    ENABLE_IPADDRESSCLAIM_WATCH: bool = True

    @field_validator("WATCH_FILTER_VALUE", mode="before")
    @classmethod
    def empty_filter_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty filter value as no filter."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
