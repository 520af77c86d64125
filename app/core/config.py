from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "jobboard"
    environment: str = "dev"
    base_url: str = "http://localhost:8000"
    app_secret: str | None = None
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    job_retention_days: int = 30
    tasks_enabled: bool = True
    task_interval_seconds: float = 60.0
    slack_hook: str | None = None
    twitter_access_token: str | None = None
    social_timeout_seconds: float = 10.0
    otel_enabled: bool = True
    otel_service_name: str = "jobboard"
    otel_exporter_otlp_endpoint: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="JOBBOARD_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
