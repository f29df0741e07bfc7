from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Contact Pro"
    app_env: str = "local"
    app_debug: bool = True
    api_port: int = 8000
    log_level: str = "INFO"

    record_backend: str = "sql"
    database_url: str = "sqlite+pysqlite:///./contactpro.db"

    hosted_api_base_url: str = "https://api.apper.io/v1"
    hosted_project_id: str = ""
    hosted_public_key: str = ""
    hosted_timeout_seconds: float = 15.0
    hosted_page_size: int = 100
    hosted_server_query_kinds: list[str] = ["user"]

    advisory_sync_url: str | None = None
    advisory_sync_timeout_seconds: float = 5.0

    recent_items_limit: int = 5
    recent_activity_days: int = 7
    notification_history_limit: int = 200

    metrics_enabled: bool = False
    otel_enabled: bool = False
    otel_service_name: str = "contactpro"
    otel_exporter_endpoint: str | None = None
    otel_console_exporter: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
