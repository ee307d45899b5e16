"""
Client settings (Pydantic Settings).
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root (parent of taskhub/)
_env_path = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    # TASKHUB_API_URL in .env; the Laravel backend serves everything under /api
    api_url: str = "http://127.0.0.1:8000/api"
    # Durable client state (auth token). Any SQLAlchemy URL.
    storage_url: str = "sqlite:///taskhub_state.db"
    request_timeout_seconds: float = 20.0
    notification_poll_seconds: int = 10
    dashboard_refetch_after_seconds: int = 300
    dashboard_focus_debounce_seconds: float = 0.5
    dashboard_min_refetch_seconds: int = 30
    table_search_debounce_seconds: float = 0.35
    log_level: str = "INFO"

    class Config:
        env_file = _env_path
        env_prefix = "TASKHUB_"
        extra = "ignore"

    @field_validator("api_url", mode="after")
    @classmethod
    def strip_api_url(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    @field_validator("log_level", mode="after")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()


settings = Settings()
