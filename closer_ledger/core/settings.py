"""Application settings and environment loading utilities."""
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"

load_dotenv(dotenv_path=ENV_FILE)


class Settings(BaseSettings):
    """Central application configuration."""

    app_name: str = "Closer Ledger API"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    database_url: str = Field(
        default="sqlite:///./data/dev.db",
        description="SQLAlchemy database URL",
        alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    payment_webhook_secret: str | None = Field(default=None, alias="PAYMENT_WEBHOOK_SECRET")
    default_commission_rate: float = Field(
        default=0.10,
        ge=0,
        le=1,
        description="Rate applied when neither closer nor role nor tenant define one",
        alias="DEFAULT_COMMISSION_RATE",
    )
    match_candidate_limit: int = Field(default=10, ge=1, alias="MATCH_CANDIDATE_LIMIT")
    attribution_window_hours: int = Field(default=72, ge=0, alias="ATTRIBUTION_WINDOW_HOURS")
    suggestion_lookback_days: int = Field(default=60, ge=1, alias="SUGGESTION_LOOKBACK_DAYS")

    class Config:
        env_file = ENV_FILE
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True


@lru_cache
def get_settings() -> "Settings":
    """Return cached settings instance."""

    return Settings()
