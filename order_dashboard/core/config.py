from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./orders.db"
    service_name: str = "order-dashboard"
    log_level: str = "INFO"
    cors_origins: str = "*"
    db_pool_size: int = 20
    db_max_overflow: int = 10

    refresh_interval_seconds: float = 30.0
    change_feed_url: str | None = None
    change_exchange: str = "orders.changes"

    webhook_url: str = "http://localhost:5678/webhook/orders"
    webhook_timeout_seconds: float = 10.0

    tax_rate: Decimal = Decimal("0")
    display_timezone: str = "UTC"
    atomic_ingestion: bool = False

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError("Only PostgreSQL and SQLite are supported")
        return v

    @field_validator("refresh_interval_seconds")
    @classmethod
    def validate_refresh_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("refresh_interval_seconds must be positive")
        return v

    @field_validator("display_timezone")
    @classmethod
    def validate_display_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown display timezone: {v}") from e
        return v


settings = Settings()
