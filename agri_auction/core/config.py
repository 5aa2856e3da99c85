from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Agri Lot Auction Engine"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str = "sqlite:///./agri_auction.db"

    # ─────────── EXPIRY SCHEDULER ───────────
    scheduler_enabled: bool = True
    sweep_interval_seconds: int = 5
    sweep_batch_size: int = 100
    finalize_lease_seconds: int = 60
    retry_backoff_base_seconds: int = 5
    retry_backoff_max_seconds: int = 300

    # ─────────── LOTS / BIDS ───────────
    active_lots_default_limit: int = 50
    bid_rate_limit_capacity: int = 10
    bid_rate_limit_per_minute: int = 10


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
