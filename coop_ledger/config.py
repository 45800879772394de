"""Configuration management using Pydantic Settings"""

from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Row store (one serialized state blob per user)
    database_url: str = "sqlite:///./coop_ledger.db"

    # Local cache used when the row store is unreachable
    state_cache_dir: str = ".coop_cache"

    # Service
    service_name: str = "coop-ledger"
    log_level: str = "INFO"

    # Fresh-start defaults
    default_member_count: int = 20
    default_share_price: Decimal = Decimal("500")

    # Remote save retry
    remote_save_max_retries: int = 3
    remote_save_backoff_base: float = 0.5  # Exponential backoff base in seconds


settings = Settings()
