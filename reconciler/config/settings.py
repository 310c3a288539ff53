"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (Dramatiq broker and sweep lock)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Ledger RPC endpoints, one per supported network
    ethereum_rpc_url: str | None = None
    sepolia_rpc_url: str | None = None
    bsc_rpc_url: str | None = None

    # Notifications (optional)
    telegram_bot_token: str | None = None

    # Discovery polling: transaction not yet visible on-chain
    discovery_max_attempts: int = Field(
        default=60, ge=1, description="Lookups before a missing transaction is failed"
    )
    discovery_retry_delay: float = Field(
        default=2.0, gt=0, description="Seconds between discovery lookups"
    )

    # Confirmation polling: transaction visible, waiting for depth
    confirmation_max_attempts: int = Field(
        default=10, ge=1, description="Checks before an unconfirmed transaction is failed"
    )
    confirmation_retry_delay: float = Field(
        default=2.0, gt=0, description="Seconds between confirmation checks"
    )
    confirmation_threshold: int = Field(
        default=1, ge=1, description="Confirmations required to complete a transaction"
    )

    # Sweep
    stale_after_hours: float = Field(
        default=2.0, gt=0, description="Age after which an unseen record is failed by the sweep"
    )
    sweep_max_records: int = Field(
        default=50, ge=1, le=1000, description="Records processed per scheduled sweep"
    )
    sweep_lock_timeout: int = Field(
        default=600, ge=1, description="Seconds the sweep lock is held at most"
    )
    sweep_interval_minutes: int = Field(
        default=5, ge=1, description="Scheduler interval of the sweep"
    )
    health_check_interval_minutes: int = Field(default=15, ge=1)

    # Scheduler health server
    health_host: str = "0.0.0.0"
    health_port: int = 8081

    # Synchronous status checks
    status_retry_attempts: int = Field(default=5, ge=1)

    # Application
    environment: str = "production"
    log_level: str = "INFO"
    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def normalize_log_level(self) -> "Settings":
        """Upper-case the log level so loguru accepts it."""
        self.log_level = self.log_level.upper()
        return self

    @property
    def rpc_urls(self) -> dict[str, str]:
        """RPC endpoints keyed by network name, configured ones only."""
        urls = {
            "ethereum": self.ethereum_rpc_url,
            "sepolia": self.sepolia_rpc_url,
            "bsc": self.bsc_rpc_url,
        }
        return {name: url for name, url in urls.items() if url}


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
