"""Settings for the Wallet Sweep cache service."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SweepConfig(BaseSettings):
    """Configuration for the Wallet Sweep backend."""

    # Redis Configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL"
    )

    # Cache TTLs (seconds, 0 means no expiration)
    DEFAULT_CACHE_TTL: int = Field(
        default=3600,
        description="TTL used when a caller does not pass one"
    )
    TOKEN_BALANCE_TTL: int = Field(
        default=300,
        description="TTL for wallet balance pages"
    )
    TOKEN_PRICE_TTL: int = Field(
        default=600,
        description="TTL for market data lookups"
    )
    TOKEN_IMAGE_TTL: int = Field(
        default=0,
        description="TTL for token image lookups"
    )

    # Pattern invalidation
    SCAN_BATCH_SIZE: int = Field(
        default=100,
        gt=0,
        description="Keys requested per SCAN page"
    )
    MAX_SCAN_ITERATIONS: int = Field(
        default=10_000,
        gt=0,
        description="Upper bound on SCAN round trips for one pattern"
    )

    # Upstream APIs
    THIRDWEB_API_URL: str = Field(default="https://api.thirdweb.com")
    THIRDWEB_CLIENT_ID: Optional[str] = Field(default=None)
    CHAIN_ID: int = Field(
        default=8453,  # Base mainnet
        description="Chain id balances are fetched for"
    )
    ZAPPER_API_URL: str = Field(default="https://public.zapper.xyz/graphql")
    ZAPPER_API_KEY: Optional[str] = Field(default=None)
    COINGECKO_API_URL: str = Field(default="https://api.coingecko.com/api/v3")
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    # Monitoring
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


@lru_cache()
def get_config() -> SweepConfig:
    """Get the process-wide configuration."""
    return SweepConfig()
