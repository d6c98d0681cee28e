"""
Wallet-specific caching for the Wallet Sweep routes.

This module applies the read-through cache to the three lookups the routes
make: wallet balance pages, token prices and token images, each with its
own TTL taken from the configuration.
"""
from typing import Any, Dict, Optional

import structlog

from config.settings import SweepConfig, get_config
from .core import Fetcher, T, cache_exists, get_cache_ttl, get_from_cache, get_or_set, set_cache
from .invalidation import invalidate_wallet
from .keys import token_balances_key, token_image_key, token_price_key

logger = structlog.get_logger()


class WalletCache:
    """
    Cached access to wallet balances, prices and token images.

    Balance pages expire after TOKEN_BALANCE_TTL, prices after
    TOKEN_PRICE_TTL; token images are kept until explicitly cleared.
    """

    def __init__(self, config: Optional[SweepConfig] = None):
        self.config = config or get_config()

    async def get_token_balances(
        self,
        wallet_address: str,
        fetcher: Fetcher[T],
        page: Optional[int] = None,
        limit: Optional[int] = None,
        fetch_all: Optional[bool] = None
    ) -> T:
        """
        Get one page of a wallet's balances, fetching it on a miss.

        Args:
            wallet_address: Wallet address, any casing
            fetcher: Coroutine function returning the fresh page
            page: Page index
            limit: Page size
            fetch_all: Whether the page holds every token

        Returns:
            The cached or fetched page
        """
        key = token_balances_key(wallet_address, page=page, limit=limit, fetch_all=fetch_all)
        return await get_or_set(key, fetcher, ttl=self.config.TOKEN_BALANCE_TTL)

    async def get_token_price(self, token_address: str, fetcher: Fetcher[T]) -> T:
        """Get market data for a token, fetching it on a miss."""
        return await get_or_set(
            token_price_key(token_address),
            fetcher,
            ttl=self.config.TOKEN_PRICE_TTL
        )

    async def get_token_image(self, chain: str, token_address: str) -> Optional[Dict[str, Any]]:
        image = await get_from_cache(token_image_key(chain, token_address))
        if image is not None:
            logger.debug("token_image_cache_hit", chain=chain, token=token_address.lower())
        return image

    async def cache_token_image(self, chain: str, token_address: str, data: Dict[str, Any]) -> bool:
        return await set_cache(
            token_image_key(chain, token_address),
            data,
            ttl=self.config.TOKEN_IMAGE_TTL
        )

    async def invalidate_wallet(self, wallet_address: str) -> int:
        """Evict every cached balance page for a wallet."""
        return await invalidate_wallet(wallet_address)

    async def get_wallet_status(self, wallet_address: str) -> Dict[str, Any]:
        """
        Report whether a wallet's default balance key is cached.

        Returns:
            Dictionary with the key, whether it exists and its TTL
        """
        key = token_balances_key(wallet_address)
        exists = await cache_exists(key)
        ttl = await get_cache_ttl(key) if exists else None

        return {
            'cacheKey': key,
            'exists': exists,
            'ttl': ttl
        }
