"""
Cache administration actions.

A thin layer over the invalidation engine used by the HTTP routes and by
post-transaction hooks: it validates the request fields each action needs
and shapes the result, nothing more.
"""
from typing import Any, Dict, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from error_handling.exceptions import InvalidCacheRequest
from .invalidation import clear_namespace, invalidate_by_pattern, invalidate_cache, invalidate_wallet
from .wallet_cache import WalletCache

logger = structlog.get_logger()

SUPPORTED_ACTIONS = ('invalidate', 'invalidatePattern', 'invalidateWallet', 'clearNamespace')


class CacheActionRequest(BaseModel):
    """Body of a cache administration request."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    action: Optional[str] = None
    key: Optional[str] = None
    pattern: Optional[str] = None
    namespace: Optional[str] = None
    wallet_address: Optional[str] = Field(default=None, alias='walletAddress')


def format_ttl(ttl: Optional[int]) -> Optional[str]:
    """Render a positive TTL as ``"<minutes>m <seconds>s"``."""
    if not ttl or ttl <= 0:
        return None
    return f"{ttl // 60}m {ttl % 60}s"


class CacheAdmin:
    """Dispatches administration actions to the invalidation engine."""

    def __init__(self, wallet_cache: Optional[WalletCache] = None):
        self.wallet_cache = wallet_cache or WalletCache()

    async def handle(self, request: CacheActionRequest) -> Dict[str, Any]:
        """
        Run one administration action.

        Raises:
            InvalidCacheRequest: A required field is missing or the action
                is not supported
        """
        handlers = {
            'invalidate': self._invalidate,
            'invalidatePattern': self._invalidate_pattern,
            'invalidateWallet': self._invalidate_wallet,
            'clearNamespace': self._clear_namespace,
        }
        handler = handlers.get(request.action or '')
        if handler is None:
            raise InvalidCacheRequest(
                f"Invalid action. Supported actions: {', '.join(SUPPORTED_ACTIONS)}"
            )

        result = await handler(request)
        logger.info("cache_admin_action", action=request.action, success=result['success'])
        return result

    async def _invalidate(self, request: CacheActionRequest) -> Dict[str, Any]:
        if not request.key:
            raise InvalidCacheRequest("Key is required for invalidate action")

        success = await invalidate_cache(request.key, request.namespace)
        return {
            'success': success,
            'message': (
                f"Cache key {request.key} invalidated"
                if success else f"Cache key {request.key} not found"
            ),
        }

    async def _invalidate_pattern(self, request: CacheActionRequest) -> Dict[str, Any]:
        if not request.pattern:
            raise InvalidCacheRequest("Pattern is required for invalidatePattern action")

        deleted_count = await invalidate_by_pattern(request.pattern, request.namespace)
        return {
            'success': deleted_count > 0,
            'deletedCount': deleted_count,
            'message': f"Invalidated {deleted_count} cache entries matching pattern {request.pattern}",
        }

    async def _invalidate_wallet(self, request: CacheActionRequest) -> Dict[str, Any]:
        if not request.wallet_address:
            raise InvalidCacheRequest("Wallet address is required for invalidateWallet action")

        deleted_count = await invalidate_wallet(request.wallet_address)
        return {
            'success': deleted_count > 0,
            'deletedCount': deleted_count,
            'message': (
                f"Cache for wallet {request.wallet_address} invalidated ({deleted_count} entries)"
                if deleted_count else f"No cached entries for wallet {request.wallet_address}"
            ),
        }

    async def _clear_namespace(self, request: CacheActionRequest) -> Dict[str, Any]:
        if not request.namespace:
            raise InvalidCacheRequest("Namespace is required for clearNamespace action")

        cleared_count = await clear_namespace(request.namespace)
        return {
            'success': cleared_count > 0,
            'clearedCount': cleared_count,
            'message': f"Cleared {cleared_count} cache entries in namespace {request.namespace}",
        }

    async def status(self, wallet_address: Optional[str]) -> Dict[str, Any]:
        """Cache status for a wallet's default balance page."""
        if not wallet_address:
            raise InvalidCacheRequest("Wallet address is required")

        status = await self.wallet_cache.get_wallet_status(wallet_address)
        return {
            'wallet': wallet_address,
            'cacheKey': status['cacheKey'],
            'exists': status['exists'],
            'ttl': status['ttl'],
            'ttlReadable': format_ttl(status['ttl']),
        }
