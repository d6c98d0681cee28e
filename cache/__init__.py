"""
Wallet Sweep caching module.

A read-through cache backed by Redis that sits in front of the wallet
balance, token price and token image lookups, with pattern-based
invalidation so every cached page of a wallet can be evicted at once
after a sell.
"""

from .core import (
    cached,
    get_or_set,
    get_from_cache,
    set_cache,
    cache_exists,
    get_cache_ttl
)
from .keys import (
    compose_key,
    compose_pattern,
    escape_glob,
    generate_cache_key,
    token_balances_key,
    token_price_key,
    token_image_key,
    wallet_pattern
)
from .invalidation import (
    invalidate_cache,
    invalidate_multiple,
    invalidate_by_pattern,
    clear_namespace,
    invalidate_wallet,
    invalidates_wallet_cache
)
from .redis_manager import KeyValueStore, RedisManager, get_redis_manager, set_redis_manager
from .wallet_cache import WalletCache
from .admin import CacheAdmin, CacheActionRequest, format_ttl

__all__ = [
    'cached',
    'get_or_set',
    'get_from_cache',
    'set_cache',
    'cache_exists',
    'get_cache_ttl',
    'compose_key',
    'compose_pattern',
    'escape_glob',
    'generate_cache_key',
    'token_balances_key',
    'token_price_key',
    'token_image_key',
    'wallet_pattern',
    'invalidate_cache',
    'invalidate_multiple',
    'invalidate_by_pattern',
    'clear_namespace',
    'invalidate_wallet',
    'invalidates_wallet_cache',
    'KeyValueStore',
    'RedisManager',
    'get_redis_manager',
    'set_redis_manager',
    'WalletCache',
    'CacheAdmin',
    'CacheActionRequest',
    'format_ttl'
]
