"""
Cache invalidation for the Wallet Sweep backend.

Single keys and explicit batches are deleted directly; pattern invalidation
walks the key space with SCAN and deletes each page in one pipeline. Keys
written while a scan is in progress may or may not be seen by it.
"""
import functools
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import structlog

from config.logging import log_error
from config.settings import get_config
from .keys import escape_glob, generate_cache_key, token_balances_key, wallet_pattern
from .monitoring import record_error, record_invalidation, track_duration
from .redis_manager import get_redis_manager

logger = structlog.get_logger()


def _count_deleted(results: Sequence[Any]) -> int:
    return sum(1 for result in results if result == 1)


def namespaced_pattern(pattern: str, namespace: Optional[str] = None) -> str:
    """Prefix a pattern with a namespace; the namespace itself is matched literally."""
    return f"{escape_glob(namespace)}:{pattern}" if namespace else pattern


async def invalidate_cache(key: str, namespace: Optional[str] = None) -> bool:
    """Delete one key; True only if a key was actually removed."""
    cache_key = generate_cache_key(key, namespace)

    try:
        with track_duration('delete'):
            removed = await get_redis_manager().delete(cache_key)
    except Exception as e:
        record_error('delete')
        log_error(logger, "cache_invalidate_failed", e, {"key": cache_key})
        return False

    record_invalidation('key', removed)
    logger.info("cache_invalidated", key=cache_key, removed=removed)
    return removed == 1


async def invalidate_multiple(keys: Sequence[str], namespace: Optional[str] = None) -> int:
    """Delete a batch of keys in one pipeline; returns how many existed."""
    if not keys:
        return 0

    cache_keys = [generate_cache_key(key, namespace) for key in keys]

    try:
        with track_duration('delete_many'):
            results = await get_redis_manager().pipeline_delete(cache_keys)
    except Exception as e:
        record_error('delete_many')
        log_error(logger, "cache_invalidate_multiple_failed", e, {"count": len(cache_keys)})
        return 0

    deleted_count = _count_deleted(results)
    record_invalidation('batch', deleted_count)
    logger.info("cache_invalidated_multiple", requested=len(cache_keys), deleted=deleted_count)
    return deleted_count


async def invalidate_by_pattern(pattern: str, namespace: Optional[str] = None) -> int:
    """
    Delete every key matching a glob pattern.

    The scan runs page by page until the cursor comes back to 0, or until
    MAX_SCAN_ITERATIONS pages have been read. A key reported on more than
    one page is only counted once because the second delete returns 0.

    Args:
        pattern: Redis MATCH pattern, e.g. ``tokens:0xabc...:*``
        namespace: Optional namespace the pattern is scoped to

    Returns:
        Number of keys removed. On a backend error the keys removed so far
        are reported and the error is logged.
    """
    search_pattern = namespaced_pattern(pattern, namespace)
    config = get_config()
    store = get_redis_manager()

    deleted_count = 0
    cursor = 0
    iterations = 0

    try:
        with track_duration('delete_pattern'):
            while True:
                cursor, keys = await store.scan(
                    cursor=cursor,
                    match=search_pattern,
                    count=config.SCAN_BATCH_SIZE
                )
                iterations += 1

                page: List[str] = list(dict.fromkeys(keys))
                if page:
                    results = await store.pipeline_delete(page)
                    deleted_count += _count_deleted(results)

                if cursor == 0:
                    break
                if iterations >= config.MAX_SCAN_ITERATIONS:
                    logger.warning(
                        "cache_pattern_scan_capped",
                        pattern=search_pattern,
                        iterations=iterations,
                        deleted=deleted_count
                    )
                    break
    except Exception as e:
        record_error('delete_pattern')
        log_error(logger, "cache_invalidate_pattern_failed", e, {
            "pattern": search_pattern,
            "deleted": deleted_count
        })

    record_invalidation('pattern', deleted_count)
    logger.info(
        "cache_pattern_invalidated",
        pattern=search_pattern,
        deleted=deleted_count,
        pages=iterations
    )
    return deleted_count


async def clear_namespace(namespace: str) -> int:
    """Delete every key under ``namespace:``."""
    if not namespace:
        # An empty namespace would turn into a bare "*" and wipe the store
        logger.warning("cache_clear_namespace_rejected", namespace=namespace)
        return 0
    return await invalidate_by_pattern('*', namespace)


async def invalidate_wallet(wallet_address: str) -> int:
    """
    Evict every cached balance page for a wallet.

    Removes all parameter variants (``tokens:<addr>:*``) and the bare
    ``tokens:<addr>`` key. Called after a completed sell so the next
    balance read goes upstream.
    """
    removed = await invalidate_by_pattern(wallet_pattern(wallet_address))
    if await invalidate_cache(token_balances_key(wallet_address)):
        removed += 1

    logger.info("wallet_cache_invalidated", wallet=wallet_address.lower(), deleted=removed)
    return removed


def invalidates_wallet_cache(address_getter: Callable[..., Optional[str]]):
    """
    Decorator to invalidate a wallet's cache after the wrapped coroutine succeeds.

    ``address_getter`` receives the wrapped call's arguments and returns the
    wallet address to evict, or None to skip. Nothing is invalidated when
    the wrapped coroutine raises.
    """
    def decorator(func: Callable[..., Awaitable[Any]]):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)

            wallet_address = address_getter(*args, **kwargs)
            if wallet_address:
                await invalidate_wallet(wallet_address)

            return result
        return wrapper
    return decorator
