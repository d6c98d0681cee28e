"""
Read-through cache engine for the Wallet Sweep backend.

Values live in the shared key-value store as JSON text; this module keeps
no state of its own between requests. Every public function is fail-soft:
a store outage degrades reads to "always fetch fresh" and writes to a
``False`` result, it never fails the request that triggered them. Errors
raised by a caller's fetcher are a different matter and always propagate.

Concurrent misses on the same key are not deduplicated. Two requests that
miss at the same time both call their fetcher and both write the result,
last write wins. Callers that need single-flight fetching must add their
own locking.
"""
import functools
import json
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from config.logging import log_error
from config.settings import get_config
from .keys import call_key, generate_cache_key
from .monitoring import record_error, record_hit, record_miss, track_duration
from .redis_manager import get_redis_manager

logger = structlog.get_logger()

# Type variable for generic fetcher results
T = TypeVar('T')

Fetcher = Callable[[], Awaitable[T]]


def _encode(value: Any) -> str:
    """
    Serialize a value for storage.

    Raises:
        TypeError: The value would not come back unchanged from the store
            (datetimes, tuples, models, non-string dict keys)
    """
    encoded = json.dumps(value, separators=(',', ':'))
    if json.loads(encoded) != value:
        raise TypeError(f"{type(value).__name__} value does not survive a JSON round trip")
    return encoded


def _decode(raw: str) -> Any:
    return json.loads(raw)


def resolve_ttl(ttl: Optional[int]) -> Optional[int]:
    """
    Map a requested TTL to the store's ``ex`` argument.

    None falls back to the configured default; zero or negative means the
    entry persists until invalidated, never that it expires immediately.
    """
    if ttl is None:
        ttl = get_config().DEFAULT_CACHE_TTL
    return ttl if ttl > 0 else None


async def _write(cache_key: str, value: Any, ttl: Optional[int]) -> bool:
    expiry = resolve_ttl(ttl)
    try:
        encoded = _encode(value)
    except (TypeError, ValueError) as e:
        record_error('encode')
        log_error(logger, "cache_encode_failed", e, {"key": cache_key})
        return False

    try:
        with track_duration('set'):
            await get_redis_manager().set(cache_key, encoded, ex=expiry)
    except Exception as e:
        record_error('set')
        log_error(logger, "cache_set_failed", e, {"key": cache_key})
        return False

    logger.debug("cache_set", key=cache_key, ttl=expiry)
    return True


async def get_or_set(
    key: str,
    fetcher: Fetcher[T],
    ttl: Optional[int] = None,
    namespace: Optional[str] = None
) -> T:
    """
    Return the cached value for ``key`` or fetch, store and return it.

    Args:
        key: Cache key
        fetcher: Zero-argument coroutine function producing the fresh value
        ttl: Time-to-live in seconds; None uses the default, 0 never expires
        namespace: Optional key prefix

    Returns:
        The cached or freshly fetched value

    Raises:
        Whatever ``fetcher`` raises. Store errors are never raised.
    """
    cache_key = generate_cache_key(key, namespace)

    try:
        with track_duration('get'):
            raw = await get_redis_manager().get(cache_key)
    except Exception as e:
        record_error('get')
        log_error(logger, "cache_get_failed", e, {"key": cache_key})
        return await fetcher()

    if raw:
        try:
            value = _decode(raw)
        except ValueError as e:
            record_error('decode')
            log_error(logger, "cache_decode_failed", e, {"key": cache_key})
        else:
            record_hit(cache_key)
            logger.debug("cache_hit", key=cache_key)
            return value

    record_miss(cache_key)
    logger.debug("cache_miss", key=cache_key)

    fresh = await fetcher()
    # A failed write still returns the value we already have
    await _write(cache_key, fresh, ttl)
    return fresh


async def get_from_cache(key: str, namespace: Optional[str] = None) -> Optional[Any]:
    """Get a cached value, or None on a miss or backend error."""
    cache_key = generate_cache_key(key, namespace)

    try:
        with track_duration('get'):
            raw = await get_redis_manager().get(cache_key)
        if not raw:
            record_miss(cache_key)
            return None
        value = _decode(raw)
    except Exception as e:
        record_error('get')
        log_error(logger, "cache_get_failed", e, {"key": cache_key})
        return None

    record_hit(cache_key)
    return value


async def set_cache(
    key: str,
    value: Any,
    ttl: Optional[int] = None,
    namespace: Optional[str] = None
) -> bool:
    """Store a value; returns False instead of raising on backend or encoding errors."""
    return await _write(generate_cache_key(key, namespace), value, ttl)


async def cache_exists(key: str, namespace: Optional[str] = None) -> bool:
    """Check if a key exists; False on backend errors."""
    cache_key = generate_cache_key(key, namespace)

    try:
        return await get_redis_manager().exists(cache_key) == 1
    except Exception as e:
        record_error('exists')
        log_error(logger, "cache_exists_failed", e, {"key": cache_key})
        return False


async def get_cache_ttl(key: str, namespace: Optional[str] = None) -> Optional[int]:
    """
    Remaining lifetime of a key in seconds.

    Returns:
        Seconds left, -1 for an entry without expiration, or None when the
        key is missing or the backend failed
    """
    cache_key = generate_cache_key(key, namespace)

    try:
        ttl = await get_redis_manager().ttl(cache_key)
    except Exception as e:
        record_error('ttl')
        log_error(logger, "cache_ttl_failed", e, {"key": cache_key})
        return None

    # -2: no such key
    if ttl is None or ttl == -2:
        return None
    return int(ttl)


def cached(
    prefix: str,
    ttl: Optional[int] = None,
    key_builder: Optional[Callable[..., str]] = None
):
    """
    Decorator for read-through caching of a coroutine function.

    The key is built from ``prefix``, the positional arguments and the
    keyword arguments (order-independent, case preserved) unless
    ``key_builder`` is given.
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            if key_builder:
                key = key_builder(*args, **kwargs)
            else:
                key = call_key(prefix, args, kwargs)

            return await get_or_set(key, functools.partial(func, *args, **kwargs), ttl=ttl)

        return wrapper
    return decorator
