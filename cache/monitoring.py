"""
Prometheus metrics for the Wallet Sweep cache.

Counters are labelled by the key's leading segment (``tokens``, ``price``,
``token_image``...) so hit ratios can be compared per resource family.
"""
import time
from contextlib import contextmanager
from typing import Dict, Iterator

import structlog
from prometheus_client import Counter, Histogram

logger = structlog.get_logger()

CACHE_HITS = Counter(
    'sweep_cache_hits_total',
    'Total number of cache hits',
    ['namespace']
)
CACHE_MISSES = Counter(
    'sweep_cache_misses_total',
    'Total number of cache misses',
    ['namespace']
)
CACHE_ERRORS = Counter(
    'sweep_cache_errors_total',
    'Total number of cache backend errors',
    ['operation']
)
CACHE_INVALIDATIONS = Counter(
    'sweep_cache_invalidated_keys_total',
    'Total number of keys removed by invalidation',
    ['kind']
)
CACHE_OPERATION_DURATION = Histogram(
    'sweep_cache_operation_duration_seconds',
    'Duration of cache operations',
    ['operation']
)


def key_namespace(key: str) -> str:
    """Leading segment of a key, used as a metrics label."""
    return key.split(':', 1)[0] if ':' in key else '_'


def record_hit(key: str) -> None:
    CACHE_HITS.labels(namespace=key_namespace(key)).inc()


def record_miss(key: str) -> None:
    CACHE_MISSES.labels(namespace=key_namespace(key)).inc()


def record_error(operation: str) -> None:
    CACHE_ERRORS.labels(operation=operation).inc()


def record_invalidation(kind: str, count: int) -> None:
    if count > 0:
        CACHE_INVALIDATIONS.labels(kind=kind).inc(count)


@contextmanager
def track_duration(operation: str) -> Iterator[None]:
    """Observe how long the wrapped block takes, failures included."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        CACHE_OPERATION_DURATION.labels(operation=operation).observe(
            time.perf_counter() - start_time
        )


def get_hit_ratio(namespace: str) -> float:
    """
    Get cache hit ratio for one key namespace.

    Returns:
        Hit ratio as a float between 0 and 1
    """
    hits = CACHE_HITS.labels(namespace=namespace)._value.get()
    misses = CACHE_MISSES.labels(namespace=namespace)._value.get()
    total = hits + misses

    if total == 0:
        return 0.0

    return hits / total


def get_metrics_report(namespaces=('tokens', 'price', 'token_image')) -> Dict[str, float]:
    """Hit ratios for the namespaces the route handlers use."""
    return {f'{ns}_hit_ratio': get_hit_ratio(ns) for ns in namespaces}


def log_metrics() -> None:
    """Log current cache hit ratios."""
    logger.info("cache_metrics_report", **get_metrics_report())
