"""
Cache key composition.

Keys are ``logical_name:identifier[:params]`` where the identifier is
case-folded and params are rendered as compact JSON with sorted keys, so
the same resource always lands on the same key regardless of address
casing or parameter order. Inside a segment ``%`` and the ``:`` separator
are percent-encoded, so an identifier can never pose as a params segment or
as another identifier's prefix. User-supplied text is glob-escaped before it
is embedded, which keeps stored keys from ever acting as SCAN wildcards.
"""
import json
import re
from typing import Any, Dict, Optional, Sequence

# Namespaces used by the route handlers
TOKENS_NAMESPACE = "tokens"
PRICE_NAMESPACE = "price"
TOKEN_IMAGE_NAMESPACE = "token_image"
API_NAMESPACE = "api"

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(text: str) -> str:
    """Escape characters that Redis MATCH patterns treat specially."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


def normalize_identifier(identifier: Any) -> str:
    return str(identifier).strip().lower()


def key_segment(value: Any) -> str:
    """Normalize one key segment and make it safe to embed."""
    text = normalize_identifier(value).replace("%", "%25").replace(":", "%3a")
    return escape_glob(text)


def generate_cache_key(key: str, namespace: Optional[str] = None) -> str:
    """Prefix a key with ``namespace:`` when a namespace is given."""
    return f"{namespace}:{key}" if namespace else key


def serialize_params(params: Dict[str, Any]) -> str:
    """Render params order-independently; None values are dropped."""
    filtered = {k: v for k, v in params.items() if v is not None}
    return json.dumps(filtered, sort_keys=True, separators=(",", ":"), default=str)


def compose_key(
    logical_name: str,
    identifier: Any,
    params: Optional[Dict[str, Any]] = None,
    namespace: Optional[str] = None
) -> str:
    """
    Build the storage key for a logical resource.

    Args:
        logical_name: Resource family, e.g. ``tokens`` or ``price``
        identifier: Resource id, case-folded before use
        params: Optional pagination / filter parameters
        namespace: Optional grouping prefix

    Returns:
        A deterministic key; distinct params always give distinct keys
    """
    parts = [logical_name, key_segment(identifier)]

    if params and any(v is not None for v in params.values()):
        parts.append(escape_glob(serialize_params(params)))

    return generate_cache_key(":".join(parts), namespace)


def compose_pattern(logical_name: str, identifier: Any) -> str:
    """Pattern matching every parameter variant of one resource."""
    return escape_glob(compose_key(logical_name, identifier)) + ":*"


def token_balances_key(
    wallet_address: str,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    fetch_all: Optional[bool] = None
) -> str:
    """Key for a page of wallet balances; no params gives the bare wallet key."""
    return compose_key(
        TOKENS_NAMESPACE,
        wallet_address,
        {"page": page, "limit": limit, "fetchAll": fetch_all}
    )


def wallet_pattern(wallet_address: str) -> str:
    return compose_pattern(TOKENS_NAMESPACE, wallet_address)


def token_price_key(token_address: str) -> str:
    return compose_key(PRICE_NAMESPACE, token_address)


def token_image_key(chain: str, token_address: str) -> str:
    return ":".join([TOKEN_IMAGE_NAMESPACE, key_segment(chain), key_segment(token_address)])


def api_response_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    return compose_key(API_NAMESPACE, endpoint, params)


def call_key(prefix: str, args: Sequence[Any], kwargs: Dict[str, Any]) -> str:
    """
    Key for one call of a cached function.

    Argument values are kept verbatim (no case folding) and positional and
    keyword arguments are encoded as one JSON document, so two different
    calls never share a key.
    """
    call = json.dumps(
        {"args": list(args), "kwargs": kwargs},
        sort_keys=True,
        separators=(",", ":"),
        default=repr
    )
    return f"{prefix}:{escape_glob(call)}"
