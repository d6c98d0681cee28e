from typing import Any, Dict, Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import ValidationError

from cache.admin import CacheActionRequest, CacheAdmin
from cache.monitoring import log_metrics
from cache.redis_manager import get_redis_manager
from cache.wallet_cache import WalletCache
from config.logging import configure_logging
from config.settings import get_config
from error_handling.exceptions import ConfigurationError, InvalidAddressError, InvalidCacheRequest, UpstreamError
from sweep.constants import COINGECKO_UNKNOWN_IMG, DEFAULT_NETWORK, DEFAULT_PAGE, DEFAULT_PAGE_LIMIT, TOKEN_IMAGE_OVERRIDES
from sweep.upstream import UpstreamClient, validate_address

logger = structlog.get_logger()

app = FastAPI(title="Wallet Sweep API", version="1.0.0")

_upstream: Optional[UpstreamClient] = None


def get_upstream_client() -> UpstreamClient:
    global _upstream
    if _upstream is None:
        _upstream = UpstreamClient()
    return _upstream


def get_wallet_cache() -> WalletCache:
    return WalletCache()


def get_cache_admin(wallet_cache: WalletCache = Depends(get_wallet_cache)) -> CacheAdmin:
    return CacheAdmin(wallet_cache)


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={**extra, "error": message})


@app.on_event("startup")
async def startup():
    configure_logging(get_config().LOG_LEVEL)
    logger.info("wallet_sweep_api_started")


@app.on_event("shutdown")
async def shutdown():
    log_metrics()
    if _upstream is not None:
        await _upstream.close()
    store = get_redis_manager()
    disconnect = getattr(store, "disconnect", None)
    if disconnect is not None:
        await disconnect()


@app.post("/api/cache")
async def cache_action(request: Request, admin: CacheAdmin = Depends(get_cache_admin)):
    """Invalidate cache entries: one key, a pattern, a wallet or a namespace."""
    try:
        body = await request.json()
        action_request = CacheActionRequest.model_validate(body)
        return await admin.handle(action_request)
    except (InvalidCacheRequest, ValidationError) as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error("cache_api_error", error=str(e))
        return error_response(500, "Internal server error")


@app.get("/api/cache")
async def cache_status(wallet: Optional[str] = None, admin: CacheAdmin = Depends(get_cache_admin)):
    """Report whether a wallet's balances are cached and for how long."""
    try:
        return await admin.status(wallet)
    except InvalidCacheRequest as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error("cache_status_error", wallet=wallet, error=str(e))
        return error_response(500, "Failed to check cache status")


@app.get("/api/tokens/{address}")
async def get_tokens(
    address: str,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    fetchAll: Optional[bool] = None,
    wallet_cache: WalletCache = Depends(get_wallet_cache),
    upstream: UpstreamClient = Depends(get_upstream_client)
):
    """
    Token balances for a wallet, cached per page for TOKEN_BALANCE_TTL.

    A request without paging parameters is cached under the bare wallet key.
    """
    try:
        validate_address(address)

        async def fetch() -> Dict[str, Any]:
            return await upstream.fetch_wallet_balances(
                address,
                page=page if page is not None else DEFAULT_PAGE,
                limit=limit if limit is not None else DEFAULT_PAGE_LIMIT,
                fetch_all=bool(fetchAll)
            )

        return await wallet_cache.get_token_balances(
            address, fetch, page=page, limit=limit, fetch_all=fetchAll
        )
    except InvalidAddressError as e:
        return error_response(400, str(e))
    except ConfigurationError as e:
        logger.error("server_configuration_error", error=str(e))
        return error_response(500, "Server configuration error")
    except UpstreamError as e:
        return error_response(500, str(e))
    except Exception as e:
        logger.error("tokens_route_error", address=address, error=str(e))
        return error_response(500, "Internal server error")


@app.get("/api/token-price")
async def get_token_price(
    tokenAddress: Optional[str] = None,
    network: str = DEFAULT_NETWORK,
    wallet_cache: WalletCache = Depends(get_wallet_cache),
    upstream: UpstreamClient = Depends(get_upstream_client)
):
    """Token price, cached for TOKEN_PRICE_TTL."""
    if not tokenAddress:
        return error_response(400, "Token address is required", success=False)

    try:
        data = await wallet_cache.get_token_price(
            tokenAddress,
            lambda: upstream.fetch_token_market_data(tokenAddress, network)
        )
    except ConfigurationError as e:
        logger.error("server_configuration_error", error=str(e))
        return error_response(500, "API configuration error", success=False)
    except UpstreamError as e:
        # Not cached, so the next request tries the provider again
        logger.warning("token_price_unavailable", token=tokenAddress, error=str(e))
        data = {"tokenAddress": tokenAddress, "network": network, "price": 0.0}
    except Exception as e:
        logger.error("token_price_route_error", token=tokenAddress, error=str(e))
        return error_response(500, "Failed to fetch token market data", success=False)

    return {"success": True, "data": data}


@app.get("/api/token-images")
async def get_token_image(
    chain: Optional[str] = None,
    address: Optional[str] = None,
    wallet_cache: WalletCache = Depends(get_wallet_cache),
    upstream: UpstreamClient = Depends(get_upstream_client)
):
    """Token image URL, cached without expiration."""
    if not chain or not address:
        return error_response(400, "Missing chain or address parameter")

    normalized_address = address.lower()
    if normalized_address in TOKEN_IMAGE_OVERRIDES:
        return {"image": TOKEN_IMAGE_OVERRIDES[normalized_address]}

    cached_image = await wallet_cache.get_token_image(chain, normalized_address)
    if cached_image:
        return cached_image

    try:
        data = await upstream.fetch_token_image(chain, address)
    except UpstreamError as e:
        logger.warning("token_image_lookup_failed", chain=chain, token=normalized_address, error=str(e))
        return {"image": COINGECKO_UNKNOWN_IMG}

    await wallet_cache.cache_token_image(chain, normalized_address, data)
    return data


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def main():
    config = get_config()
    uvicorn.run("api:app", host=config.API_HOST, port=config.API_PORT)


if __name__ == "__main__":
    main()
