"""
Clients for the third-party services behind the Wallet Sweep routes.

Balances come from the thirdweb wallet API, prices from Zapper and token
images from CoinGecko. Each call returns plain JSON-compatible data so the
result can be stored by the read-through cache as is.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import structlog
from pydantic import BaseModel

from config.settings import SweepConfig, get_config
from error_handling.exceptions import ConfigurationError, InvalidAddressError, UpstreamError
from .constants import (
    ADDRESS_PATTERN,
    COINGECKO_UNKNOWN_IMG,
    DEFAULT_DECIMALS,
    DEFAULT_NETWORK,
    DEFAULT_PAGE_LIMIT,
    KNOWN_TOKEN_ICONS,
    MIN_DISPLAY_BALANCE,
    PAGE_FETCH_DELAY
)

logger = structlog.get_logger()

PRICE_QUERY = """
query PortfolioV2($addresses: [Address!]!, $networks: [Network!]) {
  portfolioV2(addresses: $addresses, networks: $networks) {
    tokenBalances {
      byToken {
        edges {
          node {
            tokenAddress
            symbol
            name
            price
          }
        }
      }
    }
  }
}
"""


class ProcessedToken(BaseModel):
    address: str
    symbol: str
    name: str
    balance: str
    decimals: int
    logo: str
    value: float
    chainId: int
    priceUsd: float
    balanceFormatted: float


class TokenBalancesResponse(BaseModel):
    success: bool = True
    address: str
    chainId: int
    tokens: List[ProcessedToken]
    totalUsdValue: float
    timestamp: str
    hasMore: bool = False
    nextPage: Optional[int] = None


def validate_address(address: Optional[str]) -> str:
    """Check an address is 0x plus 40 hex digits and return it unchanged."""
    if not address or not ADDRESS_PATTERN.match(address):
        raise InvalidAddressError("Invalid wallet address format")
    return address


def token_icon(token: Dict[str, Any], symbol: str) -> str:
    """Logo from the API, else a known icon, else empty for the client to resolve."""
    logo = token.get("logo") or ""
    if logo.startswith("http"):
        return logo
    return KNOWN_TOKEN_ICONS.get(symbol, "")


def process_token(token: Dict[str, Any], chain_id: int) -> Optional[ProcessedToken]:
    """Convert one raw balance entry; dust balances are dropped."""
    decimals = token.get("decimals") or DEFAULT_DECIMALS
    try:
        balance_formatted = float(token.get("balance", 0)) / (10 ** decimals)
    except (TypeError, ValueError):
        return None

    if balance_formatted <= MIN_DISPLAY_BALANCE:
        return None

    price_usd = float((token.get("price_data") or {}).get("price_usd") or 0)
    symbol = token.get("symbol") or "UNKNOWN"

    return ProcessedToken(
        address=token.get("token_address", ""),
        symbol=symbol,
        name=token.get("name") or "Unknown Token",
        balance=str(token.get("balance", "0")),
        decimals=decimals,
        logo=token_icon(token, symbol),
        value=balance_formatted * price_usd,
        chainId=chain_id,
        priceUsd=price_usd,
        balanceFormatted=balance_formatted
    )


class UpstreamClient:
    """Async client for the balance, price and image providers."""

    def __init__(self, config: Optional[SweepConfig] = None):
        self.config = config or get_config()
        self.session: Optional[aiohttp.ClientSession] = None

    async def _session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.UPSTREAM_TIMEOUT_SECONDS)
            )
        return self.session

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _get_json(self, url: str, provider: str, **kwargs: Any) -> Tuple[int, Any]:
        session = await self._session()
        try:
            async with session.get(url, **kwargs) as response:
                if response.status != 200:
                    return response.status, await response.text()
                return response.status, await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("upstream_request_failed", provider=provider, error=str(e))
            raise UpstreamError(f"Failed to reach {provider}", provider=provider) from e

    async def fetch_token_page(
        self,
        address: str,
        page: int,
        limit: int = DEFAULT_PAGE_LIMIT
    ) -> Tuple[List[ProcessedToken], int, bool]:
        """
        Fetch one page of a wallet's ERC20 balances.

        Returns:
            The kept tokens, how many raw entries the page held, and whether
            the provider reports more pages
        """
        client_id = self.config.THIRDWEB_CLIENT_ID
        if not client_id:
            raise ConfigurationError("Missing THIRDWEB_CLIENT_ID setting")

        url = f"{self.config.THIRDWEB_API_URL}/v1/wallets/{address}/tokens"
        status, data = await self._get_json(
            url,
            "thirdweb",
            params={"chainId": self.config.CHAIN_ID, "limit": limit, "page": page},
            headers={"x-client-id": client_id, "Content-Type": "application/json"}
        )

        if status != 200:
            logger.error("balance_fetch_failed", address=address, status=status, body=str(data)[:200])
            if status == 401:
                raise UpstreamError("Authentication failed. Please check your client ID.", status, "thirdweb")
            if status == 429:
                raise UpstreamError("Rate limit exceeded. Please try again later.", status, "thirdweb")
            raise UpstreamError("Failed to fetch wallet data from Thirdweb API", status, "thirdweb")

        result = data.get("result") or {}
        raw_tokens = result.get("tokens") or []
        has_more = bool((result.get("pagination") or {}).get("hasMore", False))

        tokens = [
            processed for processed in
            (process_token(token, self.config.CHAIN_ID) for token in raw_tokens)
            if processed is not None
        ]
        return tokens, len(raw_tokens), has_more

    async def fetch_all_tokens(self, address: str, limit: int = DEFAULT_PAGE_LIMIT) -> List[ProcessedToken]:
        """Walk every balance page, pausing briefly between pages."""
        all_tokens: List[ProcessedToken] = []
        page = 0

        while True:
            tokens, raw_count, _ = await self.fetch_token_page(address, page, limit)
            all_tokens.extend(tokens)

            if raw_count < limit:
                break
            page += 1
            await asyncio.sleep(PAGE_FETCH_DELAY)

        return all_tokens

    async def fetch_wallet_balances(
        self,
        address: str,
        page: int,
        limit: int,
        fetch_all: bool
    ) -> Dict[str, Any]:
        """Build the balances payload served by the tokens route."""
        logger.info("fetching_fresh_token_data", address=address, page=page, fetch_all=fetch_all)

        has_more = False
        next_page = None
        if fetch_all:
            tokens = await self.fetch_all_tokens(address, limit)
        else:
            tokens, _, has_more = await self.fetch_token_page(address, page, limit)
            next_page = page + 1 if has_more else None

        tokens.sort(key=lambda token: token.value, reverse=True)

        response = TokenBalancesResponse(
            address=address,
            chainId=self.config.CHAIN_ID,
            tokens=tokens,
            totalUsdValue=sum(token.value for token in tokens),
            timestamp=datetime.now(timezone.utc).isoformat(),
            hasMore=has_more,
            nextPage=next_page
        )
        logger.info("token_data_processed", address=address, count=len(tokens))
        return response.model_dump()

    async def fetch_token_market_data(self, token_address: str, network: str = DEFAULT_NETWORK) -> Dict[str, Any]:
        """Look up a token's USD price on Zapper."""
        api_key = self.config.ZAPPER_API_KEY
        if not api_key:
            raise ConfigurationError("Missing ZAPPER_API_KEY setting")

        session = await self._session()
        payload = {
            "query": PRICE_QUERY,
            "variables": {"addresses": [token_address], "networks": [network]}
        }
        try:
            async with session.post(
                self.config.ZAPPER_API_URL,
                json=payload,
                headers={"x-zapper-api-key": api_key}
            ) as response:
                if response.status != 200:
                    logger.error("price_fetch_failed", token=token_address, status=response.status)
                    raise UpstreamError("Failed to fetch token market data", response.status, "zapper")
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamError("Failed to reach zapper", provider="zapper") from e

        if data.get("errors"):
            logger.warning("price_query_errors", token=token_address, errors=data["errors"])

        edges = (
            ((((data.get("data") or {}).get("portfolioV2") or {})
              .get("tokenBalances") or {}).get("byToken") or {}).get("edges") or []
        )
        price = 0.0
        for edge in edges:
            node = edge.get("node") or {}
            if str(node.get("tokenAddress", "")).lower() == token_address.lower():
                price = float(node.get("price") or 0)
                break

        return {"tokenAddress": token_address, "network": network, "price": price}

    async def fetch_token_image(self, chain: str, token_address: str) -> Dict[str, str]:
        """
        Resolve a token image from CoinGecko.

        A missing or failed lookup resolves to the placeholder image rather
        than an error, so the answer can be cached like any other.
        """
        url = f"{self.config.COINGECKO_API_URL}/coins/{chain}/contract/{token_address}"
        status, data = await self._get_json(url, "coingecko")
        if status != 200:
            logger.info("token_image_not_found", chain=chain, token=token_address, status=status)
            return {"image": COINGECKO_UNKNOWN_IMG}

        image = (data.get("image") or {}).get("large") or COINGECKO_UNKNOWN_IMG
        return {"image": image}
