"""CoinGecko simple-price client for the CELO/USD reference price."""

import asyncio
import math
import time
from dataclasses import asdict, dataclass
from typing import Optional

import httpx
import structlog

from cli.config_models import OracleConfig
from cli.retry import http_retry

logger = structlog.get_logger().bind(source="oracle")


class OracleError(Exception):
    """Price could not be fetched or the payload was unusable."""


@dataclass(frozen=True)
class PriceQuote:
    asset: str
    currency: str
    price: float
    change_24h: Optional[float]
    fetched_at: int  # ms since epoch

    def to_dict(self) -> dict:
        return asdict(self)


class PriceOracle:
    """Async price lookups with a short in-process quote cache."""

    def __init__(
        self,
        config: Optional[OracleConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock=time.time,
    ):
        self.config = config or OracleConfig()
        self._client = client
        self._clock = clock
        self._cached: Optional[PriceQuote] = None
        self._cached_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/simple/price"

    def _params(self) -> dict:
        return {
            "ids": self.config.asset_id,
            "vs_currencies": self.config.currency,
            "include_24hr_change": "true",
        }

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["x-cg-demo-api-key"] = self.config.api_key
        return headers

    @http_retry(exceptions=(httpx.HTTPStatusError, httpx.TransportError))
    async def _request(self) -> dict:
        if self._client is not None:
            response = await self._client.get(self.url, params=self._params(), headers=self._headers())
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                response = await client.get(self.url, params=self._params(), headers=self._headers())
        response.raise_for_status()
        return response.json()

    def parse(self, payload: dict) -> PriceQuote:
        """Extract the quote from {"celo": {"usd": 0.51, "usd_24h_change": -1.2}}."""
        asset, currency = self.config.asset_id, self.config.currency
        try:
            entry = payload[asset]
            price = float(entry[currency])
        except (KeyError, TypeError, ValueError) as e:
            raise OracleError(f"Unexpected price payload: {payload!r}") from e
        if not math.isfinite(price) or price <= 0:
            raise OracleError(f"Invalid {asset} price: {price}")

        change = entry.get(f"{currency}_24h_change")
        try:
            change = float(change) if change is not None else None
        except (TypeError, ValueError):
            change = None

        return PriceQuote(
            asset=asset,
            currency=currency,
            price=price,
            change_24h=change,
            fetched_at=int(self._clock() * 1000),
        )

    async def fetch_price(self) -> PriceQuote:
        """Current price, served from cache for cache_seconds."""
        async with self._lock:
            now = self._clock()
            if self._cached and now - self._cached_at < self.config.cache_seconds:
                return self._cached

            try:
                payload = await self._request()
            except (httpx.HTTPError, ValueError) as e:
                logger.error("oracle.fetch_failed", url=self.url, error=str(e))
                raise OracleError(f"Failed to fetch {self.config.asset_id} price") from e

            quote = self.parse(payload)
            self._cached, self._cached_at = quote, now
            logger.debug("oracle.quote", price=quote.price, change_24h=quote.change_24h)
            return quote

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
