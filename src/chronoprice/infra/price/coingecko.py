"""CoinGecko price fetcher: historical USD prices by contract address."""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from chronoprice.domain.models.price import FetchedPrice
from chronoprice.exceptions import RateLimitedError, UpstreamUnavailableError
from chronoprice.infra.http.rate_limited_client import RateLimitedClient
from chronoprice.infra.price.base import PriceFetcher

logger = logging.getLogger(__name__)

# Network → CoinGecko asset platform id
ASSET_PLATFORMS: dict[str, str] = {
    "ethereum": "ethereum",
    "polygon": "polygon-pos",
}

BASE_URL = "https://api.coingecko.com"
PRO_BASE_URL = "https://pro-api.coingecko.com"

# Ranges longer than a few days come back at daily granularity, so search a day either side.
WINDOW_SECONDS = 86400


def _closest_sample(series: list[list[float]], target_ms: int) -> Optional[list[float]]:
    if not series:
        return None
    return min(series, key=lambda p: abs(p[0] - target_ms))


def _value_at(series: list[list[float]], sample_ms: float) -> Optional[Decimal]:
    for ts, value in series:
        if ts == sample_ms and value is not None:
            return Decimal(str(value))
    return None


class CoinGeckoFetcher(PriceFetcher):
    """Fetch historical USD prices from the CoinGecko contract market-chart API.

    Transient failures (429, 5xx, timeouts) are raised as UpstreamUnavailableError
    for the caller to retry; a missing token or empty range returns None.
    """

    def __init__(self, http_client: RateLimitedClient, api_key: str = "", pro: bool = False) -> None:
        self._http = http_client
        self._api_key = api_key
        self._pro = pro

    async def fetch_price(self, token: str, network: str, timestamp: int) -> Optional[FetchedPrice]:
        platform = ASSET_PLATFORMS.get(network.lower())
        if platform is None:
            logger.warning("No CoinGecko asset platform for network: %s", network)
            return None

        params: dict[str, str] = {
            "vs_currency": "usd",
            "from": str(timestamp - WINDOW_SECONDS),
            "to": str(timestamp + WINDOW_SECONDS),
        }
        if self._api_key:
            params["x_cg_pro_api_key" if self._pro else "x_cg_demo_api_key"] = self._api_key

        base = PRO_BASE_URL if self._pro else BASE_URL
        url = f"{base}/api/v3/coins/{platform}/contract/{token.lower()}/market_chart/range"

        try:
            response = await self._http.get(url, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(f"CoinGecko timeout for {token}") from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(f"CoinGecko transport error for {token}: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError(f"CoinGecko rate limit for {token}")
        if response.status_code >= 500:
            raise UpstreamUnavailableError(f"CoinGecko returned {response.status_code} for {token}")
        if response.status_code == 404:
            logger.info("CoinGecko has no listing for %s on %s", token, network)
            return None
        if response.status_code != 200:
            logger.warning("CoinGecko returned %d for %s", response.status_code, token)
            return None

        data = response.json()
        target_ms = timestamp * 1000
        closest = _closest_sample(data.get("prices", []), target_ms)
        if closest is None or closest[1] is None:
            return None
        if closest[1] < 0:
            logger.warning("CoinGecko returned negative price %s for %s", closest[1], token)
            return None

        sample_ms = closest[0]
        return FetchedPrice(
            price=Decimal(str(closest[1])),
            volume_24h=_value_at(data.get("total_volumes", []), sample_ms),
            market_cap=_value_at(data.get("market_caps", []), sample_ms),
            confidence=1.0,
            metadata={
                "provider": "coingecko",
                "sample_timestamp": int(sample_ms // 1000),
                "sample_distance_seconds": int(abs(sample_ms - target_ms) // 1000),
            },
        )
