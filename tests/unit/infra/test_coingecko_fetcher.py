"""Tests for CoinGeckoFetcher with mocked HTTP."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from chronoprice.exceptions import RateLimitedError, UpstreamUnavailableError
from chronoprice.infra.price.coingecko import CoinGeckoFetcher

TOKEN = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
TS = 1700000000


def _mock_response(status_code: int, data: dict | None = None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data or {}
    return resp


@pytest.fixture()
def mock_http():
    return MagicMock()


class TestCoinGeckoFetcher:
    async def test_picks_closest_sample(self, mock_http):
        mock_http.get = AsyncMock(
            return_value=_mock_response(
                200,
                {
                    "prices": [[(TS - 3600) * 1000, 2000.0], [(TS + 600) * 1000, 2050.25]],
                    "total_volumes": [[(TS - 3600) * 1000, 1.0], [(TS + 600) * 1000, 5000000.5]],
                    "market_caps": [[(TS + 600) * 1000, 250000000000.0]],
                },
            )
        )
        fetcher = CoinGeckoFetcher(mock_http)

        result = await fetcher.fetch_price(TOKEN, "ethereum", TS)

        assert result.price == Decimal("2050.25")
        assert result.volume_24h == Decimal("5000000.5")
        assert result.market_cap == Decimal("250000000000")
        assert result.metadata["provider"] == "coingecko"
        assert result.metadata["sample_distance_seconds"] == 600

    async def test_request_uses_platform_and_lowercase_contract(self, mock_http):
        mock_http.get = AsyncMock(return_value=_mock_response(200, {"prices": [[TS * 1000, 1.0]]}))
        fetcher = CoinGeckoFetcher(mock_http, api_key="demo-key")

        await fetcher.fetch_price(TOKEN, "polygon", TS)

        url = mock_http.get.call_args[0][0]
        params = mock_http.get.call_args[1]["params"]
        assert "/coins/polygon-pos/contract/" + TOKEN.lower() + "/market_chart/range" in url
        assert params["from"] == str(TS - 86400)
        assert params["to"] == str(TS + 86400)
        assert params["x_cg_demo_api_key"] == "demo-key"

    async def test_pro_key_uses_pro_host(self, mock_http):
        mock_http.get = AsyncMock(return_value=_mock_response(200, {"prices": [[TS * 1000, 1.0]]}))
        fetcher = CoinGeckoFetcher(mock_http, api_key="pro-key", pro=True)

        await fetcher.fetch_price(TOKEN, "ethereum", TS)

        assert mock_http.get.call_args[0][0].startswith("https://pro-api.coingecko.com")
        assert mock_http.get.call_args[1]["params"]["x_cg_pro_api_key"] == "pro-key"

    async def test_empty_prices_returns_none(self, mock_http):
        mock_http.get = AsyncMock(return_value=_mock_response(200, {"prices": []}))
        assert await CoinGeckoFetcher(mock_http).fetch_price(TOKEN, "ethereum", TS) is None

    async def test_unknown_contract_returns_none(self, mock_http):
        mock_http.get = AsyncMock(return_value=_mock_response(404))
        assert await CoinGeckoFetcher(mock_http).fetch_price(TOKEN, "ethereum", TS) is None

    async def test_unsupported_network_returns_none_without_request(self, mock_http):
        mock_http.get = AsyncMock()
        assert await CoinGeckoFetcher(mock_http).fetch_price(TOKEN, "solana", TS) is None
        mock_http.get.assert_not_called()

    async def test_negative_price_is_rejected(self, mock_http):
        mock_http.get = AsyncMock(return_value=_mock_response(200, {"prices": [[TS * 1000, -1.0]]}))
        assert await CoinGeckoFetcher(mock_http).fetch_price(TOKEN, "ethereum", TS) is None

    async def test_rate_limit_raises(self, mock_http):
        mock_http.get = AsyncMock(return_value=_mock_response(429))
        with pytest.raises(RateLimitedError):
            await CoinGeckoFetcher(mock_http).fetch_price(TOKEN, "ethereum", TS)

    async def test_server_error_raises(self, mock_http):
        mock_http.get = AsyncMock(return_value=_mock_response(503))
        with pytest.raises(UpstreamUnavailableError):
            await CoinGeckoFetcher(mock_http).fetch_price(TOKEN, "ethereum", TS)

    async def test_timeout_raises_upstream_error(self, mock_http):
        mock_http.get = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(UpstreamUnavailableError):
            await CoinGeckoFetcher(mock_http).fetch_price(TOKEN, "ethereum", TS)
