import asyncio
from decimal import Decimal
from typing import Optional

import pytest

from chronoprice.domain.models.price import FetchedPrice
from chronoprice.exceptions import RateLimitedError, UpstreamUnavailableError
from chronoprice.infra.price.base import NullFetcher, PriceFetcher
from chronoprice.infra.price.retry import RetryPolicy, fetch_with_retry

TOKEN = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"


class FlakyFetcher(PriceFetcher):
    """Fails ``failures`` times, then answers."""

    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or UpstreamUnavailableError("flaky")
        self.calls = 0

    async def fetch_price(self, token: str, network: str, timestamp: int) -> Optional[FetchedPrice]:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return FetchedPrice(price=Decimal("42"))


class SlowFetcher(PriceFetcher):
    async def fetch_price(self, token: str, network: str, timestamp: int) -> Optional[FetchedPrice]:
        await asyncio.sleep(5)
        return FetchedPrice(price=Decimal("1"))


def _policy(attempts: int, timeout: float = 5.0) -> RetryPolicy:
    return RetryPolicy(attempts=attempts, backoff_seconds=0, backoff_max_seconds=0, attempt_timeout=timeout)


class TestFetchWithRetry:
    async def test_succeeds_after_transient_failures(self):
        fetcher = FlakyFetcher(failures=2)
        result = await fetch_with_retry(fetcher, TOKEN, "ethereum", 1000, _policy(3))

        assert result.price == Decimal("42")
        assert fetcher.calls == 3

    async def test_gives_up_after_attempts(self):
        fetcher = FlakyFetcher(failures=5, error=RateLimitedError("429"))
        with pytest.raises(RateLimitedError):
            await fetch_with_retry(fetcher, TOKEN, "ethereum", 1000, _policy(3))
        assert fetcher.calls == 3

    async def test_absent_data_is_not_retried(self):
        result = await fetch_with_retry(NullFetcher(), TOKEN, "ethereum", 1000, _policy(3))
        assert result is None

    async def test_non_transient_errors_are_not_retried(self):
        fetcher = FlakyFetcher(failures=5, error=ValueError("bad payload"))
        with pytest.raises(ValueError):
            await fetch_with_retry(fetcher, TOKEN, "ethereum", 1000, _policy(3))
        assert fetcher.calls == 1

    async def test_attempt_timeout_becomes_upstream_error(self):
        with pytest.raises(UpstreamUnavailableError):
            await fetch_with_retry(SlowFetcher(), TOKEN, "ethereum", 1000, _policy(1, timeout=0.01))

    def test_policy_needs_at_least_one_attempt(self):
        assert RetryPolicy(attempts=0).attempts == 1
