"""Bounded, timeboxed retries around a PriceFetcher call."""

import asyncio
import logging
from typing import Optional

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from chronoprice.domain.models.price import FetchedPrice
from chronoprice.exceptions import UpstreamUnavailableError
from chronoprice.infra.price.base import PriceFetcher

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Attempts, exponential backoff and a per-attempt timeout."""

    def __init__(
        self,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0,
        attempt_timeout: float = 15.0,
    ) -> None:
        self.attempts = max(1, attempts)
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.attempt_timeout = attempt_timeout


async def fetch_with_retry(
    fetcher: PriceFetcher, token: str, network: str, timestamp: int, policy: RetryPolicy
) -> Optional[FetchedPrice]:
    """Fetch one price, retrying transient failures.

    None (no upstream data) is returned immediately without retrying.
    Raises UpstreamUnavailableError once attempts are exhausted.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(UpstreamUnavailableError),
        stop=stop_after_attempt(policy.attempts),
        wait=wait_exponential(multiplier=policy.backoff_seconds, max=policy.backoff_max_seconds),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            try:
                return await asyncio.wait_for(
                    fetcher.fetch_price(token, network, timestamp), timeout=policy.attempt_timeout
                )
            except asyncio.TimeoutError as e:
                raise UpstreamUnavailableError(
                    f"Fetch for {token}/{network}@{timestamp} exceeded {policy.attempt_timeout}s"
                ) from e
    return None
