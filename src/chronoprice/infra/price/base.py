"""Fetcher seam: anything that can look up one historical price upstream."""

from abc import ABC, abstractmethod
from typing import Optional

from chronoprice.domain.models.price import FetchedPrice


class PriceFetcher(ABC):
    """Strategy interface for a best-effort external price source."""

    @abstractmethod
    async def fetch_price(self, token: str, network: str, timestamp: int) -> Optional[FetchedPrice]:
        """Price at a timestamp, or None when the upstream has no data (do not retry).

        Raises UpstreamUnavailableError for transient failures that callers retry with backoff.
        """


class NullFetcher(PriceFetcher):
    """Fetcher for deployments without an upstream price source."""

    async def fetch_price(self, token: str, network: str, timestamp: int) -> Optional[FetchedPrice]:
        return None
