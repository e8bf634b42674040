"""Error taxonomy shared by the resolver, the store and the collection pipeline."""


class OracleError(Exception):
    """Base class for all chronoprice errors."""


class PriceUnavailableError(OracleError):
    """No tier could produce a price. Expected outcome, not a fault."""

    def __init__(self, token: str, network: str, timestamp: int, storage_degraded: bool = False) -> None:
        self.token = token
        self.network = network
        self.timestamp = timestamp
        self.storage_degraded = storage_degraded
        super().__init__(f"No price data found for {token} on {network} at timestamp {timestamp}")


class UpstreamUnavailableError(OracleError):
    """An external dependency could not be reached. Retriable."""


class RateLimitedError(UpstreamUnavailableError):
    """Upstream answered 429."""


class StorageUnavailableError(UpstreamUnavailableError):
    """The persistence layer failed; distinct from an empty result."""


class ExternalServiceError(OracleError):
    """Non-transient error reported by a third-party API."""


class JobNotFoundError(OracleError):
    def __init__(self, job_id: object) -> None:
        self.job_id = job_id
        super().__init__(f"Collection job {job_id} not found")
