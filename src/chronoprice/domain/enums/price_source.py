from enum import Enum


class PriceSource(str, Enum):
    """Where a price value came from."""

    EXTERNAL_FETCH = "external_fetch"
    INTERPOLATED = "interpolated"
    MANUAL = "manual"
    CACHE = "cache"  # response tag only, never persisted


# Overwrite precedence for upserts: a row is replaced only by an equal or higher rank.
SOURCE_RANK: dict[PriceSource, int] = {
    PriceSource.INTERPOLATED: 0,
    PriceSource.EXTERNAL_FETCH: 1,
    PriceSource.MANUAL: 2,
}
