"""Daily timestamp grids for backfill jobs (UTC midnights)."""

SECONDS_PER_DAY = 86400

# Used when a token's creation time cannot be determined
DEFAULT_CREATION_TIMESTAMPS: dict[str, int] = {
    "ethereum": 1438269960,  # mainnet launch, 2015-07-30
    "polygon": 1590824707,  # PoS mainnet, 2020-05-30
}


def start_of_day(timestamp: int) -> int:
    return timestamp - timestamp % SECONDS_PER_DAY


def daily_timestamps(start: int, end: int) -> list[int]:
    """Every UTC midnight from the day containing ``start`` up to ``end``."""
    if start > end:
        raise ValueError(f"Start timestamp {start} is after end timestamp {end}")
    return list(range(start_of_day(start), end + 1, SECONDS_PER_DAY))
