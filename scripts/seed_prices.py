"""Seed sample daily prices for a handful of well-known tokens.

Usage:
    PYTHONPATH=src python scripts/seed_prices.py [days]

Idempotent: prices are written through the store's upsert, so re-running
overwrites the same (token, network, timestamp) rows instead of adding new
ones. The random walk is seeded per token, so the values are stable too.
"""

import asyncio
import logging
import random
import sys
import time
from decimal import Decimal

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s - %(message)s")
logger = logging.getLogger("seed_prices")
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

SAMPLE_TOKENS = [
    {"symbol": "WETH", "address": "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2", "network": "ethereum", "base": 2000},
    {"symbol": "USDC", "address": "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48", "network": "ethereum", "base": 1},
    {"symbol": "DAI", "address": "0x6b175474e89094c44da98b954eedeac495271d0f", "network": "ethereum", "base": 1},
    {"symbol": "MATIC", "address": "0x0000000000000000000000000000000000001010", "network": "polygon", "base": 0.8},
]

DEFAULT_DAYS = 30


def separator(title: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {title}")
    print(f"{'=' * 60}\n")


def sample_points(token: dict, days: int, now: int) -> list:
    from chronoprice.collection.timestamps import SECONDS_PER_DAY, daily_timestamps
    from chronoprice.domain.enums import PriceSource
    from chronoprice.domain.models.price import PricePoint

    rng = random.Random(token["address"])
    base = Decimal(str(token["base"]))
    points = []
    for ts in daily_timestamps(now - days * SECONDS_PER_DAY, now):
        variation = Decimal(str(round(rng.uniform(-0.05, 0.05), 6)))  # +/-5% around the base price
        points.append(
            PricePoint(
                token=token["address"],
                network=token["network"],
                timestamp=ts,
                price=base * (1 + variation),
                volume_24h=Decimal(rng.randint(1_000_000, 10_000_000)),
                market_cap=Decimal(rng.randint(100_000_000, 1_000_000_000)),
                source=PriceSource.MANUAL,
                confidence=1.0,
                metadata={"seeded": True, "symbol": token["symbol"]},
            )
        )
    return points


async def seed(session, days: int) -> None:
    from chronoprice.db.repos.price_store import PriceStore

    store = PriceStore(session)
    now = int(time.time())

    for token in SAMPLE_TOKENS:
        results = await store.upsert_many(sample_points(token, days, now))
        written = sum(1 for r in results if r.ok and r.written)
        failed = sum(1 for r in results if not r.ok)
        print(f"  {token['symbol']:<6s} {token['network']:<9s} {written:4d} written  {failed:3d} failed")


async def main() -> None:
    from chronoprice.config import settings
    from chronoprice.db.session import build_engine, build_session_factory

    days = int(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_DAYS

    separator("Seed: Sample Token Prices")
    print(f"Database: {settings.db_host}:{settings.db_port}/{settings.db_name}  days={days}\n")

    engine = build_engine(settings.database_url, echo=False)
    session_factory = build_session_factory(engine)

    async with session_factory() as session:
        try:
            await seed(session, days)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Seeding failed")
            sys.exit(1)

    await engine.dispose()
    separator("Seeding Complete")


if __name__ == "__main__":
    asyncio.run(main())
