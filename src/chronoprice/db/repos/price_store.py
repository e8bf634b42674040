"""PriceStore: persisted time series of price points per (token, network)."""

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chronoprice.db.models.token_price import TokenPrice
from chronoprice.domain.enums import SOURCE_RANK, PriceSource
from chronoprice.domain.models.price import PriceKey, PricePoint, UpsertResult
from chronoprice.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

_CONFLICT_COLUMNS = ["token", "network", "timestamp"]
_table = TokenPrice.__table__


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Translate connection-level failures into StorageUnavailableError."""
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as e:
        raise StorageUnavailableError(f"Price store unavailable during {action}: {e}") from e


def _overwritable_sources(incoming: PriceSource) -> list[str]:
    """Sources an incoming point is allowed to replace (equal or lower rank)."""
    rank = SOURCE_RANK[incoming]
    return [source.value for source, r in SOURCE_RANK.items() if r <= rank]


def _to_point(row: TokenPrice) -> PricePoint:
    return PricePoint(
        token=row.token,
        network=row.network,
        timestamp=row.timestamp,
        price=row.price,
        volume_24h=row.volume_24h,
        market_cap=row.market_cap,
        source=PriceSource(row.source),
        confidence=row.confidence,
        metadata=row.price_metadata or {},
    )


class PriceStore:
    """Keyed storage of price points.

    Writes go through ``INSERT ... ON CONFLICT DO UPDATE`` so concurrent
    writers to the same key never duplicate a row. A row is only replaced
    by a point whose source ranks equal or higher (see ``SOURCE_RANK``):
    interpolated estimates never clobber direct observations.

    The store never commits; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _insert(self):
        dialect = self._session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise NotImplementedError(f"Upsert not supported for dialect {dialect}")
        return insert(_table)

    async def upsert(self, point: PricePoint) -> UpsertResult:
        return (await self.upsert_many([point]))[0]

    async def upsert_many(self, points: Iterable[PricePoint]) -> list[UpsertResult]:
        """Write each point under its own savepoint. One bad item never rolls back the others."""
        results: list[UpsertResult] = []
        for point in points:
            if point.source == PriceSource.CACHE:
                results.append(UpsertResult(key=point.key, ok=False, error="cache results are not persisted"))
                continue

            stmt = self._insert().values(
                {
                    "token": point.token,
                    "network": point.network,
                    "timestamp": point.timestamp,
                    "price": point.price,
                    "volume_24h": point.volume_24h,
                    "market_cap": point.market_cap,
                    "source": point.source.value,
                    "confidence": point.confidence,
                    "metadata": point.metadata or None,
                }
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=_CONFLICT_COLUMNS,
                set_={
                    "price": stmt.excluded.price,
                    "volume_24h": stmt.excluded.volume_24h,
                    "market_cap": stmt.excluded.market_cap,
                    "source": stmt.excluded.source,
                    "confidence": stmt.excluded.confidence,
                    "metadata": stmt.excluded["metadata"],
                    "updated_at": func.now(),
                },
                where=_table.c.source.in_(_overwritable_sources(point.source)),
            )

            try:
                with _storage_errors("upsert"):
                    async with self._session.begin_nested():
                        result = await self._session.execute(stmt)
            except SQLAlchemyError as e:
                logger.warning("Upsert failed for %s/%s@%d: %s", point.token, point.network, point.timestamp, e)
                results.append(UpsertResult(key=point.key, ok=False, error=str(e)))
                continue

            written = result.rowcount != 0
            if not written:
                logger.debug(
                    "Kept existing higher-ranked price for %s/%s@%d over %s",
                    point.token, point.network, point.timestamp, point.source.value,
                )
            results.append(UpsertResult(key=point.key, ok=True, written=written))
        return results

    async def get_exact(self, key: PriceKey) -> Optional[PricePoint]:
        with _storage_errors("exact lookup"):
            result = await self._session.execute(
                select(TokenPrice).execution_options(populate_existing=True).where(
                    TokenPrice.token == key.token,
                    TokenPrice.network == key.network,
                    TokenPrice.timestamp == key.timestamp,
                )
            )
            row = result.scalar_one_or_none()
        return _to_point(row) if row is not None else None

    async def get_nearest(self, key: PriceKey) -> tuple[Optional[PricePoint], Optional[PricePoint]]:
        """Nearest point at or before, and at or after, the key's timestamp. Two indexed range queries."""
        series = (TokenPrice.token == key.token, TokenPrice.network == key.network)
        with _storage_errors("nearest lookup"):
            before = await self._session.execute(
                select(TokenPrice).execution_options(populate_existing=True)
                .where(*series, TokenPrice.timestamp <= key.timestamp)
                .order_by(TokenPrice.timestamp.desc())
                .limit(1)
            )
            before_row = before.scalar_one_or_none()
            after = await self._session.execute(
                select(TokenPrice).execution_options(populate_existing=True)
                .where(*series, TokenPrice.timestamp >= key.timestamp)
                .order_by(TokenPrice.timestamp.asc())
                .limit(1)
            )
            after_row = after.scalar_one_or_none()
        return (
            _to_point(before_row) if before_row is not None else None,
            _to_point(after_row) if after_row is not None else None,
        )

    async def get_latest(self, token: str, network: str) -> Optional[PricePoint]:
        with _storage_errors("latest lookup"):
            result = await self._session.execute(
                select(TokenPrice).execution_options(populate_existing=True)
                .where(TokenPrice.token == token.lower(), TokenPrice.network == network.lower())
                .order_by(TokenPrice.timestamp.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
        return _to_point(row) if row is not None else None

    async def get_range(
        self, token: str, network: str, start: int, end: int, limit: int = 1000
    ) -> list[PricePoint]:
        with _storage_errors("range lookup"):
            result = await self._session.execute(
                select(TokenPrice).execution_options(populate_existing=True)
                .where(
                    TokenPrice.token == token.lower(),
                    TokenPrice.network == network.lower(),
                    TokenPrice.timestamp >= start,
                    TokenPrice.timestamp <= end,
                )
                .order_by(TokenPrice.timestamp.asc())
                .limit(limit)
            )
            rows = result.scalars().all()
        return [_to_point(r) for r in rows]

    async def existing_timestamps(self, token: str, network: str, timestamps: list[int]) -> set[int]:
        """Subset of ``timestamps`` already stored for the series."""
        if not timestamps:
            return set()
        with _storage_errors("existence check"):
            result = await self._session.execute(
                select(TokenPrice.timestamp).where(
                    TokenPrice.token == token.lower(),
                    TokenPrice.network == network.lower(),
                    TokenPrice.timestamp.in_(timestamps),
                )
            )
            return set(result.scalars().all())

    async def source_stats(self, token: Optional[str] = None, network: Optional[str] = None) -> list[dict]:
        """Row count and confidence spread per source."""
        stmt = select(
            TokenPrice.source,
            func.count(TokenPrice.id),
            func.avg(TokenPrice.confidence),
            func.min(TokenPrice.confidence),
            func.max(TokenPrice.confidence),
        ).group_by(TokenPrice.source)
        if token:
            stmt = stmt.where(TokenPrice.token == token.lower())
        if network:
            stmt = stmt.where(TokenPrice.network == network.lower())

        with _storage_errors("stats"):
            result = await self._session.execute(stmt)
            rows = result.all()
        return [
            {
                "source": source,
                "count": count,
                "avg_confidence": float(avg or 0),
                "min_confidence": float(lo or 0),
                "max_confidence": float(hi or 0),
            }
            for source, count, avg, lo, hi in rows
        ]

    async def summary(self, token: Optional[str] = None, network: Optional[str] = None) -> dict:
        """Totals across the store: row count, distinct tokens and networks, last write."""
        stmt = select(
            func.count(TokenPrice.id),
            func.count(func.distinct(TokenPrice.token)),
            func.max(TokenPrice.updated_at),
        )
        networks_stmt = select(TokenPrice.network).distinct().order_by(TokenPrice.network)
        if token:
            stmt = stmt.where(TokenPrice.token == token.lower())
            networks_stmt = networks_stmt.where(TokenPrice.token == token.lower())
        if network:
            stmt = stmt.where(TokenPrice.network == network.lower())
            networks_stmt = networks_stmt.where(TokenPrice.network == network.lower())

        with _storage_errors("summary"):
            total, unique_tokens, latest_update = (await self._session.execute(stmt)).one()
            networks = list((await self._session.execute(networks_stmt)).scalars().all())
        return {
            "total_prices": total,
            "unique_tokens": unique_tokens,
            "networks": networks,
            "latest_update": latest_update,
        }

    async def ping(self) -> None:
        with _storage_errors("health check"):
            await self._session.execute(select(1))
