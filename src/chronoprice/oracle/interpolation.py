"""InterpolationEngine: linear price estimates between bracketing stored points.

Confidence starts at 0.8 and is scaled down for volatile brackets, for
targets close to either bracket edge, and for wide brackets:

    relative change > 50%   x0.7     (> 20%   x0.85)
    ratio < 0.1 or > 0.9    x0.9
    gap > 48h               x0.8     (> 24h   x0.9)

and finally clamped to [0.1, 1.0].
"""

import logging
from decimal import Decimal
from typing import Optional

from chronoprice.db.repos.price_store import PriceStore
from chronoprice.domain.enums import PriceSource
from chronoprice.domain.models.price import (
    EstimatedPrice,
    InterpolationProvenance,
    PriceKey,
    PricePoint,
    quantize_price,
)

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.8
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0
DEFAULT_MAX_GAP_SECONDS = 7 * 24 * 3600


def linear_interpolate(
    before_ts: int, before_price: Decimal, after_ts: int, after_price: Decimal, target_ts: int
) -> tuple[Decimal, float]:
    """Return (price rounded to 8 dp, ratio). Requires before_ts < after_ts."""
    ratio = Decimal(target_ts - before_ts) / Decimal(after_ts - before_ts)
    price = before_price + ratio * (after_price - before_price)
    return quantize_price(price), float(ratio)


def _relative_change(before_price: Decimal, after_price: Decimal) -> float:
    if before_price == 0:
        return float("inf") if after_price > 0 else 0.0
    return float(abs(after_price - before_price) / before_price)


def calculate_confidence(before_price: Decimal, after_price: Decimal, ratio: float, gap_seconds: int) -> float:
    confidence = BASE_CONFIDENCE

    change = _relative_change(before_price, after_price)
    if change > 0.5:
        confidence *= 0.7
    elif change > 0.2:
        confidence *= 0.85

    if ratio < 0.1 or ratio > 0.9:
        confidence *= 0.9

    gap_hours = gap_seconds / 3600
    if gap_hours > 48:
        confidence *= 0.8
    elif gap_hours > 24:
        confidence *= 0.9

    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


class InterpolationEngine:
    def __init__(self, store: PriceStore, max_gap_seconds: int = DEFAULT_MAX_GAP_SECONDS) -> None:
        self._store = store
        self._max_gap_seconds = max_gap_seconds

    async def interpolate(self, token: str, network: str, target_ts: int) -> Optional[EstimatedPrice]:
        """Estimate the price at ``target_ts`` from the nearest stored points either side.

        Returns None at a series edge (no point on one side) or when the
        bracket is wider than ``max_gap_seconds``. A successful estimate is
        persisted as an interpolated point before it is returned.
        """
        key = PriceKey(token=token, network=network, timestamp=target_ts)
        before, after = await self._store.get_nearest(key)

        if before is None or after is None:
            logger.info(
                "Insufficient data to interpolate %s/%s@%d: before=%s after=%s",
                key.token, key.network, target_ts, before is not None, after is not None,
            )
            return None

        if before.timestamp == after.timestamp:
            # Exact stored point; nothing to estimate
            return EstimatedPrice(
                price=before.price,
                confidence=before.confidence,
                provenance=InterpolationProvenance(
                    before_timestamp=before.timestamp,
                    after_timestamp=after.timestamp,
                    before_price=before.price,
                    after_price=after.price,
                    ratio=0.0,
                    method="exact",
                ),
            )

        gap = after.timestamp - before.timestamp
        if gap > self._max_gap_seconds:
            logger.warning(
                "Gap too large to interpolate %s/%s@%d: %.1f days",
                key.token, key.network, target_ts, gap / 86400,
            )
            return None

        price, ratio = linear_interpolate(before.timestamp, before.price, after.timestamp, after.price, target_ts)
        confidence = calculate_confidence(before.price, after.price, ratio, gap)
        provenance = InterpolationProvenance(
            before_timestamp=before.timestamp,
            after_timestamp=after.timestamp,
            before_price=before.price,
            after_price=after.price,
            ratio=ratio,
        )

        result = await self._store.upsert(
            PricePoint(
                token=key.token,
                network=key.network,
                timestamp=target_ts,
                price=price,
                source=PriceSource.INTERPOLATED,
                confidence=confidence,
                metadata={"interpolation": provenance.model_dump(mode="json")},
            )
        )
        if not result.ok:
            logger.warning("Could not persist interpolated price for %s/%s@%d: %s", key.token, key.network, target_ts, result.error)

        return EstimatedPrice(price=price, confidence=confidence, provenance=provenance)
