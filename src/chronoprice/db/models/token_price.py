"""Persisted price series: one row per (token, network, timestamp)."""

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, Float, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chronoprice.db.session import Base, TimestampMixin
from chronoprice.domain.enums import PriceSource


class TokenPrice(TimestampMixin, Base):
    """Historical token price in USD. Keyed by (token, network, timestamp)."""

    __tablename__ = "token_prices"
    __table_args__ = (
        UniqueConstraint("token", "network", "timestamp", name="uq_token_prices_token_network_timestamp"),
        Index("ix_token_prices_source_timestamp", "source", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(64), index=True)  # lowercase contract address
    network: Mapped[str] = mapped_column(String(20), index=True)
    timestamp: Mapped[int] = mapped_column(BigInteger)  # Unix epoch seconds
    price: Mapped[Decimal] = mapped_column(Numeric(30, 8))
    volume_24h: Mapped[Optional[Decimal]] = mapped_column(Numeric(38, 8), default=None)
    market_cap: Mapped[Optional[Decimal]] = mapped_column(Numeric(38, 8), default=None)
    source: Mapped[str] = mapped_column(String(20), default=PriceSource.EXTERNAL_FETCH.value)
    confidence: Mapped[float] = mapped_column(Float, default=1.0)
    price_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, default=None)
