"""Background collection job state."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chronoprice.db.session import Base, TimestampMixin, UUIDPrimaryKey
from chronoprice.domain.enums import JobState


class CollectionJob(UUIDPrimaryKey, TimestampMixin, Base):
    """One scheduled backfill of daily prices for a (token, network) series."""

    __tablename__ = "collection_jobs"
    __table_args__ = (Index("ix_collection_jobs_token_network", "token", "network"),)

    token: Mapped[str] = mapped_column(String(64))
    network: Mapped[str] = mapped_column(String(20))
    timestamps: Mapped[list[int]] = mapped_column(JSON, default=list)
    state: Mapped[str] = mapped_column(String(20), default=JobState.QUEUED.value, index=True)
    total: Mapped[int] = mapped_column(Integer, default=0)
    processed: Mapped[int] = mapped_column(Integer, default=0)
    succeeded: Mapped[int] = mapped_column(Integer, default=0)
    failed: Mapped[int] = mapped_column(Integer, default=0)
    skipped: Mapped[int] = mapped_column(Integer, default=0)  # already stored before fetch
    missing: Mapped[int] = mapped_column(Integer, default=0)  # upstream has no data
    progress: Mapped[int] = mapped_column(Integer, default=0)  # percent
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, default=None)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)
