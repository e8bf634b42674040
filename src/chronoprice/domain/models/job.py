"""Read model for collection jobs exposed to callers."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from chronoprice.domain.enums import JobState


class JobStatus(BaseModel):
    id: uuid.UUID
    token: str
    network: str
    state: JobState
    progress: int  # 0..100
    total: int
    processed: int
    succeeded: int
    failed: int
    skipped: int
    missing: int
    attempts: int
    error_message: str | None = None
    first_timestamp: int | None = None
    last_timestamp: int | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    model_config = {"from_attributes": True}


class BatchOutcome(BaseModel):
    """Tallies for one processed batch."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    missing: int = 0

    def merge(self, other: "BatchOutcome") -> "BatchOutcome":
        return BatchOutcome(
            processed=self.processed + other.processed,
            succeeded=self.succeeded + other.succeeded,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
            missing=self.missing + other.missing,
        )
