import re
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from chronoprice.domain.enums import JobState, Network, PriceSource
from chronoprice.domain.models.job import JobStatus
from chronoprice.domain.models.price import InterpolationProvenance, PricePoint, PriceResult

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
MIN_TIMESTAMP = 1438269960  # Ethereum mainnet launch
MAX_FUTURE_SECONDS = 86400


def validate_address(v: str) -> str:
    v = v.strip()
    if not ADDRESS_RE.match(v):
        raise ValueError("Token must be a valid contract address (0x followed by 40 hex characters)")
    return v.lower()


def validate_timestamp(v: int) -> int:
    if v < MIN_TIMESTAMP:
        raise ValueError("Timestamp must be after Ethereum mainnet launch (July 30, 2015)")
    if v > int(time.time()) + MAX_FUTURE_SECONDS:
        raise ValueError("Timestamp cannot be more than 1 day in the future")
    return v


class PriceRequest(BaseModel):
    token: str
    network: Network
    timestamp: int

    @field_validator("token")
    @classmethod
    def check_token(cls, v: str) -> str:
        return validate_address(v)

    @field_validator("timestamp")
    @classmethod
    def check_timestamp(cls, v: int) -> int:
        return validate_timestamp(v)


class PriceResponse(BaseModel):
    token: str
    network: str
    timestamp: int
    price: Decimal
    source: PriceSource
    origin: PriceSource
    confidence: float
    volume_24h: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    interpolation: Optional[InterpolationProvenance] = None

    @classmethod
    def from_result(cls, result: PriceResult) -> "PriceResponse":
        return cls.model_validate(result.model_dump())


class ScheduleRequest(BaseModel):
    token: str
    network: Network
    start_timestamp: Optional[int] = None
    end_timestamp: Optional[int] = None

    @field_validator("token")
    @classmethod
    def check_token(cls, v: str) -> str:
        return validate_address(v)

    @field_validator("start_timestamp", "end_timestamp")
    @classmethod
    def check_bounds(cls, v: Optional[int]) -> Optional[int]:
        return validate_timestamp(v) if v is not None else None

    @model_validator(mode="after")
    def check_order(self) -> "ScheduleRequest":
        if self.start_timestamp is not None and self.end_timestamp is not None:
            if self.end_timestamp < self.start_timestamp:
                raise ValueError("end_timestamp must not be before start_timestamp")
        return self


class JobStatusResponse(BaseModel):
    id: uuid.UUID
    token: str
    network: str
    state: JobState
    progress: int
    total: int
    processed: int
    succeeded: int
    failed: int
    skipped: int
    missing: int
    attempts: int
    error_message: Optional[str] = None
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def from_status(cls, status: JobStatus) -> "JobStatusResponse":
        return cls.model_validate(status.model_dump())


class JobList(BaseModel):
    jobs: list[JobStatusResponse]
    total: int
    limit: int
    offset: int


class CancelResponse(BaseModel):
    job_id: uuid.UUID
    cancelled: bool


class InterpolationResponse(BaseModel):
    token: str
    network: str
    timestamp: int
    price: Decimal
    confidence: float
    interpolation: InterpolationProvenance


class PricePointResponse(BaseModel):
    timestamp: int
    price: Decimal
    source: PriceSource
    confidence: float
    volume_24h: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None

    @classmethod
    def from_point(cls, point: PricePoint) -> "PricePointResponse":
        return cls(
            timestamp=point.timestamp,
            price=point.price,
            source=point.source,
            confidence=point.confidence,
            volume_24h=point.volume_24h,
            market_cap=point.market_cap,
        )


class PriceHistoryResponse(BaseModel):
    token: str
    network: str
    start: int
    end: int
    points: list[PricePointResponse]
    count: int


class SourceStats(BaseModel):
    source: str
    count: int
    avg_confidence: float
    min_confidence: float
    max_confidence: float


class StatsResponse(BaseModel):
    sources: list[SourceStats]
    total: int
    unique_tokens: int
    networks: list[str]
    latest_update: Optional[datetime] = None
    jobs: dict[str, int]


class HealthResponse(BaseModel):
    status: str
    components: dict[str, str]
    errors: dict[str, str]


class PurgeResponse(BaseModel):
    purged: int
    older_than: datetime
