"""Domain types for price points, fetch results and resolved prices."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chronoprice.domain.enums import PriceSource

PRICE_QUANTUM = Decimal("0.00000001")  # prices are stored with 8 decimal places


def quantize_price(value: Decimal) -> Decimal:
    return value.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


class PriceKey(BaseModel):
    """Composite identity of a price observation: one series per (token, network)."""

    model_config = ConfigDict(frozen=True)

    token: str
    network: str
    timestamp: int  # Unix seconds

    @field_validator("token", "network")
    @classmethod
    def normalize(cls, v: str) -> str:
        return v.strip().lower()


class PricePoint(BaseModel):
    """One stored price observation or estimate."""

    token: str
    network: str
    timestamp: int
    price: Decimal = Field(ge=0)
    volume_24h: Decimal | None = None
    market_cap: Decimal | None = None
    source: PriceSource = PriceSource.EXTERNAL_FETCH
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    metadata: dict[str, Any] = {}

    @field_validator("token", "network")
    @classmethod
    def normalize(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("price", "volume_24h", "market_cap")
    @classmethod
    def round_amounts(cls, v: Decimal | None) -> Decimal | None:
        return quantize_price(v) if v is not None else None

    @property
    def key(self) -> PriceKey:
        return PriceKey(token=self.token, network=self.network, timestamp=self.timestamp)


class FetchedPrice(BaseModel):
    """What an external fetcher returns. confidence < 1 marks reconstructed (non-observed) history."""

    price: Decimal = Field(ge=0)
    volume_24h: Decimal | None = None
    market_cap: Decimal | None = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    metadata: dict[str, Any] = {}

    @field_validator("price", "volume_24h", "market_cap")
    @classmethod
    def round_amounts(cls, v: Decimal | None) -> Decimal | None:
        return quantize_price(v) if v is not None else None


class InterpolationProvenance(BaseModel):
    """Bracketing points used for a linear estimate."""

    before_timestamp: int
    after_timestamp: int
    before_price: Decimal
    after_price: Decimal
    ratio: float
    method: str = "linear"


class EstimatedPrice(BaseModel):
    price: Decimal
    confidence: float
    provenance: InterpolationProvenance


class PriceResult(BaseModel):
    """Answer returned by the resolver.

    ``source`` is the tier that answered this call ("cache" on a cache hit);
    ``origin`` is the tier that originally produced the value.
    """

    token: str
    network: str
    timestamp: int
    price: Decimal
    source: PriceSource
    origin: PriceSource
    confidence: float
    volume_24h: Decimal | None = None
    market_cap: Decimal | None = None
    interpolation: InterpolationProvenance | None = None

    def to_cache_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_cache_payload(cls, payload: dict[str, Any]) -> "PriceResult":
        result = cls.model_validate(payload)
        return result.model_copy(update={"source": PriceSource.CACHE})


class UpsertResult(BaseModel):
    """Per-item outcome of a bulk write."""

    key: PriceKey
    ok: bool
    written: bool = False  # False when a higher-ranked source already owns the key
    error: str | None = None
