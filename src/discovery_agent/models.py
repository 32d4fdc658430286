"""
Pydantic models used throughout the Token Discovery Agent.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from .errors import InvalidRecordError
from .utils import is_valid_address, parse_datetime


# ---------------------------------------------------------------------------
# Market / social data
# ---------------------------------------------------------------------------
class MarketData(BaseModel):
    """Market snapshot for a token, as reported by a DEX pair or aggregator."""

    price_usd: Optional[float] = Field(None, description="Current token price in USD")
    liquidity_usd: Optional[float] = Field(None, description="Pool liquidity in USD")
    market_cap_usd: Optional[float] = Field(None, description="Market capitalisation in USD")
    volume_5m: Optional[float] = None
    volume_1h: Optional[float] = None
    volume_24h: Optional[float] = None
    price_change_5m: Optional[float] = Field(None, description="Percent change over 5 minutes")
    price_change_1h: Optional[float] = None
    price_change_24h: Optional[float] = None
    txns_5m: Optional[int] = Field(None, description="Buys + sells over 5 minutes")
    txns_1h: Optional[int] = None
    txns_24h: Optional[int] = None
    dex_id: str = Field("", description="DEX identifier, e.g. raydium")
    pair_address: str = ""
    pair_created_at: Optional[datetime] = None
    url: str = ""

    def fill_missing(self, other: "MarketData") -> "MarketData":
        """Return a copy where every empty field is taken from *other*.

        Fields already populated on ``self`` are never overwritten.
        """
        updates: dict[str, Any] = {}
        for name in type(self).model_fields:
            current = getattr(self, name)
            if current is None or current == "":
                incoming = getattr(other, name)
                if incoming is not None and incoming != "":
                    updates[name] = incoming
        return self.model_copy(update=updates) if updates else self

    def is_empty(self) -> bool:
        return all(
            getattr(self, name) in (None, "") for name in type(self).model_fields
        )


class SocialSentiment(BaseModel):
    """Aggregated social chatter for a token."""

    mentions: int = Field(0, ge=0)
    sentiment: float = Field(0.5, ge=0.0, le=1.0, description="0 = bearish, 1 = bullish")


# ---------------------------------------------------------------------------
# Per-source metadata (discriminated on ``kind``)
# ---------------------------------------------------------------------------
class PushFeedMetadata(BaseModel):
    kind: Literal["push_feed"] = "push_feed"
    signature: str = ""
    creator: str = ""
    market_cap_sol: Optional[float] = None
    v_sol_in_bonding_curve: Optional[float] = None
    initial_buy: Optional[float] = None
    uri: str = ""


class ChainScanMetadata(BaseModel):
    kind: Literal["chain_scan"] = "chain_scan"
    signature: str = ""
    program: str = ""
    slot: Optional[int] = None
    block_time: Optional[datetime] = None
    sol_movement: Optional[float] = Field(
        None, description="Absolute SOL moved by the transaction"
    )


class MarketPollMetadata(BaseModel):
    kind: Literal["market_poll"] = "market_poll"
    profile_url: str = ""
    description: str = ""
    links: list[str] = Field(default_factory=list)


class AggregatorMetadata(BaseModel):
    kind: Literal["aggregator"] = "aggregator"
    decimals: Optional[int] = None
    tags: list[str] = Field(default_factory=list)
    holder_count: Optional[int] = None
    organic_score: Optional[float] = None


SourceMetadata = Annotated[
    Union[PushFeedMetadata, ChainScanMetadata, MarketPollMetadata, AggregatorMetadata],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Discovery records
# ---------------------------------------------------------------------------
class DiscoveryRecord(BaseModel):
    """A candidate token as reported by a single source strategy."""

    address: str = Field(..., description="Solana mint address")
    name: str = ""
    symbol: str = ""
    detected_at: datetime = Field(..., description="When the source observed the token")
    source: str = Field(..., description="Source tag of the emitting strategy")
    market: MarketData = Field(default_factory=MarketData)
    social: Optional[SocialSentiment] = None
    metadata: Optional[SourceMetadata] = None

    @property
    def signature(self) -> str:
        """Transaction signature carried by the source metadata, if any."""
        return getattr(self.metadata, "signature", "") or ""


class EnrichedRecord(DiscoveryRecord):
    """A discovery record after the enrichment step (provenance always stamped)."""

    enriched_at: datetime
    enriched_by: str
    enrichment_sources: list[str] = Field(
        default_factory=list, description="Providers whose data was merged in"
    )
    enrichment_error: str = Field("", description="Why the lookup failed, if it did")


# ---------------------------------------------------------------------------
# Scoring output
# ---------------------------------------------------------------------------
class SecurityVerdict(BaseModel):
    """Outcome of the optional pre-scoring security check."""

    passed: bool
    score: float = Field(..., ge=0.0, le=100.0, description="Higher is safer")
    flags: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)


class DetectionMetadata(BaseModel):
    priority: int = Field(1, ge=1, le=10)
    signals: list[str] = Field(default_factory=list)
    risk_score: int = Field(0, ge=0, le=100)
    opportunity_score: int = Field(0, ge=0, le=100)
    technical_score: int = Field(0, ge=0, le=100)
    market_score: int = Field(0, ge=0, le=100)
    social_score: int = Field(0, ge=0, le=100)
    security: Optional[SecurityVerdict] = None


class DetectionResult(BaseModel):
    """A scored, admitted detection, published to subscribers."""

    record: EnrichedRecord
    confidence: float = Field(..., ge=0.0, le=100.0)
    sources: list[str] = Field(default_factory=list)
    detection_time_ms: float = Field(
        0.0, ge=0.0, description="Latency from source observation to scoring"
    )
    metadata: DetectionMetadata = Field(default_factory=DetectionMetadata)

    @property
    def address(self) -> str:
        return self.record.address


# ---------------------------------------------------------------------------
# Deep analysis
# ---------------------------------------------------------------------------
class AnalysisResult(BaseModel):
    """Output of one on-chain transaction analysis."""

    signature: str
    records: list[DiscoveryRecord] = Field(default_factory=list)
    analysis_time_ms: float = 0.0
    sources: list[str] = Field(default_factory=list)
    error: str = ""


# ---------------------------------------------------------------------------
# Health / statistics
# ---------------------------------------------------------------------------
class StrategyStatus(BaseModel):
    """Health snapshot reported by a source strategy."""

    name: str
    source: str
    kind: Literal["push_feed", "periodic_poll", "chain_scan", "aggregator_poll"]
    running: bool = False
    healthy: bool = False
    fatal: bool = Field(False, description="Gave up permanently (e.g. reconnect attempts exhausted)")
    batches_emitted: int = 0
    records_emitted: int = 0
    errors: int = 0
    consecutive_failures: int = 0
    last_success_at: Optional[datetime] = None
    last_error: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class DetectionStats(BaseModel):
    """Running detection statistics snapshot."""

    total_detected: int = 0
    total_processed: int = 0
    total_filtered: int = 0
    success_rate: float = Field(0.0, ge=0.0, le=100.0)
    average_confidence: float = 0.0
    average_detection_time_ms: float = 0.0
    source_breakdown: dict[str, int] = Field(default_factory=dict)
    priority_breakdown: dict[int, int] = Field(default_factory=dict)
    error_counts: dict[str, int] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Boundary normalisation
# ---------------------------------------------------------------------------

# Market fields that are meaningless when negative.
_NON_NEGATIVE_FIELDS = (
    "price_usd", "liquidity_usd", "market_cap_usd",
    "volume_5m", "volume_1h", "volume_24h",
    "txns_5m", "txns_1h", "txns_24h",
)
_SIGNED_FIELDS = ("price_change_5m", "price_change_1h", "price_change_24h")


def normalize_record(record: DiscoveryRecord) -> DiscoveryRecord:
    """Validate and normalise a record entering the pipeline.

    Raises ``InvalidRecordError`` when the address is not a Solana address.
    Negative or non-finite market numbers become ``None``; a naive
    ``detected_at`` is assumed to be UTC; an empty symbol falls back to a
    shortened address.
    """
    address = (record.address or "").strip()
    if not address:
        raise InvalidRecordError(record.address, "empty address")
    if not is_valid_address(address):
        raise InvalidRecordError(address, "not a base58 Solana address")

    market_updates: dict[str, Any] = {}
    for name in _NON_NEGATIVE_FIELDS:
        value = getattr(record.market, name)
        if value is not None and (not math.isfinite(value) or value < 0):
            market_updates[name] = None
    for name in _SIGNED_FIELDS:
        value = getattr(record.market, name)
        if value is not None and not math.isfinite(value):
            market_updates[name] = None

    updates: dict[str, Any] = {
        "address": address,
        "detected_at": parse_datetime(record.detected_at),
        "name": record.name.strip(),
        "symbol": record.symbol.strip() or address[:6],
    }
    if market_updates:
        updates["market"] = record.market.model_copy(update=market_updates)
    return record.model_copy(update=updates)
