"""
Pydantic models for the learning loop.

Models cover:
- Learning events (the append-only behavioral log) and their signal defaults
- The derived per-user fashion state
- The lightweight summary handed to personalization consumers
- Status / transparency payloads for the admin surface
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.constants import EVENT_SCHEMA_VERSION
from core.clock import ensure_utc, utc_now


ScoreMap = Dict[str, float]


# =============================================================================
# Enums
# =============================================================================

class LearningEventType(str, Enum):
    """User actions the learning loop listens to."""
    OUTFIT_RATED_POSITIVE = "OUTFIT_RATED_POSITIVE"
    OUTFIT_RATED_NEGATIVE = "OUTFIT_RATED_NEGATIVE"
    OUTFIT_WORN = "OUTFIT_WORN"
    OUTFIT_FAVORITED = "OUTFIT_FAVORITED"
    OUTFIT_UNFAVORITED = "OUTFIT_UNFAVORITED"
    PRODUCT_SAVED = "PRODUCT_SAVED"
    PRODUCT_UNSAVED = "PRODUCT_UNSAVED"
    PRODUCT_PURCHASED = "PRODUCT_PURCHASED"
    PRODUCT_RETURNED = "PRODUCT_RETURNED"
    LOOK_SAVED = "LOOK_SAVED"
    POST_LIKED = "POST_LIKED"
    POST_SAVED = "POST_SAVED"
    POST_DISMISSED = "POST_DISMISSED"
    ITEM_EXPLICITLY_DISMISSED = "ITEM_EXPLICITLY_DISMISSED"
    ELITE_SUGGESTION_SERVED = "ELITE_SUGGESTION_SERVED"


class EntityType(str, Enum):
    """Kinds of things a learning event can be about."""
    OUTFIT = "outfit"
    PRODUCT = "product"
    POST = "post"
    LOOK = "look"
    NOTIFICATION = "notification"


class PriceBracket(str, Enum):
    """Price bracket derived from average purchase price."""
    BUDGET = "budget"
    MID = "mid"
    PREMIUM = "premium"
    LUXURY = "luxury"


# =============================================================================
# Signal Defaults
# =============================================================================

@dataclass(frozen=True)
class SignalDefault:
    """Default polarity (-1/0/+1) and weight for an event type."""
    polarity: int
    weight: float


EVENT_SIGNAL_DEFAULTS: Dict[LearningEventType, SignalDefault] = {
    LearningEventType.OUTFIT_RATED_POSITIVE: SignalDefault(1, 0.6),
    LearningEventType.OUTFIT_RATED_NEGATIVE: SignalDefault(-1, 0.6),
    LearningEventType.OUTFIT_WORN: SignalDefault(1, 0.6),
    LearningEventType.OUTFIT_FAVORITED: SignalDefault(1, 0.3),
    LearningEventType.OUTFIT_UNFAVORITED: SignalDefault(-1, 0.2),
    LearningEventType.PRODUCT_SAVED: SignalDefault(1, 0.6),
    LearningEventType.PRODUCT_UNSAVED: SignalDefault(-1, 0.2),
    LearningEventType.PRODUCT_PURCHASED: SignalDefault(1, 1.0),
    LearningEventType.PRODUCT_RETURNED: SignalDefault(-1, 0.8),
    LearningEventType.LOOK_SAVED: SignalDefault(1, 0.3),
    LearningEventType.POST_LIKED: SignalDefault(1, 0.3),
    LearningEventType.POST_SAVED: SignalDefault(1, 0.5),
    LearningEventType.POST_DISMISSED: SignalDefault(-1, 0.2),
    LearningEventType.ITEM_EXPLICITLY_DISMISSED: SignalDefault(-1, 0.4),
    # Impression only; carries no preference signal
    LearningEventType.ELITE_SUGGESTION_SERVED: SignalDefault(0, 0.0),
}


# =============================================================================
# Learning Events
# =============================================================================

class ExtractedFeatures(BaseModel):
    """Features pulled off the entity an event is about. All optional."""
    model_config = ConfigDict(frozen=True)

    brands: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)
    materials: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    item_ids: List[str] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def drop_nulls(cls, v):
        # Rows written by older clients carry null instead of []
        if v is None:
            return []
        return v


class LearningEvent(BaseModel):
    """
    A single behavioral event. Immutable once built.

    ``idempotency_key`` is the client-supplied event id; the store rejects a
    second row with the same (user_id, idempotency_key).
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    event_type: LearningEventType
    entity_type: EntityType
    entity_id: Optional[str] = None
    entity_signature: Optional[str] = None
    signal_polarity: int = Field(ge=-1, le=1)
    signal_weight: float = Field(ge=0.0)
    extracted_features: ExtractedFeatures = Field(default_factory=ExtractedFeatures)
    context: Dict[str, Any] = Field(default_factory=dict)
    source_feature: str = "unknown"
    idempotency_key: Optional[str] = None
    event_ts: datetime = Field(default_factory=utc_now)
    schema_version: int = EVENT_SCHEMA_VERSION

    @field_validator("event_ts")
    @classmethod
    def normalize_event_ts(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("context", mode="before")
    @classmethod
    def context_default(cls, v):
        return v or {}

    def to_row(self) -> Dict[str, Any]:
        """Serialize to a user_learning_events row."""
        return {
            "user_id": self.user_id,
            "event_type": self.event_type.value,
            "event_ts": self.event_ts.isoformat(),
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "entity_signature": self.entity_signature,
            "signal_polarity": self.signal_polarity,
            "signal_weight": self.signal_weight,
            "context": self.context,
            "extracted_features": self.extracted_features.model_dump(),
            "source_feature": self.source_feature,
            "client_event_id": self.idempotency_key,
            "schema_version": self.schema_version,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LearningEvent":
        """Build from a user_learning_events row."""
        return cls(
            user_id=row["user_id"],
            event_type=row["event_type"],
            entity_type=row.get("entity_type") or EntityType.PRODUCT,
            entity_id=row.get("entity_id"),
            entity_signature=row.get("entity_signature"),
            signal_polarity=int(row.get("signal_polarity") or 0),
            signal_weight=float(row.get("signal_weight") or 0.0),
            extracted_features=row.get("extracted_features") or {},
            context=row.get("context") or {},
            source_feature=row.get("source_feature") or "unknown",
            idempotency_key=row.get("client_event_id"),
            event_ts=row["event_ts"],
            schema_version=row.get("schema_version") or EVENT_SCHEMA_VERSION,
        )


# =============================================================================
# Fashion State
# =============================================================================

# (feature list on ExtractedFeatures, score map on UserFashionState)
FEATURE_DIMENSIONS: Tuple[Tuple[str, str], ...] = (
    ("brands", "brand_scores"),
    ("colors", "color_scores"),
    ("categories", "category_scores"),
    ("styles", "style_scores"),
    ("materials", "material_scores"),
    ("tags", "tag_scores"),
)


class UserFashionState(BaseModel):
    """
    Derived per-user fashion state. Replaced wholesale on every recompute.

    Every value in the six score maps lies in [SCORE_FLOOR, SCORE_CEILING].
    """
    user_id: str
    brand_scores: ScoreMap = Field(default_factory=dict)
    color_scores: ScoreMap = Field(default_factory=dict)
    category_scores: ScoreMap = Field(default_factory=dict)
    style_scores: ScoreMap = Field(default_factory=dict)
    material_scores: ScoreMap = Field(default_factory=dict)
    tag_scores: ScoreMap = Field(default_factory=dict)
    fit_issues: ScoreMap = Field(default_factory=dict)
    avg_purchase_price: Optional[float] = None
    price_bracket: Optional[PriceBracket] = None
    occasion_frequency: ScoreMap = Field(default_factory=dict)
    events_processed_count: int = 0
    is_cold_start: bool = True
    last_computed_at: datetime
    state_version: int = 1

    @field_validator("last_computed_at")
    @classmethod
    def normalize_computed_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def iter_score_maps(self) -> Iterator[Tuple[str, ScoreMap]]:
        """Yield (field name, score map) for the six affinity dimensions."""
        for _, field_name in FEATURE_DIMENSIONS:
            yield field_name, getattr(self, field_name)

    def to_row(self) -> Dict[str, Any]:
        """Serialize to a user_fashion_state row."""
        return {
            "user_id": self.user_id,
            "brand_scores": self.brand_scores,
            "color_scores": self.color_scores,
            "category_scores": self.category_scores,
            "style_scores": self.style_scores,
            "material_scores": self.material_scores,
            "tag_scores": self.tag_scores,
            "fit_issues": self.fit_issues,
            "avg_purchase_price": self.avg_purchase_price,
            "price_bracket": self.price_bracket.value if self.price_bracket else None,
            "occasion_frequency": self.occasion_frequency,
            "events_processed_count": self.events_processed_count,
            "is_cold_start": self.is_cold_start,
            "last_computed_at": self.last_computed_at.isoformat(),
            "state_version": self.state_version,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UserFashionState":
        """Build from a user_fashion_state row, tolerating nulls."""
        avg_price = row.get("avg_purchase_price")
        return cls(
            user_id=row["user_id"],
            brand_scores=row.get("brand_scores") or {},
            color_scores=row.get("color_scores") or {},
            category_scores=row.get("category_scores") or {},
            style_scores=row.get("style_scores") or {},
            material_scores=row.get("material_scores") or {},
            tag_scores=row.get("tag_scores") or {},
            fit_issues=row.get("fit_issues") or {},
            avg_purchase_price=float(avg_price) if avg_price is not None else None,
            price_bracket=row.get("price_bracket"),
            occasion_frequency=row.get("occasion_frequency") or {},
            events_processed_count=row.get("events_processed_count") or 0,
            is_cold_start=True if row.get("is_cold_start") is None else row["is_cold_start"],
            last_computed_at=row["last_computed_at"],
            state_version=row.get("state_version") or 1,
        )


class FashionStateSummary(BaseModel):
    """Top preferences for injection into personalization / AI context."""
    top_brands: List[str] = Field(default_factory=list)
    avoid_brands: List[str] = Field(default_factory=list)
    top_colors: List[str] = Field(default_factory=list)
    avoid_colors: List[str] = Field(default_factory=list)
    top_styles: List[str] = Field(default_factory=list)
    avoid_styles: List[str] = Field(default_factory=list)
    top_categories: List[str] = Field(default_factory=list)
    price_bracket: Optional[PriceBracket] = None
    is_cold_start: bool = True


# =============================================================================
# Admin / Transparency Payloads
# =============================================================================

class CircuitBreakerStatus(BaseModel):
    """Read-only snapshot of the ingestion circuit breaker."""
    is_open: bool
    consecutive_failures: int
    opened_at: Optional[datetime] = None


class LearningDataSummary(BaseModel):
    """What the learning loop knows about a user, for the user."""
    events_count: int
    has_state: bool
    is_cold_start: bool
    top_preferences: Optional[Dict[str, List[str]]] = None


class LearningStatus(BaseModel):
    """Flag and circuit breaker status for operators."""
    events_enabled: bool
    state_enabled: bool
    shadow_mode: bool
    circuit_breaker: CircuitBreakerStatus
