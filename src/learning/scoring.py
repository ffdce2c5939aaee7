"""
Fashion State Scoring Model.

Folds a user's recent learning events into a UserFashionState:

1. Affinity scores   -- brand / color / category / style / material / tag
2. Fit issues        -- counted from returned products
3. Price bracket     -- from the average purchase price
4. Occasions         -- how often each occasion shows up in event context
5. Cold start        -- too few events with a real signal

Each event contributes ``polarity * weight * decay`` to every feature it
carries, where ``decay = 0.5 ** (age_days / half_life)``. Negative signals
use a shorter half-life than positive ones.

Scores are summed raw and clamped once at the end into
[SCORE_FLOOR, SCORE_CEILING], so the result does not depend on event
order.

Everything here is pure: the caller passes in the events and "now".
"""

from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from config.constants import DEFAULT_AGGREGATION_CONFIG, AggregationConfig
from core.clock import ensure_utc
from learning.models import (
    FEATURE_DIMENSIONS,
    LearningEvent,
    LearningEventType,
    PriceBracket,
    ScoreMap,
    UserFashionState,
)

SECONDS_PER_DAY = 86400.0


# ── Primitives ────────────────────────────────────────────────────

def normalize_feature(value: Optional[str]) -> str:
    """Lowercase + strip. Returns "" for anything that isn't a usable string."""
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def half_life_for(polarity: int, config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG) -> float:
    """Negative signals decay on the negative half-life, everything else on the positive one."""
    if polarity < 0:
        return config.NEGATIVE_HALF_LIFE_DAYS
    return config.POSITIVE_HALF_LIFE_DAYS


def decay_factor(age_days: float, half_life_days: float) -> float:
    """0.5 ** (age / half_life). Future-dated events (negative age) count as fresh."""
    return 0.5 ** (max(age_days, 0.0) / half_life_days)


def event_signal(
    event: LearningEvent,
    now: datetime,
    config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
) -> float:
    """Decayed signal of a single event at time ``now``."""
    age_days = (ensure_utc(now) - event.event_ts).total_seconds() / SECONDS_PER_DAY
    decay = decay_factor(age_days, half_life_for(event.signal_polarity, config))
    return event.signal_polarity * event.signal_weight * decay


def accumulate_scores(scores: ScoreMap, features: Iterable[str], signal: float) -> None:
    """Add ``signal`` to every normalized feature in place. Empty names are skipped."""
    for feature in features:
        key = normalize_feature(feature)
        if not key:
            continue
        scores[key] = scores.get(key, 0.0) + signal


def clamp_score(score: float, config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG) -> float:
    return max(config.SCORE_FLOOR, min(config.SCORE_CEILING, score))


def clamp_scores(scores: ScoreMap, config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG) -> ScoreMap:
    return {key: clamp_score(value, config) for key, value in scores.items()}


def derive_price_bracket(
    avg_price: Optional[float],
    config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
) -> Optional[PriceBracket]:
    """
    Map an average purchase price to a bracket.

    <50 budget, <150 mid, <400 premium, anything else luxury.
    None when there is no average.
    """
    if avg_price is None:
        return None
    for upper, bracket in config.PRICE_BRACKET_THRESHOLDS:
        if avg_price < upper:
            return PriceBracket(bracket)
    return PriceBracket(config.TOP_PRICE_BRACKET)


def _purchase_price(event: LearningEvent) -> Optional[float]:
    price = event.context.get("price")
    # bool is an int subclass; True is not a price
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return None
    if price <= 0:
        return None
    return float(price)


# ── State computation ─────────────────────────────────────────────

def compute_fashion_state(
    user_id: str,
    events: Sequence[LearningEvent],
    now: datetime,
    config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
) -> UserFashionState:
    """
    Replay ``events`` into a fresh fashion state as of ``now``.

    The caller is responsible for the age window (events older than
    MAX_EVENT_AGE_DAYS are expected to be filtered out already).

    Args:
        user_id: Owner of the events
        events: The user's events, any order
        now: Reference time for decay and ``last_computed_at``
        config: Aggregation tunables

    Returns:
        A UserFashionState with every score in [SCORE_FLOOR, SCORE_CEILING]
    """
    now = ensure_utc(now)
    raw: Dict[str, ScoreMap] = {field_name: {} for _, field_name in FEATURE_DIMENSIONS}
    occasions: Counter = Counter()
    fit_issues: Counter = Counter()
    prices: List[float] = []
    explicit_count = 0

    for event in events:
        if event.signal_polarity != 0:
            explicit_count += 1

        signal = event_signal(event, now, config)
        if signal != 0.0:
            for feature_field, score_field in FEATURE_DIMENSIONS:
                accumulate_scores(
                    raw[score_field],
                    getattr(event.extracted_features, feature_field),
                    signal,
                )

        occasion = normalize_feature(event.context.get("occasion"))
        if occasion:
            occasions[occasion] += 1

        if event.event_type == LearningEventType.PRODUCT_PURCHASED:
            price = _purchase_price(event)
            if price is not None:
                prices.append(price)

        if event.event_type == LearningEventType.PRODUCT_RETURNED:
            fit_issue = normalize_feature(event.context.get("fit_issue"))
            if fit_issue:
                fit_issues[fit_issue] += 1

    avg_price = sum(prices) / len(prices) if prices else None
    clamped = {field_name: clamp_scores(scores, config) for field_name, scores in raw.items()}

    return UserFashionState(
        user_id=user_id,
        **clamped,
        fit_issues={k: float(v) for k, v in fit_issues.items()},
        avg_purchase_price=avg_price,
        price_bracket=derive_price_bracket(avg_price, config),
        occasion_frequency={k: float(v) for k, v in occasions.items()},
        events_processed_count=len(events),
        is_cold_start=explicit_count < config.MIN_EVENTS_FOR_ACTIVE,
        last_computed_at=now,
        state_version=config.STATE_VERSION,
    )
