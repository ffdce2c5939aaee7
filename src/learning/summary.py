"""
Fashion state summaries for personalization consumers.

Reduces a full UserFashionState to short lists of preferred and avoided
features that fit into a prompt or a reranker config.
"""

from typing import List

from config.constants import DEFAULT_SUMMARY_CONFIG, SummaryConfig
from learning.models import FashionStateSummary, ScoreMap, UserFashionState

POSITIVE = "positive"
NEGATIVE = "negative"


def get_top_n(scores: ScoreMap, n: int, direction: str = POSITIVE) -> List[str]:
    """
    Keys with the strongest scores in one direction.

    Args:
        scores: Feature -> score
        n: Maximum number of keys
        direction: "positive" (score > 0, highest first) or
            "negative" (score < 0, lowest first)

    Returns:
        Up to n keys. Ties keep dict order, which is not guaranteed to be
        stable across recomputes.
    """
    if n <= 0 or not scores:
        return []

    if direction == POSITIVE:
        ranked = sorted(
            ((k, v) for k, v in scores.items() if v > 0),
            key=lambda kv: kv[1],
            reverse=True,
        )
    elif direction == NEGATIVE:
        ranked = sorted(
            ((k, v) for k, v in scores.items() if v < 0),
            key=lambda kv: kv[1],
        )
    else:
        raise ValueError(f"direction must be '{POSITIVE}' or '{NEGATIVE}', got {direction!r}")

    return [k for k, _ in ranked[:n]]


def create_state_summary(
    state: UserFashionState,
    config: SummaryConfig = DEFAULT_SUMMARY_CONFIG,
) -> FashionStateSummary:
    """Top / avoid lists for brands, colors and styles, top categories, price bracket."""
    return FashionStateSummary(
        top_brands=get_top_n(state.brand_scores, config.TOP_N, POSITIVE),
        avoid_brands=get_top_n(state.brand_scores, config.AVOID_N, NEGATIVE),
        top_colors=get_top_n(state.color_scores, config.TOP_N, POSITIVE),
        avoid_colors=get_top_n(state.color_scores, config.AVOID_N, NEGATIVE),
        top_styles=get_top_n(state.style_scores, config.TOP_N, POSITIVE),
        avoid_styles=get_top_n(state.style_scores, config.AVOID_N, NEGATIVE),
        top_categories=get_top_n(state.category_scores, config.TOP_N, POSITIVE),
        price_bracket=state.price_bracket,
        is_cold_start=state.is_cold_start,
    )
