"""Short-horizon prediction of what a reader will want at a given hour and weekday."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta

import config
from personalization.behavior.time_preferences import time_slot_for, time_slot_summary
from personalization.features import clamp, engagement_weight, interaction_decay
from personalization.models import (
    Action,
    BehaviorPrediction,
    BehaviorProfile,
    FuturePreferences,
    Interaction,
)

logger = logging.getLogger(__name__)

_HOUR_WINDOW = 2
_DEFAULT_PROBABILITIES = {
    "politics": 0.3,
    "technology": 0.25,
    "business": 0.2,
    "entertainment": 0.15,
    "sports": 0.1,
}
_DEFAULT_CONTENT_TYPES = ["medium", "recent", "trending"]
_DEFAULT_CONFIDENCE = 0.2
_ENGAGEMENT_NORMALISER = 300.0


def default_prediction() -> BehaviorPrediction:
    return BehaviorPrediction(
        category_probabilities=dict(_DEFAULT_PROBABILITIES),
        expected_engagement=0.5,
        content_types=list(_DEFAULT_CONTENT_TYPES),
        confidence=_DEFAULT_CONFIDENCE,
    )


def hour_distance(a: int, b: int) -> int:
    """Distance between two hours on a 24-hour clock (23 and 1 are 2 apart)."""
    diff = abs(a - b) % 24
    return min(diff, 24 - diff)


def predict_behavior(
    interactions: list[Interaction],
    target_hour: int,
    target_day: int,
    now: datetime,
    min_samples: int = config.MIN_PREDICTION_SAMPLES,
) -> BehaviorPrediction:
    """Predict category interest and engagement at *target_hour* on *target_day*.

    Only interactions on the same weekday within two hours of the target
    are considered.  With fewer than *min_samples* of them a fixed generic
    prediction is returned with confidence 0.2.

    Args:
        interactions: Interaction history.
        target_hour: Hour of day, 0–23.
        target_day: Day of week, 0 = Sunday.
        now: Reference time for decay and recency.
        min_samples: Minimum matching interactions for a personal prediction.

    Returns:
        A :class:`~personalization.models.BehaviorPrediction`.
    """
    similar = [
        i
        for i in interactions
        if i.day_of_week == target_day and hour_distance(i.time_of_day, target_hour) <= _HOUR_WINDOW
    ]
    if len(similar) < min_samples:
        logger.debug(
            "Only %d samples near hour %d day %d; using default prediction.",
            len(similar),
            target_hour,
            target_day,
        )
        return default_prediction()

    weights: dict[str, float] = {}
    for interaction in similar:
        weight = engagement_weight(interaction) * interaction_decay(interaction.timestamp, now)
        weights[interaction.category] = weights.get(interaction.category, 0.0) + weight
    total = sum(weights.values())
    if total <= 0.0:
        weights = dict(Counter(i.category for i in similar))
        total = float(len(similar))
    probabilities = {
        category: weight / total
        for category, weight in sorted(weights.items(), key=lambda kv: (-kv[1], kv[0]))
    }

    average = sum(i.read_duration * i.scroll_depth for i in similar) / len(similar)
    return BehaviorPrediction(
        category_probabilities=probabilities,
        expected_engagement=clamp(average / _ENGAGEMENT_NORMALISER),
        content_types=recommend_content_types(similar, now),
        confidence=prediction_confidence(similar),
    )


def recommend_content_types(interactions: list[Interaction], now: datetime) -> list[str]:
    average_read = sum(i.read_duration for i in interactions) / len(interactions)
    if average_read < 120:
        types = ["short"]
    elif average_read > 300:
        types = ["long"]
    else:
        types = ["medium"]

    cutoff = now - timedelta(hours=24)
    if sum(1 for i in interactions if i.timestamp > cutoff) > len(interactions) * 0.7:
        types.append("recent")
    if sum(1 for i in interactions if i.action == Action.SHARE) > len(interactions) * 0.1:
        types.append("trending")
    return types


def prediction_confidence(interactions: list[Interaction]) -> float:
    """Mean of data volume, time-span coverage and category consistency."""
    volume = min(len(interactions) / 50, 1.0)
    coverage = min(time_span_days(interactions) / 30, 1.0)
    return (volume + coverage + category_consistency(interactions)) / 3


def time_span_days(interactions: list[Interaction]) -> float:
    if len(interactions) < 2:
        return 0.0
    stamps = [i.timestamp for i in interactions]
    return (max(stamps) - min(stamps)).total_seconds() / 86400.0


def category_consistency(interactions: list[Interaction]) -> float:
    """``1 - variance / mean**2`` of per-category counts, floored at 0."""
    frequencies = list(Counter(i.category for i in interactions).values())
    if not frequencies:
        return 0.0
    mean = sum(frequencies) / len(frequencies)
    variance = sum((f - mean) ** 2 for f in frequencies) / len(frequencies)
    return max(0.0, 1 - variance / (mean * mean))


def predict_future_preferences(
    behavior: BehaviorProfile,
    interactions: list[Interaction],
    now: datetime,
) -> FuturePreferences:
    """Categories for the next hour, today and the coming week.

    Uses the six-hour slot containing *now*; with no history in that slot a
    generic answer with confidence 0.3 is returned.
    """
    slot_name = time_slot_for(now.hour)
    slot = next(s for s in time_slot_summary(interactions) if s.time_slot == slot_name)
    if not slot.top_categories:
        return FuturePreferences(
            next_hour_categories=["world", "politics"],
            today_categories=["business", "technology"],
            weekly_trend=["entertainment", "sports"],
            confidence=0.3,
        )
    top = [category for category, _ in behavior.category_weights.top(3)]
    return FuturePreferences(
        next_hour_categories=slot.top_categories[:2],
        today_categories=top,
        weekly_trend=top,
        confidence=min(slot.engagement_rate + 0.3, 1.0),
    )
