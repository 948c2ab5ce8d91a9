"""Hour-of-day preference learning with circular smoothing."""

from __future__ import annotations

from collections import Counter
from datetime import datetime

import config
from personalization.features import action_weight, interaction_decay
from personalization.models import Action, Interaction, TimePreferenceTable, TimeSlotSummary

TIME_SLOTS: list[tuple[str, int, int]] = [
    ("00-06", 0, 6),
    ("06-12", 6, 12),
    ("12-18", 12, 18),
    ("18-24", 18, 24),
]

_SMOOTHING_KERNEL = (0.25, 0.5, 0.25)
_SLOT_ENGAGEMENT_ACTIONS = frozenset({Action.SHARE, Action.SAVE, Action.CLICK})


def learn_time_preferences(
    interactions: list[Interaction],
    now: datetime,
    half_life_days: float = config.INTERACTION_HALF_LIFE_DAYS,
    smooth: bool = True,
) -> TimePreferenceTable:
    """Learn per-hour category preferences from *interactions*.

    Each interaction is weighted by its action and by a time decay with the
    given half-life.  Within an hour, a category's preference is its share
    of the hour's total weight.  Hours whose total weight is zero stay empty.

    Args:
        interactions: Interaction history, any order.
        now: Reference time for the decay.
        half_life_days: Half-life of the interaction decay.
        smooth: Apply :func:`smooth_time_preferences` to the result.

    Returns:
        A :class:`~personalization.models.TimePreferenceTable`.
    """
    per_hour: dict[int, dict[str, float]] = {}
    for interaction in interactions:
        if not interaction.category:
            continue
        weight = action_weight(interaction.action) * interaction_decay(interaction.timestamp, now, half_life_days)
        bucket = per_hour.setdefault(interaction.time_of_day, {})
        bucket[interaction.category] = bucket.get(interaction.category, 0.0) + weight

    buckets: dict[int, dict[str, float]] = {}
    for hour, categories in per_hour.items():
        total = sum(categories.values())
        if total <= 0.0:
            continue
        buckets[hour] = {category: weight / total for category, weight in categories.items()}

    table = TimePreferenceTable(buckets)
    return smooth_time_preferences(table) if smooth else table


def smooth_time_preferences(table: TimePreferenceTable) -> TimePreferenceTable:
    """Blend each hour with its neighbours (0.25 / 0.5 / 0.25), wrapping at midnight."""
    if not table:
        return TimePreferenceTable()
    before, centre, after = _SMOOTHING_KERNEL
    smoothed: dict[int, dict[str, float]] = {}
    for hour in range(24):
        previous = table.buckets.get((hour - 1) % 24, {})
        current = table.buckets.get(hour, {})
        following = table.buckets.get((hour + 1) % 24, {})
        categories = set(previous) | set(current) | set(following)
        if not categories:
            continue
        smoothed[hour] = {
            category: before * previous.get(category, 0.0)
            + centre * current.get(category, 0.0)
            + after * following.get(category, 0.0)
            for category in sorted(categories)
        }
    return TimePreferenceTable(smoothed)


def blend_time_preferences(
    current: TimePreferenceTable,
    observed: TimePreferenceTable,
    learning_rate: float,
    prior: float = config.UNSEEN_CATEGORY_PRIOR,
) -> TimePreferenceTable:
    """EMA-blend *observed* into *current*; hours absent from *observed* are kept."""
    blended = current.copy()
    for hour, categories in observed.buckets.items():
        bucket = blended.buckets.setdefault(hour, {})
        for category, weight in categories.items():
            old = bucket.get(category, prior)
            bucket[category] = learning_rate * weight + (1 - learning_rate) * old
    return blended


def time_slot_summary(interactions: list[Interaction]) -> list[TimeSlotSummary]:
    """Summarise reading habits for each of the four six-hour slots."""
    summaries = []
    for name, start, end in TIME_SLOTS:
        in_slot = [i for i in interactions if start <= i.time_of_day < end]
        if not in_slot:
            summaries.append(TimeSlotSummary(time_slot=name))
            continue
        counts = Counter(i.category for i in in_slot if i.category)
        top = [c for c, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:3]]
        engaged = sum(1 for i in in_slot if i.action in _SLOT_ENGAGEMENT_ACTIONS)
        summaries.append(
            TimeSlotSummary(
                time_slot=name,
                top_categories=top,
                average_read_time=sum(i.read_duration for i in in_slot) / len(in_slot),
                engagement_rate=engaged / len(in_slot),
            )
        )
    return summaries


def time_slot_for(hour: int) -> str:
    for name, start, end in TIME_SLOTS:
        if start <= hour < end:
            return name
    return TIME_SLOTS[-1][0]
