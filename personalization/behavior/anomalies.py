"""Statistical anomaly detection over a reader's interactions."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from personalization.models import Anomaly, AnomalyType, Interaction, Severity

_COMMON_HOURS = 6
_RARE_CATEGORY_SHARE = 0.05
_READ_MULTIPLIER = 3.0
_SCROLL_THRESHOLD = 0.9


@dataclass
class BehaviorStatistics:
    """Baseline used to judge whether an interaction is unusual."""

    average_read_duration: float = 0.0
    average_scroll_depth: float = 0.0
    common_hours: list[int] = field(default_factory=list)
    category_distribution: dict[str, int] = field(default_factory=dict)


def behavior_statistics(interactions: list[Interaction]) -> BehaviorStatistics:
    if not interactions:
        return BehaviorStatistics()
    hours = Counter(i.time_of_day for i in interactions)
    return BehaviorStatistics(
        average_read_duration=sum(i.read_duration for i in interactions) / len(interactions),
        average_scroll_depth=sum(i.scroll_depth for i in interactions) / len(interactions),
        common_hours=[h for h, _ in sorted(hours.items(), key=lambda kv: (-kv[1], kv[0]))[:_COMMON_HOURS]],
        category_distribution=dict(Counter(i.category for i in interactions)),
    )


def detect_anomalies(
    interactions: list[Interaction],
    baseline: BehaviorStatistics | None = None,
) -> list[Anomaly]:
    """Flag interactions that deviate from the reader's usual behaviour.

    ===========  ========  ================================================
    Type         Severity  Condition
    ===========  ========  ================================================
    time         medium    hour is not among the six most common hours
    category     low       category accounts for under 5% of activity
    engagement   high      read time over 3x the average and scroll > 0.9
    ===========  ========  ================================================

    Args:
        interactions: The interactions to check.
        baseline: Statistics to compare against.  Defaults to statistics
            computed from *interactions* themselves.

    Returns:
        Anomalies in interaction order.
    """
    stats = baseline if baseline is not None else behavior_statistics(interactions)
    anomalies: list[Anomaly] = []
    for interaction in interactions:
        for check in (_time_anomaly, _category_anomaly, _engagement_anomaly):
            anomaly = check(interaction, stats)
            if anomaly is not None:
                anomalies.append(anomaly)
    return anomalies


def _time_anomaly(interaction: Interaction, stats: BehaviorStatistics) -> Anomaly | None:
    if interaction.time_of_day in stats.common_hours:
        return None
    return Anomaly(
        type=AnomalyType.TIME,
        severity=Severity.MEDIUM,
        description=f"Unusual activity time: {interaction.time_of_day}:00",
        interaction=interaction,
    )


def _category_anomaly(interaction: Interaction, stats: BehaviorStatistics) -> Anomaly | None:
    total = sum(stats.category_distribution.values())
    if total == 0:
        return None
    share = stats.category_distribution.get(interaction.category, 0) / total
    if share >= _RARE_CATEGORY_SHARE:
        return None
    return Anomaly(
        type=AnomalyType.CATEGORY,
        severity=Severity.LOW,
        description=f"Unusual category interest: {interaction.category}",
        interaction=interaction,
    )


def _engagement_anomaly(interaction: Interaction, stats: BehaviorStatistics) -> Anomaly | None:
    if (
        interaction.read_duration > stats.average_read_duration * _READ_MULTIPLIER
        and interaction.scroll_depth > _SCROLL_THRESHOLD
    ):
        return Anomaly(
            type=AnomalyType.ENGAGEMENT,
            severity=Severity.HIGH,
            description="Unusually high engagement detected",
            interaction=interaction,
        )
    return None
