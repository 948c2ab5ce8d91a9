"""Behavioural analyzer: single entry point for learning from reader behaviour."""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import datetime, timedelta

import config
from personalization.behavior import adaptation, anomalies, patterns, prediction, time_preferences
from personalization.models import (
    Action,
    Anomaly,
    BehavioralTrends,
    BehaviorPatterns,
    BehaviorPrediction,
    BehaviorProfile,
    CategoryTrends,
    FuturePreferences,
    Interaction,
    PreferenceUpdate,
    TimePreferenceTable,
    TimeSlotSummary,
    UserInsights,
    UserProfile,
)

logger = logging.getLogger(__name__)

_WEEK = timedelta(days=7)
_MIN_TREND_INTERACTIONS = 10
_MIN_CHANGE_INTERACTIONS = 5
_SHARE_CHANGE_THRESHOLD = 0.2
_READ_TIME_CHANGE_SECONDS = 30.0
_TREND_RATIO = 1.5


class BehavioralAnalyzer:
    """Learns time-of-day preferences, patterns, predictions and drift from interactions.

    The analyzer is stateless; every method takes the interactions it needs.

    Args:
        learning_rate: EMA rate used by :meth:`update_preferences`.
        drift_threshold: Per-category drift threshold.
        half_life_days: Half-life of the interaction time decay.
    """

    def __init__(
        self,
        learning_rate: float = config.EMA_LEARNING_RATE,
        drift_threshold: float = config.DRIFT_THRESHOLD,
        half_life_days: float = config.INTERACTION_HALF_LIFE_DAYS,
    ) -> None:
        self._learning_rate = learning_rate
        self._drift_threshold = drift_threshold
        self._half_life_days = half_life_days

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def learn_time_preferences(self, interactions: list[Interaction], now: datetime) -> TimePreferenceTable:
        return time_preferences.learn_time_preferences(interactions, now, self._half_life_days)

    def time_slots(self, interactions: list[Interaction]) -> list[TimeSlotSummary]:
        return time_preferences.time_slot_summary(interactions)

    def identify_patterns(self, interactions: list[Interaction]) -> BehaviorPatterns:
        return patterns.identify_patterns(interactions)

    def predict(
        self, interactions: list[Interaction], target_hour: int, target_day: int, now: datetime
    ) -> BehaviorPrediction:
        return prediction.predict_behavior(interactions, target_hour, target_day, now)

    def predict_future_preferences(
        self, behavior: BehaviorProfile, interactions: list[Interaction], now: datetime
    ) -> FuturePreferences:
        return prediction.predict_future_preferences(behavior, interactions, now)

    def update_preferences(
        self,
        behavior: BehaviorProfile,
        new_interactions: list[Interaction],
        now: datetime,
        learning_rate: float | None = None,
    ) -> PreferenceUpdate:
        return adaptation.update_preferences(
            behavior,
            new_interactions,
            now,
            learning_rate=self._learning_rate if learning_rate is None else learning_rate,
            drift_threshold=self._drift_threshold,
        )

    def detect_anomalies(
        self,
        interactions: list[Interaction],
        baseline: anomalies.BehaviorStatistics | None = None,
    ) -> list[Anomaly]:
        return anomalies.detect_anomalies(interactions, baseline)

    def engagement_score(self, interactions: list[Interaction]) -> float:
        return adaptation.engagement_score(interactions)

    # ------------------------------------------------------------------
    # Trends and insights
    # ------------------------------------------------------------------

    def category_trends(self, interactions: list[Interaction], now: datetime) -> CategoryTrends:
        """Compare the two halves of the last week's activity per category.

        A category is trending when its second-half count exceeds 1.5 times
        its first-half count, and declining in the opposite case.
        """
        recent = sorted((i for i in interactions if now - i.timestamp < _WEEK), key=lambda i: i.timestamp)
        midpoint = len(recent) // 2
        first = Counter(i.category for i in recent[:midpoint])
        second = Counter(i.category for i in recent[midpoint:])

        trends = CategoryTrends()
        for category in sorted(set(first) | set(second)):
            if second[category] > first[category] * _TREND_RATIO:
                trends.trending.append(category)
            elif first[category] > second[category] * _TREND_RATIO:
                trends.declining.append(category)
        return trends

    def behavioral_trends(self, interactions: list[Interaction], now: datetime) -> BehavioralTrends:
        """Consistency of daily activity, spread of interests and recent changes."""
        if len(interactions) < _MIN_TREND_INTERACTIONS:
            return BehavioralTrends(recent_changes=["Insufficient data for trend analysis"])

        daily = list(Counter(i.timestamp.date() for i in interactions).values())
        mean = sum(daily) / len(daily)
        variance = sum((d - mean) ** 2 for d in daily) / len(daily)
        consistency = max(0.0, 1 - variance / (mean * mean))

        counts = Counter(i.category for i in interactions)
        total = len(interactions)
        entropy = -sum((c / total) * math.log2(c / total) for c in counts.values())
        max_entropy = math.log2(len(counts)) if len(counts) > 1 else 0.0
        diversity = entropy / max_entropy if max_entropy > 0 else 0.0

        return BehavioralTrends(
            consistency=consistency,
            diversity=diversity,
            recent_changes=self.recent_changes(interactions, now),
        )

    def recent_changes(self, interactions: list[Interaction], now: datetime) -> list[str]:
        recent = [i for i in interactions if now - i.timestamp < _WEEK]
        older = [i for i in interactions if now - i.timestamp >= _WEEK]
        if len(recent) < _MIN_CHANGE_INTERACTIONS or len(older) < _MIN_CHANGE_INTERACTIONS:
            return ["Insufficient data for change detection"]

        changes = []
        recent_share = _category_shares(recent)
        older_share = _category_shares(older)
        for category in sorted(recent_share):
            change = recent_share[category] - older_share.get(category, 0.0)
            if abs(change) > _SHARE_CHANGE_THRESHOLD:
                direction = "Increased" if change > 0 else "Decreased"
                changes.append(f"{direction} interest in {category}")

        recent_read = _average_read_time(recent)
        older_read = _average_read_time(older)
        if recent_read is not None and older_read is not None:
            if abs(recent_read - older_read) > _READ_TIME_CHANGE_SECONDS:
                if recent_read > older_read:
                    changes.append("Reading articles for longer periods")
                else:
                    changes.append("Reading articles for shorter periods")

        return changes or ["No significant changes detected"]

    def profile_strength(self, behavior: BehaviorProfile, interactions: list[Interaction], now: datetime) -> float:
        """Quantity (<= 0.4), confidence (<= 0.3), recency (<= 0.2) and diversity (<= 0.1)."""
        strength = min(len(interactions) / 100, 0.4)
        strength += behavior.category_weights.confidence * 0.3
        recent = sum(1 for i in interactions if now - i.timestamp < _WEEK)
        strength += min(recent / 20, 0.2)
        strength += min(len({i.category for i in interactions}) / 8, 0.1)
        return min(strength, 1.0)

    def user_insights(
        self, profile: UserProfile | None, interactions: list[Interaction], now: datetime
    ) -> UserInsights:
        if profile is None or not interactions:
            return UserInsights(
                top_categories=[("general", 0.5)],
                trends=BehavioralTrends(recent_changes=["New user - no trends available yet"]),
            )
        found = self.identify_patterns(interactions)
        return UserInsights(
            profile_strength=self.profile_strength(profile.behavior, interactions, now),
            top_categories=profile.behavior.category_weights.top(5),
            peak_hours=found.rhythm.peak_hours,
            preferred_length=found.content.length,
            engagement_level=found.content.engagement,
            trends=self.behavioral_trends(interactions, now),
            category_trends=self.category_trends(interactions, now),
        )


def _category_shares(interactions: list[Interaction]) -> dict[str, float]:
    counts = Counter(i.category for i in interactions)
    return {category: count / len(interactions) for category, count in counts.items()}


def _average_read_time(interactions: list[Interaction]) -> float | None:
    reads = [i.read_duration for i in interactions if i.action == Action.READ]
    return sum(reads) / len(reads) if reads else None
