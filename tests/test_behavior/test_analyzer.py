"""Tests for the BehavioralAnalyzer facade, trends and insights."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from personalization.behavior.analyzer import BehavioralAnalyzer
from personalization.models import (
    Action,
    BehaviorProfile,
    CategoryWeights,
    Interaction,
    UserProfile,
)


TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _make_interaction(
    category: str,
    hours_ago: float,
    action: Action = Action.READ,
    read: float = 60.0,
) -> Interaction:
    return Interaction.from_event(
        "u1",
        f"a_{category}_{hours_ago}",
        action,
        TS - timedelta(hours=hours_ago),
        read_duration=read,
        scroll_depth=0.5,
        category=category,
    )


@pytest.fixture
def analyzer() -> BehavioralAnalyzer:
    return BehavioralAnalyzer()


# ---------------------------------------------------------------------------
# Delegation
# ---------------------------------------------------------------------------


class TestDelegation:
    def test_update_preferences_uses_configured_rate(self) -> None:
        behavior = BehaviorProfile(category_weights=CategoryWeights({"technology": 0.5}))
        update = BehavioralAnalyzer(learning_rate=0.5).update_preferences(
            behavior, [_make_interaction("technology", 0)], TS
        )
        assert update.behavior.category_weights.get("technology") == pytest.approx(0.75)

    def test_update_preferences_rate_override(self, analyzer) -> None:
        behavior = BehaviorProfile(category_weights=CategoryWeights({"technology": 0.5}))
        update = analyzer.update_preferences(behavior, [_make_interaction("technology", 0)], TS, learning_rate=0.3)
        assert update.behavior.category_weights.get("technology") == pytest.approx(0.65)

    def test_time_slots_and_prediction_defaults(self, analyzer) -> None:
        assert len(analyzer.time_slots([])) == 4
        assert analyzer.predict([], 12, 6, TS).confidence == 0.2
        assert analyzer.predict_future_preferences(BehaviorProfile(), [], TS).confidence == 0.3

    def test_learn_and_detect(self, analyzer) -> None:
        interactions = [_make_interaction("technology", h) for h in range(3)]
        assert analyzer.learn_time_preferences(interactions, TS)
        assert analyzer.identify_patterns(interactions).rhythm.peak_hours
        assert analyzer.detect_anomalies(interactions) == []
        assert analyzer.engagement_score(interactions) == pytest.approx(0.3)


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------


class TestTrends:
    def test_category_trends_within_week(self, analyzer) -> None:
        earlier = [_make_interaction("sports", 100 + h) for h in range(4)]
        later = [_make_interaction("technology", h) for h in range(4)]
        trends = analyzer.category_trends(earlier + later, TS)
        assert trends.trending == ["technology"]
        assert trends.declining == ["sports"]

    def test_category_trends_ignore_old_activity(self, analyzer) -> None:
        old = [_make_interaction("sports", 24 * 10 + h) for h in range(4)]
        trends = analyzer.category_trends(old, TS)
        assert trends.trending == [] and trends.declining == []

    def test_insufficient_data(self, analyzer) -> None:
        trends = analyzer.behavioral_trends([_make_interaction("sports", h) for h in range(5)], TS)
        assert trends.recent_changes == ["Insufficient data for trend analysis"]

    def test_consistency_and_diversity(self, analyzer) -> None:
        interactions = [_make_interaction(c, 0.1 * n) for n, c in enumerate(["sports", "technology"] * 5)]
        trends = analyzer.behavioral_trends(interactions, TS)
        assert trends.consistency == pytest.approx(1.0)
        assert trends.diversity == pytest.approx(1.0)
        assert trends.recent_changes == ["Insufficient data for change detection"]

    def test_recent_changes(self, analyzer) -> None:
        older = [_make_interaction("sports", 24 * 10 + h, read=60.0) for h in range(5)]
        recent = [_make_interaction("technology", h, read=200.0) for h in range(5)]
        changes = analyzer.recent_changes(older + recent, TS)
        assert changes == ["Increased interest in technology", "Reading articles for longer periods"]

    def test_no_significant_changes(self, analyzer) -> None:
        older = [_make_interaction("sports", 24 * 10 + h) for h in range(5)]
        recent = [_make_interaction("sports", h) for h in range(5)]
        assert analyzer.recent_changes(older + recent, TS) == ["No significant changes detected"]


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


class TestInsights:
    def test_new_user_defaults(self, analyzer) -> None:
        insights = analyzer.user_insights(None, [], TS)
        assert insights.profile_strength == 0.1
        assert insights.top_categories == [("general", 0.5)]
        assert insights.peak_hours == [9, 14, 20]
        assert insights.trends.recent_changes == ["New user - no trends available yet"]

    def test_profile_strength(self, analyzer) -> None:
        behavior = BehaviorProfile(category_weights=CategoryWeights({"sports": 0.6}, confidence=0.5))
        interactions = [_make_interaction(c, h) for h, c in enumerate(["sports", "technology"] * 5)]
        # quantity 0.1, confidence 0.15, recency 0.2, diversity 0.1
        assert analyzer.profile_strength(behavior, interactions, TS) == pytest.approx(0.55)

    def test_insights_for_established_reader(self, analyzer, tech_reader_profile) -> None:
        interactions = [_make_interaction("technology", h, read=400.0) for h in range(12)]
        insights = analyzer.user_insights(tech_reader_profile, interactions, TS)
        assert insights.top_categories[0] == ("technology", 0.9)
        assert insights.preferred_length == "long"
        assert insights.engagement_level == "low"
        assert 0.0 < insights.profile_strength <= 1.0
