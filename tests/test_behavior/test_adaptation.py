"""Tests for EMA preference updates and concept-drift detection."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from personalization.behavior.adaptation import (
    data_quality,
    detect_drift,
    engagement_score,
    observed_weights,
    update_preferences,
)
from personalization.models import (
    Action,
    BehaviorProfile,
    CategoryWeights,
    Interaction,
    TimePreferenceTable,
)


TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _make_interaction(
    category: str = "technology",
    action: Action = Action.READ,
    read: float = 60.0,
    scroll: float = 0.5,
    days_ago: float = 0.0,
) -> Interaction:
    return Interaction.from_event(
        "u1",
        f"a_{category}",
        action,
        TS - timedelta(days=days_ago),
        read_duration=read,
        scroll_depth=scroll,
        category=category,
    )


def _behavior(weights: dict[str, float], confidence: float = 0.5) -> BehaviorProfile:
    return BehaviorProfile(
        category_weights=CategoryWeights(weights, confidence=confidence),
        time_preferences=TimePreferenceTable({8: {"technology": 0.4}}),
        engagement_score=0.4,
        interaction_history=["a0@x"],
    )


# ---------------------------------------------------------------------------
# update_preferences
# ---------------------------------------------------------------------------


class TestUpdatePreferences:
    def test_ema_step(self) -> None:
        update = update_preferences(_behavior({"technology": 0.5}), [_make_interaction()], TS, learning_rate=0.1)
        # read 60s at half scroll: weight 1.5, clamped to 1.0
        assert update.behavior.category_weights.get("technology") == pytest.approx(0.55)

    def test_unseen_category_starts_from_prior(self) -> None:
        update = update_preferences(_behavior({}), [_make_interaction("sports")], TS, learning_rate=0.1)
        assert update.behavior.category_weights.get("sports") == pytest.approx(0.1 + 0.9 * 0.3)

    def test_weights_stay_in_unit_interval(self) -> None:
        behavior = _behavior({"technology": 1.0, "sports": 0.0})
        batch = [_make_interaction(read=600.0, scroll=1.0), _make_interaction("sports", Action.SKIP)]
        weights = update_preferences(behavior, batch, TS, learning_rate=0.9).behavior.category_weights
        assert all(0.0 <= w <= 1.0 for w in weights.weights.values())

    def test_confidence_rises_with_quality(self) -> None:
        behavior = _behavior({"technology": 0.5}, confidence=0.5)
        update = update_preferences(behavior, [_make_interaction()], TS)
        assert update.behavior.category_weights.confidence == pytest.approx(0.5 + update.data_quality * 0.05)
        assert update.behavior.category_weights.updated_at == TS

    def test_input_not_mutated(self) -> None:
        behavior = _behavior({"technology": 0.5})
        update_preferences(behavior, [_make_interaction()], TS)
        assert behavior.category_weights.get("technology") == 0.5
        assert behavior.time_preferences.get(8, "technology") == 0.4

    def test_empty_batch_is_idempotent(self) -> None:
        behavior = _behavior({"technology": 0.5})
        update = update_preferences(behavior, [], TS)
        assert update.behavior == behavior
        assert update.behavior is not behavior
        assert not update.drift_detected

    def test_time_preferences_blended(self) -> None:
        behavior = _behavior({"technology": 0.5})
        update = update_preferences(behavior, [_make_interaction()], TS, learning_rate=0.1)
        assert update.behavior.time_preferences.get(12, "technology") > 0.0
        assert update.behavior.time_preferences.get(8, "technology") == pytest.approx(0.4)


class TestDrift:
    def test_large_change_flags_drift(self, caplog) -> None:
        behavior = _behavior({"technology": 0.9})
        with caplog.at_level(logging.WARNING, logger="personalization.behavior.adaptation"):
            update = update_preferences(behavior, [_make_interaction(action=Action.DISLIKE)], TS)
        assert update.drift_detected
        assert update.drifted_categories == ["technology"]
        assert "Concept drift" in caplog.text

    def test_drift_is_reported_not_reverted(self) -> None:
        update = update_preferences(_behavior({"technology": 0.9}), [_make_interaction(action=Action.DISLIKE)], TS)
        assert update.behavior.category_weights.get("technology") == pytest.approx(0.9 * 0.9)

    def test_unseen_categories_never_drift(self) -> None:
        assert detect_drift(CategoryWeights(), {"sports": 1.0}, 0.3) == []

    def test_small_change_no_drift(self) -> None:
        assert detect_drift(CategoryWeights({"sports": 0.8}), {"sports": 1.0}, 0.3) == []


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_observed_weights_are_means(self) -> None:
        batch = [_make_interaction(), _make_interaction(action=Action.VIEW, read=0.0, scroll=0.0)]
        assert observed_weights(batch) == {"technology": pytest.approx((1.0 + 0.1) / 2)}

    def test_data_quality(self) -> None:
        batch = [_make_interaction() for _ in range(10)]
        # complete 1.0, one of eight categories, all recent
        assert data_quality(batch, TS) == pytest.approx(0.4 + 0.3 / 8 + 0.3)
        assert data_quality([], TS) == 0.0

    def test_data_quality_penalises_stale_incomplete_data(self) -> None:
        stale = [_make_interaction(read=0.0, scroll=0.0, days_ago=30)]
        assert data_quality(stale, TS) == pytest.approx(0.3 / 8)

    def test_engagement_score(self) -> None:
        assert engagement_score([_make_interaction(action=Action.SHARE, read=120.0)]) == pytest.approx(0.6)
        assert engagement_score([_make_interaction(action=Action.SKIP, read=0.0)]) == 0.0
        assert engagement_score([]) == 0.0
