"""Tests for PreferenceManager, the write path of the engine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

import config
from personalization.cache import RecommendationCache
from personalization.cold_start import ColdStartHandler
from personalization.models import Action, CachedEntry, ColdStartState, Interaction
from personalization.preferences import PreferenceManager
from personalization.store import InMemoryPreferenceStore


TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _make_read(user_id: str, category: str = "technology", hours_ago: float = 0.0) -> Interaction:
    return Interaction.from_event(
        user_id,
        f"a_{category}_{hours_ago}",
        Action.READ,
        TS - timedelta(hours=hours_ago),
        read_duration=150.0,
        scroll_depth=0.9,
        category=category,
    )


@pytest.fixture
def store() -> InMemoryPreferenceStore:
    return InMemoryPreferenceStore()


@pytest.fixture
def cache() -> RecommendationCache:
    return RecommendationCache()


@pytest.fixture
def handler() -> ColdStartHandler:
    return ColdStartHandler()


@pytest.fixture
def manager(store, cache, handler) -> PreferenceManager:
    return PreferenceManager(store, cache, cold_start_handler=handler, clock=lambda: TS)


# ---------------------------------------------------------------------------
# track_interaction
# ---------------------------------------------------------------------------


class TestTrackInteraction:
    def test_unknown_user_is_stored_only(self, manager, store) -> None:
        assert manager.track_interaction(_make_read("ghost")) is None
        assert len(store.get_interactions("ghost", 10)) == 1
        assert store.get_user_profile("ghost") is None

    def test_early_reader_adapts_quickly(self, manager, store, tech_reader_profile) -> None:
        store.upsert_profile(tech_reader_profile)
        interaction = _make_read("u_tech", "science")
        assert manager.track_interaction(interaction) is ColdStartState.EARLY_INTERACTION
        behavior = store.get_user_profile("u_tech").behavior
        assert behavior.category_weights.get("science") != pytest.approx(0.6)
        assert 0.7 < behavior.category_weights.confidence <= 0.8
        assert behavior.interaction_history == [interaction.key]

    def test_reader_without_weights_is_seeded(self, manager, store, student_profile) -> None:
        store.upsert_profile(student_profile)
        manager.track_interaction(_make_read("u_student", "sports"))
        behavior = store.get_user_profile("u_student").behavior
        assert behavior.category_weights
        assert "sports" in behavior.category_weights.weights
        assert len(behavior.time_preferences.buckets) == 24

    def test_warm_reader_feeds_profile_index(self, manager, store, handler, tech_reader_profile) -> None:
        store.upsert_profile(tech_reader_profile)
        for hours in range(1, 10):
            store.append_interaction(_make_read("u_tech", hours_ago=hours))
        assert manager.track_interaction(_make_read("u_tech")) is ColdStartState.WARM
        assert len(handler.profile_index) == 1
        assert store.get_user_profile("u_tech").behavior.engagement_score > 0.0

    def test_history_is_capped(self, manager, store, tech_reader_profile) -> None:
        tech_reader_profile.behavior.interaction_history = [f"old{n}" for n in range(config.MAX_INTERACTION_HISTORY)]
        store.upsert_profile(tech_reader_profile)
        interaction = _make_read("u_tech")
        manager.track_interaction(interaction)
        history = store.get_user_profile("u_tech").behavior.interaction_history
        assert len(history) == config.MAX_INTERACTION_HISTORY
        assert history[0] == "old1"
        assert history[-1] == interaction.key

    def test_invalidates_cached_recommendations(self, manager, store, cache, tech_reader_profile) -> None:
        store.upsert_profile(tech_reader_profile)
        cache.set("u_tech", CachedEntry(items=[], generated_at=TS))
        manager.track_interaction(_make_read("u_tech"))
        assert cache.get("u_tech") is None


# ---------------------------------------------------------------------------
# Batch updates and retention
# ---------------------------------------------------------------------------


class TestUpdatePreferences:
    def test_unknown_user(self, manager) -> None:
        assert manager.update_preferences("ghost", [_make_read("ghost")]) is None

    def test_empty_batch_leaves_profile_untouched(self, manager, store, tech_reader_profile) -> None:
        store.upsert_profile(tech_reader_profile)
        update = manager.update_preferences("u_tech", [])
        assert update.behavior.category_weights.get("technology") == pytest.approx(0.9)
        assert store.get_user_profile("u_tech").updated_at == TS

    def test_batch_moves_weights(self, manager, store, tech_reader_profile) -> None:
        store.upsert_profile(tech_reader_profile)
        manager.update_preferences("u_tech", [_make_read("u_tech", "sports")])
        assert store.get_user_profile("u_tech").behavior.category_weights.get("sports") > 0.1

    def test_clean_old_interactions(self, manager, store) -> None:
        store.append_interaction(_make_read("u1", hours_ago=24 * 400))
        store.append_interaction(_make_read("u1", hours_ago=1))
        assert manager.clean_old_interactions() == 1
        assert len(store.get_interactions("u1", 10)) == 1


# ---------------------------------------------------------------------------
# Profiles and insights
# ---------------------------------------------------------------------------


class TestProfiles:
    def test_stated_preferences_create_profile(self, manager, store) -> None:
        profile = manager.update_stated_preferences("u_new", ["  climate ", "", "   ", "chess"])
        assert profile.raw_preferences == ["climate", "chess"]
        assert store.get_user_profile("u_new").raw_preferences == ["climate", "chess"]

    def test_ensure_initial_preferences_seeds_empty_weights(self, manager, store, student_profile) -> None:
        store.upsert_profile(student_profile)
        behavior = manager.ensure_initial_preferences("u_student")
        assert behavior.category_weights.confidence == pytest.approx(0.3)
        assert store.get_user_profile("u_student").behavior.category_weights

    def test_ensure_initial_preferences_keeps_existing(self, manager, store, tech_reader_profile) -> None:
        store.upsert_profile(tech_reader_profile)
        behavior = manager.ensure_initial_preferences("u_tech")
        assert behavior.category_weights.weights == {"technology": 0.9, "science": 0.6, "sports": 0.1}

    def test_ensure_initial_preferences_unknown_user(self, manager) -> None:
        assert manager.ensure_initial_preferences("ghost") is None

    def test_insights_for_unknown_user(self, manager) -> None:
        insights = manager.get_user_insights("ghost")
        assert insights.profile_strength == pytest.approx(0.1)
