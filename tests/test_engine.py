"""Tests for RecommendationEngine routing, caching and fallbacks."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from personalization.cache import RecommendationCache
from personalization.engine import RecommendationEngine, classified, latest_articles, popularity_only
from personalization.enrichment import EnrichmentClient, ReasonGenerator
from personalization.models import (
    Action,
    Article,
    EngagementMetrics,
    Interaction,
    Pipeline,
    RecommendationRequest,
)
from personalization.scorers.collaborative import CollaborativeScorer
from personalization.store import InMemoryPreferenceStore


TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _make_engine(store, **kwargs) -> RecommendationEngine:
    kwargs.setdefault("enrichment_threshold", 1.1)
    return RecommendationEngine(store=store, cache=RecommendationCache(), clock=lambda: TS, **kwargs)


def _make_reads(user_id: str, category: str, count: int) -> list[Interaction]:
    return [
        Interaction.from_event(
            user_id,
            f"r_{category}_{n}",
            Action.READ,
            TS - timedelta(hours=n + 2),
            read_duration=120.0,
            scroll_depth=0.8,
            category=category,
        )
        for n in range(count)
    ]


def _make_request(user_id: str, pool: list[Article], limit: int = 5) -> RecommendationRequest:
    return RecommendationRequest(user_id=user_id, candidate_pool=pool, limit=limit)


@pytest.fixture
def store() -> InMemoryPreferenceStore:
    return InMemoryPreferenceStore()


@pytest.fixture
def engine(store):
    eng = _make_engine(store)
    yield eng
    eng.shutdown()


def _add_reader(store, profile, reads: int, category: str = "technology") -> None:
    store.upsert_profile(profile)
    for interaction in _make_reads(profile.user_id, category, reads):
        store.append_interaction(interaction)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_empty_user_id(self, engine, sample_articles) -> None:
        with pytest.raises(ValueError):
            engine.get_recommendations(_make_request("", sample_articles))

    def test_non_positive_limit(self, engine, sample_articles) -> None:
        with pytest.raises(ValueError):
            engine.get_recommendations(_make_request("u1", sample_articles, limit=0))

    def test_negative_history_window(self, engine, sample_articles) -> None:
        request = RecommendationRequest("u1", sample_articles, last_n_interactions=-1)
        with pytest.raises(ValueError):
            engine.get_recommendations(request)

    def test_empty_pool(self, engine) -> None:
        response = engine.get_recommendations(_make_request("u1", []))
        assert response.items == []
        assert response.cache_hit is False
        assert response.generated_at == TS


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class TestRouting:
    def test_unknown_user_gets_popularity_list(self, engine, sample_articles) -> None:
        response = engine.get_recommendations(_make_request("nobody", sample_articles))
        assert response.pipeline is Pipeline.COLD_START
        assert response.confidence == pytest.approx(0.1)
        assert [i.article_id for i in response.items] == [
            i.article_id for i in popularity_only(sample_articles, 5, TS)
        ]

    def test_no_history_reader(self, store, engine, sample_articles, student_profile) -> None:
        store.upsert_profile(student_profile)
        response = engine.get_recommendations(_make_request("u_student", sample_articles))
        assert response.pipeline is Pipeline.COLD_START
        assert response.confidence <= 0.3
        assert len(response.items) == 5
        assert all(item.pipeline is Pipeline.COLD_START for item in response.items)

    def test_early_reader_blends_cold_start_score(self, store, engine, sample_articles, tech_reader_profile) -> None:
        _add_reader(store, tech_reader_profile, reads=3)
        response = engine.get_recommendations(_make_request("u_tech", sample_articles))
        assert response.pipeline is Pipeline.HYBRID
        assert 0.7 <= response.confidence <= 0.8
        assert all(item.cold_start_score is not None for item in response.items)

    def test_early_reader_without_weights_is_seeded(self, store, engine, sample_articles, student_profile) -> None:
        _add_reader(store, student_profile, reads=2, category="sports")
        response = engine.get_recommendations(_make_request("u_student", sample_articles))
        assert response.pipeline is Pipeline.HYBRID
        assert 0.0 < response.confidence <= 0.8
        assert len(response.items) == 5

    def test_warm_reader_uses_hybrid_only(self, store, engine, sample_articles, tech_reader_profile) -> None:
        _add_reader(store, tech_reader_profile, reads=12)
        response = engine.get_recommendations(_make_request("u_tech", sample_articles))
        assert response.pipeline is Pipeline.HYBRID
        assert response.confidence == pytest.approx(0.7)
        assert all(item.cold_start_score is None for item in response.items)
        assert all(item.explanations for item in response.items)

    def test_scores_sorted_and_bounded(self, store, engine, sample_articles, tech_reader_profile) -> None:
        _add_reader(store, tech_reader_profile, reads=12)
        items = engine.get_recommendations(_make_request("u_tech", sample_articles, limit=12)).items
        scores = [item.score for item in items]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)

    def test_fresh_article_beats_stale_twin(self, store, engine, tech_reader_profile) -> None:
        _add_reader(store, tech_reader_profile, reads=12)
        engagement = EngagementMetrics(views=300, shares=5, likes=10)
        stale = Article("a_stale", "technology", published_at=TS - timedelta(hours=48), engagement=engagement)
        fresh = Article("z_fresh", "technology", published_at=TS - timedelta(hours=1), engagement=engagement)
        items = engine.get_recommendations(_make_request("u_tech", [stale, fresh])).items
        assert [i.article_id for i in items] == ["z_fresh", "a_stale"]

    def test_identical_inputs_identical_output(self, store, sample_articles, tech_reader_profile) -> None:
        _add_reader(store, tech_reader_profile, reads=12)
        first = _make_engine(store)
        second = _make_engine(store)
        a = first.get_recommendations(_make_request("u_tech", sample_articles)).items
        b = second.get_recommendations(_make_request("u_tech", sample_articles)).items
        first.shutdown()
        second.shutdown()
        assert [(i.article_id, i.score) for i in a] == [(i.article_id, i.score) for i in b]


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    def test_second_call_is_a_cache_hit(self, store, engine, sample_articles, tech_reader_profile) -> None:
        _add_reader(store, tech_reader_profile, reads=12)
        first = engine.get_recommendations(_make_request("u_tech", sample_articles))
        second = engine.get_recommendations(_make_request("u_tech", sample_articles, limit=3))
        assert first.cache_hit is False
        assert second.cache_hit is True
        assert second.items == first.items[:3]
        assert second.pipeline is Pipeline.HYBRID

    def test_invalidate_forces_recompute(self, engine, sample_articles) -> None:
        engine.get_recommendations(_make_request("nobody", sample_articles))
        engine.invalidate("nobody")
        assert engine.get_recommendations(_make_request("nobody", sample_articles)).cache_hit is False

    def test_fallback_results_are_not_cached(self, store, sample_articles, tech_reader_profile) -> None:
        _add_reader(store, tech_reader_profile, reads=12)
        collaborative = MagicMock(spec=CollaborativeScorer)
        collaborative.score.side_effect = RuntimeError("model unavailable")
        eng = _make_engine(store, collaborative=collaborative)
        first = eng.get_recommendations(_make_request("u_tech", sample_articles))
        second = eng.get_recommendations(_make_request("u_tech", sample_articles))
        eng.shutdown()
        assert first.pipeline is Pipeline.COLD_START
        assert first.confidence == pytest.approx(0.1)
        assert second.cache_hit is False


# ---------------------------------------------------------------------------
# Degraded collaborators
# ---------------------------------------------------------------------------


class TestDegradation:
    def test_store_failure_treated_as_unknown_user(self, sample_articles) -> None:
        broken = MagicMock()
        broken.get_user_profile.side_effect = ConnectionError("db down")
        broken.get_interactions.side_effect = ConnectionError("db down")
        eng = _make_engine(broken)
        response = eng.get_recommendations(_make_request("u_tech", sample_articles))
        eng.shutdown()
        assert response.pipeline is Pipeline.COLD_START
        assert len(response.items) == 5

    def test_enrichment_prepends_generated_reason(self, sample_articles) -> None:
        client = MagicMock(spec=EnrichmentClient)
        client.generate_reason.return_value = "Because it is popular today."
        eng = _make_engine(
            InMemoryPreferenceStore(), reason_generator=ReasonGenerator(client), enrichment_threshold=0.0
        )
        items = eng.get_recommendations(_make_request("nobody", sample_articles, limit=2)).items
        eng.shutdown()
        assert all(item.explanations[0] == "Because it is popular today." for item in items)
        titles = {a.title for a in sample_articles}
        assert all(call.args[1] in titles for call in client.generate_reason.call_args_list)

    def test_hung_enrichment_bounded_by_one_timeout(self, sample_articles) -> None:
        release = threading.Event()
        client = MagicMock(spec=EnrichmentClient)
        client.generate_reason.side_effect = lambda summary, title: release.wait(timeout=5) and "late"
        eng = _make_engine(
            InMemoryPreferenceStore(),
            reason_generator=ReasonGenerator(client, timeout_seconds=0.2),
            enrichment_threshold=0.0,
        )
        started = time.monotonic()
        items = eng.get_recommendations(_make_request("nobody", sample_articles, limit=8)).items
        elapsed = time.monotonic() - started
        release.set()
        eng.shutdown()
        assert len(items) == 8
        assert elapsed < 1.0
        assert all(item.explanations == ["Recommended as a popular article"] for item in items)

    def test_failed_enrichment_keeps_existing_reasons(self, sample_articles) -> None:
        client = MagicMock(spec=EnrichmentClient)
        client.generate_reason.side_effect = RuntimeError("quota")
        eng = _make_engine(
            InMemoryPreferenceStore(), reason_generator=ReasonGenerator(client), enrichment_threshold=0.0
        )
        items = eng.get_recommendations(_make_request("nobody", sample_articles, limit=2)).items
        eng.shutdown()
        assert all(item.explanations == ["Recommended as a popular article"] for item in items)


# ---------------------------------------------------------------------------
# Fallback rankings
# ---------------------------------------------------------------------------


class TestFallbackRankings:
    def test_popularity_only_sorted(self, sample_articles) -> None:
        items = popularity_only(sample_articles, 12, TS)
        assert len(items) == 12
        assert [i.score for i in items] == sorted((i.score for i in items), reverse=True)

    def test_latest_articles_newest_first(self) -> None:
        old = Article("a_old", "world", published_at=TS - timedelta(hours=5))
        new = Article("a_new", "world", published_at=TS - timedelta(hours=1))
        items = latest_articles([old, new], 1)
        assert [i.article_id for i in items] == ["a_new"]
        assert items[0].score == 0.0
        assert items[0].explanations == ["Latest article"]


class TestClassification:
    def test_uncategorised_articles_are_classified(self, engine) -> None:
        pool = [
            Article("a_vote", "", published_at=TS, title="Senate passes new election policy"),
            Article("a_cup", "", published_at=TS, title="League match ends in a draw"),
        ]
        items = engine.get_recommendations(_make_request("nobody", pool)).items
        assert {i.article_id: i.category for i in items} == {"a_vote": "politics", "a_cup": "sports"}
        assert [a.category for a in pool] == ["", ""]

    def test_existing_category_is_kept(self, store, engine, tech_reader_profile) -> None:
        _add_reader(store, tech_reader_profile, reads=12)
        pool = [Article("a_misc", "science", published_at=TS, title="Senate passes new election policy")]
        items = engine.get_recommendations(_make_request("u_tech", pool)).items
        assert [i.category for i in items] == ["science"]

    def test_classified_pool_returns_copies(self) -> None:
        original = Article("a1", "", title="New AI software startup")
        tagged = Article("a2", "world")
        result = classified([original, tagged])
        assert result[0] is not original
        assert result[0].category == "technology"
        assert result[1] is tagged
