"""Recommendation engine: routes each request through the right scoring pipeline."""

from __future__ import annotations

import dataclasses
import logging
from concurrent import futures
from datetime import datetime, timezone
from typing import Callable

import config
from personalization.blender import BlendCandidate, BlendWeights, blend
from personalization.cache import RecommendationCache
from personalization.cold_start import ColdStartHandler
from personalization.enrichment import ReasonGenerator, summarize_activity
from personalization.features import clamp, classify_category, popularity
from personalization.models import (
    Article,
    CachedEntry,
    ColdStartState,
    Interaction,
    Pipeline,
    RecommendationRequest,
    RecommendationResponse,
    RecommendationScore,
    UserProfile,
)
from personalization.scorers.base import ScoringContext
from personalization.scorers.cold_start import ColdStartScorer
from personalization.scorers.collaborative import CollaborativeScorer
from personalization.scorers.content_based import ContentBasedScorer
from personalization.scorers.demographic import DemographicScorer
from personalization.store import PreferenceStore

logger = logging.getLogger(__name__)

_FALLBACK_CONFIDENCE = 0.1
_POPULAR_REASON = "Recommended as a popular article"
_LATEST_REASON = "Latest article"


class RecommendationEngine:
    """Produces ranked, explained recommendations for one user at a time.

    Routing is decided by :meth:`ColdStartHandler.state_for
    <personalization.cold_start.ColdStartHandler.state_for>`:

    ==================  ===============================================
    Situation           Pipeline
    ==================  ===============================================
    unknown user        popularity only
    no_history          cold-start handler
    early_interaction   hybrid blender with a cold-start sub-score
    warm                hybrid blender
    ==================  ===============================================

    Per-article scoring runs concurrently on a thread pool; blending and
    sorting run afterwards on the calling thread.  Cache reads happen before
    any scoring and short-circuit on a hit; cache writes happen after.

    Candidates without a category are scored as classified copies; the
    caller's articles are left untouched.

    Missing data never raises.  Any unexpected failure degrades to the
    popularity-only list, then to the latest articles, then to an empty list.

    Args:
        store: Source of profiles and interactions.
        cache: Recommendation cache; a fresh in-memory cache by default.
        cold_start_handler: Cold-start state gate and recommender.
        collaborative: Collaborative scorer.
        content: Content-based scorer.
        demographic: Demographic scorer.
        cold_start_scorer: Per-article cold-start scorer for warming-up users.
        reason_generator: Optional reason enrichment.
        weights: Blend weights; read from :mod:`config` by default.
        clock: Returns the current UTC time.
        max_workers: Scoring thread pool size.
        enrichment_threshold: Minimum score for reason enrichment.
    """

    def __init__(
        self,
        store: PreferenceStore,
        cache: RecommendationCache | None = None,
        cold_start_handler: ColdStartHandler | None = None,
        collaborative: CollaborativeScorer | None = None,
        content: ContentBasedScorer | None = None,
        demographic: DemographicScorer | None = None,
        cold_start_scorer: ColdStartScorer | None = None,
        reason_generator: ReasonGenerator | None = None,
        weights: BlendWeights | None = None,
        clock: Callable[[], datetime] | None = None,
        max_workers: int = config.SCORING_MAX_WORKERS,
        enrichment_threshold: float = config.ENRICHMENT_SCORE_THRESHOLD,
    ) -> None:
        self._store = store
        self._cache = cache or RecommendationCache()
        self._cold_start = cold_start_handler or ColdStartHandler()
        self._collaborative = collaborative or CollaborativeScorer()
        self._content = content or ContentBasedScorer()
        self._demographic = demographic or DemographicScorer()
        self._cold_start_scorer = cold_start_scorer or ColdStartScorer()
        self._reasons = reason_generator or ReasonGenerator()
        self._weights = weights or BlendWeights.from_config()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._executor = futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="scoring")
        self._enrichment_threshold = enrichment_threshold

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get_recommendations(self, request: RecommendationRequest) -> RecommendationResponse:
        """Return up to ``request.limit`` recommendations for ``request.user_id``.

        Args:
            request: The user, candidate pool, history window and limit.

        Returns:
            A :class:`~personalization.models.RecommendationResponse`.  An
            empty candidate pool gives an empty list with ``cache_hit=False``.

        Raises:
            ValueError: If the user id is empty, ``limit`` is not positive or
                ``last_n_interactions`` is negative.
        """
        if not request.user_id:
            raise ValueError("user_id must be non-empty")
        if request.limit <= 0:
            raise ValueError(f"limit must be positive, got {request.limit!r}")
        if request.last_n_interactions < 0:
            raise ValueError(f"last_n_interactions must be >= 0, got {request.last_n_interactions!r}")

        now = self._clock()
        if not request.candidate_pool:
            logger.debug("Empty candidate pool for user %r.", request.user_id)
            return RecommendationResponse(items=[], cache_hit=False, generated_at=now)

        cached = self._cache.get(request.user_id)
        if cached is not None:
            logger.debug("Cache hit for user %r.", request.user_id)
            return RecommendationResponse(
                items=cached.items[: request.limit],
                cache_hit=True,
                generated_at=cached.generated_at,
                pipeline=cached.pipeline,
                confidence=cached.confidence,
            )

        try:
            profile, items, pipeline, confidence = self._personalized(request, now)
            self._enrich(items, profile, {a.article_id: a.title for a in request.candidate_pool})
        except Exception:
            logger.exception("Scoring failed for user %r; serving fallback list.", request.user_id)
            items, pipeline, confidence = self._fallback(request.candidate_pool, request.limit, now)
            return RecommendationResponse(
                items=items, cache_hit=False, generated_at=now, pipeline=pipeline, confidence=confidence
            )

        self._cache.set(
            request.user_id,
            CachedEntry(items=items, generated_at=now, pipeline=pipeline, confidence=confidence),
        )
        logger.info(
            "Served %d recommendations to user %r via %s pipeline.",
            len(items),
            request.user_id,
            pipeline.value,
        )
        return RecommendationResponse(
            items=items, cache_hit=False, generated_at=now, pipeline=pipeline, confidence=confidence
        )

    def invalidate(self, user_id: str) -> None:
        self._cache.invalidate(user_id)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
        self._reasons.shutdown()

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def _personalized(
        self, request: RecommendationRequest, now: datetime
    ) -> tuple[UserProfile | None, list[RecommendationScore], Pipeline, float]:
        pool = classified(request.candidate_pool)
        profile = self._load_profile(request.user_id)
        interactions = self._load_interactions(request.user_id, request.last_n_interactions)

        if profile is None:
            items = popularity_only(pool, request.limit, now)
            return None, items, Pipeline.COLD_START, _FALLBACK_CONFIDENCE

        state = self._cold_start.state_for(interactions)
        logger.debug("User %r is in state %s.", request.user_id, state.value)

        if state is ColdStartState.NO_HISTORY:
            result = self._cold_start.recommend(profile, pool, request.limit, now)
            return profile, result.items, Pipeline.COLD_START, result.confidence

        weights = profile.behavior.category_weights
        if state is ColdStartState.EARLY_INTERACTION:
            if not weights:
                weights = self._cold_start.generate_initial_preferences(profile.demographics, now).category_weights
                weights = self._cold_start.adapt_from_early_interactions(weights, interactions, now)
                profile.behavior.category_weights = weights
            confidence = min(
                max(weights.confidence, self._cold_start.early_confidence(interactions)),
                config.EARLY_CONFIDENCE_CAP,
            )
        else:
            confidence = clamp(weights.confidence)

        items = self._hybrid(
            profile,
            interactions,
            pool,
            request.limit,
            now,
            include_cold_start=state is ColdStartState.EARLY_INTERACTION,
        )
        return profile, items, Pipeline.HYBRID, confidence

    def _hybrid(
        self,
        profile: UserProfile,
        interactions: list[Interaction],
        pool: list[Article],
        limit: int,
        now: datetime,
        include_cold_start: bool,
    ) -> list[RecommendationScore]:
        context = ScoringContext(user_id=profile.user_id, profile=profile, interactions=interactions, now=now)
        candidates = list(
            self._executor.map(lambda article: self._score_article(context, article, include_cold_start), pool)
        )
        return blend(
            candidates,
            now,
            weights=self._weights,
            recent_categories=[i.category for i in interactions if i.category],
            limit=limit,
        )

    def _score_article(self, context: ScoringContext, article: Article, include_cold_start: bool) -> BlendCandidate:
        return BlendCandidate(
            article=article,
            collaborative=self._collaborative.score(context, article),
            content=self._content.score(context, article),
            demographic=self._demographic.score(context, article),
            cold_start=self._cold_start_scorer.score(context, article) if include_cold_start else None,
        )

    def _fallback(
        self, pool: list[Article], limit: int, now: datetime
    ) -> tuple[list[RecommendationScore], Pipeline | None, float]:
        try:
            return popularity_only(pool, limit, now), Pipeline.COLD_START, _FALLBACK_CONFIDENCE
        except Exception:
            logger.exception("Popularity fallback failed; serving latest articles.")
        try:
            return latest_articles(pool, limit), Pipeline.COLD_START, 0.0
        except Exception:
            logger.exception("Static fallback failed; serving an empty list.")
        return [], None, 0.0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_profile(self, user_id: str) -> UserProfile | None:
        try:
            return self._store.get_user_profile(user_id)
        except Exception:
            logger.exception("Failed to load profile for user %r; treating as unknown.", user_id)
            return None

    def _load_interactions(self, user_id: str, limit: int) -> list[Interaction]:
        try:
            return self._store.get_interactions(user_id, limit)
        except Exception:
            logger.exception("Failed to load interactions for user %r; treating as none.", user_id)
            return []

    def _enrich(self, items: list[RecommendationScore], profile: UserProfile | None, titles: dict[str, str]) -> None:
        eligible = [item for item in items if item.score >= self._enrichment_threshold]
        if not eligible:
            return
        results = self._reasons.generate_many(
            summarize_activity(profile),
            [(titles.get(item.article_id) or item.article_id, item.score) for item in eligible],
        )
        for item, result in zip(eligible, results):
            if result.ok:
                item.explanations = [result.reason] + [e for e in item.explanations if e != result.reason]
            elif not item.explanations:
                item.explanations = [result.reason]


# ---------------------------------------------------------------------------
# Candidate preparation
# ---------------------------------------------------------------------------


def classified(pool: list[Article]) -> list[Article]:
    """Return *pool* with uncategorised articles replaced by classified copies."""
    return [a if a.category.strip() else dataclasses.replace(a, category=classify_category(a)) for a in pool]


# ---------------------------------------------------------------------------
# Fallback rankings
# ---------------------------------------------------------------------------


def popularity_only(pool: list[Article], limit: int, now: datetime) -> list[RecommendationScore]:
    """Rank by ``0.7 * popularity + 0.3 * trending`` with no personal signal."""
    items = [
        RecommendationScore(
            article_id=article.article_id,
            score=clamp(0.7 * popularity(article.engagement) + 0.3 * clamp(article.trending_score)),
            category=article.category,
            published_at=article.published_at,
            explanations=[_POPULAR_REASON],
            pipeline=Pipeline.COLD_START,
        )
        for article in pool
    ]
    items.sort(key=lambda r: (-r.score, -r.published_at.timestamp(), r.article_id))
    return items[:limit]


def latest_articles(pool: list[Article], limit: int) -> list[RecommendationScore]:
    ordered = sorted(pool, key=lambda a: (-a.published_at.timestamp(), a.article_id))
    return [
        RecommendationScore(
            article_id=article.article_id,
            score=0.0,
            category=article.category,
            published_at=article.published_at,
            explanations=[_LATEST_REASON],
            pipeline=Pipeline.COLD_START,
        )
        for article in ordered[:limit]
    ]
