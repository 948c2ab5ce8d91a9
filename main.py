"""Entry point: wires all components and runs a sample recommendation pass."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone

import config
from personalization.behavior.analyzer import BehavioralAnalyzer
from personalization.cache import RecommendationCache
from personalization.cold_start import ColdStartHandler
from personalization.engine import RecommendationEngine
from personalization.enrichment import EnrichmentClient, ReasonGenerator
from personalization.features import CATEGORIES
from personalization.models import (
    Action,
    Article,
    Demographics,
    EngagementMetrics,
    Interaction,
    Location,
    LocationRelevance,
    RecommendationRequest,
    RecommendationResponse,
    UserProfile,
)
from personalization.preferences import PreferenceManager
from personalization.scorers.cold_start import ColdStartScorer
from personalization.store import InMemoryPreferenceStore, PreferenceStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_SOURCES = ["Reuters", "AP", "BBC", "The Guardian", "Bloomberg"]
_COUNTRIES = ["US", "UK", "India", "Germany"]


def build_engine(
    store: PreferenceStore | None = None,
    cache: RecommendationCache | None = None,
    enrichment_client: EnrichmentClient | None = None,
) -> tuple[RecommendationEngine, PreferenceManager]:
    """Construct the engine and preference manager with shared collaborators.

    Args:
        store: Preference store; in-memory by default.
        cache: Recommendation cache; in-memory by default.
        enrichment_client: Optional reason generation service.

    Returns:
        ``(engine, manager)`` sharing one store, cache and cold-start handler.
    """
    store = store or InMemoryPreferenceStore()
    cache = cache or RecommendationCache(ttl_seconds=config.CACHE_TTL_SECONDS)
    cold_start_scorer = ColdStartScorer()
    cold_start = ColdStartHandler(scorer=cold_start_scorer)

    engine = RecommendationEngine(
        store=store,
        cache=cache,
        cold_start_handler=cold_start,
        cold_start_scorer=cold_start_scorer,
        reason_generator=ReasonGenerator(enrichment_client),
    )
    manager = PreferenceManager(
        store=store,
        cache=cache,
        cold_start_handler=cold_start,
        analyzer=BehavioralAnalyzer(),
    )
    return engine, manager


def sample_articles(count: int, now: datetime, seed: int = 7) -> list[Article]:
    """Return *count* deterministic demo articles published within the last two days."""
    rng = random.Random(seed)
    articles = []
    for index in range(count):
        category = CATEGORIES[index % len(CATEGORIES)]
        articles.append(
            Article(
                article_id=f"{category[:3]}_{index:03d}",
                category=category,
                source=rng.choice(_SOURCES),
                published_at=now - timedelta(hours=rng.uniform(0, 48)),
                title=f"{category.title()} story {index}",
                engagement=EngagementMetrics(
                    views=rng.randint(0, 5000),
                    shares=rng.randint(0, 300),
                    likes=rng.randint(0, 800),
                    comments=rng.randint(0, 200),
                ),
                credibility_score=round(rng.uniform(0.4, 1.0), 2),
                trending_score=round(rng.random(), 2),
                location=LocationRelevance(country=rng.choice(_COUNTRIES)),
            )
        )
    return articles


def main() -> None:
    """Take one reader from cold start through their first reads, logging each pass."""
    now = datetime.now(timezone.utc)
    store = InMemoryPreferenceStore()
    engine, manager = build_engine(store=store)
    pool = sample_articles(24, now)

    profile = UserProfile(
        user_id="demo_reader",
        demographics=Demographics(
            age=29,
            profession="Software Engineer",
            location=Location(country="US", state="CA"),
            interests=["machine learning"],
        ),
        created_at=now,
        updated_at=now,
    )
    store.upsert_profile(profile)
    manager.ensure_initial_preferences(profile.user_id, now)

    request = RecommendationRequest(user_id=profile.user_id, candidate_pool=pool, limit=5)
    _log_response("cold start", engine.get_recommendations(request))

    for offset, article in enumerate(a for a in pool if a.category in ("technology", "science")):
        interaction = Interaction.from_event(
            profile.user_id,
            article.article_id,
            Action.READ,
            now - timedelta(minutes=5 * offset),
            read_duration=180.0,
            scroll_depth=0.9,
            category=article.category,
        )
        manager.track_interaction(interaction, now)
    _log_response("after reading", engine.get_recommendations(request))

    insights = manager.get_user_insights(profile.user_id, now)
    logger.info("Top categories: %s", insights.top_categories)
    engine.shutdown()


def _log_response(label: str, response: RecommendationResponse) -> None:
    logger.info(
        "[%s] pipeline=%s confidence=%.2f cache_hit=%s",
        label,
        response.pipeline.value if response.pipeline else None,
        response.confidence,
        response.cache_hit,
    )
    for item in response.items:
        logger.info("  %-10s %-14s %.3f  %s", item.article_id, item.category, item.score, "; ".join(item.explanations))


if __name__ == "__main__":
    main()
