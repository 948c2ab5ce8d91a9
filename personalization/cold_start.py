"""Cold-start handling: state gate, new-reader recommendations and early adaptation."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime

import config
from personalization import demographics as demo
from personalization.features import ACTION_WEIGHTS, clamp, engagement_level
from personalization.models import (
    Action,
    Article,
    CategoryWeights,
    ColdStartState,
    Demographics,
    Interaction,
    Pipeline,
    RecommendationScore,
    TimePreferenceTable,
    UserProfile,
)
from personalization.scorers.cold_start import ColdStartScorer

logger = logging.getLogger(__name__)

# Actions that carry no preference signal for the state gate.
_PASSIVE_ACTIONS = frozenset({Action.VIEW, Action.SKIP})

_ACTION_QUALITY: dict[Action, float] = {
    Action.READ: 1.0,
    Action.SHARE: 0.9,
    Action.SAVE: 0.8,
    Action.LIKE: 0.6,
    Action.CLICK: 0.3,
}

_STATISTICAL_WEIGHTS = {"age": 0.3, "profession": 0.3, "location": 0.2, "interest": 0.2}

_DEFAULT_LOCATION_RELEVANCE = 0.6


@dataclass
class InitialPreferences:
    """Preferences inferred for a reader before any behaviour is known.

    Attributes:
        category_weights: Inferred category weights with their confidence.
        time_preferences: Hour-of-day template.
        content_length: ``"short"``, ``"medium"`` or ``"long"``.
        recency_preference: How strongly the reader favours fresh news.
        location_relevance: How strongly local news should be favoured.
        source: ``"similar_profile"`` or ``"statistical"``.
    """

    category_weights: CategoryWeights
    time_preferences: TimePreferenceTable
    content_length: str = "medium"
    recency_preference: float = 0.6
    location_relevance: float = _DEFAULT_LOCATION_RELEVANCE
    source: str = "statistical"


@dataclass
class ColdStartResult:
    items: list[RecommendationScore] = field(default_factory=list)
    confidence: float = 0.0
    segment_id: str | None = None


class DemographicProfileIndex:
    """Thread-safe index of known-good preference profiles keyed by demographics.

    The key is ``age_group|profession|gender|country|state``.  Lookups try
    an exact key match first, then the first profile sharing the age group
    and profession.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._profiles: dict[str, CategoryWeights] = {}

    @staticmethod
    def key_for(demographics: Demographics) -> str:
        return "|".join(
            [
                demo.age_group(demographics.age),
                demo.normalize_profession(demographics.profession),
                (demographics.gender or "").strip().lower(),
                demographics.location.country,
                demographics.location.state,
            ]
        )

    def add(self, demographics: Demographics, weights: CategoryWeights) -> None:
        with self._lock:
            self._profiles[self.key_for(demographics)] = weights.copy()

    def find(self, demographics: Demographics) -> CategoryWeights | None:
        key = self.key_for(demographics)
        with self._lock:
            if key in self._profiles:
                return self._profiles[key].copy()
            group, profession = key.split("|")[:2]
            for other_key, weights in self._profiles.items():
                other_group, other_profession = other_key.split("|")[:2]
                if other_group == group and other_profession == profession:
                    return weights.copy()
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)


class ColdStartHandler:
    """Recommendations and preference bootstrapping for readers without history.

    Readers move through three states, decided solely by :meth:`state_for`:

    ==================  ==================================================
    State               Meaning
    ==================  ==================================================
    no_history          No meaningful interactions; score by popularity,
                        demographics and trends (confidence <= 0.3).
    early_interaction   Some interactions; adapt weights quickly
                        (learning rate 0.3, confidence <= 0.8).
    warm                Enough interactions for the hybrid blender.
    ==================  ==================================================

    Args:
        scorer: Per-article cold-start scorer.
        profile_index: Index of known profiles for similarity lookups.
        warm_threshold: Meaningful interactions needed to become warm.
        learning_rate: EMA rate used while adapting early interactions.
    """

    def __init__(
        self,
        scorer: ColdStartScorer | None = None,
        profile_index: DemographicProfileIndex | None = None,
        warm_threshold: int = config.WARM_INTERACTION_THRESHOLD,
        learning_rate: float = config.EARLY_LEARNING_RATE,
    ) -> None:
        self._scorer = scorer or ColdStartScorer()
        self._profile_index = profile_index if profile_index is not None else DemographicProfileIndex()
        self._warm_threshold = warm_threshold
        self._learning_rate = learning_rate

    @property
    def profile_index(self) -> DemographicProfileIndex:
        return self._profile_index

    # ------------------------------------------------------------------
    # State gate
    # ------------------------------------------------------------------

    def state_for(self, interactions: list[Interaction] | None) -> ColdStartState:
        """Return the cold-start state implied by *interactions*.

        This is the only place the warm threshold is applied; every caller
        routes through it.
        """
        count = sum(1 for i in interactions or [] if is_meaningful(i))
        if count == 0:
            return ColdStartState.NO_HISTORY
        if count < self._warm_threshold:
            return ColdStartState.EARLY_INTERACTION
        return ColdStartState.WARM

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def recommend(
        self,
        profile: UserProfile | None,
        pool: list[Article],
        limit: int,
        now: datetime,
    ) -> ColdStartResult:
        """Rank *pool* for a reader with no history.

        If the reader falls into a predefined segment, the segment's typical
        weights stand in for the demographic tables.

        Args:
            profile: The reader's profile; ``None`` scores with empty demographics.
            pool: Candidate articles.
            limit: Maximum number of items to return.
            now: Reference time.

        Returns:
            A :class:`ColdStartResult` with at most *limit* items.
        """
        demographics = profile.demographics if profile is not None else Demographics()
        segment = demo.find_segment(demographics)
        segment_weights = segment.weights if segment else None
        if segment:
            logger.debug("Using segment %r for user %r.", segment.segment_id, profile.user_id if profile else None)

        seen_categories: list[str] = []
        scored: list[RecommendationScore] = []
        for article in pool:
            breakdown = self._scorer.score_article(
                article,
                demographics,
                now=now,
                selected_categories=seen_categories,
                segment_weights=segment_weights,
            )
            seen_categories.append(article.category)
            scored.append(
                RecommendationScore(
                    article_id=article.article_id,
                    score=breakdown.score,
                    category=article.category,
                    published_at=article.published_at,
                    demographic_score=breakdown.demographic,
                    cold_start_score=breakdown.score,
                    explanations=[breakdown.explanation],
                    pipeline=Pipeline.COLD_START,
                )
            )

        scored.sort(key=_rank_key)
        # only the strongest 2 * limit candidates compete for diversity slots
        num_categories = len({a.category for a in pool})
        items = apply_diversity_filter(scored[: limit * 2], limit, num_categories)
        return ColdStartResult(
            items=items,
            confidence=config.COLD_START_CONFIDENCE_CAP,
            segment_id=segment.segment_id if segment else None,
        )

    # ------------------------------------------------------------------
    # Preference bootstrapping
    # ------------------------------------------------------------------

    def generate_initial_preferences(self, demographics: Demographics, now: datetime) -> InitialPreferences:
        """Infer starting preferences from demographics alone.

        A similar known profile is adapted when one exists (confidence 0.4);
        otherwise weights come from the statistical tables (confidence 0.3).
        """
        similar = self._profile_index.find(demographics)
        if similar is not None:
            logger.info("Adapting a similar demographic profile for a new reader.")
            weights = adapt_similar_profile(similar, demographics, now)
            source = "similar_profile"
        else:
            weights = statistical_preferences(demographics, now)
            source = "statistical"

        return InitialPreferences(
            category_weights=weights,
            time_preferences=default_time_preferences(),
            content_length=infer_content_length(demographics),
            recency_preference=infer_recency_preference(demographics),
            source=source,
        )

    def adapt_from_early_interactions(
        self,
        weights: CategoryWeights,
        interactions: list[Interaction],
        now: datetime,
    ) -> CategoryWeights:
        """Fold early interactions into *weights* with the fast learning rate.

        Each category moves towards the average engagement weight of its
        interactions by at most the learning rate.  Confidence grows with
        interaction quality and is capped at 0.8.  An empty batch returns
        an unchanged copy.
        """
        adapted = weights.copy()
        if not interactions:
            return adapted

        totals: dict[str, list[float]] = {}
        for interaction in interactions:
            if not interaction.category:
                continue
            totals.setdefault(interaction.category, []).append(early_engagement_weight(interaction))

        rate = self._learning_rate
        for category, values in totals.items():
            observed = clamp(sum(values) / len(values))
            current = adapted.get(category, config.UNSEEN_CATEGORY_PRIOR)
            adapted.set(category, rate * observed + (1 - rate) * current)

        gained = min(adapted.confidence + 0.2 * interaction_quality(interactions), config.EARLY_CONFIDENCE_CAP)
        adapted.confidence = max(adapted.confidence, gained)
        adapted.updated_at = now
        return adapted

    def early_confidence(self, interactions: list[Interaction]) -> float:
        """Confidence for a reader with *interactions* and no other signal."""
        base = config.COLD_START_CONFIDENCE_CAP
        return min(base + 0.2 * interaction_quality(interactions), config.EARLY_CONFIDENCE_CAP)


# ---------------------------------------------------------------------------
# Module helpers
# ---------------------------------------------------------------------------


def is_meaningful(interaction: Interaction) -> bool:
    return interaction.action not in _PASSIVE_ACTIONS


def early_engagement_weight(interaction: Interaction) -> float:
    base = ACTION_WEIGHTS.get(interaction.action, 0.0)
    return max(base * (1 + engagement_level(interaction)), 0.0)


def interaction_quality(interactions: list[Interaction]) -> float:
    """Summed quality of *interactions*; every qualifying action adds a positive amount."""
    total = 0.0
    for interaction in interactions:
        quality = _ACTION_QUALITY.get(interaction.action, 0.0)
        total += quality * (0.5 + 0.5 * engagement_level(interaction))
    return total


def apply_diversity_filter(
    items: list[RecommendationScore],
    limit: int,
    num_categories: int | None = None,
) -> list[RecommendationScore]:
    """Select up to *limit* items while spreading them across categories.

    The first pass walks *items* (best first) and takes at most
    ``ceil(limit / num_categories)`` per category.  The second pass fills any
    free slots with the best remaining items regardless of category.

    Args:
        items: Candidates sorted by descending score.
        limit: Number of items wanted.
        num_categories: Distinct categories in the whole pool; defaults to
            the number of distinct categories in *items*.

    Returns:
        The selected items, sorted by descending score.
    """
    if limit <= 0 or not items:
        return []
    if num_categories is None:
        num_categories = len({item.category for item in items})
    max_per_category = math.ceil(limit / max(num_categories, 1))

    selected: list[RecommendationScore] = []
    chosen: set[int] = set()
    counts: dict[str, int] = {}
    for index, item in enumerate(items):
        if len(selected) >= limit:
            break
        if counts.get(item.category, 0) < max_per_category:
            selected.append(item)
            chosen.add(index)
            counts[item.category] = counts.get(item.category, 0) + 1

    for index, item in enumerate(items):
        if len(selected) >= limit:
            break
        if index not in chosen:
            selected.append(item)

    selected.sort(key=_rank_key)
    return selected


def statistical_preferences(demographics: Demographics, now: datetime) -> CategoryWeights:
    """Blend the age, profession, country and interest tables (default 0.3 each)."""
    tables = {
        "age": demo.age_preferences(demographics.age),
        "profession": demo.profession_preferences(demographics.profession),
        "location": demo.country_preferences(demographics.location.country),
        "interest": demo.interest_preferences(demographics.interests),
    }
    categories = sorted(set().union(*(t.keys() for t in tables.values())))
    weights = CategoryWeights(confidence=config.COLD_START_CONFIDENCE_CAP, updated_at=now)
    for category in categories:
        value = sum(
            _STATISTICAL_WEIGHTS[name] * table.get(category, demo.TABLE_DEFAULT)
            for name, table in tables.items()
        )
        weights.set(category, value)
    return weights


def adapt_similar_profile(similar: CategoryWeights, demographics: Demographics, now: datetime) -> CategoryWeights:
    adapted = similar.copy()
    for interest in demographics.interests:
        category = demo.interest_category(interest)
        if category and adapted.weights.get(category):
            adapted.set(category, adapted.get(category) * config.INTEREST_BOOST)
    adapted.confidence = config.ADAPTED_PROFILE_CONFIDENCE
    adapted.updated_at = now
    return adapted


def default_time_preferences() -> TimePreferenceTable:
    """Morning news, lighter lunch content and evening entertainment."""
    buckets: dict[int, dict[str, float]] = {}
    for hour in range(24):
        if 6 <= hour <= 9:
            buckets[hour] = {"politics": 0.7, "business": 0.8, "technology": 0.6, "health": 0.5}
        elif 12 <= hour <= 14:
            buckets[hour] = {"entertainment": 0.7, "sports": 0.6, "technology": 0.5, "business": 0.4}
        elif 18 <= hour <= 22:
            buckets[hour] = {"entertainment": 0.8, "sports": 0.7, "politics": 0.5, "business": 0.4}
        else:
            buckets[hour] = {"politics": 0.5, "business": 0.5, "technology": 0.5, "entertainment": 0.4}
    return TimePreferenceTable(buckets)


def infer_content_length(demographics: Demographics) -> str:
    profession = (demographics.profession or "").lower()
    if "executive" in profession or "manager" in profession:
        return "short"
    if "researcher" in profession or "academic" in profession:
        return "long"
    if demographics.age is not None and demographics.age < 30:
        return "short"
    return "medium"


def infer_recency_preference(demographics: Demographics) -> float:
    profession = (demographics.profession or "").lower()
    if demographics.age is not None and demographics.age < 30:
        return 0.8
    if "journalist" in profession or "trader" in profession:
        return 0.9
    return 0.6


def _rank_key(item: RecommendationScore) -> tuple[float, float, str]:
    published = item.published_at.timestamp() if item.published_at else 0.0
    return (-item.score, -published, item.article_id)
