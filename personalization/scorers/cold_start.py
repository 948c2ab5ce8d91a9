"""Cold-start scorer: popularity, demographic fit and trending signals for new readers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import config
from personalization import demographics as demo
from personalization.features import age_hours, clamp, location_relevance, popularity
from personalization.models import Article, Demographics, ScoreResult
from personalization.scorers.base import Scorer, ScoringContext

logger = logging.getLogger(__name__)

_LOCATION_MULTIPLIER = 0.2
_EMPTY_SELECTION_BONUS = 0.5
_TRENDING_WINDOW_HOURS = 24.0


@dataclass
class ColdStartBreakdown:
    """Per-article components of a cold-start score."""

    article: Article
    score: float
    popularity: float
    demographic: float
    trending: float
    diversity: float
    location: float
    explanation: str = ""
    reasons: list[str] = field(default_factory=list)


class ColdStartScorer(Scorer):
    """Scores articles for readers with no interaction history.

    ::

        base  = 0.4 * popularity + 0.35 * demographic + 0.15 * trending + 0.1 * diversity
        score = base * (1 + location_relevance * 0.2)

    The demographic component blends the age-group table (0.4), the
    profession table (0.4) and interest keyword matches (0.2).  When the
    reader falls into a predefined segment, the caller passes the segment's
    typical weights and those are used directly instead.

    Args:
        weights: ``(popularity, demographic, trending, diversity)`` weights.
    """

    def __init__(
        self,
        weights: tuple[float, float, float, float] = (
            config.COLD_START_POPULARITY_WEIGHT,
            config.COLD_START_DEMOGRAPHIC_WEIGHT,
            config.COLD_START_TRENDING_WEIGHT,
            config.COLD_START_DIVERSITY_WEIGHT,
        ),
    ) -> None:
        self._weights = weights

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def score(self, context: ScoringContext, article: Article) -> ScoreResult:
        demographics = context.profile.demographics if context.profile is not None else Demographics()
        segment = demo.find_segment(demographics)
        breakdown = self.score_article(
            article,
            demographics,
            now=context.now or datetime.now(timezone.utc),
            segment_weights=segment.weights if segment else None,
        )
        return ScoreResult(breakdown.score, ", ".join(breakdown.reasons))

    def score_article(
        self,
        article: Article,
        demographics: Demographics,
        now: datetime,
        selected_categories: list[str] | None = None,
        segment_weights: dict[str, float] | None = None,
    ) -> ColdStartBreakdown:
        """Score *article* for a reader described by *demographics*.

        Args:
            article: The candidate article.
            demographics: The reader's attributes.
            now: Reference time for the trending recency term.
            selected_categories: Categories of articles already scored in
                this pass.  ``None`` or empty gives the neutral bonus.
            segment_weights: Typical weights of the reader's segment, if any.

        Returns:
            A :class:`ColdStartBreakdown` with the clamped final score.
        """
        pop = popularity(article.engagement)
        if segment_weights is not None:
            dem = clamp(segment_weights.get(article.category, demo.TABLE_DEFAULT))
        else:
            dem = self.demographic_match(article, demographics)
        trend = self.trending(article, now)
        div = self.diversity_bonus(article.category, selected_categories or [])
        loc = location_relevance(article.location, demographics.location)

        w_pop, w_dem, w_trend, w_div = self._weights
        base = w_pop * pop + w_dem * dem + w_trend * trend + w_div * div
        final = clamp(base * (1 + loc * _LOCATION_MULTIPLIER))

        reasons = explanation_reasons(article, dem, pop, trend)
        return ColdStartBreakdown(
            article=article,
            score=final,
            popularity=pop,
            demographic=dem,
            trending=trend,
            diversity=div,
            location=loc,
            explanation=format_explanation(reasons),
            reasons=reasons,
        )

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @staticmethod
    def demographic_match(article: Article, demographics: Demographics) -> float:
        category = article.category
        score = demo.age_preferences(demographics.age).get(category, demo.TABLE_DEFAULT) * 0.4
        score += demo.profession_preferences(demographics.profession).get(category, demo.TABLE_DEFAULT) * 0.4
        score += interest_match(article, demographics.interests) * 0.2
        return clamp(score)

    @staticmethod
    def trending(article: Article, now: datetime) -> float:
        recency = max(0.0, 1.0 - age_hours(article.published_at, now) / _TRENDING_WINDOW_HOURS)
        return clamp(clamp(article.trending_score) * 0.7 + recency * 0.3)

    @staticmethod
    def diversity_bonus(category: str, selected_categories: list[str]) -> float:
        if not selected_categories:
            return _EMPTY_SELECTION_BONUS
        same = sum(1 for c in selected_categories if c == category)
        return max(0.0, 1.0 - same / 3)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def interest_match(article: Article, interests: list[str]) -> float:
    """Fraction of *interests* mentioned in the article text; 0.3 with no interests."""
    if not interests:
        return demo.TABLE_DEFAULT
    text = " ".join([article.title, article.content, " ".join(article.keywords)]).lower()
    matches = sum(1 for interest in interests if interest.lower() in text)
    return min(matches / len(interests), 1.0)


def explanation_reasons(article: Article, demographic: float, pop: float, trend: float) -> list[str]:
    reasons = []
    if pop > 0.7:
        reasons.append("popular with readers")
    if demographic > 0.6:
        reasons.append("matches your profile")
    if trend > 0.8:
        reasons.append("trending now")
    if article.credibility_score > 0.8:
        reasons.append("from a trusted source")
    return reasons


def format_explanation(reasons: list[str]) -> str:
    if not reasons:
        return "Recommended as a popular article"
    return f"Recommended because it's {', '.join(reasons)}"
