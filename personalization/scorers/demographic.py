"""Table-driven demographic scorer: age, profession and country affinities."""

from __future__ import annotations

import logging

from personalization.features import clamp, location_relevance
from personalization.models import Article, Demographics, ScoreResult
from personalization.scorers.base import Scorer, ScoringContext

logger = logging.getLogger(__name__)

_AGE_WEIGHT = 0.3
_PROFESSION_WEIGHT = 0.4
_COUNTRY_WEIGHT = 0.2
_LOCATION_BONUS = 0.2

# (exclusive upper age bound, categories); the last bracket has no bound
_AGE_BRACKETS: list[tuple[int | None, tuple[str, ...]]] = [
    (25, ("technology", "entertainment", "sports")),
    (40, ("business", "technology", "health")),
    (60, ("politics", "business", "health")),
    (None, ("politics", "health", "world")),
]

_PROFESSION_CATEGORIES: dict[str, tuple[str, ...]] = {
    "engineer": ("technology", "science", "business"),
    "doctor": ("health", "science", "world"),
    "teacher": ("education", "politics", "world"),
    "business": ("business", "politics", "technology"),
    "student": ("technology", "entertainment", "sports"),
    "default": ("world", "politics", "business"),
}

_COUNTRY_CATEGORIES: dict[str, tuple[str, ...]] = {
    "US": ("politics", "business", "sports"),
    "UK": ("politics", "business", "world"),
    "India": ("technology", "business", "politics"),
    "default": ("world", "politics", "business"),
}


class DemographicScorer(Scorer):
    """Scores an article by how well its category suits the reader's demographics.

    Each lookup table whose category list contains the article's category
    adds a fixed amount:

    ==========  ======
    Table       Weight
    ==========  ======
    Age         0.3
    Profession  0.4
    Country     0.2
    ==========  ======

    On top of that, ``0.2`` times the geographic gain over the article's
    global relevance rewards articles about the reader's country, state or
    city; articles with no geographic match get no bonus.  The sum is capped
    at 1.
    """

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def score(self, context: ScoringContext, article: Article) -> ScoreResult:
        demographics = context.profile.demographics if context.profile is not None else Demographics()
        return self.score_demographics(demographics, article)

    def score_demographics(self, demographics: Demographics, article: Article) -> ScoreResult:
        """Return the demographic score and matching factors for *article*.

        Args:
            demographics: The reader's demographic attributes (all optional).
            article: The candidate article.

        Returns:
            A :class:`~personalization.models.ScoreResult` whose reason lists
            the matching factors, comma-separated.
        """
        category = article.category
        score = 0.0
        reasons: list[str] = []

        if demographics.age is not None and category in age_categories(demographics.age):
            score += _AGE_WEIGHT
            reasons.append("popular with your age group")

        if category in profession_categories(demographics.profession):
            score += _PROFESSION_WEIGHT
            reasons.append("relevant to your profession")

        if category in country_categories(demographics.location.country):
            score += _COUNTRY_WEIGHT
            reasons.append("popular in your country")

        gain = location_relevance(article.location, demographics.location) - clamp(article.location.global_relevance)
        score += _LOCATION_BONUS * max(gain, 0.0)
        if gain > 0.0:
            reasons.append("local or regional relevance")

        return ScoreResult(clamp(score), ", ".join(reasons))


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------


def age_categories(age: int) -> tuple[str, ...]:
    for bound, categories in _AGE_BRACKETS:
        if bound is None or age < bound:
            return categories
    return ()


def profession_categories(profession: str) -> tuple[str, ...]:
    """Categories for *profession*; ``"Software Engineer"`` matches ``engineer``."""
    key = (profession or "").strip().lower()
    if key in _PROFESSION_CATEGORIES:
        return _PROFESSION_CATEGORIES[key]
    for name, categories in _PROFESSION_CATEGORIES.items():
        if name != "default" and name in key:
            return categories
    return _PROFESSION_CATEGORIES["default"]


def country_categories(country: str) -> tuple[str, ...]:
    return _COUNTRY_CATEGORIES.get(country, _COUNTRY_CATEGORIES["default"])
