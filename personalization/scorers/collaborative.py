"""Collaborative scorer: neutral base boosted by the user's reading breadth."""

from __future__ import annotations

import logging
from typing import Callable

from personalization.features import clamp
from personalization.models import Article, Interaction, ScoreResult
from personalization.scorers.base import Scorer, ScoringContext

logger = logging.getLogger(__name__)

_NEUTRAL_SCORE = 0.5
_MAX_BOOST = 0.3
_SATURATION_ARTICLES = 10

SimilarityLookup = Callable[[str, str], "float | None"]


class CollaborativeScorer(Scorer):
    """Scores an article by how established the user's reading history is.

    Without a user-user similarity model the score is a neutral ``0.5`` plus
    a boost of up to ``0.3`` that grows with the number of distinct articles
    the user has interacted with, saturating at 10::

        score = 0.5 + min(distinct_articles / 10, 1) * 0.3

    A real similarity model can be plugged in via *similarity_lookup*.  When
    it returns a value, that value replaces the breadth-based boost term; when
    it returns ``None`` or raises, the breadth proxy is used.

    Args:
        similarity_lookup: Optional ``(user_id, article_id) -> float | None``
            returning a precomputed similarity in ``[0, 1]``.
    """

    def __init__(self, similarity_lookup: SimilarityLookup | None = None) -> None:
        self._similarity_lookup = similarity_lookup

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def score(self, context: ScoringContext, article: Article) -> ScoreResult:
        value = self.score_interactions(context.user_id, article.article_id, context.interactions)
        if value > _NEUTRAL_SCORE:
            return ScoreResult(value, "readers with similar history engaged with this")
        return ScoreResult(value, "")

    def score_interactions(
        self,
        user_id: str,
        article_id: str,
        recent_interactions: list[Interaction] | None,
    ) -> float:
        """Return the collaborative score for *article_id*.

        Args:
            user_id: The target user.
            article_id: The candidate article.
            recent_interactions: The user's recent interactions; ``None`` or
                empty means no history.

        Returns:
            A score in ``[0.5, 0.8]`` from the breadth proxy, or
            ``0.5 + 0.3 * similarity`` from the similarity lookup.
        """
        similarity = self._lookup(user_id, article_id)
        if similarity is not None:
            return clamp(_NEUTRAL_SCORE + clamp(similarity) * _MAX_BOOST)

        if not recent_interactions:
            return _NEUTRAL_SCORE

        distinct = len({i.article_id for i in recent_interactions})
        boost = min(distinct / _SATURATION_ARTICLES, 1.0) * _MAX_BOOST
        return clamp(_NEUTRAL_SCORE + boost)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _lookup(self, user_id: str, article_id: str) -> float | None:
        if self._similarity_lookup is None:
            return None
        try:
            return self._similarity_lookup(user_id, article_id)
        except Exception:
            logger.exception(
                "Similarity lookup failed for user %r / article %r; using history proxy.",
                user_id,
                article_id,
            )
            return None
