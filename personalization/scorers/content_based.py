"""Content-based scorer using cosine similarity over category vectors."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

import config
from personalization.features import (
    category_one_hot,
    clamp,
    cosine_similarity,
    preference_vector,
)
from personalization.models import Article, CategoryWeights, ScoreResult
from personalization.scorers.base import Scorer, ScoringContext

logger = logging.getLogger(__name__)

_SIMILARITY_SHARE = 0.7
_DIRECT_SHARE = 0.3

Embedder = Callable[[str], "Sequence[float] | None"]


class ContentBasedScorer(Scorer):
    """Scores an article by how closely its category matches the user's tastes.

    The user's category weights form a vector over the eight top-level
    categories (unseen categories default to ``0.1``).  The article is a
    one-hot vector of its category.  The final score is::

        cosine(user, article) * 0.7 + weight[article.category] * 0.3

    An optional *embedder* may be supplied.  When it produces vectors for
    both the user's preference text and the article text, the embedding
    cosine replaces the one-hot cosine.  Embedder failures fall back to the
    one-hot representation.

    Args:
        embedder: Optional ``text -> vector | None`` callable.
        default_weight: Weight assumed for categories the user has not seen.
    """

    def __init__(
        self,
        embedder: Embedder | None = None,
        default_weight: float = config.DEFAULT_CATEGORY_WEIGHT,
    ) -> None:
        self._embedder = embedder
        self._default_weight = default_weight

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def score(self, context: ScoringContext, article: Article) -> ScoreResult:
        weights = (
            context.profile.behavior.category_weights
            if context.profile is not None
            else CategoryWeights()
        )
        value = self.score_preferences(weights, article)
        if weights.get(article.category, 0.0) >= 0.5:
            return ScoreResult(value, f"you often read {article.category}")
        return ScoreResult(value, "")

    def score_preferences(self, preference_weights: CategoryWeights | dict[str, float], article: Article) -> float:
        """Return the content-based score of *article* for *preference_weights*.

        Args:
            preference_weights: Category → weight mapping (values are clamped).
            article: The candidate article.

        Returns:
            Score in ``[0, 1]``.  A zero preference vector yields a
            similarity of 0 rather than NaN.
        """
        if isinstance(preference_weights, dict):
            preference_weights = CategoryWeights(weights=dict(preference_weights))

        similarity = self._embedding_similarity(preference_weights, article)
        if similarity is None:
            user_vec = preference_vector(preference_weights, self._default_weight)
            similarity = cosine_similarity(user_vec, category_one_hot(article.category))

        direct = preference_weights.get(article.category, self._default_weight)
        return clamp(similarity * _SIMILARITY_SHARE + direct * _DIRECT_SHARE)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _embedding_similarity(self, weights: CategoryWeights, article: Article) -> float | None:
        if self._embedder is None or not weights:
            return None
        preference_text = " ".join(category for category, _ in weights.top(5))
        article_text = " ".join(
            part for part in (article.title, article.content, " ".join(article.keywords)) if part
        )
        try:
            user_vec = self._embedder(preference_text)
            article_vec = self._embedder(article_text or article.category)
        except Exception:
            logger.exception("Embedder failed for article %r; using category vectors.", article.article_id)
            return None
        if user_vec is None or article_vec is None:
            return None
        return cosine_similarity(user_vec, article_vec)
