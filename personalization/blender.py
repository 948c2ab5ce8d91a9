"""Hybrid blender: weighted combination of scorer outputs with freshness and diversity."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime

import config
from personalization.features import age_hours, clamp, time_decay
from personalization.models import Article, Pipeline, RecommendationScore, ScoreResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlendWeights:
    """Linear weights for the three scoring models."""

    collaborative: float = 0.4
    content: float = 0.4
    demographic: float = 0.2

    @classmethod
    def from_config(cls) -> BlendWeights:
        return cls(
            collaborative=config.BLEND_WEIGHT_COLLABORATIVE,
            content=config.BLEND_WEIGHT_CONTENT,
            demographic=config.BLEND_WEIGHT_DEMOGRAPHIC,
        )

    def normalized(self) -> BlendWeights:
        """Return weights scaled to sum to 1.  All-zero weights split evenly."""
        values = [max(self.collaborative, 0.0), max(self.content, 0.0), max(self.demographic, 0.0)]
        total = sum(values)
        if total <= 0.0:
            return BlendWeights(1 / 3, 1 / 3, 1 / 3)
        return BlendWeights(*(v / total for v in values))


@dataclass
class BlendCandidate:
    """Scorer outputs for one article, ready for blending.

    Attributes:
        article: The candidate article.
        collaborative: Collaborative scorer output.
        content: Content-based scorer output.
        demographic: Demographic scorer output.
        cold_start: Cold-start scorer output, only for users still warming up.
    """

    article: Article
    collaborative: ScoreResult
    content: ScoreResult
    demographic: ScoreResult
    cold_start: ScoreResult | None = None


def blend(
    candidates: list[BlendCandidate],
    now: datetime,
    weights: BlendWeights | None = None,
    recent_categories: list[str] | None = None,
    limit: int | None = None,
    decay_lambda: float = config.TIME_DECAY_LAMBDA,
    diversity_step: float = config.DIVERSITY_PENALTY_STEP,
    diversity_cap: float = config.DIVERSITY_PENALTY_CAP,
    cold_start_weight: float = config.COLD_START_BLEND_WEIGHT,
) -> list[RecommendationScore]:
    """Blend scorer outputs into a ranked, explained recommendation list.

    For every candidate::

        base    = w_c * collaborative + w_t * content + w_d * demographic
        base    = (1 - cold_start_weight) * base + cold_start_weight * cold_start   # if present
        penalty = min((selected_same_category + recent_same_category) * step, cap)
        final   = base * exp(-lambda * age_hours) * (1 - penalty)

    Selection is greedy: each round picks the highest final score among the
    remaining candidates, recomputing the penalty against what has already
    been picked.  Ties are broken by the more recently published article,
    then by article id, so identical inputs always give identical output.

    Args:
        candidates: Per-article scorer outputs.
        now: Reference time for the freshness decay.
        weights: Blend weights; defaults to :meth:`BlendWeights.from_config`.
        recent_categories: Categories of the user's recent interactions.
        limit: Maximum number of items to return; ``None`` returns all.
        decay_lambda: Freshness decay rate per hour.
        diversity_step: Penalty per same-category item.
        diversity_cap: Maximum penalty.
        cold_start_weight: Share given to the cold-start sub-score.

    Returns:
        Recommendations sorted by descending score.
    """
    w = (weights or BlendWeights.from_config()).normalized()
    recent_counts = Counter(recent_categories or [])
    target = len(candidates) if limit is None else max(limit, 0)

    prepared = []
    for candidate in candidates:
        base = (
            w.collaborative * candidate.collaborative.score
            + w.content * candidate.content.score
            + w.demographic * candidate.demographic.score
        )
        if candidate.cold_start is not None:
            base = (1 - cold_start_weight) * base + cold_start_weight * candidate.cold_start.score
        decay = time_decay(age_hours(candidate.article.published_at, now), decay_lambda)
        prepared.append((candidate, clamp(base), decay))

    selected_counts: Counter[str] = Counter()
    results: list[RecommendationScore] = []
    remaining = list(prepared)

    while remaining and len(results) < target:
        best_index = 0
        best_key = None
        best_penalty = 0.0
        for index, (candidate, base, decay) in enumerate(remaining):
            category = candidate.article.category
            penalty = min((selected_counts[category] + recent_counts[category]) * diversity_step, diversity_cap)
            key = _rank_key(base * decay * (1 - penalty), candidate.article)
            if best_key is None or key < best_key:
                best_index, best_key, best_penalty = index, key, penalty

        candidate, base, decay = remaining.pop(best_index)
        selected_counts[candidate.article.category] += 1
        results.append(_to_score(candidate, base, decay, best_penalty))

    results.sort(key=lambda r: (-r.score, -(r.published_at.timestamp() if r.published_at else 0.0), r.article_id))
    logger.debug("Blended %d candidates into %d recommendations.", len(candidates), len(results))
    return results


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _rank_key(final: float, article: Article) -> tuple[float, float, str]:
    return (-final, -article.published_at.timestamp(), article.article_id)


def _to_score(candidate: BlendCandidate, base: float, decay: float, penalty: float) -> RecommendationScore:
    final = clamp(base * decay * (1 - penalty))
    sub_results = [candidate.collaborative, candidate.content, candidate.demographic]
    if candidate.cold_start is not None:
        sub_results.append(candidate.cold_start)
    explanations = merge_reasons(sub_results)
    if not explanations:
        explanations = [
            f"Recommended based on your reading history and interests ({round(final * 100)}% match)"
        ]
    return RecommendationScore(
        article_id=candidate.article.article_id,
        score=final,
        category=candidate.article.category,
        published_at=candidate.article.published_at,
        collaborative_score=candidate.collaborative.score,
        content_score=candidate.content.score,
        demographic_score=candidate.demographic.score,
        cold_start_score=candidate.cold_start.score if candidate.cold_start is not None else None,
        diversity_penalty=penalty,
        time_decay=decay,
        explanations=explanations,
        pipeline=Pipeline.HYBRID,
    )


def merge_reasons(results: list[ScoreResult]) -> list[str]:
    """Split comma-separated reasons, dropping blanks and duplicates in order."""
    seen: list[str] = []
    for result in results:
        for part in result.reason.split(", "):
            part = part.strip()
            if part and part not in seen:
                seen.append(part)
    return seen
