"""Abstract base class for all per-article scoring models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from personalization.models import Article, Interaction, ScoreResult, UserProfile


@dataclass
class ScoringContext:
    """Per-request inputs shared by every scorer.

    Attributes:
        user_id: The user being scored for.
        profile: The user's profile, or ``None`` when unknown.
        interactions: The user's most recent interactions, newest first.
        now: Reference time for freshness calculations.
    """

    user_id: str
    profile: UserProfile | None
    interactions: list[Interaction] = field(default_factory=list)
    now: datetime | None = None


class Scorer(ABC):
    """Abstract base class for all scoring models.

    Each scorer maps a single ``(user, article)`` pair to a
    :class:`~personalization.models.ScoreResult` in ``[0, 1]``.  Scorers are
    stateless with respect to requests, so the
    :class:`~personalization.engine.RecommendationEngine` may call them
    concurrently for different articles.
    """

    @abstractmethod
    def score(self, context: ScoringContext, article: Article) -> ScoreResult:
        """Return the score and a short reason for *article*.

        Args:
            context: Per-request user data.
            article: The candidate article.

        Returns:
            A :class:`~personalization.models.ScoreResult` with the score
            clamped to ``[0, 1]``.  Implementations must not raise for
            missing user data; they return a neutral score instead.
        """
