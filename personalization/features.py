"""Shared feature utilities: category vectors, similarity, decay, popularity and classification."""

from __future__ import annotations

import math
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Sequence

import numpy as np

from personalization.models import (
    Action,
    Article,
    CategoryWeights,
    EngagementMetrics,
    Interaction,
    Location,
    LocationRelevance,
)

CATEGORIES: list[str] = [
    "politics",
    "sports",
    "entertainment",
    "business",
    "technology",
    "health",
    "science",
    "world",
]

_CATEGORY_INDEX = {c: i for i, c in enumerate(CATEGORIES)}

# Base weight of each action when learning preferences.  Negative values mark
# disinterest; they are floored at zero wherever a weight must be non-negative.
ACTION_WEIGHTS: dict[Action, float] = {
    Action.VIEW: 0.1,
    Action.CLICK: 0.3,
    Action.READ: 1.0,
    Action.SHARE: 1.5,
    Action.SAVE: 1.2,
    Action.LIKE: 0.8,
    Action.DISLIKE: -0.5,
    Action.SKIP: -0.2,
}

_POPULARITY_SCALE = math.log(10000)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp *value* into ``[low, high]``.  Non-finite input returns *low*."""
    if value is None or not math.isfinite(value):
        return low
    return min(max(float(value), low), high)


# ---------------------------------------------------------------------------
# Vectors
# ---------------------------------------------------------------------------


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Return the cosine similarity of *a* and *b*, clamped to ``[0, 1]``.

    Zero-magnitude or mismatched vectors yield ``0.0`` rather than NaN.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return clamp(float(np.dot(va, vb) / (norm_a * norm_b)))


def category_one_hot(category: str) -> np.ndarray:
    """One-hot vector over :data:`CATEGORIES`.  Unknown categories give zeros."""
    vec = np.zeros(len(CATEGORIES), dtype=np.float64)
    idx = _CATEGORY_INDEX.get(category)
    if idx is not None:
        vec[idx] = 1.0
    return vec


def preference_vector(weights: CategoryWeights | dict[str, float], default: float = 0.1) -> np.ndarray:
    """Dense preference vector over :data:`CATEGORIES`.

    Categories absent from *weights* take *default*.  Values are clamped.
    """
    if isinstance(weights, CategoryWeights):
        return np.array([weights.get(c, default) for c in CATEGORIES], dtype=np.float64)
    return np.array([clamp(weights.get(c, default)) for c in CATEGORIES], dtype=np.float64)


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def age_hours(published_at: datetime, now: datetime) -> float:
    """Hours elapsed between *published_at* and *now*, never negative."""
    delta = _as_utc(now) - _as_utc(published_at)
    return max(delta.total_seconds() / 3600.0, 0.0)


def time_decay(hours: float, lam: float = 0.1) -> float:
    """Freshness multiplier ``exp(-lam * hours)``; 1 at age 0, monotone decreasing."""
    return math.exp(-lam * max(hours, 0.0))


def interaction_decay(timestamp: datetime, now: datetime, half_life_days: float = 30.0) -> float:
    """Weight of an interaction that happened at *timestamp*, halving every *half_life_days*."""
    days = age_hours(timestamp, now) / 24.0
    return math.pow(0.5, days / half_life_days)


# ---------------------------------------------------------------------------
# Interaction weights
# ---------------------------------------------------------------------------


def action_weight(action: Action) -> float:
    """Non-negative learning weight for *action*."""
    return max(ACTION_WEIGHTS.get(Action(action), 0.0), 0.0)


def engagement_weight(interaction: Interaction) -> float:
    """Engagement-adjusted weight of *interaction*, floored at zero.

    The base action weight is boosted by ``read_duration / 60 * scroll_depth``
    so a long, fully-scrolled read counts more than a glance.
    """
    base = ACTION_WEIGHTS.get(interaction.action, 0.0)
    return max(base * (1.0 + (interaction.read_duration / 60.0) * interaction.scroll_depth), 0.0)


def behavior_weight(interaction: Interaction) -> float:
    """:func:`engagement_weight` clamped to ``[0, 1]``, used as an EMA observation."""
    return clamp(engagement_weight(interaction))


def engagement_level(interaction: Interaction) -> float:
    """Depth of engagement in ``[0, 1]`` from read time and scroll depth."""
    read_part = min(interaction.read_duration / 120.0, 1.0)
    return clamp(0.5 * read_part + 0.5 * interaction.scroll_depth)


# ---------------------------------------------------------------------------
# Article signals
# ---------------------------------------------------------------------------


def total_engagement(metrics: EngagementMetrics) -> int:
    return metrics.views + 5 * metrics.shares + 2 * metrics.likes + 3 * metrics.comments


def popularity(metrics: EngagementMetrics) -> float:
    """Log-scaled popularity in ``[0, 1]``; saturates at 10,000 engagement units."""
    total = max(total_engagement(metrics), 0)
    return clamp(math.log(total + 1) / _POPULARITY_SCALE)


def location_relevance(article_location: LocationRelevance, user_location: Location | None) -> float:
    """Relevance of an article's geography to a reader, in ``[0, 1]``.

    Starts from the article's global relevance and adds 0.3 for a country
    match, a further 0.2 for a state match and 0.3 for a city match.  Each
    finer level only counts when the coarser one matched.
    """
    relevance = article_location.global_relevance
    if user_location is None:
        return clamp(relevance)
    if article_location.country and article_location.country == user_location.country:
        relevance += 0.3
        if article_location.state and article_location.state == user_location.state:
            relevance += 0.2
            if article_location.city and article_location.city == user_location.city:
                relevance += 0.3
    return clamp(relevance)


# ---------------------------------------------------------------------------
# Category classification
# ---------------------------------------------------------------------------

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "politics": ("government", "election", "policy", "parliament", "congress", "senate", "minister", "president"),
    "sports": ("football", "basketball", "soccer", "tennis", "olympics", "championship", "league", "match"),
    "entertainment": ("movie", "music", "celebrity", "hollywood", "concert", "album", "film", "actor"),
    "business": ("market", "stock", "economy", "finance", "company", "revenue", "profit", "investment"),
    "technology": ("ai", "software", "tech", "digital", "innovation", "startup", "app", "platform"),
    "health": ("medical", "health", "disease", "treatment", "vaccine", "hospital", "doctor", "medicine"),
    "science": ("research", "study", "discovery", "experiment", "scientist", "laboratory", "analysis"),
    "world": ("international", "global", "country", "nation", "diplomatic", "foreign", "worldwide"),
}

_UNCLASSIFIED = "world"
_TITLE_WEIGHT = 2


def classify_category(article: Article) -> str:
    """Best-guess category for an article that arrived without one.

    Each category in :data:`CATEGORIES` scores the mean term frequency of its
    keywords over the article's title, content and keyword tags.  Title words
    count twice.  Ties go to the category listed first; an article with no
    keyword hits is filed under ``"world"``.
    """
    title = re.findall(r"[a-z]+", article.title.lower())
    body = re.findall(r"[a-z]+", article.content.lower())
    body += [tag.lower() for tag in article.keywords]
    counts = Counter(body)
    for word in title:
        counts[word] += _TITLE_WEIGHT
    total = sum(counts.values())
    if total == 0:
        return _UNCLASSIFIED

    best, best_score = _UNCLASSIFIED, 0.0
    for category in CATEGORIES:
        keywords = CATEGORY_KEYWORDS[category]
        score = sum(counts[k] for k in keywords) / total / len(keywords)
        if score > best_score:
            best, best_score = category, score
    return best
