"""Core domain dataclasses shared across all personalization modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _clamp_unit(value: float) -> float:
    """Clamp *value* to ``[0, 1]``; NaN and infinities collapse to 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return min(max(float(value), 0.0), 1.0)


class Action(str, Enum):
    """Kinds of user interaction recorded against an article."""

    VIEW = "view"
    CLICK = "click"
    READ = "read"
    SHARE = "share"
    SAVE = "save"
    LIKE = "like"
    DISLIKE = "dislike"
    SKIP = "skip"


class Pipeline(str, Enum):
    """Which scoring path produced a recommendation."""

    COLLABORATIVE = "collaborative"
    CONTENT = "content"
    DEMOGRAPHIC = "demographic"
    HYBRID = "hybrid"
    COLD_START = "cold_start"


class ColdStartState(str, Enum):
    """Position of a user in the cold-start state machine."""

    NO_HISTORY = "no_history"
    EARLY_INTERACTION = "early_interaction"
    WARM = "warm"


class AnomalyType(str, Enum):
    TIME = "time"
    CATEGORY = "category"
    ENGAGEMENT = "engagement"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------


@dataclass
class Location:
    country: str = ""
    state: str = ""
    city: str = ""


@dataclass
class Demographics:
    """Self-reported demographic attributes.  Every field is optional.

    Attributes:
        age: Age in years, or ``None`` if not given.
        profession: Free-text profession (e.g. ``"Software Engineer"``).
        gender: Free-text gender.
        location: Country / state / city of the reader.
        interests: Free-text interest keywords (e.g. ``"machine learning"``).
    """

    age: int | None = None
    profession: str = ""
    gender: str = ""
    location: Location = field(default_factory=Location)
    interests: list[str] = field(default_factory=list)


@dataclass
class CategoryWeights:
    """Map of category name to preference weight in ``[0, 1]``.

    Weights are clamped both on write (:meth:`set`) and on read (:meth:`get`)
    so an out-of-range value written directly into :attr:`weights` never
    leaks into scoring math.

    Attributes:
        weights: Raw category → weight mapping.
        confidence: How much the weights can be trusted, in ``[0, 1]``.
        updated_at: When the weights were last modified.
    """

    weights: dict[str, float] = field(default_factory=dict)
    confidence: float = 0.0
    updated_at: datetime | None = None

    def get(self, category: str, default: float = 0.0) -> float:
        return _clamp_unit(self.weights.get(category, default))

    def set(self, category: str, value: float) -> None:
        self.weights[category] = _clamp_unit(value)

    def clamped(self) -> dict[str, float]:
        """Return a copy of :attr:`weights` with every value clamped."""
        return {category: _clamp_unit(w) for category, w in self.weights.items()}

    def top(self, n: int) -> list[tuple[str, float]]:
        """Return the *n* highest-weighted categories, best first."""
        ranked = sorted(self.clamped().items(), key=lambda kv: (-kv[1], kv[0]))
        return ranked[:n]

    def copy(self) -> CategoryWeights:
        return CategoryWeights(
            weights=dict(self.weights),
            confidence=self.confidence,
            updated_at=self.updated_at,
        )

    def __bool__(self) -> bool:
        return bool(self.weights)


@dataclass
class TimePreferenceTable:
    """Per-hour category weights.  Hours are 0–23; missing buckets are empty."""

    buckets: dict[int, dict[str, float]] = field(default_factory=dict)

    def get(self, hour: int, category: str) -> float:
        return _clamp_unit(self.buckets.get(hour, {}).get(category, 0.0))

    def hour(self, hour: int) -> dict[str, float]:
        return {c: _clamp_unit(w) for c, w in self.buckets.get(hour, {}).items()}

    def copy(self) -> TimePreferenceTable:
        return TimePreferenceTable({h: dict(b) for h, b in self.buckets.items()})

    def __bool__(self) -> bool:
        return any(self.buckets.values())


@dataclass
class BehaviorProfile:
    """Learned behaviour for a single user.

    Attributes:
        category_weights: EMA-maintained category preferences.
        time_preferences: Hour-of-day category preferences.
        engagement_score: Overall engagement level in ``[0, 1]``.
        interaction_history: IDs of the most recent interactions
            (``"<article_id>@<iso timestamp>"``), newest last.
    """

    category_weights: CategoryWeights = field(default_factory=CategoryWeights)
    time_preferences: TimePreferenceTable = field(default_factory=TimePreferenceTable)
    engagement_score: float = 0.0
    interaction_history: list[str] = field(default_factory=list)


@dataclass
class UserProfile:
    """Everything known about a reader.

    Attributes:
        user_id: Unique identifier.
        demographics: Self-reported attributes.
        raw_preferences: Explicitly stated preferences (free-form strings).
        behavior: Learned behaviour.
        created_at: Profile creation time.
        updated_at: Last modification time.
    """

    user_id: str
    demographics: Demographics = field(default_factory=Demographics)
    raw_preferences: list[str] = field(default_factory=list)
    behavior: BehaviorProfile = field(default_factory=BehaviorProfile)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------


@dataclass
class Interaction:
    """A single user-article event.  Immutable once recorded.

    Attributes:
        user_id: The acting user.
        article_id: The article acted upon.
        action: The kind of interaction.
        timestamp: When it happened (UTC).
        read_duration: Seconds spent reading (``>= 0``).
        scroll_depth: Fraction of the article scrolled, in ``[0, 1]``.
        category: Category of the article at interaction time.
        time_of_day: Hour of day, 0–23.
        day_of_week: Day of week, 0 = Sunday.
        device_type: Optional device label.

    Raises:
        ValueError: If any field is out of range.
    """

    user_id: str
    article_id: str
    action: Action
    timestamp: datetime
    read_duration: float = 0.0
    scroll_depth: float = 0.0
    category: str = ""
    time_of_day: int = 0
    day_of_week: int = 0
    device_type: str = ""

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("user_id must be non-empty")
        self.action = Action(self.action)
        if self.read_duration < 0:
            raise ValueError(f"read_duration must be >= 0, got {self.read_duration!r}")
        if not 0.0 <= self.scroll_depth <= 1.0:
            raise ValueError(f"scroll_depth must be in [0, 1], got {self.scroll_depth!r}")
        if not 0 <= self.time_of_day <= 23:
            raise ValueError(f"time_of_day must be in [0, 23], got {self.time_of_day!r}")
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be in [0, 6], got {self.day_of_week!r}")

    @classmethod
    def from_event(
        cls,
        user_id: str,
        article_id: str,
        action: Action | str,
        timestamp: datetime,
        *,
        read_duration: float = 0.0,
        scroll_depth: float = 0.0,
        category: str = "",
        device_type: str = "",
    ) -> Interaction:
        """Build an interaction, deriving hour and weekday from *timestamp*."""
        return cls(
            user_id=user_id,
            article_id=article_id,
            action=Action(action),
            timestamp=timestamp,
            read_duration=read_duration,
            scroll_depth=scroll_depth,
            category=category,
            time_of_day=timestamp.hour,
            # isoweekday(): Monday=1 .. Sunday=7
            day_of_week=timestamp.isoweekday() % 7,
            device_type=device_type,
        )

    @property
    def key(self) -> str:
        return f"{self.article_id}@{self.timestamp.isoformat()}"


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


@dataclass
class EngagementMetrics:
    views: int = 0
    shares: int = 0
    likes: int = 0
    comments: int = 0


@dataclass
class LocationRelevance:
    """Geographic relevance of an article.

    Attributes:
        country: Country the article is about, or empty.
        state: State / region, or empty.
        city: City, or empty.
        global_relevance: Baseline relevance for every reader, in ``[0, 1]``.
    """

    country: str = ""
    state: str = ""
    city: str = ""
    global_relevance: float = 0.5


@dataclass
class Article:
    """A candidate article.  Read-only from the engine's perspective."""

    article_id: str
    category: str
    source: str = ""
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    title: str = ""
    content: str = ""
    engagement: EngagementMetrics = field(default_factory=EngagementMetrics)
    credibility_score: float = 0.5
    trending_score: float = 0.0
    location: LocationRelevance = field(default_factory=LocationRelevance)
    keywords: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Scoring and responses
# ---------------------------------------------------------------------------


@dataclass
class ScoreResult:
    """Output of a single scorer for one article.  Score is clamped on creation."""

    score: float
    reason: str = ""

    def __post_init__(self) -> None:
        self.score = _clamp_unit(self.score)


@dataclass
class RecommendationScore:
    """A scored, explained recommendation.

    Attributes:
        article_id: The recommended article.
        score: Composite score in ``[0, 1]``.
        category: Category of the article.
        published_at: Publication time (used for tie-breaking).
        collaborative_score: Collaborative sub-score, if computed.
        content_score: Content-based sub-score, if computed.
        demographic_score: Demographic sub-score, if computed.
        cold_start_score: Cold-start sub-score, if computed.
        diversity_penalty: Penalty applied for category repetition.
        time_decay: Freshness multiplier applied.
        explanations: Human-readable reasons.
        pipeline: Which scoring path produced the item.
    """

    article_id: str
    score: float
    category: str = ""
    published_at: datetime | None = None
    collaborative_score: float | None = None
    content_score: float | None = None
    demographic_score: float | None = None
    cold_start_score: float | None = None
    diversity_penalty: float = 0.0
    time_decay: float = 1.0
    explanations: list[str] = field(default_factory=list)
    pipeline: Pipeline = Pipeline.HYBRID

    def __post_init__(self) -> None:
        self.score = _clamp_unit(self.score)


@dataclass
class RecommendationRequest:
    user_id: str
    candidate_pool: list[Article] = field(default_factory=list)
    last_n_interactions: int = 200
    limit: int = 10


@dataclass
class RecommendationResponse:
    items: list[RecommendationScore]
    cache_hit: bool = False
    generated_at: datetime | None = None
    pipeline: Pipeline | None = None
    confidence: float = 0.0


@dataclass
class CachedEntry:
    """Cached recommendation list for one user."""

    items: list[RecommendationScore]
    generated_at: datetime
    pipeline: Pipeline | None = None
    confidence: float = 0.0


# ---------------------------------------------------------------------------
# Behavioural analysis results
# ---------------------------------------------------------------------------


@dataclass
class SessionPattern:
    """A recurring sequence of categories (or actions) within sessions."""

    pattern: str
    frequency: float
    confidence: float
    kind: str = "category"


@dataclass
class ReadingRhythm:
    average_session_minutes: float = 0.0
    peak_hours: list[int] = field(default_factory=list)
    preferred_days: list[int] = field(default_factory=list)
    attention_span: float = 0.0


@dataclass
class ContentPreferences:
    length: str = "medium"
    depth: str = "selective"
    engagement: str = "medium"


@dataclass
class BehaviorPatterns:
    session_patterns: list[SessionPattern] = field(default_factory=list)
    rhythm: ReadingRhythm = field(default_factory=ReadingRhythm)
    content: ContentPreferences = field(default_factory=ContentPreferences)


@dataclass
class BehaviorPrediction:
    """Expected behaviour of a user at a given hour and weekday."""

    category_probabilities: dict[str, float]
    expected_engagement: float
    content_types: list[str]
    confidence: float


@dataclass
class Anomaly:
    type: AnomalyType
    severity: Severity
    description: str
    interaction: Interaction | None = None


@dataclass
class PreferenceUpdate:
    """Result of folding a batch of interactions into a behaviour profile.

    Attributes:
        behavior: The updated behaviour profile (a new object).
        drift_detected: Whether any category moved more than the drift threshold.
        drifted_categories: Categories that triggered the drift flag.
        data_quality: Quality score of the batch, in ``[0, 1]``.
    """

    behavior: BehaviorProfile
    drift_detected: bool = False
    drifted_categories: list[str] = field(default_factory=list)
    data_quality: float = 0.0


@dataclass
class BehavioralTrends:
    consistency: float = 0.0
    diversity: float = 0.0
    recent_changes: list[str] = field(default_factory=list)


@dataclass
class CategoryTrends:
    trending: list[str] = field(default_factory=list)
    declining: list[str] = field(default_factory=list)


@dataclass
class UserInsights:
    """Summary of what the system has learned about a reader.

    Attributes:
        profile_strength: How well-established the profile is, in ``[0, 1]``.
        top_categories: Up to five ``(category, weight)`` pairs, best first.
        peak_hours: Hours with the most activity.
        preferred_length: ``"short"``, ``"medium"`` or ``"long"``.
        engagement_level: ``"low"``, ``"medium"`` or ``"high"``.
        trends: Consistency, diversity and recent changes.
        category_trends: Categories gaining or losing attention this week.
    """

    profile_strength: float = 0.1
    top_categories: list[tuple[str, float]] = field(default_factory=list)
    peak_hours: list[int] = field(default_factory=lambda: [9, 14, 20])
    preferred_length: str = "medium"
    engagement_level: str = "medium"
    trends: BehavioralTrends = field(default_factory=BehavioralTrends)
    category_trends: CategoryTrends = field(default_factory=CategoryTrends)


@dataclass
class TimeSlotSummary:
    """Reading habits within a six-hour slot such as ``"06-12"``."""

    time_slot: str
    top_categories: list[str] = field(default_factory=list)
    average_read_time: float = 0.0
    engagement_rate: float = 0.0


@dataclass
class FuturePreferences:
    next_hour_categories: list[str]
    today_categories: list[str]
    weekly_trend: list[str]
    confidence: float
