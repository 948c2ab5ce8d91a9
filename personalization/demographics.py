"""Demographic lookup tables used to infer preferences for readers without history."""

from __future__ import annotations

from dataclasses import dataclass

from personalization.models import Demographics

# Fallback affinity for a category missing from a table.
TABLE_DEFAULT = 0.3

_AGE_GROUPS: list[tuple[int | None, str]] = [
    (25, "young"),
    (35, "young_adult"),
    (50, "middle_aged"),
    (None, "senior"),
]

_AGE_PREFERENCES: dict[str, dict[str, float]] = {
    "young": {"technology": 0.8, "entertainment": 0.7, "sports": 0.6, "politics": 0.3, "business": 0.4},
    "young_adult": {"technology": 0.7, "business": 0.6, "politics": 0.5, "entertainment": 0.5, "sports": 0.5},
    "middle_aged": {"business": 0.7, "politics": 0.6, "health": 0.5, "technology": 0.5, "sports": 0.4},
    "senior": {"politics": 0.8, "health": 0.7, "business": 0.6, "environment": 0.5, "technology": 0.3},
}

_PROFESSION_PREFERENCES: dict[str, dict[str, float]] = {
    "software_engineer": {"technology": 0.9, "business": 0.6, "science": 0.5},
    "doctor": {"health": 0.9, "science": 0.7, "politics": 0.4},
    "teacher": {"education": 0.8, "politics": 0.6, "science": 0.5},
    "business_analyst": {"business": 0.9, "politics": 0.6, "technology": 0.5},
    "journalist": {"politics": 0.8, "business": 0.7, "entertainment": 0.6},
    "student": {"technology": 0.7, "entertainment": 0.6, "sports": 0.5},
}
_PROFESSION_DEFAULT = {"politics": 0.5, "business": 0.5, "technology": 0.5, "entertainment": 0.4}

_COUNTRY_PREFERENCES: dict[str, dict[str, float]] = {
    "US": {"politics": 0.7, "business": 0.8, "technology": 0.8, "sports": 0.7},
    "UK": {"politics": 0.8, "business": 0.7, "entertainment": 0.6, "sports": 0.6},
    "India": {"politics": 0.6, "technology": 0.7, "business": 0.6, "entertainment": 0.8},
    "Germany": {"business": 0.8, "politics": 0.7, "environment": 0.7, "technology": 0.6},
}
_COUNTRY_DEFAULT = {"politics": 0.5, "business": 0.5, "technology": 0.5}

_INTEREST_CATEGORIES: dict[str, str] = {
    "programming": "technology",
    "coding": "technology",
    "ai": "technology",
    "machine learning": "technology",
    "startup": "business",
    "investing": "business",
    "finance": "business",
    "politics": "politics",
    "government": "politics",
    "sports": "sports",
    "football": "sports",
    "basketball": "sports",
    "movies": "entertainment",
    "music": "entertainment",
    "gaming": "entertainment",
    "health": "health",
    "fitness": "health",
    "science": "science",
    "research": "science",
    "environment": "environment",
    "climate": "environment",
}


@dataclass(frozen=True)
class Segment:
    """A predefined reader segment with typical category weights.

    Attributes:
        segment_id: Stable identifier (e.g. ``"students"``).
        name: Human-readable name.
        age_range: Inclusive ``(min, max)`` age.
        professions: Normalised profession keys that belong to the segment.
        weights: Typical category weights for members.
    """

    segment_id: str
    name: str
    age_range: tuple[int, int]
    professions: frozenset[str]
    weights: dict[str, float]

    def matches(self, demographics: Demographics) -> bool:
        if demographics.age is None:
            return False
        low, high = self.age_range
        return low <= demographics.age <= high and normalize_profession(demographics.profession) in self.professions


SEGMENTS: list[Segment] = [
    Segment(
        segment_id="young_professionals",
        name="Young Professionals",
        age_range=(25, 35),
        professions=frozenset({"software_engineer", "business_analyst", "consultant", "designer"}),
        weights={
            "technology": 0.8, "business": 0.7, "politics": 0.5, "entertainment": 0.6,
            "sports": 0.4, "health": 0.5, "science": 0.6, "environment": 0.5,
        },
    ),
    Segment(
        segment_id="senior_executives",
        name="Senior Executives",
        age_range=(40, 65),
        professions=frozenset({"ceo", "director", "manager", "executive"}),
        weights={
            "business": 0.9, "politics": 0.8, "technology": 0.6, "environment": 0.6,
            "health": 0.5, "science": 0.4, "entertainment": 0.3, "sports": 0.4,
        },
    ),
    Segment(
        segment_id="students",
        name="Students",
        age_range=(18, 28),
        professions=frozenset({"student"}),
        weights={
            "technology": 0.7, "entertainment": 0.8, "sports": 0.6, "science": 0.7,
            "politics": 0.4, "business": 0.4, "health": 0.5, "environment": 0.6,
        },
    ),
]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def normalize_profession(profession: str) -> str:
    """``"Software Engineer"`` → ``"software_engineer"``."""
    return "_".join((profession or "").strip().lower().split())


def age_group(age: int | None) -> str:
    if age is None:
        return "unknown"
    for bound, name in _AGE_GROUPS:
        if bound is None or age < bound:
            return name
    return "senior"


def age_preferences(age: int | None) -> dict[str, float]:
    return dict(_AGE_PREFERENCES.get(age_group(age), {}))


def profession_preferences(profession: str) -> dict[str, float]:
    return dict(_PROFESSION_PREFERENCES.get(normalize_profession(profession), _PROFESSION_DEFAULT))


def country_preferences(country: str) -> dict[str, float]:
    return dict(_COUNTRY_PREFERENCES.get(country, _COUNTRY_DEFAULT))


def interest_category(interest: str) -> str | None:
    return _INTEREST_CATEGORIES.get((interest or "").strip().lower())


def interest_preferences(interests: list[str]) -> dict[str, float]:
    """Each recognised interest adds 0.2 to its category."""
    preferences: dict[str, float] = {}
    for interest in interests:
        category = interest_category(interest)
        if category:
            preferences[category] = preferences.get(category, 0.0) + 0.2
    return preferences


def find_segment(demographics: Demographics) -> Segment | None:
    """Return the first predefined segment *demographics* falls into, if any."""
    for segment in SEGMENTS:
        if segment.matches(demographics):
            return segment
    return None
