"""Shared pytest fixtures for all personalization tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from personalization.models import (
    Article,
    BehaviorProfile,
    CategoryWeights,
    Demographics,
    EngagementMetrics,
    Location,
    UserProfile,
)


TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Article fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    return TS


@pytest.fixture
def tech_article() -> Article:
    return Article(
        "a_tech",
        "technology",
        source="Reuters",
        published_at=TS - timedelta(hours=1),
        title="New chip announced",
        engagement=EngagementMetrics(views=500, shares=20, likes=40, comments=5),
        trending_score=0.6,
    )


@pytest.fixture
def sports_article() -> Article:
    return Article(
        "a_sports",
        "sports",
        source="AP",
        published_at=TS - timedelta(hours=1),
        title="Cup final tonight",
        engagement=EngagementMetrics(views=500, shares=20, likes=40, comments=5),
        trending_score=0.6,
    )


@pytest.fixture
def sample_articles() -> list[Article]:
    """Twelve articles over six categories, two per category, all an hour old."""
    categories = ["technology", "sports", "politics", "business", "health", "entertainment"]
    articles = []
    for index, category in enumerate(categories * 2):
        articles.append(
            Article(
                f"a_{index:02d}",
                category,
                published_at=TS - timedelta(hours=1),
                title=f"{category} headline {index}",
                engagement=EngagementMetrics(views=100 * (index + 1), shares=index, likes=2 * index),
                trending_score=0.1 * (index % 6),
            )
        )
    return articles


# ---------------------------------------------------------------------------
# User profile fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def new_user_profile() -> UserProfile:
    """A brand-new user with no demographics and no history."""
    return UserProfile(user_id="u_new", created_at=TS, updated_at=TS)


@pytest.fixture
def student_profile() -> UserProfile:
    """A 22-year-old US student with no history."""
    return UserProfile(
        user_id="u_student",
        demographics=Demographics(age=22, profession="Student", location=Location(country="US")),
        created_at=TS,
        updated_at=TS,
    )


@pytest.fixture
def tech_reader_profile() -> UserProfile:
    """An established reader with a strong technology preference."""
    return UserProfile(
        user_id="u_tech",
        demographics=Demographics(age=30, profession="Software Engineer", location=Location(country="US")),
        behavior=BehaviorProfile(
            category_weights=CategoryWeights(
                {"technology": 0.9, "science": 0.6, "sports": 0.1},
                confidence=0.7,
                updated_at=TS,
            ),
            engagement_score=0.6,
        ),
        created_at=TS,
        updated_at=TS,
    )
