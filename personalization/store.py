"""Preference store: durable home of profiles and interactions."""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime

from personalization.features import clamp
from personalization.models import Interaction, UserProfile

logger = logging.getLogger(__name__)


class PreferenceStore(ABC):
    """Storage boundary for user profiles and interaction logs.

    Implementations must give read-your-writes consistency per user.
    Values returned are owned by the caller; mutating them does not change
    stored state until :meth:`upsert_profile` is called.
    """

    @abstractmethod
    def get_user_profile(self, user_id: str) -> UserProfile | None:
        """Return the profile for *user_id*, or ``None`` if unknown."""

    @abstractmethod
    def get_interactions(self, user_id: str, limit: int) -> list[Interaction]:
        """Return up to *limit* of the user's interactions, most recent first."""

    @abstractmethod
    def upsert_profile(self, profile: UserProfile) -> None:
        """Insert or replace a profile."""

    @abstractmethod
    def append_interaction(self, interaction: Interaction) -> None:
        """Record a new interaction."""

    @abstractmethod
    def delete_interactions_before(self, cutoff: datetime) -> int:
        """Delete interactions older than *cutoff*; return how many were removed."""


class InMemoryPreferenceStore(PreferenceStore):
    """Thread-safe in-memory :class:`PreferenceStore`.

    Profiles are validated and clamped on write, and deep-copied on both
    read and write so callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._profiles: dict[str, UserProfile] = {}
        self._interactions: dict[str, list[Interaction]] = {}

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        with self._lock:
            profile = self._profiles.get(user_id)
            return copy.deepcopy(profile) if profile is not None else None

    def upsert_profile(self, profile: UserProfile) -> None:
        """Store a sanitised copy of *profile*.

        Raises:
            ValueError: If the profile has no ``user_id``.
        """
        if not profile.user_id:
            raise ValueError("user_id must be non-empty")
        stored = copy.deepcopy(profile)
        weights = stored.behavior.category_weights
        weights.weights = weights.clamped()
        weights.confidence = clamp(weights.confidence)
        stored.behavior.engagement_score = clamp(stored.behavior.engagement_score)
        for hour in list(stored.behavior.time_preferences.buckets):
            if not 0 <= hour <= 23:
                del stored.behavior.time_preferences.buckets[hour]
                continue
            stored.behavior.time_preferences.buckets[hour] = stored.behavior.time_preferences.hour(hour)
        with self._lock:
            self._profiles[stored.user_id] = stored
        logger.debug("Stored profile for user %r.", stored.user_id)

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    def get_interactions(self, user_id: str, limit: int) -> list[Interaction]:
        if limit <= 0:
            return []
        with self._lock:
            log = self._interactions.get(user_id, [])
            recent = sorted(log, key=lambda i: i.timestamp, reverse=True)[:limit]
            return copy.deepcopy(recent)

    def append_interaction(self, interaction: Interaction) -> None:
        with self._lock:
            self._interactions.setdefault(interaction.user_id, []).append(copy.deepcopy(interaction))

    def delete_interactions_before(self, cutoff: datetime) -> int:
        removed = 0
        with self._lock:
            for user_id, log in self._interactions.items():
                kept = [i for i in log if i.timestamp >= cutoff]
                removed += len(log) - len(kept)
                self._interactions[user_id] = kept
        if removed:
            logger.info("Removed %d interactions older than %s.", removed, cutoff.isoformat())
        return removed

    def user_ids(self) -> list[str]:
        with self._lock:
            return sorted(set(self._profiles) | set(self._interactions))
