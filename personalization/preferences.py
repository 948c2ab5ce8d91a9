"""Preference manager: turns tracked interactions into updated profiles."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

import config
from personalization.behavior.analyzer import BehavioralAnalyzer
from personalization.cache import RecommendationCache
from personalization.cold_start import ColdStartHandler
from personalization.models import (
    BehaviorProfile,
    ColdStartState,
    Interaction,
    PreferenceUpdate,
    UserInsights,
    UserProfile,
)
from personalization.store import PreferenceStore

logger = logging.getLogger(__name__)


class PreferenceManager:
    """Write path of the engine.

    Every mutation goes through the store and invalidates the user's cached
    recommendations, so the next read reflects the new profile.

    Args:
        store: Profile and interaction storage.
        cache: Recommendation cache to invalidate on change.
        cold_start_handler: State gate and early-adaptation logic.
        analyzer: Behavioural analyzer used for warm users.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: PreferenceStore,
        cache: RecommendationCache,
        cold_start_handler: ColdStartHandler | None = None,
        analyzer: BehavioralAnalyzer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._cold_start = cold_start_handler or ColdStartHandler()
        self._analyzer = analyzer or BehavioralAnalyzer()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    def track_interaction(self, interaction: Interaction, now: datetime | None = None) -> ColdStartState | None:
        """Record *interaction* and fold it into the reader's preferences.

        Readers below the warm threshold adapt quickly from their early
        interactions; warm readers get the regular EMA update.  Interactions
        from readers without a profile are stored but change no weights.

        Args:
            interaction: The interaction to record.
            now: Reference time; the manager's clock by default.

        Returns:
            The reader's cold-start state after the interaction, or ``None``
            if the reader has no profile.
        """
        now = now or self._clock()
        self._store.append_interaction(interaction)
        user_id = interaction.user_id

        profile = self._store.get_user_profile(user_id)
        if profile is None:
            logger.info("Interaction from unknown user %r stored without a preference update.", user_id)
            self._cache.invalidate(user_id)
            return None

        history = self._store.get_interactions(user_id, config.DEFAULT_INTERACTION_WINDOW)
        state = self._cold_start.state_for(history)
        behavior = profile.behavior

        if state is ColdStartState.WARM:
            update = self._analyzer.update_preferences(behavior, [interaction], now)
            behavior = update.behavior
            self._cold_start.profile_index.add(profile.demographics, behavior.category_weights)
        else:
            if not behavior.category_weights:
                initial = self._cold_start.generate_initial_preferences(profile.demographics, now)
                behavior.category_weights = initial.category_weights
                if not behavior.time_preferences:
                    behavior.time_preferences = initial.time_preferences
            behavior.category_weights = self._cold_start.adapt_from_early_interactions(
                behavior.category_weights, [interaction], now
            )

        behavior.interaction_history.append(interaction.key)
        del behavior.interaction_history[: -config.MAX_INTERACTION_HISTORY]
        behavior.engagement_score = self._analyzer.engagement_score(history)

        profile.behavior = behavior
        profile.updated_at = now
        self._store.upsert_profile(profile)
        self._cache.invalidate(user_id)
        logger.debug(
            "Tracked %s on %r for user %r (%s).",
            interaction.action.value,
            interaction.article_id,
            user_id,
            state.value,
        )
        return state

    def update_preferences(
        self, user_id: str, new_interactions: list[Interaction], now: datetime | None = None
    ) -> PreferenceUpdate | None:
        """Apply a batch EMA update to a reader's stored behaviour.

        Returns:
            The :class:`~personalization.models.PreferenceUpdate`, or ``None``
            if the reader has no profile.
        """
        now = now or self._clock()
        profile = self._store.get_user_profile(user_id)
        if profile is None:
            logger.info("Skipping preference update for unknown user %r.", user_id)
            return None

        update = self._analyzer.update_preferences(profile.behavior, new_interactions, now)
        if not new_interactions:
            return update

        profile.behavior = update.behavior
        profile.updated_at = now
        self._store.upsert_profile(profile)
        self._cache.invalidate(user_id)
        return update

    def clean_old_interactions(
        self, now: datetime | None = None, retention_days: int = config.INTERACTION_RETENTION_DAYS
    ) -> int:
        """Delete interactions older than *retention_days*; return the count removed."""
        now = now or self._clock()
        return self._store.delete_interactions_before(now - timedelta(days=retention_days))

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def update_stated_preferences(
        self, user_id: str, raw_preferences: list[str], now: datetime | None = None
    ) -> UserProfile:
        """Replace the reader's explicitly stated preferences, creating the profile if needed."""
        now = now or self._clock()
        profile = self._store.get_user_profile(user_id) or UserProfile(user_id=user_id, created_at=now)
        profile.raw_preferences = [p.strip() for p in raw_preferences if p and p.strip()]
        profile.updated_at = now
        self._store.upsert_profile(profile)
        self._cache.invalidate(user_id)
        logger.info("Updated stated preferences for user %r.", user_id)
        return profile

    def ensure_initial_preferences(self, user_id: str, now: datetime | None = None) -> BehaviorProfile | None:
        """Seed demographic-based preferences for a reader whose weights are empty.

        Returns:
            The reader's behaviour profile, or ``None`` if the reader is unknown.
        """
        now = now or self._clock()
        profile = self._store.get_user_profile(user_id)
        if profile is None:
            return None
        if profile.behavior.category_weights:
            return profile.behavior

        initial = self._cold_start.generate_initial_preferences(profile.demographics, now)
        profile.behavior.category_weights = initial.category_weights
        profile.behavior.time_preferences = initial.time_preferences
        profile.updated_at = now
        self._store.upsert_profile(profile)
        self._cache.invalidate(user_id)
        logger.info("Generated %s initial preferences for user %r.", initial.source, user_id)
        return profile.behavior

    def get_user_insights(self, user_id: str, now: datetime | None = None) -> UserInsights:
        now = now or self._clock()
        profile = self._store.get_user_profile(user_id)
        interactions = self._store.get_interactions(user_id, config.MAX_INTERACTION_HISTORY)
        return self._analyzer.user_insights(profile, interactions, now)
