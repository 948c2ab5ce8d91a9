"""Session grouping and reading-pattern recognition."""

from __future__ import annotations

from collections import Counter
from datetime import timedelta

import config
from personalization.models import (
    Action,
    BehaviorPatterns,
    ContentPreferences,
    Interaction,
    ReadingRhythm,
    SessionPattern,
)

_MIN_PATTERN_FREQUENCY = 0.1
_MAX_PATTERNS = 10
_PATTERN_SATURATION = 5
_ENGAGED_ACTIONS = frozenset({Action.SHARE, Action.SAVE, Action.LIKE})


def group_sessions(
    interactions: list[Interaction],
    gap_minutes: int = config.SESSION_GAP_MINUTES,
) -> list[list[Interaction]]:
    """Split *interactions* into sessions separated by gaps over *gap_minutes*.

    Returns:
        Sessions in chronological order, each sorted by timestamp.
    """
    gap = timedelta(minutes=gap_minutes)
    sessions: list[list[Interaction]] = []
    current: list[Interaction] = []
    for interaction in sorted(interactions, key=lambda i: i.timestamp):
        if current and interaction.timestamp - current[-1].timestamp > gap:
            sessions.append(current)
            current = []
        current.append(interaction)
    if current:
        sessions.append(current)
    return sessions


def session_patterns(sessions: list[list[Interaction]]) -> list[SessionPattern]:
    """Find category and action sequences that recur across sessions.

    Every session with at least two interactions contributes one category
    sequence and one action sequence (``"politics -> sports"``).  Patterns
    seen in more than 10% of all sessions are kept, best first, up to 10.
    """
    if not sessions:
        return []
    counts: Counter[tuple[str, str]] = Counter()
    for session in sessions:
        if len(session) < 2:
            continue
        counts[("category", " -> ".join(i.category for i in session))] += 1
        counts[("action", " -> ".join(i.action.value for i in session))] += 1

    total = len(sessions)
    patterns = [
        SessionPattern(
            pattern=pattern,
            frequency=count / total,
            confidence=min(count / _PATTERN_SATURATION, 1.0),
            kind=kind,
        )
        for (kind, pattern), count in counts.items()
        if count / total > _MIN_PATTERN_FREQUENCY
    ]
    patterns.sort(key=lambda p: (-p.frequency, p.pattern))
    return patterns[:_MAX_PATTERNS]


def reading_rhythm(interactions: list[Interaction]) -> ReadingRhythm:
    if not interactions:
        return ReadingRhythm()
    sessions = group_sessions(interactions)
    lengths = [
        (s[-1].timestamp - s[0].timestamp).total_seconds() / 60.0 if len(s) > 1 else 0.0
        for s in sessions
    ]
    reads = [i.read_duration for i in interactions if i.action == Action.READ]
    return ReadingRhythm(
        average_session_minutes=sum(lengths) / len(lengths),
        peak_hours=_top_values(i.time_of_day for i in interactions),
        preferred_days=_top_values(i.day_of_week for i in interactions),
        attention_span=sum(reads) / len(reads) if reads else 0.0,
    )


def content_preferences(interactions: list[Interaction]) -> ContentPreferences:
    """Infer preferred article length, scroll behaviour and engagement level."""
    reads = [i for i in interactions if i.action == Action.READ and i.read_duration > 0]
    if not reads:
        return ContentPreferences()

    average_read = sum(i.read_duration for i in reads) / len(reads)
    if average_read < 120:
        length = "short"
    elif average_read < 300:
        length = "medium"
    else:
        length = "long"

    average_scroll = sum(i.scroll_depth for i in reads) / len(reads)
    if average_scroll < 0.3:
        depth = "skimmer"
    elif average_scroll > 0.8:
        depth = "thorough"
    else:
        depth = "selective"

    rate = sum(1 for i in interactions if i.action in _ENGAGED_ACTIONS) / len(interactions)
    if rate > 0.2:
        engagement = "high"
    elif rate > 0.05:
        engagement = "medium"
    else:
        engagement = "low"

    return ContentPreferences(length=length, depth=depth, engagement=engagement)


def identify_patterns(interactions: list[Interaction]) -> BehaviorPatterns:
    return BehaviorPatterns(
        session_patterns=session_patterns(group_sessions(interactions)),
        rhythm=reading_rhythm(interactions),
        content=content_preferences(interactions),
    )


def _top_values(values, n: int = 3) -> list[int]:
    counts = Counter(values)
    return [value for value, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:n]]
