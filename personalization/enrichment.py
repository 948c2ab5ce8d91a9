"""Optional human-readable reason generation with a bounded timeout and template fallback."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent import futures
from dataclasses import dataclass

import config
from personalization.models import UserProfile

logger = logging.getLogger(__name__)


class EnrichmentError(Exception):
    """Raised or reported when reason generation fails or times out."""


class EnrichmentClient(ABC):
    """External text-generation service used to phrase recommendation reasons."""

    @abstractmethod
    def generate_reason(self, summary: str, title: str) -> str:
        """Return a one-sentence reason why *title* suits a reader described by *summary*."""


@dataclass
class EnrichmentResult:
    """Outcome of a reason request.  Always carries a usable reason.

    Attributes:
        reason: Generated text, or the templated fallback.
        error: The failure that forced the fallback, if any.
    """

    reason: str
    error: EnrichmentError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fallback_reason(score: float) -> str:
    return f"Recommended based on your reading history and interests ({round(score * 100)}% match)"


def summarize_activity(profile: UserProfile | None) -> str:
    """Short plain-text description of a reader's top interests."""
    if profile is None:
        return "A new reader with no reading history."
    top = profile.behavior.category_weights.top(3)
    if not top:
        return "A new reader with no reading history."
    return "Reads mostly " + ", ".join(category for category, _ in top) + "."


class ReasonGenerator:
    """Calls an :class:`EnrichmentClient` without ever blocking the scoring path for long.

    Calls run on a small, long-lived thread pool.  A batch of calls shares a
    single deadline of *timeout_seconds*.  Timeouts, exceptions and blank
    responses all produce the templated fallback.

    Args:
        client: The enrichment client, or ``None`` to always use the template.
        timeout_seconds: Maximum wait per batch of calls.
        max_workers: Size of the worker pool.
    """

    def __init__(
        self,
        client: EnrichmentClient | None = None,
        timeout_seconds: float = config.ENRICHMENT_TIMEOUT_SECONDS,
        max_workers: int = 4,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._executor = (
            futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="enrichment")
            if client is not None
            else None
        )

    def generate(self, summary: str, title: str, score: float) -> EnrichmentResult:
        """Return a reason for recommending *title*.

        Args:
            summary: Activity summary of the reader.
            title: Article title.
            score: Final recommendation score, used by the fallback template.

        Returns:
            An :class:`EnrichmentResult`; ``error`` is set when the fallback was used.
        """
        return self.generate_many(summary, [(title, score)])[0]

    def generate_many(self, summary: str, items: list[tuple[str, float]]) -> list[EnrichmentResult]:
        """Return reasons for several ``(title, score)`` pairs under one shared deadline.

        All calls are submitted up front and awaited together for at most
        *timeout_seconds*, so a hung client delays the batch by one timeout
        however many items it holds.  Unfinished calls get the template.

        Returns:
            One :class:`EnrichmentResult` per item, in input order.
        """
        if self._client is None or self._executor is None:
            return [EnrichmentResult(reason=fallback_reason(score)) for _, score in items]
        if not items:
            return []

        pending = [self._executor.submit(self._client.generate_reason, summary, title) for title, _ in items]
        done, not_done = futures.wait(pending, timeout=self._timeout_seconds)
        for future in not_done:
            future.cancel()
        if not_done:
            logger.warning(
                "Enrichment timed out for %d of %d items after %ss; using template.",
                len(not_done),
                len(items),
                self._timeout_seconds,
            )

        results = []
        for future, (title, score) in zip(pending, items):
            if future in done:
                results.append(self._result_of(future, title, score))
            else:
                error = EnrichmentError(f"reason generation timed out after {self._timeout_seconds}s")
                results.append(EnrichmentResult(reason=fallback_reason(score), error=error))
        return results

    @staticmethod
    def _result_of(future: futures.Future, title: str, score: float) -> EnrichmentResult:
        try:
            reason = future.result()
        except Exception as exc:
            logger.warning("Enrichment failed for %r (%s); using template.", title, exc)
            return EnrichmentResult(reason=fallback_reason(score), error=EnrichmentError(str(exc)))
        if not reason or not reason.strip():
            return EnrichmentResult(reason=fallback_reason(score), error=EnrichmentError("empty reason"))
        return EnrichmentResult(reason=reason.strip())

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
