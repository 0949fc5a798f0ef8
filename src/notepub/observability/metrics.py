"""Metrics hook protocol and no-op default implementation.

notepub emits counters and timings around API requests, uploads and editor
actions.  A :class:`NoopMetricsHook` is used unless the caller supplies an
object satisfying :class:`MetricsHook`.

Emitted metric names:

* ``notepub.requests_total``            -- counter
* ``notepub.request_duration_ms``       -- timing
* ``notepub.uploads_total``             -- counter
* ``notepub.actions_total``             -- counter
* ``notepub.action_failures_total``     -- counter
* ``notepub.action_retries_total``      -- counter
* ``notepub.reauth_total``              -- counter
* ``notepub.conversion_warnings_total`` -- counter
* ``notepub.run_duration_ms``           -- timing
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that discards every data point."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
