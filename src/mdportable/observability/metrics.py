"""Metrics hook protocol and no-op default.

The converter, pipeline and sync engine report counters and timings through
a :class:`MetricsHook`.  Without a configured hook a :class:`NoopMetricsHook`
is used, so call sites never need ``None`` guards.

Emitted metric names:

* ``mdportable.conversions_total``            -- counter, tag ``status``
* ``mdportable.conversion_duration_ms``       -- timing
* ``mdportable.conversion_warnings_total``    -- counter, tag ``code``
* ``mdportable.conversion_degraded_total``    -- counter, tag ``status``
* ``mdportable.sync_attempts_total``          -- counter, tags ``operation``, ``success``
* ``mdportable.sync_failures_total``          -- counter, tag ``error_code``
* ``mdportable.sync_skipped_total``           -- counter (content already applied)
* ``mdportable.sync_duration_ms``             -- timing
* ``mdportable.store_requests_total``         -- counter, tags ``method``, ``status``
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    *tags* is an optional ``str -> str`` mapping that backends may turn into
    labels, tags or name suffixes.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter."""
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
        """Set a gauge to an absolute value."""
        ...


class NoopMetricsHook:
    """Metrics backend that discards every data point."""

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


def resolve_metrics(hook: object | None) -> MetricsHook:
    """Return *hook* or a :class:`NoopMetricsHook` when it is ``None``."""
    if hook is None:
        return NoopMetricsHook()
    return hook  # type: ignore[return-value]
