"""
Timing helpers for observability.

- Measure durations using monotonic time
- Emit one METRIC_TIMER event per measurement via observability.logger
- Never aggregate

Durations use monotonic time; the event's ts_ms is wall clock.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


@contextmanager
def timed(
    name: str,
    *,
    segment_index: int | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Measure the wrapped block and emit a METRIC_TIMER event.

    Guarantees:
    - Metric is emitted exactly once, also when the block raises
    - Exceptions are never suppressed

    The yielded dict is merged into "details", so the block can attach
    facts it only learns while running (e.g. byte counts):

        with timed("segment_fetch", segment_index=3) as extra:
            data = await fetch()
            extra["bytes"] = len(data)
    """
    extra: dict[str, Any] = {}
    start_ns = time.monotonic_ns()
    try:
        yield extra
    finally:
        duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
        log_event({
            "event_type": "METRIC_TIMER",
            "level": "DEBUG",
            "metric": name,
            "value_ms": duration_ms,
            "segment_index": segment_index,
            "details": {**(details or {}), **extra},
        })
