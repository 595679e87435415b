"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout by default
- No buffering, no batching
- Events below the configured level are dropped
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_min_level: int = _LEVELS["INFO"]


def set_log_level(level: str) -> None:
    """
    Set the minimum level for emitted events.

    Unknown level names fall back to INFO.
    """
    global _min_level  # pylint: disable=global-statement
    _min_level = _LEVELS.get(level.upper(), _LEVELS["INFO"])


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event.

    The caller supplies a dict with at least "event_type". This function:
    - Fills "ts_ms" (wall clock) and "level" (INFO) when absent
    - Drops the event if its level is below the configured minimum
    - Writes exactly one line, flushed immediately
    - Never raises
    """
    level = str(event.get("level", "INFO")).upper()
    if _LEVELS.get(level, _LEVELS["INFO"]) < _min_level:
        return

    payload: dict[str, Any] = {
        "ts_ms": int(time.time() * 1000),
        "level": level,
        **event,
    }

    try:
        line = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Logging must never crash the player loop
        fallback: dict[str, Any] = {
            "ts_ms": payload.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
