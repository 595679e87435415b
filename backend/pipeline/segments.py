"""
Segment model and time -> byte window estimation.

Rules:
- Segment status only moves forward:
  PENDING -> FETCHING -> DECODING -> READY | FAILED
- FAILED and READY are terminal.
- Segments are owned by SegmentPipeline; nothing else mutates them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from errors import InvalidSegmentTransition


class SegmentStatus(str, Enum):
    """Lifecycle of one segment's fetch/decode."""

    PENDING = "PENDING"
    FETCHING = "FETCHING"
    DECODING = "DECODING"
    READY = "READY"
    FAILED = "FAILED"


_ALLOWED: dict[SegmentStatus, frozenset[SegmentStatus]] = {
    SegmentStatus.PENDING: frozenset({SegmentStatus.FETCHING, SegmentStatus.FAILED}),
    SegmentStatus.FETCHING: frozenset({SegmentStatus.DECODING, SegmentStatus.FAILED}),
    SegmentStatus.DECODING: frozenset({SegmentStatus.READY, SegmentStatus.FAILED}),
    SegmentStatus.READY: frozenset(),
    SegmentStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class ByteWindow:
    """Inclusive byte range [start_byte, end_byte]."""
    start_byte: int
    end_byte: int

    @property
    def length(self) -> int:
        """Number of bytes covered by the window."""
        return self.end_byte - self.start_byte + 1


@dataclass
class Segment:
    """
    A contiguous playback-time window mapped to a byte window.

    index:
        Assigned by SegmentPipeline in fetch order. Failed attempts
        consume an index; indices are never reused.
    """
    index: int
    start_time_s: float
    duration_s: float
    byte_window: ByteWindow
    status: SegmentStatus = SegmentStatus.PENDING
    frame_count: int = 0
    error: str | None = None

    def transition(self, new_status: SegmentStatus) -> None:
        """
        Move to new_status.

        Raises:
            InvalidSegmentTransition if the move is not strictly forward.
        """
        if new_status not in _ALLOWED[self.status]:
            raise InvalidSegmentTransition(
                f"segment {self.index}: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    def fail(self, reason: str) -> None:
        """Mark FAILED with a reason. No-op if already FAILED."""
        if self.status is SegmentStatus.FAILED:
            return
        self.transition(SegmentStatus.FAILED)
        self.error = reason

    @property
    def is_terminal(self) -> bool:
        """True once READY or FAILED."""
        return not _ALLOWED[self.status]


# ---------------------------------------------------------------------
# Time -> bytes estimation
# ---------------------------------------------------------------------

class ByteRangeEstimator(Protocol):
    """
    Maps a playback-time window to a byte window without indexing the file.

    Pluggable so an index/manifest-based mapping can replace the
    constant-bitrate one without touching pipeline control flow.
    """

    def estimate(self, start_time_s: float, duration_s: float) -> ByteWindow:
        """Return the byte window for [start_time_s, start_time_s + duration_s)."""
        ...  # pylint: disable=unnecessary-ellipsis


class ConstantBitrateEstimator:
    """
    Assumes a fixed number of bytes per second of video.

    Known approximation: on variable-bitrate sources the window drifts
    from true time boundaries, and it is never corrected from decode output.
    """

    def __init__(self, bytes_per_second: int) -> None:
        if bytes_per_second <= 0:
            raise ValueError("bytes_per_second must be > 0")
        self.bytes_per_second = bytes_per_second

    def estimate(self, start_time_s: float, duration_s: float) -> ByteWindow:
        if start_time_s < 0:
            raise ValueError("start_time_s must be >= 0")
        if duration_s <= 0:
            raise ValueError("duration_s must be > 0")

        start_byte = int(start_time_s * self.bytes_per_second)
        end_byte = int((start_time_s + duration_s) * self.bytes_per_second) - 1
        return ByteWindow(start_byte=start_byte, end_byte=max(start_byte, end_byte))
