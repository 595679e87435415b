"""
Ordered, bounded buffer of decoded frames awaiting display.

Rules:
- Append-only at the tail (SegmentPipeline), pop-only at the head
  (PlaybackScheduler)
- Keys (segment_index, sequence_in_segment) strictly increasing
- A batch is appended atomically: all frames become visible or none do
- Every frame that enters the buffer leaves it released or popped
- Deterministic, synchronous behavior
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, Optional

from constants import MAX_BUFFERED_FRAMES
from errors import BufferOverflow, OutOfOrderFrame
from pipeline.frames import Frame, FrameKey


class FrameBuffer:
    """
    FIFO of Frame objects with an ordering guard and a hard size cap.

    After clear() the buffer is closed: frames appended by a pipeline call
    that was still in flight are released on arrival and counted in
    discarded_after_clear. reopen() starts a new session.
    """

    def __init__(self, *, max_buffered_frames: int = MAX_BUFFERED_FRAMES) -> None:
        if max_buffered_frames <= 0:
            raise ValueError("max_buffered_frames must be > 0")

        self._max_frames: int = max_buffered_frames
        self._frames: Deque[Frame] = deque()
        self._tail_key: Optional[FrameKey] = None
        self._closed: bool = False
        self.discarded_after_clear: int = 0

    # -------------------------
    # Core operations
    # -------------------------

    def append(self, frames: Iterable[Frame]) -> int:
        """
        Append an ordered batch at the tail.

        Returns:
            Number of frames made visible to the consumer (0 if closed).

        Raises:
            OutOfOrderFrame if the batch is not strictly increasing or does
            not start after the current tail key.
            BufferOverflow if the batch would exceed max_buffered_frames.
            In both cases nothing is appended.
        """
        batch = list(frames)
        if not batch:
            return 0

        if self._closed:
            for frame in batch:
                frame.release()
            self.discarded_after_clear += len(batch)
            return 0

        prev = self._tail_key
        for frame in batch:
            if prev is not None and frame.key <= prev:
                raise OutOfOrderFrame(
                    f"frame {frame.key} does not follow {prev}"
                )
            prev = frame.key

        if len(self._frames) + len(batch) > self._max_frames:
            raise BufferOverflow(
                f"append of {len(batch)} frames exceeds cap "
                f"({len(self._frames)}/{self._max_frames} held)"
            )

        self._frames.extend(batch)
        self._tail_key = prev
        return len(batch)

    def pop_front(self) -> Optional[Frame]:
        """
        Remove and return the lowest-keyed frame.

        Returns None if the buffer is empty. Never blocks.
        """
        if not self._frames:
            return None
        return self._frames.popleft()

    def peek(self) -> Optional[Frame]:
        """View the head frame without removing it."""
        return self._frames[0] if self._frames else None

    def clear(self) -> int:
        """
        Release every held frame and close the buffer.

        Returns:
            Number of frames released.
        """
        released = 0
        while self._frames:
            if self._frames.popleft().release():
                released += 1
        self._closed = True
        return released

    def reopen(self) -> None:
        """
        Accept appends again after clear().

        The tail key is kept so stale segments can never slip in behind
        frames that were already accepted.
        """
        self._closed = False

    # -------------------------
    # Introspection helpers
    # -------------------------

    def __len__(self) -> int:
        return len(self._frames)

    def is_empty(self) -> bool:
        """Check if the buffer is empty."""
        return not self._frames

    @property
    def closed(self) -> bool:
        """True between clear() and reopen()."""
        return self._closed

    @property
    def tail_key(self) -> Optional[FrameKey]:
        """Key of the most recently accepted frame, None if nothing was ever accepted."""
        return self._tail_key

    @property
    def max_buffered_frames(self) -> int:
        """Hard cap on held frames."""
        return self._max_frames

    def count_for_segment(self, segment_index: int) -> int:
        """
        Number of held frames originating from segment_index.

        Frames are ordered, so the scan stops at the first later segment.
        """
        count = 0
        for frame in self._frames:
            if frame.segment_index > segment_index:
                break
            if frame.segment_index == segment_index:
                count += 1
        return count

    def snapshot(self) -> dict[str, object]:
        """
        Lightweight snapshot for logging.
        """
        head = self.peek()
        return {
            "frames": len(self._frames),
            "max_frames": self._max_frames,
            "head_key": list(head.key) if head else None,
            "tail_key": list(self._tail_key) if self._tail_key else None,
            "closed": self._closed,
            "discarded_after_clear": self.discarded_after_clear,
        }
