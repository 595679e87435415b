"""
Decoded frame primitive.

A Frame wraps one opaque decode-engine handle together with its position
in playback order. Its only behavior is exactly-once release.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional


FrameKey = tuple[int, int]


@dataclass(eq=False)
class Frame:
    """
    One decoded still image awaiting display.

    segment_index:
        Index of the originating Segment.

    sequence_in_segment:
        0-based emission order within that segment's decode output.

    handle:
        Opaque engine output (e.g. an RGB numpy array). Never inspected
        by the pipeline.

    on_release:
        Engine hook freeing the handle. Invoked at most once.
    """
    segment_index: int
    sequence_in_segment: int
    handle: Any
    on_release: Optional[Callable[[Any], None]] = field(default=None, repr=False)
    released: bool = field(default=False, init=False)

    @property
    def key(self) -> FrameKey:
        """Ordering key (segment_index, sequence_in_segment)."""
        return (self.segment_index, self.sequence_in_segment)

    def release(self) -> bool:
        """
        Free the underlying handle.

        Returns:
            True on the first call, False on any later call (no-op).
        """
        if self.released:
            return False
        self.released = True
        if self.on_release is not None:
            self.on_release(self.handle)
        self.handle = None
        return True
