"""
Decode engine contract.

This module defines the *interface only*. No fetching, buffering, or
scheduling lives here.

Key invariants:
- The engine is a single-instance, non-reentrant resource. Mutual
  exclusion is enforced by SegmentPipeline, not by the engine.
- Each submitted chunk is treated as starting fresh at offset 0,
  never as a continuation of a previous chunk.
- Output is ordered by presentation time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence


class DecodeEngine(ABC):
    """
    Abstract interface for a container-bytes -> still-frames decoder.

    Implementations are responsible for:
    - Decoding a blob of raw container bytes
    - Sampling output at a fixed frame rate for a bounded duration
    - Freeing a frame handle's resources when asked

    Non-responsibilities:
    - No byte-range math (SegmentPipeline owns time -> bytes)
    - No retries
    - No knowledge of segment indices or buffers
    """

    @abstractmethod
    async def decode(
        self,
        data: bytes,
        *,
        frame_rate: int,
        duration_s: float,
    ) -> Sequence[Any]:
        """
        Decode one segment's bytes into an ordered sequence of frame handles.

        Args:
            data: Raw container bytes for one segment.
            frame_rate: Output frames per second.
            duration_s: Length of the window to extract, from offset 0.

        Contract:
        - Returns handles in presentation order.
        - Raises errors.DecodeError if the bytes cannot be decoded.
        - MUST NOT block the event loop for the duration of the decode.
        """
        raise NotImplementedError

    @abstractmethod
    def release(self, handle: Any) -> None:
        """
        Free the resources behind one handle returned by decode().

        Called exactly once per handle by the owner of the frame.
        """
        raise NotImplementedError
