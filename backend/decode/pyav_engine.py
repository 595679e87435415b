"""
PyAV (FFmpeg) decode engine.

Decodes an in-memory container chunk and samples it at a fixed output
frame rate, producing RGB numpy arrays.

Concurrency:
- The FFmpeg work is CPU-bound and synchronous; it runs in a worker
  thread via asyncio.to_thread so the render loop keeps ticking.
"""

from __future__ import annotations

import asyncio
import io
from typing import Any

import av
import numpy as np

from constants import DECODE_PIXEL_FORMAT, frames_per_segment
from decode.base import DecodeEngine
from errors import DecodeError


class PyAVDecodeEngine(DecodeEngine):
    """
    DecodeEngine backed by PyAV.

    Handles are numpy arrays of shape (height, width, 3).
    """

    def __init__(self, *, pixel_format: str = DECODE_PIXEL_FORMAT) -> None:
        self._pixel_format = pixel_format
        self.released: int = 0

    async def decode(
        self,
        data: bytes,
        *,
        frame_rate: int,
        duration_s: float,
    ) -> list[np.ndarray]:
        if not data:
            raise DecodeError("empty segment payload")
        return await asyncio.to_thread(
            self._decode_sync, data, frame_rate, duration_s
        )

    def release(self, handle: Any) -> None:
        # numpy buffers are reclaimed by the GC once the last reference drops
        self.released += 1

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _decode_sync(
        self,
        data: bytes,
        frame_rate: int,
        duration_s: float,
    ) -> list[np.ndarray]:
        wanted = frames_per_segment(duration_s, frame_rate)
        if wanted <= 0:
            raise DecodeError(
                f"nothing to extract: duration_s={duration_s} frame_rate={frame_rate}"
            )

        try:
            with av.open(io.BytesIO(data), mode="r") as container:
                if not container.streams.video:
                    raise DecodeError("chunk has no video stream")
                stream = container.streams.video[0]
                stream.thread_type = "AUTO"
                images = self._sample(container.decode(stream), wanted, frame_rate)
        except av.error.FFmpegError as exc:
            raise DecodeError(f"{type(exc).__name__}: {exc}") from exc

        if not images:
            raise DecodeError("no frames decoded from chunk")
        return images

    def _sample(
        self,
        frames: Any,
        wanted: int,
        frame_rate: int,
    ) -> list[np.ndarray]:
        """
        Resample decoded frames onto a fixed grid of `wanted` slots.

        Slot k shows the latest source frame whose time is <= k / frame_rate,
        measured from the first decoded frame of the chunk.
        """
        out: list[np.ndarray] = []
        previous: np.ndarray | None = None
        base: float | None = None

        for frame in frames:
            if frame.time is None:
                continue
            if base is None:
                base = frame.time
            rel = frame.time - base

            while previous is not None and len(out) < wanted and len(out) / frame_rate < rel:
                out.append(previous)
            if len(out) >= wanted:
                break

            previous = frame.to_ndarray(format=self._pixel_format)

        if previous is not None and len(out) < wanted:
            out.append(previous)
        return out
