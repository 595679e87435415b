"""
Segment pipeline: playback time -> byte window -> bytes -> frames -> buffer.

Responsibilities:
- Map a start time to a byte window via the configured estimator
- Drive RangeFetcher then DecodeEngine for exactly one segment per call
- Publish the decoded batch atomically to FrameBuffer
- Track segment lifecycle and end of resource

Non-responsibilities:
- NO retries (the caller re-issues advance() for the same start time)
- NO decision about *when* to fetch (PlaybackScheduler owns the trigger)
- NO display or release of frames after publication

Concurrency:
- The decode engine is non-reentrant. A second advance() while one is
  outstanding raises PipelineBusy immediately; requests are never queued.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from constants import OUTPUT_FRAME_RATE, SEGMENT_DURATION_S
from decode.base import DecodeEngine
from errors import (
    BufferOverflow,
    DecodeError,
    EndOfContent,
    FetchError,
    OutOfOrderFrame,
    PipelineBusy,
    RangeNotSatisfiable,
)
from fetch.range_fetcher import RangeFetcher, RangeResponse
from observability.logger import log_event
from observability.metrics import timed
from pipeline.frame_buffer import FrameBuffer
from pipeline.frames import Frame
from pipeline.segments import (
    ByteRangeEstimator,
    ByteWindow,
    Segment,
    SegmentStatus,
)


class SegmentPipeline:
    """
    Producer side of the player.

    Guarantees:
    - At most one advance() in flight
    - Segment indices strictly increase in fetch order, never reused
    - A failed segment contributes no frames
    - Frames of a ready segment enter the buffer as one batch
    """

    def __init__(
        self,
        *,
        resource_url: str,
        fetcher: RangeFetcher,
        engine: DecodeEngine,
        buffer: FrameBuffer,
        estimator: ByteRangeEstimator,
        segment_duration_s: float = SEGMENT_DURATION_S,
        frame_rate: int = OUTPUT_FRAME_RATE,
        content_length: int | None = None,
    ) -> None:
        if segment_duration_s <= 0:
            raise ValueError("segment_duration_s must be > 0")
        if frame_rate <= 0:
            raise ValueError("frame_rate must be > 0")

        self._url = resource_url
        self._fetcher = fetcher
        self._engine = engine
        self._buffer = buffer
        self._estimator = estimator
        self._segment_duration_s = segment_duration_s
        self._frame_rate = frame_rate

        self._content_length: int | None = content_length
        self._exhausted: bool = False
        self._busy: bool = False
        self._next_index: int = 0
        self._segments: list[Segment] = []

    # ------------------------------------------------------------------
    # Observables
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        """True while an advance() call is outstanding."""
        return self._busy

    @property
    def exhausted(self) -> bool:
        """True once a segment reached (or a request ran past) the end of the resource."""
        return self._exhausted

    @property
    def content_length(self) -> int | None:
        """Resource length in bytes, once reported by the server."""
        return self._content_length

    @property
    def next_index(self) -> int:
        """Index the next segment will receive."""
        return self._next_index

    @property
    def segments(self) -> Sequence[Segment]:
        """History of segments in fetch order (read-only view)."""
        return tuple(self._segments)

    @property
    def segment_duration_s(self) -> float:
        """Playback-time length of each segment."""
        return self._segment_duration_s

    def rewind(self) -> None:
        """
        Allow fetching from the start of the resource again.

        Indices keep increasing; the known content length is kept.
        """
        if self._busy:
            raise PipelineBusy("cannot rewind while a segment is in flight")
        self._exhausted = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def advance(self, start_time_s: float) -> Segment:
        """
        Fetch, decode and publish the segment starting at start_time_s.

        Returns:
            The READY segment.

        Raises:
            PipelineBusy if a previous call is still outstanding.
            EndOfContent if start_time_s maps past the end of the resource.
            FetchError / DecodeError if this segment could not be produced.
        """
        if self._busy:
            raise PipelineBusy(
                f"advance({start_time_s}) while segment {self._next_index - 1} is in flight"
            )

        window = self._window_for(start_time_s)
        if window is None:
            self._exhausted = True
            log_event({
                "event_type": "end_of_content",
                "start_time_s": start_time_s,
                "content_length": self._content_length,
            })
            raise EndOfContent(f"start_time_s={start_time_s} is past the end of the resource")

        self._busy = True
        segment = Segment(
            index=self._next_index,
            start_time_s=start_time_s,
            duration_s=self._segment_duration_s,
            byte_window=window,
        )
        self._next_index += 1
        self._segments.append(segment)

        try:
            return await self._produce(segment)
        except asyncio.CancelledError:
            segment.fail("cancelled")
            log_event({
                "event_type": "segment_cancelled",
                "segment_index": segment.index,
            })
            raise
        finally:
            self._busy = False

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _window_for(self, start_time_s: float) -> ByteWindow | None:
        window = self._estimator.estimate(start_time_s, self._segment_duration_s)
        if self._content_length is None:
            return window
        if window.start_byte >= self._content_length:
            return None
        if window.end_byte >= self._content_length:
            return ByteWindow(window.start_byte, self._content_length - 1)
        return window

    async def _produce(self, segment: Segment) -> Segment:
        response = await self._fetch(segment)

        segment.transition(SegmentStatus.DECODING)
        handles = await self._decode(segment, response)

        frames = [
            Frame(
                segment_index=segment.index,
                sequence_in_segment=i,
                handle=handle,
                on_release=self._engine.release,
            )
            for i, handle in enumerate(handles)
        ]

        try:
            self._buffer.append(frames)
        except (OutOfOrderFrame, BufferOverflow) as exc:
            for frame in frames:
                frame.release()
            self._fail(segment, exc)
            raise

        segment.frame_count = len(frames)
        segment.transition(SegmentStatus.READY)
        if response.reaches_end:
            self._exhausted = True

        log_event({
            "event_type": "segment_ready",
            "segment_index": segment.index,
            "start_time_s": segment.start_time_s,
            "frames": len(frames),
            "bytes": len(response.data),
            "reaches_end": response.reaches_end,
            "buffer": self._buffer.snapshot(),
        })
        return segment

    async def _fetch(self, segment: Segment) -> RangeResponse:
        segment.transition(SegmentStatus.FETCHING)
        window = segment.byte_window

        try:
            with timed("segment_fetch", segment_index=segment.index) as extra:
                response = await self._fetcher.fetch_range(
                    self._url, window.start_byte, window.end_byte
                )
                extra["bytes"] = len(response.data)
        except RangeNotSatisfiable as exc:
            self._fail(segment, exc)
            self._exhausted = True
            if self._content_length is None:
                self._content_length = window.start_byte
            raise EndOfContent(
                f"segment {segment.index} starts past the end of the resource"
            ) from exc
        except FetchError as exc:
            self._fail(segment, exc)
            raise

        if response.total_length is not None:
            self._content_length = response.total_length
        return response

    async def _decode(self, segment: Segment, response: RangeResponse) -> list[object]:
        try:
            with timed("segment_decode", segment_index=segment.index) as extra:
                handles = list(
                    await self._engine.decode(
                        response.data,
                        frame_rate=self._frame_rate,
                        duration_s=self._segment_duration_s,
                    )
                )
                extra["frames"] = len(handles)
        except DecodeError as exc:
            self._fail(segment, exc)
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            wrapped = DecodeError(f"{type(exc).__name__}: {exc}")
            self._fail(segment, wrapped)
            raise wrapped from exc

        if not handles:
            wrapped = DecodeError("decode produced no frames")
            self._fail(segment, wrapped)
            raise wrapped
        return handles

    def _fail(self, segment: Segment, exc: BaseException) -> None:
        segment.fail(f"{type(exc).__name__}: {exc}")
        log_event({
            "event_type": "segment_failed",
            "level": "WARNING",
            "segment_index": segment.index,
            "start_time_s": segment.start_time_s,
            "byte_window": [segment.byte_window.start_byte, segment.byte_window.end_byte],
            "error_type": type(exc).__name__,
            "error": str(exc),
            "status": getattr(exc, "status", None),
        })
