"""
Playback scheduler: fixed-cadence consumer of the frame buffer.

Responsibilities:
- Own the STOPPED / PLAYING / PAUSED control state
- Pop one frame per tick, hand it to the render sink, release it
- Decide when SegmentPipeline fetches the next segment (low watermark)
- Detect end of content (auto-pause) and starvation after a failure (stalled)

Non-responsibilities:
- NO byte math, fetching or decoding
- NO automatic retry of failed segments (see retry())

Scheduling model:
- Single asyncio loop. The ticker is an explicit task with a deadline-based
  sleep and is cancelled on pause/stop; it never reschedules itself.
- Prefetch runs as a separate task. tick() never awaits it; its completion
  only affects later ticks.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Optional

from constants import (
    BUFFER_LOG_INTERVAL_TICKS,
    OUTPUT_FRAME_RATE,
    PREFETCH_MARGIN_FRAMES,
    tick_interval_s,
)
from errors import DecodeError, EndOfContent, FetchError, PlaybackError, RenderError
from observability.logger import log_event
from pipeline.frame_buffer import FrameBuffer
from pipeline.frames import Frame
from pipeline.segment_pipeline import SegmentPipeline
from playback.sink import RenderSink
from playback.state import PlaybackState, PlayerState


class PlaybackScheduler:
    """
    Consumer side of the player and sole trigger of SegmentPipeline.

    Guarantees:
    - Frames are displayed in buffer order, each released exactly once
    - At most one advance() outstanding, and only when the buffer holds no
      more than the prefetch margin
    - An empty buffer while a fetch is outstanding is never end of content
    - A failed segment starves playback into `stalled`, never crashes it
    - A render sink failure pauses playback; play() resumes it

    auto_tick=False leaves the cadence to the caller (tests drive tick()).
    """

    def __init__(
        self,
        *,
        pipeline: SegmentPipeline,
        buffer: FrameBuffer,
        sink: RenderSink,
        frame_rate: int = OUTPUT_FRAME_RATE,
        prefetch_margin_frames: int = PREFETCH_MARGIN_FRAMES,
        auto_tick: bool = True,
    ) -> None:
        if prefetch_margin_frames < 0:
            raise ValueError("prefetch_margin_frames must be >= 0")

        self._pipeline = pipeline
        self._buffer = buffer
        self._sink = sink
        self._tick_interval_s = tick_interval_s(frame_rate)
        self._margin = prefetch_margin_frames
        self._auto_tick = auto_tick

        self._state = PlayerState.STOPPED
        self._playback = PlaybackState(current_segment_index=pipeline.next_index)

        self._ticker: Optional[asyncio.Task[None]] = None
        self._prefetch: Optional[asyncio.Task[None]] = None

        # Per-session bookkeeping, reset by _begin_session()
        self._session = 0
        self._next_start_time_s = 0.0
        self._buffered_through: Optional[int] = None
        self._last_error: Optional[PlaybackError] = None
        self._end_of_content = False
        self._stall_reported = False
        self._ticks = 0
        self._late_ticks = 0

    # ------------------------------------------------------------------
    # Observables
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlayerState:
        """Current control state."""
        return self._state

    @property
    def is_playing(self) -> bool:
        """Externally observable play/pause signal."""
        return self._state is PlayerState.PLAYING

    @property
    def playback(self) -> PlaybackState:
        """Immutable progress snapshot. Treat as read-only."""
        return self._playback

    @property
    def prefetch_in_flight(self) -> bool:
        """True while an advance() started by this scheduler is outstanding."""
        return self._prefetch is not None

    @property
    def last_error(self) -> Optional[PlaybackError]:
        """
        Failure of the most recent segment request (until retry()) or of
        the render sink (until play() resumes).
        """
        return self._last_error

    @property
    def end_of_content(self) -> bool:
        """True once no further segment exists for this session."""
        return self._end_of_content or self._pipeline.exhausted

    @property
    def buffering(self) -> bool:
        """Playing, nothing to show, but a segment is on its way."""
        return self.is_playing and self._buffer.is_empty() and self.prefetch_in_flight

    @property
    def stalled(self) -> bool:
        """
        Playing with an empty buffer and nothing pending because the
        last segment request failed. Distinct from end of content.
        """
        return (
            self.is_playing
            and self._buffer.is_empty()
            and not self.prefetch_in_flight
            and self._last_error is not None
            and not self.end_of_content
        )

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def play(self) -> None:
        """
        STOPPED | PAUSED -> PLAYING.

        From STOPPED a new session starts at time 0, as it does when the
        buffer was cleared behind the scheduler's back. From PAUSED playback
        resumes at the next unconsumed buffered frame and a render failure
        is forgotten. Must be called from within a running event loop.
        """
        if self._state is PlayerState.PLAYING:
            return
        if self._state is PlayerState.STOPPED or (
            self._buffer.closed and self._prefetch is None
        ):
            self._begin_session()
        elif isinstance(self._last_error, RenderError):
            self._last_error = None

        self._set_state(PlayerState.PLAYING)
        self._maybe_prefetch()

        if self._auto_tick:
            self._ticker = asyncio.create_task(self._run_ticker())

    def pause(self) -> None:
        """
        PLAYING -> PAUSED. Buffered frames are kept and an outstanding
        prefetch is allowed to finish.
        """
        if self._state is not PlayerState.PLAYING:
            return
        self._set_state(PlayerState.PAUSED)

    async def stop(self) -> None:
        """
        Any -> STOPPED.

        Cancels the ticker and the in-flight prefetch, then releases every
        buffered frame. Late frames from a prefetch that still completes are
        discarded by the closed buffer.
        """
        self._session += 1
        ticker, self._ticker = self._ticker, None
        self._set_state(PlayerState.STOPPED)

        prefetch, self._prefetch = self._prefetch, None
        if prefetch is not None:
            prefetch.cancel()
            await asyncio.gather(prefetch, return_exceptions=True)

        if ticker is not None and ticker is not asyncio.current_task():
            ticker.cancel()
            await asyncio.gather(ticker, return_exceptions=True)

        released = self._buffer.clear()
        log_event({
            "event_type": "playback_stopped",
            "frames_released": released,
            "frames_consumed": self._playback.frames_consumed,
        })

    def retry(self) -> bool:
        """
        Clear a segment failure so the failed start time is requested again.

        Returns:
            True if a failure was cleared.
        """
        if self._last_error is None:
            return False

        log_event({
            "event_type": "segment_retry_requested",
            "start_time_s": self._next_start_time_s,
            "previous_error": str(self._last_error),
        })
        self._last_error = None
        self._stall_reported = False
        if self.is_playing:
            self._maybe_prefetch()
        return True

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> Optional[Frame]:
        """
        Run one display period.

        Returns:
            The frame displayed, or None if the play head held.

        Raises:
            Whatever the render sink raises. The frame is released first.
        """
        if self._state is not PlayerState.PLAYING:
            return None
        self._ticks += 1

        frame = self._buffer.pop_front()
        if frame is not None:
            try:
                self._sink.draw(frame)
            finally:
                frame.release()
            self._playback = replace(
                self._playback,
                current_segment_index=frame.segment_index,
                frames_consumed=self._playback.frames_consumed + 1,
            )
            self._stall_reported = False

        self._maybe_prefetch()

        if frame is None:
            self._on_empty_tick()

        if self._ticks % BUFFER_LOG_INTERVAL_TICKS == 0:
            log_event({
                "event_type": "buffer_depth",
                "level": "DEBUG",
                **self.snapshot(),
            })
        return frame

    # ------------------------------------------------------------------
    # Prefetch
    # ------------------------------------------------------------------

    def _should_prefetch(self) -> bool:
        if (
            self._prefetch is not None
            or self._pipeline.busy
            or self._buffer.closed
            or self._last_error is not None
            or self.end_of_content
        ):
            return False

        # Nothing requested successfully yet this session
        if self._buffered_through is None:
            return True

        # Next segment already buffered behind the current one
        if self._buffered_through != self._playback.current_segment_index:
            return False

        return self._buffer.count_for_segment(self._buffered_through) <= self._margin

    def _maybe_prefetch(self) -> None:
        if not self._should_prefetch():
            return

        start_time_s = self._next_start_time_s
        log_event({
            "event_type": "prefetch_started",
            "start_time_s": start_time_s,
            "segment_index": self._pipeline.next_index,
            "current_segment_index": self._playback.current_segment_index,
            "buffered_frames": len(self._buffer),
        })
        self._prefetch = asyncio.create_task(
            self._run_prefetch(self._session, start_time_s)
        )

    async def _run_prefetch(self, session: int, start_time_s: float) -> None:
        try:
            segment = await self._pipeline.advance(start_time_s)
        except EndOfContent:
            if session == self._session:
                self._end_of_content = True
        except (FetchError, DecodeError) as exc:
            if session == self._session:
                self._last_error = exc
                log_event({
                    "event_type": "segment_unavailable",
                    "level": "WARNING",
                    "start_time_s": start_time_s,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                })
        except PlaybackError as exc:
            # Contract violations (PipelineBusy, OutOfOrderFrame, BufferOverflow)
            log_event({
                "event_type": "pipeline_contract_violation",
                "level": "ERROR",
                "error_type": type(exc).__name__,
                "error": str(exc),
            })
            if session == self._session:
                self._last_error = exc
        else:
            if session == self._session and self._buffer.closed:
                # Frames were discarded by a clear(); nothing was buffered
                log_event({
                    "event_type": "segment_discarded",
                    "level": "WARNING",
                    "segment_index": segment.index,
                    "start_time_s": start_time_s,
                })
            elif session == self._session:
                self._buffered_through = segment.index
                self._next_start_time_s = start_time_s + segment.duration_s
        finally:
            if session == self._session and self._prefetch is asyncio.current_task():
                self._prefetch = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_empty_tick(self) -> None:
        if self._prefetch is not None:
            return

        if self._buffer.closed:
            log_event({
                "event_type": "buffer_closed_while_playing",
                "level": "WARNING",
                "frames_consumed": self._playback.frames_consumed,
                "discarded_after_clear": self._buffer.discarded_after_clear,
            })
            self._set_state(PlayerState.PAUSED)
            return

        if self.end_of_content:
            log_event({
                "event_type": "end_of_content_reached",
                "frames_consumed": self._playback.frames_consumed,
            })
            self._set_state(PlayerState.PAUSED)
            return

        if self._last_error is not None and not self._stall_reported:
            self._stall_reported = True
            log_event({
                "event_type": "playback_stalled",
                "level": "WARNING",
                "current_segment_index": self._playback.current_segment_index,
                "frames_consumed": self._playback.frames_consumed,
                "error": str(self._last_error),
            })

    def _on_render_failure(self, exc: Exception) -> None:
        error = RenderError(f"{type(exc).__name__}: {exc}")
        error.__cause__ = exc
        self._last_error = error
        log_event({
            "event_type": "render_failed",
            "level": "ERROR",
            "error_type": type(exc).__name__,
            "error": str(exc),
            "frames_consumed": self._playback.frames_consumed,
        })
        self._set_state(PlayerState.PAUSED)

    def _begin_session(self) -> None:
        self._session += 1
        self._buffer.reopen()
        self._pipeline.rewind()
        self._playback = PlaybackState(current_segment_index=self._pipeline.next_index)
        self._next_start_time_s = 0.0
        self._buffered_through = None
        self._last_error = None
        self._end_of_content = False
        self._stall_reported = False
        self._ticks = 0
        self._late_ticks = 0

    def _set_state(self, new_state: PlayerState) -> None:
        if new_state is self._state:
            return

        prev = self._state
        self._state = new_state
        self._playback = replace(
            self._playback, is_playing=new_state is PlayerState.PLAYING
        )

        if new_state is not PlayerState.PLAYING:
            self._cancel_ticker()

        log_event({
            "event_type": "playback_state_changed",
            "from": prev.value,
            "to": new_state.value,
            "frames_consumed": self._playback.frames_consumed,
            "buffered_frames": len(self._buffer),
        })

    def _cancel_ticker(self) -> None:
        ticker = self._ticker
        if ticker is None or ticker is asyncio.current_task():
            # The ticker observes the state change and exits on its own
            return
        self._ticker = None
        ticker.cancel()

    async def _run_ticker(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        try:
            while self._state is PlayerState.PLAYING:
                try:
                    self.tick()
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    self._on_render_failure(exc)
                    break
                deadline += self._tick_interval_s
                delay = deadline - loop.time()
                if delay < 0:
                    # Fell behind: resync instead of bursting frames
                    self._late_ticks += 1
                    deadline = loop.time()
                    delay = 0.0
                await asyncio.sleep(delay)
        finally:
            if self._ticker is asyncio.current_task():
                self._ticker = None

    def snapshot(self) -> dict[str, Any]:
        """
        Lightweight snapshot for logging and the control surface.
        """
        return {
            "state": self._state.value,
            "is_playing": self.is_playing,
            "stalled": self.stalled,
            "buffering": self.buffering,
            "end_of_content": self.end_of_content,
            "current_segment_index": self._playback.current_segment_index,
            "frames_consumed": self._playback.frames_consumed,
            "next_start_time_s": self._next_start_time_s,
            "prefetch_in_flight": self.prefetch_in_flight,
            "late_ticks": self._late_ticks,
            "last_error": str(self._last_error) if self._last_error else None,
            "buffer": self._buffer.snapshot(),
        }
