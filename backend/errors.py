"""
Error taxonomy for the fetch/decode/playback pipeline.

Segment-scoped failures (FetchError, DecodeError) abort only the affected
segment. PipelineBusy is a caller contract violation and must never be
swallowed. EndOfContent is a termination signal, not a failure.
"""

from __future__ import annotations


class PlaybackError(Exception):
    """Base class for all player errors."""


# -------------------------
# Segment-scoped failures
# -------------------------

class FetchError(PlaybackError):
    """
    Raised when a byte range could not be retrieved.

    Carries the HTTP status when the server answered, or the underlying
    transport exception as `cause` when it did not.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.cause = cause


class RangeNotSatisfiable(FetchError):
    """
    Raised on HTTP 416: the requested window starts past the end of the
    resource. The pipeline treats this as end of content.
    """


class DecodeError(PlaybackError):
    """Raised when the decode engine rejects or fails on submitted bytes."""


# -------------------------
# Contract violations
# -------------------------

class PipelineBusy(PlaybackError):
    """
    Raised when advance() is invoked while a previous call is outstanding.

    The decode engine is non-reentrant; requests are rejected, never queued.
    """


class OutOfOrderFrame(PlaybackError):
    """
    Raised when a frame key is not strictly greater than the buffer tail key.
    """


class BufferOverflow(PlaybackError):
    """Raised when an append would exceed max_buffered_frames."""


class InvalidSegmentTransition(PlaybackError):
    """Raised when a segment status would move backward or leave a terminal state."""


# -------------------------
# Output failures
# -------------------------

class RenderError(PlaybackError):
    """Raised (and recorded) when the render sink fails to draw a frame."""


# -------------------------
# Signals
# -------------------------

class EndOfContent(PlaybackError):
    """
    Raised when no further segment exists for the resource.

    Normal termination; callers should stop requesting segments.
    """
