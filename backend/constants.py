"""
PLAYBACK CONSTANTS
------------------
Single source of truth for all behavioral constants of the player.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment overrides go through config.AppConfig, which defaults to these.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Segmenting
# =============================================================================

# Playback-time window fetched and decoded per segment
SEGMENT_DURATION_S: Final[float] = 3.0

# Constant-bitrate estimate used to map time -> byte offset (bytes per second).
# Known approximation: never corrected from decode output.
DEFAULT_BITRATE_BYTES_PER_S: Final[int] = 250_000

# =============================================================================
# Decode output
# =============================================================================

# Frames extracted per second of video by the decode engine
OUTPUT_FRAME_RATE: Final[int] = 30

# Pixel format requested from the PyAV decoder
DECODE_PIXEL_FORMAT: Final[str] = "rgb24"

# =============================================================================
# Buffering & prefetch
# =============================================================================

# Remaining frames of the current segment at which the next segment is requested
PREFETCH_MARGIN_FRAMES: Final[int] = 10

# Hard cap on frames held by FrameBuffer (two full segments at default rate)
MAX_BUFFERED_FRAMES: Final[int] = 180

# =============================================================================
# Network
# =============================================================================

FETCH_TIMEOUT_S: Final[float] = 10.0

HTTP_PARTIAL_CONTENT: Final[int] = 206
HTTP_OK: Final[int] = 200
HTTP_RANGE_NOT_SATISFIABLE: Final[int] = 416

# =============================================================================
# Observability
# =============================================================================

# Emit a buffer depth event every N ticks while playing
BUFFER_LOG_INTERVAL_TICKS: Final[int] = 30

# =============================================================================
# Helper Functions
# =============================================================================

def frames_per_segment(
    segment_duration_s: float = SEGMENT_DURATION_S,
    frame_rate: int = OUTPUT_FRAME_RATE,
) -> int:
    """
    Expected number of frames one segment decodes to.

    Non-positive input returns 0.
    """
    if segment_duration_s <= 0 or frame_rate <= 0:
        return 0
    return int(round(segment_duration_s * frame_rate))


def tick_interval_s(frame_rate: int = OUTPUT_FRAME_RATE) -> float:
    """Display period in seconds for the given frame rate."""
    if frame_rate <= 0:
        raise ValueError("frame_rate must be > 0")
    return 1.0 / frame_rate
