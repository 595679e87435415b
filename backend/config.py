"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No playback logic
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_BITRATE_BYTES_PER_S,
    FETCH_TIMEOUT_S,
    MAX_BUFFERED_FRAMES,
    OUTPUT_FRAME_RATE,
    PREFETCH_MARGIN_FRAMES,
    SEGMENT_DURATION_S,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to player.build_player().
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Source
    # ------------------------------------------------------------------

    video_url: str | None
    bitrate_bytes_per_s: int
    fetch_timeout_s: float

    # ------------------------------------------------------------------
    # Segmenting / decode
    # ------------------------------------------------------------------

    segment_duration_s: float
    output_frame_rate: int

    # ------------------------------------------------------------------
    # Buffering
    # ------------------------------------------------------------------

    prefetch_margin_frames: int
    max_buffered_frames: int

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            video_url=os.environ.get("VIDEO_URL"),
            bitrate_bytes_per_s=int(
                os.environ.get("BITRATE_BYTES_PER_S", DEFAULT_BITRATE_BYTES_PER_S)
            ),
            fetch_timeout_s=float(os.environ.get("FETCH_TIMEOUT_S", FETCH_TIMEOUT_S)),

            segment_duration_s=float(
                os.environ.get("SEGMENT_DURATION_S", SEGMENT_DURATION_S)
            ),
            output_frame_rate=int(os.environ.get("OUTPUT_FRAME_RATE", OUTPUT_FRAME_RATE)),

            prefetch_margin_frames=int(
                os.environ.get("PREFETCH_MARGIN_FRAMES", PREFETCH_MARGIN_FRAMES)
            ),
            max_buffered_frames=int(
                os.environ.get("MAX_BUFFERED_FRAMES", MAX_BUFFERED_FRAMES)
            ),
        )
