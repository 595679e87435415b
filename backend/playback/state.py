"""
Playback state definitions.

Rules:
- PlayerState defines ONLY the control states.
- PlaybackState is immutable; PlaybackScheduler is its single writer
  and swaps in a new instance on every change.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PlayerState(str, Enum):
    """
    Control states of the playback scheduler.

    STOPPED is initial. Content end moves PLAYING -> PAUSED automatically.
    """

    STOPPED = "STOPPED"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"


@dataclass(frozen=True)
class PlaybackState:
    """
    Consumer-side progress.

    current_segment_index:
        Segment of the most recently displayed frame (or the segment the
        session will start with, before anything was displayed).

    frames_consumed:
        Frames displayed this session. Never advanced by an empty tick.
    """
    is_playing: bool = False
    current_segment_index: int = 0
    frames_consumed: int = 0
