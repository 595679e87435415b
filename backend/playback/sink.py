"""
Render sink contract.

A sink paints one decoded frame onto its surface. It is a pure sink: no
return value, no influence on scheduling. The scheduler releases the
frame right after draw() returns, so a sink that needs the pixels later
must copy them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pipeline.frames import Frame, FrameKey


class RenderSink(ABC):
    """Abstract display surface."""

    @abstractmethod
    def draw(self, frame: Frame) -> None:
        """Blit frame.handle onto the surface."""
        raise NotImplementedError


class LatestFrameSink(RenderSink):
    """
    Headless sink that remembers what was last drawn.

    Used by the HTTP control surface to report the play head without a
    real display attached.
    """

    def __init__(self) -> None:
        self.last_key: FrameKey | None = None
        self.last_shape: tuple[int, ...] | None = None
        self.frames_drawn: int = 0

    def draw(self, frame: Frame) -> None:
        self.last_key = frame.key
        self.last_shape = _shape_of(frame.handle)
        self.frames_drawn += 1

    def snapshot(self) -> dict[str, Any]:
        """Lightweight snapshot for the control surface."""
        return {
            "last_key": list(self.last_key) if self.last_key else None,
            "last_shape": list(self.last_shape) if self.last_shape else None,
            "frames_drawn": self.frames_drawn,
        }


def _shape_of(handle: Any) -> tuple[int, ...] | None:
    shape = getattr(handle, "shape", None)
    return tuple(shape) if shape is not None else None
