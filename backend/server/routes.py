"""
Route registration for the playback control surface.

Responsibilities:
- Expose play / pause / stop / retry as HTTP commands
- Expose is_playing, stalled and buffer state as a read-only snapshot
- Pull the Player from app.state
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from observability.logger import log_event
from player import Player
from playback.sink import LatestFrameSink


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    def _player() -> Player:
        return app.state.player

    def _snapshot(player: Player) -> dict[str, Any]:
        snap = player.scheduler.snapshot()
        if isinstance(player.sink, LatestFrameSink):
            snap["sink"] = player.sink.snapshot()
        snap["content_length"] = player.pipeline.content_length
        return snap

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/playback")
    async def playback_state() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _snapshot(_player())

    @app.post("/playback/play")
    async def play() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        player = _player()
        player.scheduler.play()
        log_event({"event_type": "CONTROL_PLAY"})
        return _snapshot(player)

    @app.post("/playback/pause")
    async def pause() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        player = _player()
        player.scheduler.pause()
        log_event({"event_type": "CONTROL_PAUSE"})
        return _snapshot(player)

    @app.post("/playback/stop")
    async def stop() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        player = _player()
        await player.scheduler.stop()
        log_event({"event_type": "CONTROL_STOP"})
        return _snapshot(player)

    @app.post("/playback/retry")
    async def retry() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        player = _player()
        cleared = player.scheduler.retry()
        log_event({"event_type": "CONTROL_RETRY", "cleared": cleared})
        return {**_snapshot(player), "retried": cleared}
