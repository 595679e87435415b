"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build the Player once per process and tear it down on shutdown
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability.logger import log_event, set_log_level
from player import Player, build_player
from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    player: Player | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    A prebuilt player may be injected (tests); otherwise one is built from
    config, which defaults to the environment.
    """
    config = config or AppConfig.load_from_env()
    set_log_level(config.log_level)

    player = player or build_player(config)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        log_event({
            "event_type": "SERVER_STARTED",
            "env": config.env,
            "video_url": config.video_url,
        })
        try:
            yield
        finally:
            await player.aclose()
            log_event({"event_type": "SERVER_STOPPED"})

    app = FastAPI(title="Segmented Video Player", lifespan=lifespan)

    app.state.config = config
    app.state.player = player

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app
