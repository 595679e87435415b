# pylint: disable=missing-module-docstring,missing-function-docstring

from fastapi.testclient import TestClient

from config import AppConfig
from player import build_player
from server.app import create_app

from fakes import VIDEO_URL, FakeEngine, FakeFetcher


def make_config() -> AppConfig:
    return AppConfig(
        env="test",
        log_level="WARNING",
        video_url=VIDEO_URL,
        bitrate_bytes_per_s=1000,
        fetch_timeout_s=1.0,
        segment_duration_s=3.0,
        output_frame_rate=30,
        prefetch_margin_frames=10,
        max_buffered_frames=180,
    )


def make_client() -> TestClient:
    config = make_config()
    player = build_player(
        config,
        fetcher=FakeFetcher(),
        engine=FakeEngine(),
        auto_tick=False,
    )
    return TestClient(create_app(config, player=player))


def test_health():
    with make_client() as client:
        resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_initial_snapshot():
    with make_client() as client:
        body = client.get("/playback").json()

    assert body["state"] == "STOPPED"
    assert body["is_playing"] is False
    assert body["stalled"] is False
    assert body["sink"]["frames_drawn"] == 0


def test_play_pause_stop_cycle():
    with make_client() as client:
        played = client.post("/playback/play").json()
        assert played["is_playing"] is True
        assert played["state"] == "PLAYING"

        paused = client.post("/playback/pause").json()
        assert paused["is_playing"] is False
        assert paused["state"] == "PAUSED"

        stopped = client.post("/playback/stop").json()
        assert stopped["state"] == "STOPPED"
        assert stopped["buffer"]["frames"] == 0


def test_retry_without_failure_is_noop():
    with make_client() as client:
        client.post("/playback/play")
        body = client.post("/playback/retry").json()

    assert body["retried"] is False
