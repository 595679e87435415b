"""
Player assembly.

Wires RangeFetcher, DecodeEngine, FrameBuffer, SegmentPipeline and
PlaybackScheduler from an AppConfig. Owns nothing beyond construction
and teardown order.
"""

from __future__ import annotations

from dataclasses import dataclass

from config import AppConfig
from constants import frames_per_segment
from decode.base import DecodeEngine
from decode.pyav_engine import PyAVDecodeEngine
from fetch.range_fetcher import RangeFetcher
from pipeline.frame_buffer import FrameBuffer
from pipeline.segment_pipeline import SegmentPipeline
from pipeline.segments import ConstantBitrateEstimator
from playback.scheduler import PlaybackScheduler
from playback.sink import RenderSink, LatestFrameSink


@dataclass
class Player:
    """Assembled playback session components."""
    fetcher: RangeFetcher
    engine: DecodeEngine
    buffer: FrameBuffer
    pipeline: SegmentPipeline
    scheduler: PlaybackScheduler
    sink: RenderSink

    async def aclose(self) -> None:
        """Stop playback, then close network resources."""
        await self.scheduler.stop()
        await self.fetcher.aclose()


def build_player(
    config: AppConfig,
    *,
    fetcher: RangeFetcher | None = None,
    engine: DecodeEngine | None = None,
    sink: RenderSink | None = None,
    auto_tick: bool = True,
) -> Player:
    """
    Build a Player for config.video_url.

    Raises:
        ValueError if no video URL is configured, or if the buffer cap
        cannot hold one full segment on top of the prefetch margin.
    """
    if not config.video_url:
        raise ValueError("VIDEO_URL is not configured")

    per_segment = frames_per_segment(config.segment_duration_s, config.output_frame_rate)
    if config.max_buffered_frames < per_segment + config.prefetch_margin_frames:
        raise ValueError(
            f"max_buffered_frames={config.max_buffered_frames} cannot hold a "
            f"{per_segment}-frame segment plus a "
            f"{config.prefetch_margin_frames}-frame prefetch margin"
        )

    fetcher = fetcher or RangeFetcher(timeout_s=config.fetch_timeout_s)
    engine = engine or PyAVDecodeEngine()
    sink = sink or LatestFrameSink()
    buffer = FrameBuffer(max_buffered_frames=config.max_buffered_frames)

    pipeline = SegmentPipeline(
        resource_url=config.video_url,
        fetcher=fetcher,
        engine=engine,
        buffer=buffer,
        estimator=ConstantBitrateEstimator(config.bitrate_bytes_per_s),
        segment_duration_s=config.segment_duration_s,
        frame_rate=config.output_frame_rate,
    )

    scheduler = PlaybackScheduler(
        pipeline=pipeline,
        buffer=buffer,
        sink=sink,
        frame_rate=config.output_frame_rate,
        prefetch_margin_frames=config.prefetch_margin_frames,
        auto_tick=auto_tick,
    )

    return Player(
        fetcher=fetcher,
        engine=engine,
        buffer=buffer,
        pipeline=pipeline,
        scheduler=scheduler,
        sink=sink,
    )
