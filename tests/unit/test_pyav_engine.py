# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from fractions import Fraction
from pathlib import Path

import av
import numpy as np
import pytest

from decode.pyav_engine import PyAVDecodeEngine
from errors import DecodeError


WIDTH = 64
HEIGHT = 48


def make_clip(path: Path, seconds: float = 2.0, fps: int = 24) -> bytes:
    """Encode a small MPEG-TS clip whose brightness rises every frame."""
    with av.open(str(path), mode="w", format="mpegts") as out:
        stream = out.add_stream("mpeg4", rate=fps)
        stream.width = WIDTH
        stream.height = HEIGHT
        stream.pix_fmt = "yuv420p"

        for i in range(int(seconds * fps)):
            pixels = np.full((HEIGHT, WIDTH, 3), (i * 5) % 256, dtype=np.uint8)
            frame = av.VideoFrame.from_ndarray(pixels, format="rgb24")
            frame.pts = i
            frame.time_base = Fraction(1, fps)
            for packet in stream.encode(frame):
                out.mux(packet)
        for packet in stream.encode():
            out.mux(packet)
    return path.read_bytes()


def test_decodes_fixed_number_of_rgb_frames(tmp_path: Path):
    engine = PyAVDecodeEngine()

    images = asyncio.run(engine.decode(make_clip(tmp_path / "clip.ts"), frame_rate=30, duration_s=1.0))

    assert len(images) == 30
    assert all(img.shape == (HEIGHT, WIDTH, 3) for img in images)


def test_short_clip_yields_what_it_has(tmp_path: Path):
    engine = PyAVDecodeEngine()

    images = asyncio.run(engine.decode(make_clip(tmp_path / "short.ts", seconds=0.5), frame_rate=30, duration_s=3.0))

    assert 0 < len(images) < 90


def test_garbage_bytes_raise_decode_error():
    engine = PyAVDecodeEngine()

    with pytest.raises(DecodeError):
        asyncio.run(engine.decode(b"\x13\x37" * 4096, frame_rate=30, duration_s=1.0))


def test_empty_payload_raises_decode_error():
    engine = PyAVDecodeEngine()

    with pytest.raises(DecodeError):
        asyncio.run(engine.decode(b"", frame_rate=30, duration_s=1.0))


def test_release_counts_handles():
    engine = PyAVDecodeEngine()

    engine.release(np.zeros((1, 1, 3), dtype=np.uint8))

    assert engine.released == 1
