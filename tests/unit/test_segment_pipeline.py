# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from errors import BufferOverflow, DecodeError, EndOfContent, FetchError, PipelineBusy
from pipeline.frame_buffer import FrameBuffer
from pipeline.segment_pipeline import SegmentPipeline
from pipeline.segments import ByteWindow, ConstantBitrateEstimator, SegmentStatus

from fakes import VIDEO_URL, FakeEngine, FakeFetcher


def make_pipeline(
    *,
    fetcher: FakeFetcher | None = None,
    engine: FakeEngine | None = None,
    max_frames: int = 400,
) -> tuple[SegmentPipeline, FakeFetcher, FakeEngine, FrameBuffer]:
    fetcher = fetcher or FakeFetcher()
    engine = engine or FakeEngine()
    buffer = FrameBuffer(max_buffered_frames=max_frames)
    pipeline = SegmentPipeline(
        resource_url=VIDEO_URL,
        fetcher=fetcher,
        engine=engine,
        buffer=buffer,
        estimator=ConstantBitrateEstimator(1000),
        segment_duration_s=3.0,
        frame_rate=30,
    )
    return pipeline, fetcher, engine, buffer


# ---------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------

def test_advance_fetches_decodes_and_publishes():
    pipeline, fetcher, engine, buffer = make_pipeline()

    segment = asyncio.run(pipeline.advance(0.0))

    assert segment.index == 0
    assert segment.status is SegmentStatus.READY
    assert segment.byte_window == ByteWindow(0, 2999)
    assert segment.frame_count == 90
    assert fetcher.calls == [(0, 2999)]
    assert engine.requests == [(3000, 30, 3.0)]
    assert len(buffer) == 90
    assert not pipeline.busy


def test_frames_are_stamped_with_segment_and_sequence():
    pipeline, _, _, buffer = make_pipeline(engine=FakeEngine(frames_per_call=3))

    asyncio.run(pipeline.advance(0.0))

    keys = [buffer.pop_front().key for _ in range(3)]
    assert keys == [(0, 0), (0, 1), (0, 2)]


def test_successive_advances_keep_global_order():
    pipeline, _, _, buffer = make_pipeline(engine=FakeEngine(frames_per_call=4))

    async def run():
        for start in (0.0, 3.0, 6.0):
            await pipeline.advance(start)

    asyncio.run(run())

    keys = []
    while (frame := buffer.pop_front()) is not None:
        keys.append(frame.key)

    assert keys == sorted(keys)
    assert len(set(keys)) == len(keys) == 12
    assert [s.index for s in pipeline.segments] == [0, 1, 2]


# ---------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------

def test_second_advance_while_outstanding_is_rejected():
    fetcher = FakeFetcher()
    pipeline, _, _, buffer = make_pipeline(fetcher=fetcher)

    async def run():
        fetcher.gate = asyncio.Event()
        first = asyncio.create_task(pipeline.advance(0.0))
        await asyncio.sleep(0)
        assert pipeline.busy

        with pytest.raises(PipelineBusy):
            await pipeline.advance(3.0)

        fetcher.gate.set()
        await first

    asyncio.run(run())

    # The rejected call neither fetched nor consumed an index
    assert fetcher.calls == [(0, 2999)]
    assert pipeline.next_index == 1
    assert len(buffer) == 90


def test_cancellation_marks_failed_and_frees_guard():
    fetcher = FakeFetcher()
    pipeline, _, engine, buffer = make_pipeline(fetcher=fetcher)

    async def run():
        fetcher.gate = asyncio.Event()
        task = asyncio.create_task(pipeline.advance(0.0))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())

    assert pipeline.segments[0].status is SegmentStatus.FAILED
    assert not pipeline.busy
    assert engine.calls == 0
    assert len(buffer) == 0


# ---------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------

def test_fetch_error_fails_segment_without_frames():
    pipeline, _, engine, buffer = make_pipeline(fetcher=FakeFetcher(fail_calls=[0]))

    with pytest.raises(FetchError):
        asyncio.run(pipeline.advance(0.0))

    assert pipeline.segments[0].status is SegmentStatus.FAILED
    assert "FetchError" in pipeline.segments[0].error
    assert engine.calls == 0
    assert len(buffer) == 0
    assert not pipeline.busy


def test_decode_error_fails_segment_without_frames():
    pipeline, _, _, buffer = make_pipeline(engine=FakeEngine(fail_calls=[0]))

    with pytest.raises(DecodeError):
        asyncio.run(pipeline.advance(0.0))

    assert pipeline.segments[0].status is SegmentStatus.FAILED
    assert len(buffer) == 0


def test_unexpected_engine_exception_is_wrapped():
    class BrokenEngine(FakeEngine):
        async def decode(self, data, *, frame_rate, duration_s):
            raise RuntimeError("codec exploded")

    pipeline, _, _, _ = make_pipeline(engine=BrokenEngine())

    with pytest.raises(DecodeError, match="codec exploded"):
        asyncio.run(pipeline.advance(0.0))


def test_empty_decode_output_is_a_decode_error():
    pipeline, _, _, _ = make_pipeline(engine=FakeEngine(frames_per_call=0))

    with pytest.raises(DecodeError):
        asyncio.run(pipeline.advance(0.0))

    assert pipeline.segments[0].status is SegmentStatus.FAILED


def test_failed_index_is_not_reused():
    pipeline, fetcher, _, buffer = make_pipeline(fetcher=FakeFetcher(fail_calls=[0]))

    async def run():
        with pytest.raises(FetchError):
            await pipeline.advance(0.0)
        return await pipeline.advance(0.0)

    retried = asyncio.run(run())

    assert retried.index == 1
    assert fetcher.calls == [(0, 2999), (0, 2999)]
    assert buffer.peek().key == (1, 0)


def test_overflow_releases_decoded_frames():
    pipeline, _, engine, buffer = make_pipeline(max_frames=100)

    async def run():
        await pipeline.advance(0.0)
        await pipeline.advance(3.0)

    with pytest.raises(BufferOverflow):
        asyncio.run(run())

    assert len(buffer) == 90
    assert len(engine.released) == 90
    assert pipeline.segments[1].status is SegmentStatus.FAILED


# ---------------------------------------------------------------------
# End of content
# ---------------------------------------------------------------------

def test_last_window_is_clamped_and_exhausts():
    pipeline, fetcher, _, _ = make_pipeline(fetcher=FakeFetcher(total_length=4500))

    async def run():
        await pipeline.advance(0.0)
        assert not pipeline.exhausted
        await pipeline.advance(3.0)

    asyncio.run(run())

    assert fetcher.calls == [(0, 2999), (3000, 4499)]
    assert pipeline.content_length == 4500
    assert pipeline.exhausted


def test_start_past_known_length_is_end_of_content():
    pipeline, fetcher, _, _ = make_pipeline(fetcher=FakeFetcher(total_length=3000))

    async def run():
        await pipeline.advance(0.0)
        with pytest.raises(EndOfContent):
            await pipeline.advance(3.0)

    asyncio.run(run())

    assert len(fetcher.calls) == 1
    assert pipeline.next_index == 1


def test_range_not_satisfiable_is_end_of_content():
    # Length unknown up front: the server answers 416
    pipeline, _, _, buffer = make_pipeline(fetcher=FakeFetcher(total_length=2000))

    async def run():
        with pytest.raises(EndOfContent):
            await pipeline.advance(3.0)

    asyncio.run(run())

    assert pipeline.exhausted
    assert pipeline.segments[0].status is SegmentStatus.FAILED
    assert len(buffer) == 0


def test_rewind_clears_exhaustion():
    pipeline, _, _, _ = make_pipeline(fetcher=FakeFetcher(total_length=3000))

    asyncio.run(pipeline.advance(0.0))
    assert pipeline.exhausted

    pipeline.rewind()
    assert not pipeline.exhausted
