# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Callable

import httpx
import pytest

from errors import FetchError, RangeNotSatisfiable
from fetch.range_fetcher import RangeFetcher, parse_content_range_total


RESOURCE = bytes(range(256)) * 40  # 10_240 bytes
URL = "http://video.test/clip.mp4"


def ranged_server(seen: list[str]) -> Callable[[httpx.Request], httpx.Response]:
    """Honors Range like a well-behaved static file server."""
    def handler(request: httpx.Request) -> httpx.Response:
        header = request.headers["Range"]
        seen.append(header)
        start_s, end_s = header.removeprefix("bytes=").split("-")
        start, end = int(start_s), int(end_s)
        if start >= len(RESOURCE):
            return httpx.Response(416, headers={"Content-Range": f"bytes */{len(RESOURCE)}"})
        end = min(end, len(RESOURCE) - 1)
        return httpx.Response(
            206,
            content=RESOURCE[start : end + 1],
            headers={"Content-Range": f"bytes {start}-{end}/{len(RESOURCE)}"},
        )
    return handler


def fetch(handler, start: int, end: int):
    async def run():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        fetcher = RangeFetcher(client=client)
        try:
            return await fetcher.fetch_range(URL, start, end)
        finally:
            await client.aclose()
    return asyncio.run(run())


# ---------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------

def test_partial_content_returns_exact_window():
    seen: list[str] = []

    resp = fetch(ranged_server(seen), 100, 199)

    assert seen == ["bytes=100-199"]
    assert resp.data == RESOURCE[100:200]
    assert resp.total_length == len(RESOURCE)
    assert resp.reaches_end is False


def test_tail_window_may_be_short():
    resp = fetch(ranged_server([]), 10_000, 10_999)

    assert resp.data == RESOURCE[10_000:]
    assert resp.end_byte == len(RESOURCE) - 1
    assert resp.reaches_end is True


def test_full_body_200_is_sliced_to_window():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=RESOURCE)

    resp = fetch(handler, 10, 19)

    assert resp.data == RESOURCE[10:20]
    assert resp.total_length == len(RESOURCE)


# ---------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------

def test_range_not_satisfiable():
    with pytest.raises(RangeNotSatisfiable) as info:
        fetch(ranged_server([]), 20_000, 20_099)

    assert info.value.status == 416


@pytest.mark.parametrize("status", [403, 404, 500, 503])
def test_error_status_raises_fetch_error(status: int):
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=b"nope")

    with pytest.raises(FetchError) as info:
        fetch(handler, 0, 99)

    assert info.value.status == status


def test_transport_failure_carries_cause():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError) as info:
        fetch(handler, 0, 99)

    assert info.value.status is None
    assert isinstance(info.value.cause, httpx.ConnectError)


def test_truncated_partial_content_is_not_success():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            206,
            content=RESOURCE[0:50],
            headers={"Content-Range": f"bytes 0-99/{len(RESOURCE)}"},
        )

    with pytest.raises(FetchError):
        fetch(handler, 0, 99)


def test_invalid_range_rejected_before_request():
    seen: list[str] = []

    with pytest.raises(ValueError):
        fetch(ranged_server(seen), 50, 10)
    with pytest.raises(ValueError):
        fetch(ranged_server(seen), -1, 10)

    assert not seen


# ---------------------------------------------------------------------
# Content-Range parsing
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "header,expected",
    [
        ("bytes 0-99/1000", 1000),
        ("bytes */1000", 1000),
        ("bytes 0-99/*", None),
        ("", None),
        (None, None),
        ("garbage", None),
    ],
)
def test_parse_content_range_total(header, expected):
    assert parse_content_range_total(header) == expected
