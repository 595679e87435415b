"""
HTTP byte-range fetcher.

Role in the system:
- Issues exactly one GET with a `Range: bytes=<start>-<end>` header per call
- Returns the exact payload for the requested window, or raises FetchError

Architectural constraints:
- No retries (retry policy belongs to the caller)
- No caching
- No partial or garbage bytes ever surface as success
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import httpx

from constants import (
    FETCH_TIMEOUT_S,
    HTTP_OK,
    HTTP_PARTIAL_CONTENT,
    HTTP_RANGE_NOT_SATISFIABLE,
)
from errors import FetchError, RangeNotSatisfiable


_CONTENT_RANGE_RE = re.compile(r"^\s*bytes\s+(?:\d+-\d+|\*)/(\d+|\*)\s*$")


@dataclass(frozen=True)
class RangeResponse:
    """
    Payload for one fetched byte window.

    total_length:
        Full resource length from Content-Range (or Content-Length on a
        200 response), None when the server did not report it.
    """
    data: bytes
    start_byte: int
    end_byte: int
    total_length: int | None = None

    @property
    def reaches_end(self) -> bool:
        """True if this window covers the last byte of the resource."""
        return self.total_length is not None and self.end_byte >= self.total_length - 1


def parse_content_range_total(header: str | None) -> int | None:
    """
    Extract the total length from a `Content-Range: bytes a-b/total` header.

    Returns None for a missing header, an unknown total (`*`) or junk.
    """
    if not header:
        return None
    match = _CONTENT_RANGE_RE.match(header)
    if match is None or match.group(1) == "*":
        return None
    return int(match.group(1))


class RangeFetcher:
    """
    Async byte-range client over a shared httpx.AsyncClient.

    A client may be injected (tests use httpx.MockTransport); otherwise one
    is created and owned by this fetcher and closed by aclose().
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = FETCH_TIMEOUT_S,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout_s,
            follow_redirects=True,
        )

    async def fetch_range(
        self,
        resource_url: str,
        start_byte: int,
        end_byte: int,
    ) -> RangeResponse:
        """
        Fetch bytes [start_byte, end_byte] (inclusive) of resource_url.

        Raises:
            ValueError if the range is invalid.
            RangeNotSatisfiable on HTTP 416.
            FetchError on any other non-success status, a short payload,
            or a transport failure.
        """
        if start_byte < 0 or end_byte < start_byte:
            raise ValueError(
                f"invalid byte range: start={start_byte} end={end_byte}"
            )

        try:
            response = await self._client.get(
                resource_url,
                headers={"Range": f"bytes={start_byte}-{end_byte}"},
            )
        except httpx.HTTPError as exc:
            raise FetchError(
                f"transport failure fetching bytes {start_byte}-{end_byte}: "
                f"{type(exc).__name__}: {exc}",
                cause=exc,
            ) from exc

        return self._to_range_response(response, start_byte, end_byte)

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _to_range_response(
        response: httpx.Response,
        start_byte: int,
        end_byte: int,
    ) -> RangeResponse:
        status = response.status_code
        requested = end_byte - start_byte + 1

        if status == HTTP_RANGE_NOT_SATISFIABLE:
            raise RangeNotSatisfiable(
                f"range {start_byte}-{end_byte} not satisfiable",
                status=status,
            )

        if status == HTTP_PARTIAL_CONTENT:
            total = parse_content_range_total(response.headers.get("Content-Range"))
            data = response.content[:requested]
        elif status == HTTP_OK:
            # Server ignored Range and sent the whole resource
            body = response.content
            total = len(body)
            if start_byte >= total:
                raise RangeNotSatisfiable(
                    f"range {start_byte}-{end_byte} past end of {total}-byte resource",
                    status=status,
                )
            data = body[start_byte : end_byte + 1]
        else:
            raise FetchError(
                f"unexpected status {status} fetching bytes {start_byte}-{end_byte}",
                status=status,
            )

        if len(data) < requested:
            # A short window is only legitimate when it is the tail of the resource
            if total is None or start_byte + len(data) != total or not data:
                raise FetchError(
                    f"short payload: got {len(data)} of {requested} bytes",
                    status=status,
                )

        return RangeResponse(
            data=data,
            start_byte=start_byte,
            end_byte=start_byte + len(data) - 1,
            total_length=total,
        )
