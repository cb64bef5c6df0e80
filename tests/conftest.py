"""Shared pytest fixtures for devicelink tests.

The simulated peer stands in for the cloud endpoint: it records every request
that reaches the wire and answers with a preset response or failure, through
``httpx.MockTransport``.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

import httpx
import pytest

TARGET_URL = "https://hub.example.net/devices/device-1/messages/events?api-version=2021-04-12"


class FailingStream(httpx.SyncByteStream):
    """Response body stream that breaks after the first chunk."""

    def __init__(self, first_chunk: bytes = b"partial") -> None:
        self.first_chunk = first_chunk
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        yield self.first_chunk
        raise httpx.ReadError("connection reset by peer")

    def close(self) -> None:
        self.closed = True


@dataclass
class SimulatedPeer:
    """Answers every request with ``response``, or raises it if it is an exception."""

    response: httpx.Response | Exception = field(
        default_factory=lambda: httpx.Response(200, content=b"ok")
    )
    requests: list[httpx.Request] = field(default_factory=list)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def peer() -> SimulatedPeer:
    return SimulatedPeer()


@pytest.fixture
def target_url() -> str:
    return TARGET_URL


@pytest.fixture
def failing_stream() -> FailingStream:
    return FailingStream()
