from __future__ import annotations

import sys
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from accountapi.client import AccountClient  # noqa: E402
from accountapi.config import ClientConfig  # noqa: E402
from accountapi.http.transport import HttpxTransport  # noqa: E402
from accountapi.runtime.context import Context  # noqa: E402
from accountapi.runtime.retry import BackoffPolicy  # noqa: E402
from accountapi.runtime.timer import Timer, WaitOutcome  # noqa: E402


class TrackingStream(httpx.SyncByteStream):
    """Response body that remembers how far it was read and whether it was closed."""

    def __init__(self, body: bytes = b"", chunk_size: int = 7, chunk_delay: float = 0.0) -> None:
        self._body = body
        self._chunk_size = chunk_size
        self._chunk_delay = chunk_delay
        self._offset = 0
        self.closed = False
        self.closed_event = threading.Event()

    def __iter__(self) -> Iterator[bytes]:
        while self._offset < len(self._body):
            if self._chunk_delay:
                time.sleep(self._chunk_delay)
            chunk = self._body[self._offset : self._offset + self._chunk_size]
            self._offset += len(chunk)
            yield chunk

    def close(self) -> None:
        self.closed = True
        self.closed_event.set()

    @property
    def drained_and_closed(self) -> bool:
        return self._offset >= len(self._body) and self.closed


class ImmediateTimer:
    def wait(self, ctx: Context) -> WaitOutcome:
        if ctx.done():
            return WaitOutcome.CANCELLED
        return WaitOutcome.FIRED

    def stop(self) -> bool:
        return True

    def drain(self) -> None:
        return None


@dataclass
class RecordingTimerFactory:
    durations: list[float] = field(default_factory=list)

    def __call__(self, duration: float) -> Timer:
        self.durations.append(duration)
        return ImmediateTimer()


@dataclass
class StubServer:
    """Serves a fixed sequence of (status, body) pairs; the last one repeats."""

    responses: list[tuple[int, bytes]]
    chunk_delay: float = 0.0
    requests: list[httpx.Request] = field(default_factory=list)
    streams: list[TrackingStream] = field(default_factory=list)
    on_request: Callable[[httpx.Request], None] | None = None
    served: threading.Event = field(default_factory=threading.Event)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        index = min(len(self.requests) - 1, len(self.responses) - 1)
        status, body = self.responses[index]
        stream = TrackingStream(body, chunk_delay=self.chunk_delay)
        self.streams.append(stream)
        self.served.set()
        return httpx.Response(status, stream=stream)

    @property
    def last_stream(self) -> TrackingStream:
        return self.streams[-1]

    def wait_until_released(self, timeout: float = 5.0) -> bool:
        """Block until a body has been served and the last one closed."""
        if not self.served.wait(timeout):
            return False
        return self.last_stream.closed_event.wait(timeout)


@pytest.fixture()
def timer_factory() -> RecordingTimerFactory:
    return RecordingTimerFactory()


@pytest.fixture()
def make_client(timer_factory: RecordingTimerFactory):
    http_clients: list[httpx.Client] = []

    def _make(
        server: StubServer,
        retry_count: int = 3,
        config: ClientConfig | None = None,
        events=None,
    ) -> AccountClient:
        cfg = config or ClientConfig()
        cfg.api.retry_count = retry_count
        http_client = httpx.Client(transport=httpx.MockTransport(server))
        http_clients.append(http_client)
        transport = HttpxTransport(http_client)
        client = AccountClient(
            cfg,
            transport=transport,
            backoff=BackoffPolicy(cfg.backoff, timer_factory=timer_factory),
            events=events,
        )
        return client

    yield _make
    for http_client in http_clients:
        http_client.close()
