from __future__ import annotations

from contextlib import suppress
from typing import Protocol

import httpx

from accountapi.errors import TransportError


class Transport(Protocol):
    def send(self, request: httpx.Request) -> httpx.Response: ...

    def close(self) -> None: ...


class HttpxTransport:
    """Sends requests through a shared ``httpx.Client`` without reading bodies.

    Responses are returned streamed; whoever receives one must hand it to
    :func:`drain_and_close` so the pooled connection can be reused.
    """

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client()

    @property
    def client(self) -> httpx.Client:
        return self._client

    def send(self, request: httpx.Request) -> httpx.Response:
        try:
            return self._client.send(request, stream=True)
        except httpx.TransportError as exc:
            raise TransportError(f"{request.method} {request.url}: {exc}") from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def drain_and_close(response: httpx.Response) -> None:
    """Read whatever is left of the body, then release the connection."""
    try:
        if not response.is_closed and not response.is_stream_consumed:
            # A connection that dies mid-drain is simply not reused.
            with suppress(httpx.TransportError, httpx.StreamError):
                for _ in response.iter_raw():
                    pass
    finally:
        response.close()
