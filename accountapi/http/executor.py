from __future__ import annotations

import time
from concurrent.futures import Future
from typing import TypeVar

import httpx
from pydantic import BaseModel

from accountapi.config import ApiConfig
from accountapi.errors import (
    AccountApiError,
    RequestCancelledError,
    TooManyRetriesError,
    TransportError,
)
from accountapi.http.classifier import classify, decode_body
from accountapi.http.transport import HttpxTransport, Transport, drain_and_close
from accountapi.logging.events import EventBus
from accountapi.logging.redaction import redact_url
from accountapi.runtime.background import start_background, wait_for
from accountapi.runtime.context import Context
from accountapi.runtime.retry import BackoffPolicy, StatusClass, classify_status

ModelT = TypeVar("ModelT", bound=BaseModel)

CONTENT_TYPE = "application/vnd.api+json"

_DEFAULT_HEADERS = {
    "Accept": CONTENT_TYPE,
    "Accept-Encoding": "gzip",
    "Content-Type": CONTENT_TYPE,
}


def encode_body(body: BaseModel | None) -> bytes:
    # Materialized up front so every attempt can resend the same bytes.
    if body is None:
        return b""
    return body.model_dump_json(exclude_none=True).encode("utf-8")


def _release_abandoned(future: Future[httpx.Response]) -> None:
    if future.exception() is None:
        drain_and_close(future.result())


def _read_result(
    response: httpx.Response, response_model: type[ModelT] | None
) -> ModelT | None:
    try:
        if classify_status(response.status_code) is not StatusClass.SUCCESS:
            raise classify(response)
        if response_model is None or response.status_code == 204:
            return None
        return decode_body(response, response_model)
    finally:
        drain_and_close(response)


def _raise_if_done(ctx: Context) -> None:
    cause = ctx.err()
    if cause is not None:
        raise RequestCancelledError(cause) from cause


class RequestExecutor:
    """Retrying request engine.

    Network I/O (send, body read, drain) runs on a background thread that the
    caller waits on through its :class:`Context`, so ``cancel()`` and the
    deadline return control immediately. Abandoned calls finish on their own
    thread and still drain and close their response.
    """

    def __init__(
        self,
        config: ApiConfig | None = None,
        transport: Transport | None = None,
        backoff: BackoffPolicy | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.config = config or ApiConfig()
        self.transport = transport or HttpxTransport()
        self.backoff = backoff or BackoffPolicy()
        self._events = events

    def _emit(self, event_type: str, payload: dict[str, object]) -> None:
        if self._events is not None:
            self._events.emit(event_type, payload)

    def _attempt_timeout(self, ctx: Context) -> float:
        remaining = ctx.remaining()
        if remaining is None:
            return self.config.timeout_seconds
        return min(self.config.timeout_seconds, remaining)

    def _build_request(self, ctx: Context, method: str, url: str, content: bytes) -> httpx.Request:
        timeout = httpx.Timeout(self._attempt_timeout(ctx))
        try:
            return httpx.Request(
                method,
                url,
                headers=_DEFAULT_HEADERS,
                content=content,
                extensions={"timeout": timeout.as_dict()},
            )
        except httpx.InvalidURL as exc:
            raise TransportError(f"invalid url: {exc}") from exc

    def _send(self, ctx: Context, request: httpx.Request) -> httpx.Response:
        future = start_background(self.transport.send, request)
        try:
            return wait_for(ctx, future)
        except RequestCancelledError:
            future.add_done_callback(_release_abandoned)
            raise

    def send_with_retry(
        self,
        ctx: Context,
        method: str,
        url: str,
        content: bytes,
        max_attempts: int,
    ) -> httpx.Response:
        """Send until a non-transient response arrives or attempts run out.

        Transient responses are drained here; the returned response is
        unconsumed and belongs to the caller.
        """
        for attempt in range(max_attempts):
            _raise_if_done(ctx)
            request = self._build_request(ctx, method, url, content)

            self._emit(
                "request_sent",
                {"method": method, "url": redact_url(url), "attempt": attempt},
            )
            started = time.perf_counter()
            response = self._send(ctx, request)
            self._emit(
                "response_received",
                {
                    "method": method,
                    "status_code": response.status_code,
                    "attempt": attempt,
                    "latency_ms": int((time.perf_counter() - started) * 1000),
                },
            )
            cause = ctx.err()
            if cause is not None:
                start_background(drain_and_close, response)
                raise RequestCancelledError(cause) from cause
            if classify_status(response.status_code) is not StatusClass.TRANSIENT:
                return response

            wait_for(ctx, start_background(drain_and_close, response))
            delay = self.backoff.delay_for(attempt)
            self._emit(
                "retry_scheduled",
                {
                    "status_code": response.status_code,
                    "attempt": attempt,
                    "delay_ms": int(delay * 1000),
                },
            )
            self.backoff.wait(ctx, delay)
        raise TooManyRetriesError(max_attempts)

    def do(
        self,
        ctx: Context,
        method: str,
        url: str,
        body: BaseModel | None = None,
        response_model: type[ModelT] | None = None,
    ) -> ModelT | None:
        """Run one logical operation and return the decoded success body.

        Returns ``None`` when no ``response_model`` was given or the server
        answered 204. Every failure is raised as an :class:`AccountApiError`.
        """
        try:
            response = self.send_with_retry(
                ctx, method, url, encode_body(body), self.config.retry_count
            )
            result = wait_for(ctx, start_background(_read_result, response, response_model))
            _raise_if_done(ctx)
            return result
        except AccountApiError as exc:
            self._emit(
                "request_failed",
                {"method": method, "url": redact_url(url), "kind": exc.kind, "error": str(exc)},
            )
            raise
