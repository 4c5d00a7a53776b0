from __future__ import annotations

import uuid
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Literal

from accountapi.logging.jsonl_sink import JsonlSink
from accountapi.logging.redaction import redact_secrets
from accountapi.logging.sanitizer import sanitize_text
from accountapi.types import EventRecord


def new_trace_id() -> str:
    return uuid.uuid4().hex


@dataclass
class EventContext:
    run_id: str
    trace_id: str = field(default_factory=new_trace_id)


class EventBus:
    """Emits request lifecycle events to a JSONL sink and an optional listener.

    With no sink attached the bus only notifies ``on_emit``; a library caller
    that passes no bus at all gets no events.
    """

    def __init__(
        self,
        sink: JsonlSink | None,
        context: EventContext,
        redact: bool = True,
        sanitize: bool = True,
        on_emit: Callable[[EventRecord], None] | None = None,
    ) -> None:
        self._sink = sink
        self._context = context
        self._redact = redact
        self._sanitize = sanitize
        self._on_emit = on_emit

    @property
    def context(self) -> EventContext:
        return self._context

    def _clean_value(self, value: Any) -> Any:
        if isinstance(value, str):
            text = value
            if self._sanitize:
                text = sanitize_text(text)
            if self._redact:
                text = redact_secrets(text)
            return text
        if isinstance(value, dict):
            return {key: self._clean_value(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._clean_value(item) for item in value]
        return value

    def emit(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        redaction_mode: Literal["full", "redacted"] = "redacted",
    ) -> EventRecord:
        event = EventRecord(
            run_id=self._context.run_id,
            trace_id=self._context.trace_id,
            span_id=uuid.uuid4().hex[:12],
            event_type=event_type,
            payload=self._clean_value(payload or {}),
            redaction_mode=redaction_mode,
        )
        if self._sink is not None:
            self._sink.write(event)
        if self._on_emit is not None:
            # A failing progress listener must not break the request.
            with suppress(Exception):
                self._on_emit(event)
        return event
