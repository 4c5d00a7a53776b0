from __future__ import annotations

from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from accountapi.errors import (
    AccountApiError,
    BadRequestError,
    ConflictError,
    DecodeError,
    ForbiddenError,
    HttpError,
    NotFoundError,
    TransportError,
)
from accountapi.runtime.retry import StatusClass, classify_status
from accountapi.types import ForbiddenErrorBody, GenericErrorBody

ModelT = TypeVar("ModelT", bound=BaseModel)


def read_body(response: httpx.Response) -> bytes:
    try:
        return response.read()
    except httpx.DecodingError as exc:
        raise DecodeError(f"cannot decompress {response.status_code} response: {exc}") from exc
    except httpx.TransportError as exc:
        raise TransportError(f"reading response body failed: {exc}") from exc


def decode_body(response: httpx.Response, model: type[ModelT]) -> ModelT:
    content = read_body(response)
    try:
        return model.model_validate_json(content)
    except ValidationError as exc:
        raise DecodeError(
            f"cannot decode {response.status_code} response as {model.__name__}: {exc}"
        ) from exc


def classify(response: httpx.Response) -> AccountApiError:
    """Map a terminal, non-success response to exactly one typed error.

    Structured bodies are decoded for 400, 403 and 409; a body that fails to
    decode yields :class:`DecodeError` instead.
    """
    status_class = classify_status(response.status_code)
    if status_class is StatusClass.BAD_REQUEST:
        return BadRequestError(decode_body(response, GenericErrorBody))
    if status_class is StatusClass.CONFLICT:
        return ConflictError(decode_body(response, GenericErrorBody))
    if status_class is StatusClass.FORBIDDEN:
        return ForbiddenError(decode_body(response, ForbiddenErrorBody))
    if status_class is StatusClass.NOT_FOUND:
        return NotFoundError()
    return HttpError(response.status_code)
