from __future__ import annotations

from http import HTTPStatus

from accountapi.runtime.context import ContextError
from accountapi.types import ForbiddenErrorBody, GenericErrorBody


class AccountApiError(Exception):
    """Base class for every failure surfaced by the account API client."""

    kind = "error"

    def matches(self, pattern: AccountApiError) -> bool:
        return isinstance(self, type(pattern))


class TransportError(AccountApiError):
    """Network, DNS or TLS failure. Never retried."""

    kind = "transport_error"


class RequestCancelledError(AccountApiError):
    kind = "cancellation"

    def __init__(self, cause: ContextError) -> None:
        super().__init__(str(cause))
        self.cause = cause


class TooManyRetriesError(AccountApiError):
    """The client got throttled past the configured attempt budget."""

    kind = "too_many_retries"

    def __init__(self, attempts: int = 0) -> None:
        super().__init__("too many retries")
        self.attempts = attempts


class DecodeError(AccountApiError):
    kind = "decode_error"


class ApiStatusError(AccountApiError):
    status_code: int = 0


class HttpError(ApiStatusError):
    kind = "http_error"

    def __init__(self, status_code: int = 0) -> None:
        self.status_code = status_code
        try:
            phrase = HTTPStatus(status_code).phrase
        except ValueError:
            phrase = ""
        super().__init__(f"{status_code}: {phrase}")

    def matches(self, pattern: AccountApiError) -> bool:
        if not isinstance(pattern, HttpError) or not isinstance(self, type(pattern)):
            return False
        return pattern.status_code in (0, self.status_code)


class NotFoundError(ApiStatusError):
    """Some arbitrary resource cannot be found."""

    kind = "not_found"
    status_code = 404

    def __init__(self) -> None:
        super().__init__("not found")


def _same_generic_error(actual: GenericErrorBody, pattern: GenericErrorBody) -> bool:
    return (actual.error_code == pattern.error_code or pattern.error_code == "") and (
        actual.error_message == pattern.error_message or pattern.error_message == ""
    )


def _same_forbidden_error(actual: ForbiddenErrorBody, pattern: ForbiddenErrorBody) -> bool:
    return (actual.error == pattern.error or pattern.error == "") and (
        actual.error_description == pattern.error_description
        or pattern.error_description == ""
    )


class _GenericBodyError(ApiStatusError):
    def __init__(self, detail: GenericErrorBody | None = None) -> None:
        self.detail = detail or GenericErrorBody()
        if self.detail.error_code:
            message = f"{self.detail.error_code}: {self.detail.error_message}"
        else:
            message = self.detail.error_message
        super().__init__(message)

    @property
    def error_code(self) -> str:
        return self.detail.error_code

    @property
    def error_message(self) -> str:
        return self.detail.error_message

    def matches(self, pattern: AccountApiError) -> bool:
        """Empty fields in ``pattern`` act as "don't care"."""
        if not isinstance(pattern, _GenericBodyError) or type(pattern) is not type(self):
            return False
        return _same_generic_error(self.detail, pattern.detail)


class BadRequestError(_GenericBodyError):
    """The server wasn't expecting the request in its current form.

    Most often some required field is missing.
    """

    kind = "bad_request"
    status_code = 400


class ConflictError(_GenericBodyError):
    """The resource already exists or an invalid version was specified."""

    kind = "conflict"
    status_code = 409


class ForbiddenError(ApiStatusError):
    """The client doesn't have access to the resource."""

    kind = "forbidden"
    status_code = 403

    def __init__(self, detail: ForbiddenErrorBody | None = None) -> None:
        self.detail = detail or ForbiddenErrorBody()
        if self.detail.error:
            message = f"{self.detail.error}: {self.detail.error_description}"
        else:
            message = self.detail.error_description
        super().__init__(message)

    @property
    def error(self) -> str:
        return self.detail.error

    @property
    def error_description(self) -> str:
        return self.detail.error_description

    def matches(self, pattern: AccountApiError) -> bool:
        """Empty fields in ``pattern`` act as "don't care"."""
        if not isinstance(pattern, ForbiddenError):
            return False
        return _same_forbidden_error(self.detail, pattern.detail)
