from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

EntityT = TypeVar("EntityT", bound=BaseModel)


class GenericErrorBody(BaseModel):
    """Error body returned with HTTP 400 and 409."""

    error_message: str = ""
    error_code: str = ""


class ForbiddenErrorBody(BaseModel):
    """Error body returned with HTTP 403."""

    error: str = ""
    error_description: str = ""


class AccountAttributes(BaseModel):
    account_classification: str | None = None
    account_matching_opt_out: bool | None = None
    account_number: str | None = None
    alternative_names: list[str] | None = None
    bank_id: str | None = None
    bank_id_code: str | None = None
    base_currency: str | None = None
    bic: str | None = None
    country: str | None = None
    iban: str | None = None
    joint_account: bool | None = None
    name: list[str] | None = None
    secondary_identification: str | None = None
    status: str | None = None
    switched: bool | None = None


class AccountData(BaseModel):
    """An account in the organisation section of the API."""

    attributes: AccountAttributes | None = None
    id: str | None = None
    organisation_id: str | None = None
    type: str | None = None
    version: int | None = None


class Envelope(BaseModel, Generic[EntityT]):
    model_config = ConfigDict(extra="ignore")

    data: EntityT


class EventRecord(BaseModel):
    run_id: str
    trace_id: str
    span_id: str
    timestamp: str = Field(default_factory=lambda: datetime.now(tz=UTC).isoformat())
    event_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    redaction_mode: Literal["full", "redacted"] = "redacted"
