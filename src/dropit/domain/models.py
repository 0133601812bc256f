"""Pydantic v2 models for negotiation records and their results.

Field names are snake_case in Python and camelCase on the wire, which keeps
the JSON contract the browser client already speaks.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from dropit.domain.types import (
    TERMINAL_STATUSES,
    NegotiationStatus,
    Phase,
    RequestCategory,
    ResultSource,
)


_CALL_STATUSES = frozenset({NegotiationStatus.IN_PROGRESS, NegotiationStatus.COMPLETED})


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Customer(_WireModel):
    """The person the call is placed on behalf of."""

    full_name: str = ""
    phone: str
    email: str | None = None
    appointment_time: str | None = None
    appointment_action: str | None = None


class CallSummary(_WireModel):
    """Keyword-level digest of a finished call."""

    model_config = ConfigDict(frozen=True)

    outcome: str
    duration: str
    key_points: list[str]
    resolution: str


class NegotiationResult(_WireModel):
    """Outcome of a completed negotiation.

    ``code`` is always populated.  ``real_confirmation_code`` is only set when
    the code came from the provider or the call itself; a synthesized code
    leaves it ``None`` and sets ``code_synthesized``.  ``is_fallback`` marks a
    result built without any transcript at all.
    """

    model_config = ConfigDict(frozen=True)

    outcome: str
    code: str
    real_confirmation_code: str | None = None
    code_synthesized: bool = False
    is_fallback: bool = False
    refund_amount: Decimal | None = None
    transcript: str | None = None
    summary: CallSummary | None = None
    source: ResultSource
    completed_at: datetime

    @field_validator("refund_amount", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        if isinstance(v, float):
            raise ValueError("Use Decimal or string, not float, for monetary values")
        return v


class Negotiation(_WireModel):
    """One user-initiated request-and-call lifecycle.

    The record is owned by the server process.  Only the tracker mutates it;
    clients read deep-copied snapshots.
    """

    id: str
    status: NegotiationStatus = NegotiationStatus.STARTING
    phase: Phase = Phase.INITIALIZING
    user_message: str
    category: RequestCategory
    reference_number: str | None = None
    attachment_ref: str | None = None
    customer: Customer
    provider_call_id: str | None = None
    provider_call_status: str | None = None
    provider_duration_seconds: float | None = None
    created_at: datetime
    start_time: datetime | None = None
    last_update: datetime
    result: NegotiationResult | None = None
    error: str | None = None
    submitted_by: str | None = None

    @field_validator("user_message")
    @classmethod
    def message_must_not_be_empty(cls, v: str) -> str:
        """Ensure user_message is not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("user_message must not be empty")
        return v

    @model_validator(mode="after")
    def status_fields_consistent(self) -> Negotiation:
        """Ensure result/error/call id agree with the status."""
        self.check_invariants()
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def check_invariants(self) -> None:
        """Raise ``ValueError`` if status-dependent fields disagree.

        - ``result`` is present exactly when ``status`` is ``completed``.
        - ``error`` is present exactly when ``status`` is ``failed``.
        - ``provider_call_id`` is set once the call is ``in_progress`` or
          ``completed``.  Only a negotiation whose placement failed lacks one.
        """
        completed = self.status == NegotiationStatus.COMPLETED
        if (self.result is not None) != completed:
            raise ValueError(
                f"result must be present iff status is completed (status={self.status})"
            )

        failed = self.status == NegotiationStatus.FAILED
        if (self.error is not None) != failed:
            raise ValueError(f"error must be present iff status is failed (status={self.status})")

        if self.status in _CALL_STATUSES and not self.provider_call_id:
            raise ValueError(f"provider_call_id must be set when status is {self.status}")

    def duration_seconds(self, now: datetime) -> float:
        """Elapsed call time: the provider's figure when known, else wall clock."""
        if self.provider_duration_seconds is not None:
            return self.provider_duration_seconds
        if self.start_time is None:
            return 0.0
        end = self.result.completed_at if self.result is not None else now
        return max(0.0, (end - self.start_time).total_seconds())

    def to_snapshot(self, now: datetime) -> dict[str, Any]:
        """Render the client-visible JSON shape."""
        data = self.model_dump(mode="json", by_alias=True)
        data["durationSeconds"] = round(self.duration_seconds(now), 1)
        return data


class SubmissionRequest(_WireModel):
    """Raw submission fields as received from the form, before validation."""

    user_message: str | None = None
    order_number: str | None = None
    attachment_ref: str | None = None
    full_name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    appointment_time: str | None = None
    appointment_action: str | None = None
    submitted_by: str | None = None
