"""Validation of a raw submission into a classified, dialable request."""

from __future__ import annotations

from dataclasses import dataclass

from dropit.domain.errors import ValidationError
from dropit.domain.models import Customer, SubmissionRequest
from dropit.domain.types import ORDER_BOUND_CATEGORIES, RequestCategory
from dropit.intake.classifier import classify_request
from dropit.intake.phone import require_e164


@dataclass(frozen=True)
class ValidatedSubmission:
    """A submission that passed every precondition for placing a call."""

    user_message: str
    category: RequestCategory
    reference_number: str | None
    attachment_ref: str | None
    customer: Customer
    submitted_by: str | None = None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_submission(request: SubmissionRequest) -> ValidatedSubmission:
    """Check required fields, classify the request, and normalize the phone.

    Checks run in a fixed order so the first missing field is the one
    reported:

    1. ``user_message`` is always required.
    2. Refund and return requests need an order number or a screenshot.
    3. ``phone_number`` is always required and must normalize to E.164.

    Args:
        request: The raw form fields.

    Returns:
        A ``ValidatedSubmission`` ready to become a negotiation.

    Raises:
        ValidationError: If a required field is missing.
        InvalidPhoneNumber: If the phone number is not valid E.164.
    """
    user_message = _clean(request.user_message)
    if user_message is None:
        raise ValidationError("User message is required")

    category = classify_request(user_message)
    reference_number = _clean(request.order_number)
    attachment_ref = _clean(request.attachment_ref)

    if category in ORDER_BOUND_CATEGORIES and reference_number is None and attachment_ref is None:
        raise ValidationError("Either order number or screenshot is required for returns/refunds")

    raw_phone = _clean(request.phone_number)
    if raw_phone is None:
        raise ValidationError("Phone number is required to make the call")

    customer = Customer(
        full_name=_clean(request.full_name) or "",
        phone=require_e164(raw_phone),
        email=_clean(request.email),
        appointment_time=_clean(request.appointment_time),
        appointment_action=_clean(request.appointment_action),
    )

    return ValidatedSubmission(
        user_message=user_message,
        category=category,
        reference_number=reference_number,
        attachment_ref=attachment_ref,
        customer=customer,
        submitted_by=request.submitted_by,
    )
