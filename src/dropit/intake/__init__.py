"""Request intake: phone normalization, classification, and submission checks."""

from dropit.intake.classifier import classify_request
from dropit.intake.phone import is_valid_e164, normalize_phone_number, require_e164
from dropit.intake.submission import ValidatedSubmission, validate_submission

__all__ = [
    "ValidatedSubmission",
    "classify_request",
    "is_valid_e164",
    "normalize_phone_number",
    "require_e164",
    "validate_submission",
]
