"""Domain types, models, and errors for negotiation tracking."""

from dropit.domain.errors import (
    CallPlacementError,
    DropItError,
    InvalidPhoneNumber,
    InvalidTransitionError,
    NotFound,
    ProviderConfigError,
    ProviderError,
    ProviderUnavailable,
    TranscriptUnavailable,
    ValidationError,
)
from dropit.domain.models import (
    CallSummary,
    Customer,
    Negotiation,
    NegotiationResult,
    SubmissionRequest,
)
from dropit.domain.types import (
    ORDER_BOUND_CATEGORIES,
    TERMINAL_STATUSES,
    NegotiationStatus,
    Phase,
    ProviderCallStatus,
    RequestCategory,
    ResultSource,
)

__all__ = [
    "ORDER_BOUND_CATEGORIES",
    "TERMINAL_STATUSES",
    "CallPlacementError",
    "CallSummary",
    "Customer",
    "DropItError",
    "InvalidPhoneNumber",
    "InvalidTransitionError",
    "Negotiation",
    "NegotiationResult",
    "NegotiationStatus",
    "NotFound",
    "Phase",
    "ProviderCallStatus",
    "ProviderConfigError",
    "ProviderError",
    "ProviderUnavailable",
    "RequestCategory",
    "ResultSource",
    "SubmissionRequest",
    "TranscriptUnavailable",
    "ValidationError",
]
