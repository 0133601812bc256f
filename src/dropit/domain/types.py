"""Domain enumerations for negotiation tracking."""

from enum import StrEnum


class NegotiationStatus(StrEnum):
    """Top-level lifecycle status of a negotiation."""

    STARTING = "starting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class Phase(StrEnum):
    """User-facing progress label, a refinement of ``IN_PROGRESS``."""

    INITIALIZING = "initializing"
    DIALING = "dialing"
    CONNECTED = "connected"
    NEGOTIATING = "negotiating"
    COMPLETING = "completing"
    FAILED = "failed"


class RequestCategory(StrEnum):
    """Kinds of customer-service task the agent can handle."""

    BOOK_APPOINTMENT = "book-appointment"
    CANCEL_APPOINTMENT = "cancel-appointment"
    REFUND = "refund"
    RETURN = "return"
    SUBSCRIPTION = "subscription"
    GENERAL = "general"


class ProviderCallStatus(StrEnum):
    """Raw call statuses reported by the voice provider."""

    QUEUED = "queued"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    FORWARDING = "forwarding"
    ENDED = "ended"
    FAILED = "failed"


class ResultSource(StrEnum):
    """Where a completed negotiation's result came from."""

    PROVIDER_POLL = "provider_poll"
    PROVIDER_WEBHOOK = "provider_webhook"
    FALLBACK = "fallback"


# Categories bound to a specific order: a reference number or screenshot is required.
ORDER_BOUND_CATEGORIES: frozenset[RequestCategory] = frozenset(
    {RequestCategory.REFUND, RequestCategory.RETURN}
)

TERMINAL_STATUSES: frozenset[NegotiationStatus] = frozenset(
    {NegotiationStatus.COMPLETED, NegotiationStatus.FAILED}
)
