"""Domain-specific exception classes for negotiation tracking."""

from dropit.domain.types import NegotiationStatus


class DropItError(Exception):
    """Base class for all domain errors."""


class ValidationError(DropItError):
    """Raised when a submission is missing a required field.

    The message is user-correctable and surfaced verbatim to the client.
    """


class InvalidPhoneNumber(ValidationError):
    """Raised when a phone number does not normalize to E.164.

    Attributes:
        phone_number: The number as it stood after normalization.
    """

    def __init__(self, phone_number: str) -> None:
        self.phone_number = phone_number
        super().__init__(
            f"Invalid phone number format: {phone_number}. "
            "Must be in E.164 format (e.g., +15551234567)"
        )


class NotFound(DropItError):
    """Raised when a negotiation id is unknown.

    Attributes:
        negotiation_id: The id that was looked up.
    """

    def __init__(self, negotiation_id: str) -> None:
        self.negotiation_id = negotiation_id
        super().__init__("Negotiation not found")


class InvalidTransitionError(DropItError):
    """Raised when an invalid status transition is attempted.

    Attributes:
        current_status: The status the machine was in when the event arrived.
        event: The event that was rejected.
    """

    def __init__(self, current_status: NegotiationStatus, event: str) -> None:
        self.current_status = current_status
        self.event = event
        super().__init__(f"Cannot apply event '{event}' in status '{current_status}'")


class ProviderError(DropItError):
    """Base class for failures talking to the voice provider.

    Attributes:
        detail: Provider-supplied error detail, when the provider sent one.
        status_code: HTTP status of the provider response, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        detail: object = None,
        status_code: int | None = None,
    ) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(message)


class ProviderConfigError(ProviderError):
    """Raised when the provider rejects an agent configuration update."""


class CallPlacementError(ProviderError):
    """Raised when the provider refuses or cannot place a call."""


class ProviderUnavailable(ProviderError):
    """Raised on network errors, timeouts, or 5xx responses from the provider."""


class TranscriptUnavailable(ProviderError):
    """Raised when a call transcript cannot be retrieved."""
