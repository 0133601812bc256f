"""Voice provider (Vapi) adapter."""

from dropit.provider.client import VapiClient
from dropit.provider.models import CallTranscript, PhoneNumber, ProviderCall

__all__ = [
    "CallTranscript",
    "PhoneNumber",
    "ProviderCall",
    "VapiClient",
]
