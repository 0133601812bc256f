"""Negotiation tracking: registry, result extraction, and the lifecycle service."""

from dropit.tracker.extraction import (
    FallbackCodeGenerator,
    build_call_summary,
    extract_confirmation_code,
    extract_refund_amount,
    generic_fallback_result,
    result_from_transcript,
    result_from_webhook,
)
from dropit.tracker.registry import Mutation, NegotiationRegistry
from dropit.tracker.service import NegotiationService

__all__ = [
    "FallbackCodeGenerator",
    "Mutation",
    "NegotiationRegistry",
    "NegotiationService",
    "build_call_summary",
    "extract_confirmation_code",
    "extract_refund_amount",
    "generic_fallback_result",
    "result_from_transcript",
    "result_from_webhook",
]
