"""Resilience infrastructure for provider API calls."""

from dropit.resilience.retry import resilient_api_call

__all__ = [
    "resilient_api_call",
]
