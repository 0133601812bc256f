"""Keyword classification of a user's free-text request.

The categories overlap lexically ("cancel my appointment" also contains
"cancel"), so the rules are evaluated in a fixed order and the first match
wins.  Appointment rules must come before the generic cancel rule.
"""

from __future__ import annotations

from collections.abc import Callable

from dropit.domain.types import RequestCategory


def _has_any(text: str, *words: str) -> bool:
    return any(word in text for word in words)


# (predicate over the lower-cased message, category), in priority order.
CLASSIFICATION_RULES: list[tuple[Callable[[str], bool], RequestCategory]] = [
    (
        lambda m: "book" in m and _has_any(m, "appointment", "booking"),
        RequestCategory.BOOK_APPOINTMENT,
    ),
    (
        lambda m: "cancel" in m and _has_any(m, "appointment", "booking"),
        RequestCategory.CANCEL_APPOINTMENT,
    ),
    (lambda m: _has_any(m, "refund", "money back"), RequestCategory.REFUND),
    (lambda m: _has_any(m, "return", "send back"), RequestCategory.RETURN),
    (lambda m: _has_any(m, "cancel", "subscription", "rate"), RequestCategory.SUBSCRIPTION),
]


def classify_request(message: str) -> RequestCategory:
    """Select the negotiation category for a free-text request.

    Args:
        message: The user's description of what they want done.

    Returns:
        The first matching category, or ``GENERAL`` if no rule matches.
    """
    text = message.lower()
    for matches, category in CLASSIFICATION_RULES:
        if matches(text):
            return category
    return RequestCategory.GENERAL
