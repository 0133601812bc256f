"""Phone number normalization to the E.164 dial format.

Freeform input (``(415) 555-2671``, ``1-415-555-2671``, ``+1 415 555 2671``)
is reduced to digits and re-prefixed.  Anything that does not fit a US shape is
passed through untouched so that ``is_valid_e164`` can reject it.
"""

from __future__ import annotations

import re

from dropit.domain.errors import InvalidPhoneNumber

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(raw: str) -> str:
    """Convert freeform phone input to canonical E.164 where possible.

    Formatting characters are ignored.  11 digits starting with ``1`` become
    ``+`` + digits; exactly 10 digits become ``+1`` + digits.  Anything else
    is returned unchanged and left for ``is_valid_e164`` to judge.

    Args:
        raw: The phone number as typed by the user.

    Returns:
        The normalized number, or *raw* if no rule applied.
    """
    digits = _NON_DIGITS.sub("", raw)

    if len(digits) == 11 and digits.startswith("1"):
        return "+" + digits

    if len(digits) == 10:
        return "+1" + digits

    return raw


def is_valid_e164(phone_number: str) -> bool:
    """Return True if *phone_number* is ``+`` followed by 2-15 digits, first digit 1-9."""
    return E164_PATTERN.match(phone_number) is not None


def require_e164(raw: str) -> str:
    """Normalize *raw* and reject it unless the result is valid E.164.

    Raises:
        InvalidPhoneNumber: If the normalized number fails validation.
    """
    normalized = normalize_phone_number(raw.strip())
    if not is_valid_e164(normalized):
        raise InvalidPhoneNumber(normalized)
    return normalized
