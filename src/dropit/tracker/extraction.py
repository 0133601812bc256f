"""Deterministic extraction of structured results from finished calls.

Uses regex and keyword matching only.  Nothing here talks to the provider:
the service fetches the transcript and hands it over.
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation

from dropit.domain.models import CallSummary, NegotiationResult
from dropit.domain.types import ResultSource
from dropit.provider.models import CallTranscript

_CODE_LABEL = (
    r"\b(?:confirmation|reference|authorization|cancellation|ticket|case)"
    r"(?:\s+(?:code|number|no\.?|#))?"
)

# "confirmation code is AB12345", "reference number: 998877", "authorization # RMA-5521"
_LABELLED_CODE_PATTERN = re.compile(
    _CODE_LABEL + r"(?:\s+(?:is|will\s+be))?\s*[:#]?\s*"
    r"([A-Z0-9][A-Z0-9-]{3,})",
    re.IGNORECASE,
)

# "reference number for order ORD12345 is 998877"
_QUALIFIED_CODE_PATTERN = re.compile(
    _CODE_LABEL + r"(?:\s+[\w'-]+){1,4}?(?:\s+(?:is|will\s+be)\b|\s*:)\s*[:#]?\s*"
    r"([A-Z0-9][A-Z0-9-]{3,})",
    re.IGNORECASE,
)

# Bare codes shaped like "CSR-123456" or "RMA-5521"
_BARE_CODE_PATTERN = re.compile(r"\b([A-Z]{2,5}-\d{4,})\b")

# Dollar amounts like $12, $24.50, $1,250.00
_DOLLAR_PATTERN = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})+(?:\.\d{2})?|\d+(?:\.\d{2})?)")

_PLAIN_NUMBER = re.compile(r"\d+(?:\.\d+)?")

_SENTENCE_SPLIT = re.compile(r"(?<=[!?\n])|(?<=\.)\s+")

TWO_PLACES = Decimal("0.01")

_KEY_POINTS: list[tuple[str, str]] = [
    ("refund", "Refund discussed"),
    ("cancel", "Cancellation processed"),
    ("confirmation", "Confirmation provided"),
    ("code", "Reference code provided"),
]

_RESOLUTIONS: list[tuple[tuple[str, ...], str]] = [
    (("approved", "processed"), "Request approved and processed"),
    (("pending", "review"), "Request under review"),
    (("denied", "rejected"), "Request denied"),
]

DEFAULT_RESOLUTION = "Resolution pending"
GENERIC_FALLBACK_OUTCOME = "Call completed. The call details could not be retrieved."


def _labelled_code(pattern: re.Pattern[str], text: str) -> str | None:
    for match in pattern.finditer(text):
        candidate = match.group(1).strip("-")
        if any(ch.isdigit() for ch in candidate):
            return candidate.upper()
    return None


def extract_confirmation_code(*texts: str | None) -> str | None:
    """Find the first confirmation code across *texts*, in order.

    A labelled code ("confirmation number is 48213") beats one separated
    from its label by a few words ("reference number for order ORD1 is
    998877"), which beats a bare ``ABC-1234`` shaped token.  Candidates
    without a digit are skipped so that phrases like "confirmation code for
    this" do not match.

    Returns:
        The code, upper-cased, or ``None``.
    """
    for text in texts:
        if not text:
            continue
        code = _labelled_code(_LABELLED_CODE_PATTERN, text) or _labelled_code(
            _QUALIFIED_CODE_PATTERN, text
        )
        if code:
            return code
        bare = _BARE_CODE_PATTERN.search(text)
        if bare:
            return bare.group(1).upper()
    return None


def _parse_dollars(value: str) -> Decimal | None:
    try:
        return Decimal(value.replace(",", "")).quantize(TWO_PLACES)
    except InvalidOperation:
        return None


def extract_refund_amount(*texts: str | None) -> Decimal | None:
    """Find the refund amount across *texts*, in order.

    Only dollar amounts in a sentence that mentions a refund count.  When a
    text has several, the last one wins: offers escalate during a call and
    the final figure is the one agreed.

    Returns:
        The amount quantized to cents, or ``None``.
    """
    for text in texts:
        if not text:
            continue
        amounts: list[Decimal] = []
        for sentence in _SENTENCE_SPLIT.split(text):
            if not sentence or "refund" not in sentence.lower():
                continue
            for raw in _DOLLAR_PATTERN.findall(sentence):
                amount = _parse_dollars(raw)
                if amount is not None:
                    amounts.append(amount)
        if amounts:
            return amounts[-1]
    return None


def determine_resolution(transcript: str) -> str:
    """Classify how the call ended from resolution keywords."""
    text = transcript.lower()
    for keywords, resolution in _RESOLUTIONS:
        if any(keyword in text for keyword in keywords):
            return resolution
    return DEFAULT_RESOLUTION


def extract_key_points(transcript: str) -> list[str]:
    text = transcript.lower()
    points = [point for keyword, point in _KEY_POINTS if keyword in text]
    return points or ["General discussion completed"]


def format_minutes(duration_seconds: float | None) -> str:
    minutes = round((duration_seconds or 0.0) / 60)
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


def build_call_summary(transcript: str | None, duration_seconds: float | None) -> CallSummary:
    """Keyword-level digest of an ended call.

    Without a transcript the summary says so rather than guessing.
    """
    if not transcript:
        return CallSummary(
            outcome="Call completed",
            duration=format_minutes(duration_seconds),
            key_points=["Transcript unavailable"],
            resolution=DEFAULT_RESOLUTION,
        )
    return CallSummary(
        outcome="Call completed successfully",
        duration=format_minutes(duration_seconds),
        key_points=extract_key_points(transcript),
        resolution=determine_resolution(transcript),
    )


class FallbackCodeGenerator:
    """Synthesizes ``CSR-<last 6 digits of epoch ms>`` codes.

    Codes are derived from the clock but never repeat within one process:
    two requests in the same millisecond get consecutive values.
    """

    def __init__(self, prefix: str = "CSR") -> None:
        self.prefix = prefix
        self._last_ms = 0

    def __call__(self, now: datetime) -> str:
        epoch_ms = int(now.timestamp() * 1000)
        if epoch_ms <= self._last_ms:
            epoch_ms = self._last_ms + 1
        self._last_ms = epoch_ms
        return f"{self.prefix}-{str(epoch_ms)[-6:]}"


def result_from_transcript(
    transcript: CallTranscript,
    *,
    duration_seconds: float | None,
    now: datetime,
    fallback_codes: FallbackCodeGenerator,
) -> NegotiationResult:
    """Build the result of a call whose transcript was retrieved.

    The provider's summary is searched before the transcript.  When no code
    is found a synthesized one is used and ``real_confirmation_code`` stays
    ``None``.
    """
    code = extract_confirmation_code(transcript.summary, transcript.transcript)
    refund_amount = extract_refund_amount(transcript.summary, transcript.transcript)
    summary = build_call_summary(transcript.transcript, duration_seconds)

    return NegotiationResult(
        outcome=transcript.summary or summary.resolution,
        code=code or fallback_codes(now),
        real_confirmation_code=code,
        code_synthesized=code is None,
        refund_amount=refund_amount,
        transcript=transcript.transcript,
        summary=summary,
        source=ResultSource.PROVIDER_POLL,
        completed_at=now,
    )


def generic_fallback_result(
    *,
    duration_seconds: float | None,
    now: datetime,
    fallback_codes: FallbackCodeGenerator,
) -> NegotiationResult:
    """Result for an ended call whose transcript could not be fetched."""
    return NegotiationResult(
        outcome=GENERIC_FALLBACK_OUTCOME,
        code=fallback_codes(now),
        code_synthesized=True,
        is_fallback=True,
        summary=build_call_summary(None, duration_seconds),
        source=ResultSource.FALLBACK,
        completed_at=now,
    )


def result_from_webhook(
    refund: object,
    code: object,
    *,
    now: datetime,
    fallback_codes: FallbackCodeGenerator,
) -> NegotiationResult:
    """Result pushed by the provider's end-of-call webhook.

    *refund* may be a sentence ("I can approve a $12 refund") or a bare
    number; *code* is authoritative when present.
    """
    refund_text = str(refund).strip() if refund is not None else ""
    real_code = str(code).strip() if code is not None and str(code).strip() else None

    refund_amount: Decimal | None = None
    if _PLAIN_NUMBER.fullmatch(refund_text):
        refund_amount = _parse_dollars(refund_text)
    elif refund_text:
        refund_amount = extract_refund_amount(refund_text) or _first_dollar_amount(refund_text)

    return NegotiationResult(
        outcome=refund_text or "Result reported by the voice agent",
        code=real_code or fallback_codes(now),
        real_confirmation_code=real_code,
        code_synthesized=real_code is None,
        refund_amount=refund_amount,
        source=ResultSource.PROVIDER_WEBHOOK,
        completed_at=now,
    )


def _first_dollar_amount(text: str) -> Decimal | None:
    match = _DOLLAR_PATTERN.search(text)
    return _parse_dollars(match.group(1)) if match else None
