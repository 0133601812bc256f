"""Deterministic construction of the voice agent's instruction script.

Identical inputs always produce an identical script, so the output can be
compared against a stored snapshot in tests.
"""

from __future__ import annotations

from typing import Any

from dropit.config import Settings
from dropit.domain.models import Customer
from dropit.domain.types import RequestCategory
from dropit.prompts.templates import (
    BASE_PROMPT,
    CATEGORY_PROMPTS,
    END_CALL_MESSAGE,
    FIRST_MESSAGE,
    VOICEMAIL_MESSAGE,
)


def _coerce_category(category: RequestCategory | str) -> RequestCategory:
    try:
        return RequestCategory(category)
    except ValueError:
        return RequestCategory.GENERAL


def build_instruction_script(
    category: RequestCategory | str,
    user_message: str,
    reference_number: str | None,
    customer: Customer,
) -> str:
    """Render the full script: shared preamble followed by the category section.

    Args:
        category: The classified request type.  Unknown values fall back to
            the ``general`` template.
        user_message: The user's original request, quoted to the agent.
        reference_number: Order or account reference, if the user gave one.
        customer: Identity and appointment details of the customer.

    Returns:
        The instruction script as plain text.
    """
    resolved = _coerce_category(category)
    full_name = customer.full_name or None

    fields = {
        "full_name": full_name or "Not provided",
        "phone": customer.phone or "Not provided",
        "user_message": user_message,
        "reference": reference_number or "Not provided - customer has screenshot",
        "category": resolved.value,
        "order_or_screenshot": reference_number or "the attached screenshot",
        "reference_or_account": reference_number or "account",
        "customer_or_generic": full_name or "a customer",
        "appointment_time_or_ask": (
            customer.appointment_time or "Not specified - ask for available times"
        ),
        "appointment_time_or_defer": (
            customer.appointment_time or "Will provide details when asked"
        ),
    }

    preamble = BASE_PROMPT.format(**fields)
    section = CATEGORY_PROMPTS[resolved].format(**fields)
    return f"{preamble}\n\n{section}"


def build_agent_config(
    category: RequestCategory | str,
    script: str,
    settings: Settings,
) -> dict[str, Any]:
    """Build the provider assistant definition carrying *script*.

    The same payload is used to rewrite the shared assistant or to send a
    transient assistant with a single call.
    """
    resolved = _coerce_category(category)
    return {
        "name": f"DropIt - {resolved.value}",
        "model": {
            "provider": settings.agent_model_provider,
            "model": settings.agent_model,
            "messages": [{"role": "system", "content": script}],
        },
        "voice": {
            "provider": settings.agent_voice_provider,
            "voiceId": settings.agent_voice_id,
        },
        "firstMessage": FIRST_MESSAGE,
        "voicemailMessage": VOICEMAIL_MESSAGE,
        "endCallMessage": END_CALL_MESSAGE,
        "transcriber": {
            "provider": "deepgram",
            "model": "nova-2",
            "language": "en",
        },
    }
