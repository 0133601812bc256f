"""Async adapter over the Vapi REST API.

Every request carries an explicit timeout that is independent of the
tracker's polling interval, so a hung request surfaces as
``ProviderUnavailable`` instead of stalling a polling loop.

Error mapping:

- ``configure_agent``: any failure -> ``ProviderConfigError``.
- ``place_call``: any failure -> ``CallPlacementError`` carrying the
  provider's message.
- ``get_call_status`` / ``end_call`` / ``list_phone_numbers``: transport
  errors, timeouts, 429 and 5xx -> ``ProviderUnavailable``; other non-2xx ->
  ``ProviderError``.
- ``get_call_transcript``: any failure or a missing transcript ->
  ``TranscriptUnavailable``.
"""

from __future__ import annotations

import re
from typing import Any

import httpx
import structlog

from dropit.config import Settings
from dropit.domain.errors import (
    CallPlacementError,
    ProviderConfigError,
    ProviderError,
    ProviderUnavailable,
    TranscriptUnavailable,
)
from dropit.provider.models import CallTranscript, PhoneNumber, ProviderCall
from dropit.resilience.retry import resilient_api_call

logger = structlog.get_logger()

_NON_DIGITS = re.compile(r"\D")


def _error_message(response: httpx.Response) -> str:
    """Best-effort human-readable message from a provider error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        if message:
            return str(message)
    return f"HTTP {response.status_code}"


def _is_transient(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class VapiClient:
    """Thin async client for the Vapi calling API.

    Owns one ``httpx.AsyncClient``.  Call ``aclose()`` on shutdown.

    Attributes:
        assistant_id: The shared provider assistant rewritten by
            ``configure_agent``.
        phone_number_id: Provider id of the dial-out number, set by
            ``resolve_phone_number_id``.  ``None`` until resolved.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.vapi.ai",
        assistant_id: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.assistant_id = assistant_id
        self.phone_number_id: str | None = None
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> VapiClient:
        """Build a client from application settings."""
        return cls(
            settings.vapi_api_key.get_secret_value(),
            base_url=settings.vapi_base_url,
            assistant_id=settings.vapi_assistant_id,
            timeout=settings.provider_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures to ``ProviderUnavailable``."""
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise ProviderUnavailable(f"Provider request timed out: {method} {path}") from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailable(f"Provider unreachable: {exc}") from exc

    async def _read_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return its JSON body, raising on non-2xx."""
        response = await self._send(method, path, **kwargs)
        if response.is_success:
            return response.json()

        message = _error_message(response)
        error_cls = ProviderUnavailable if _is_transient(response.status_code) else ProviderError
        raise error_cls(message, detail=message, status_code=response.status_code)

    # ------------------------------------------------------------------
    # Agent configuration and call placement (never retried)
    # ------------------------------------------------------------------

    async def configure_agent(self, agent_config: dict[str, Any]) -> dict[str, Any]:
        """Rewrite the shared provider assistant with *agent_config*.

        Raises:
            ProviderConfigError: On any non-2xx response or transport failure.
        """
        if not self.assistant_id:
            raise ProviderConfigError("No provider assistant id configured")

        try:
            data = await self._read_json(
                "PATCH", f"/assistant/{self.assistant_id}", json=agent_config
            )
        except ProviderError as exc:
            logger.error(
                "Agent configuration rejected",
                assistant_id=self.assistant_id,
                error=str(exc),
                status_code=exc.status_code,
            )
            raise ProviderConfigError(
                f"Failed to configure voice agent: {exc}",
                detail=exc.detail,
                status_code=exc.status_code,
            ) from exc

        logger.info(
            "Agent configured",
            assistant_id=self.assistant_id,
            name=agent_config.get("name"),
        )
        return dict(data)

    async def place_call(
        self,
        agent_id: str | None,
        phone_number_id: str | None,
        customer_number: str,
        metadata: dict[str, Any],
        *,
        assistant: dict[str, Any] | None = None,
    ) -> str:
        """Start an outbound call and return the provider's call id.

        Args:
            agent_id: Provider assistant to run the call.  Ignored when
                *assistant* is given.
            phone_number_id: Provider id of the dial-out number.
            customer_number: E.164 number to dial.
            metadata: Opaque data stored with the call by the provider.
            assistant: Transient assistant definition used for this call only.

        Raises:
            CallPlacementError: If the dial-out number is unresolved, the
                provider rejects the call, or the provider is unreachable.
        """
        if not phone_number_id:
            raise CallPlacementError(
                "Dial-out number is not registered with the voice provider; calling is unavailable"
            )

        payload: dict[str, Any] = {
            "phoneNumberId": phone_number_id,
            "customer": {"number": customer_number},
            "metadata": metadata,
        }
        if assistant is not None:
            payload["assistant"] = assistant
        else:
            payload["assistantId"] = agent_id

        try:
            data = await self._read_json("POST", "/call", json=payload)
        except ProviderError as exc:
            logger.error(
                "Call placement failed",
                customer_number=customer_number,
                error=str(exc),
                status_code=exc.status_code,
            )
            raise CallPlacementError(
                str(exc), detail=exc.detail, status_code=exc.status_code
            ) from exc

        call_id = data.get("id") if isinstance(data, dict) else None
        if not call_id:
            raise CallPlacementError("Provider accepted the call but returned no call id")

        logger.info("Call placed", call_id=call_id, customer_number=customer_number)
        return str(call_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_call_status(self, call_id: str) -> ProviderCall:
        """Fetch the raw call status and duration.

        Raises:
            ProviderUnavailable: On network errors, timeouts, 429 or 5xx.
            ProviderError: On any other non-2xx response.
        """
        data = await self._read_json("GET", f"/call/{call_id}")
        return ProviderCall.model_validate(data)

    @resilient_api_call("vapi.transcript", retry_on=TranscriptUnavailable)
    async def get_call_transcript(self, call_id: str) -> CallTranscript:
        """Fetch the transcript and summary of a call.

        Raises:
            TranscriptUnavailable: If the request fails or the call has no
                transcript yet.
        """
        try:
            data = await self._read_json("GET", f"/call/{call_id}")
        except ProviderError as exc:
            raise TranscriptUnavailable(
                f"Could not fetch transcript for call {call_id}: {exc}",
                detail=exc.detail,
                status_code=exc.status_code,
            ) from exc

        transcript = CallTranscript.from_call_payload(data) if isinstance(data, dict) else None
        if transcript is None:
            raise TranscriptUnavailable(f"Call {call_id} has no transcript")
        return transcript

    async def end_call(self, call_id: str) -> None:
        """Ask the provider to hang up a live call."""
        await self._read_json("POST", f"/call/{call_id}/end", json={})
        logger.info("Call ended", call_id=call_id)

    @resilient_api_call("vapi.phone_numbers", retry_on=ProviderUnavailable)
    async def list_phone_numbers(self) -> list[PhoneNumber]:
        """List the dial-out numbers registered with the provider account."""
        data = await self._read_json("GET", "/phone-number")
        return [PhoneNumber.model_validate(item) for item in data or []]

    async def resolve_phone_number_id(self, agent_number: str) -> str | None:
        """Find the provider id of *agent_number* and remember it.

        Matches on digits only, so ``+15719329354`` and ``15719329354`` are
        the same number.  When nothing matches, ``phone_number_id`` stays
        ``None`` and every later ``place_call`` fails loudly.

        Returns:
            The resolved id, or ``None``.
        """
        wanted = _NON_DIGITS.sub("", agent_number)
        numbers = await self.list_phone_numbers()

        for phone in numbers:
            if phone.number and _NON_DIGITS.sub("", phone.number) == wanted:
                self.phone_number_id = phone.id
                logger.info("Dial-out number resolved", phone_number_id=phone.id)
                return phone.id

        logger.error(
            "Dial-out number not found in provider account",
            agent_number=agent_number,
            available=[p.number for p in numbers],
        )
        return None
