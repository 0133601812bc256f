"""Tests for the Vapi provider adapter, backed by ``httpx.MockTransport``."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest
from tenacity import wait_none

from dropit.domain.errors import (
    CallPlacementError,
    ProviderConfigError,
    ProviderError,
    ProviderUnavailable,
    TranscriptUnavailable,
)
from dropit.provider.client import VapiClient

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler, **kwargs) -> VapiClient:
    return VapiClient(
        "test-key",
        assistant_id=kwargs.pop("assistant_id", "asst_1"),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _without_waits(method):
    """The tenacity-wrapped *method* with backoff sleeps removed."""
    return method.retry_with(wait=wait_none())


# ---------------------------------------------------------------------------
# configure_agent
# ---------------------------------------------------------------------------

class TestConfigureAgent:
    """PATCH /assistant/{id}."""

    @pytest.mark.anyio()
    async def test_patches_shared_assistant(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "asst_1", "name": "DropIt - refund"})

        client = _client(handler)
        await client.configure_agent({"name": "DropIt - refund"})
        await client.aclose()

        assert seen[0].method == "PATCH"
        assert seen[0].url.path == "/assistant/asst_1"
        assert seen[0].headers["Authorization"] == "Bearer test-key"
        assert json.loads(seen[0].content) == {"name": "DropIt - refund"}

    @pytest.mark.anyio()
    async def test_rejection_raises_config_error(self) -> None:
        client = _client(lambda r: httpx.Response(400, json={"message": ["model is invalid"]}))

        with pytest.raises(ProviderConfigError, match="model is invalid") as exc_info:
            await client.configure_agent({"name": "x"})

        assert exc_info.value.status_code == 400

    @pytest.mark.anyio()
    async def test_transport_failure_raises_config_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        with pytest.raises(ProviderConfigError):
            await _client(handler).configure_agent({"name": "x"})

    @pytest.mark.anyio()
    async def test_missing_assistant_id(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={}), assistant_id="")

        with pytest.raises(ProviderConfigError):
            await client.configure_agent({"name": "x"})


# ---------------------------------------------------------------------------
# place_call
# ---------------------------------------------------------------------------

class TestPlaceCall:
    """POST /call."""

    @pytest.mark.anyio()
    async def test_returns_call_id(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"id": "call_123", "status": "queued"})

        call_id = await _client(handler).place_call(
            "asst_1", "pn_1", "+14155552671", {"negotiationId": "n1"}
        )

        assert call_id == "call_123"
        assert bodies[0] == {
            "assistantId": "asst_1",
            "phoneNumberId": "pn_1",
            "customer": {"number": "+14155552671"},
            "metadata": {"negotiationId": "n1"},
        }

    @pytest.mark.anyio()
    async def test_transient_assistant_sent_inline(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"id": "call_123"})

        await _client(handler).place_call(
            None, "pn_1", "+14155552671", {}, assistant={"name": "DropIt - general"}
        )

        assert bodies[0]["assistant"] == {"name": "DropIt - general"}
        assert "assistantId" not in bodies[0]

    @pytest.mark.anyio()
    async def test_provider_rejection_carries_message(self) -> None:
        client = _client(
            lambda r: httpx.Response(400, json={"message": "customer.number must be E.164"})
        )

        with pytest.raises(CallPlacementError, match="customer.number must be E.164"):
            await client.place_call("asst_1", "pn_1", "+1", {})

    @pytest.mark.anyio()
    async def test_unresolved_dial_out_number_fails_loudly(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(201, json={"id": "call_123"})

        with pytest.raises(CallPlacementError, match="not registered"):
            await _client(handler).place_call("asst_1", None, "+14155552671", {})

        assert calls == []

    @pytest.mark.anyio()
    async def test_unreachable_provider(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host")

        with pytest.raises(CallPlacementError):
            await _client(handler).place_call("asst_1", "pn_1", "+14155552671", {})

    @pytest.mark.anyio()
    async def test_missing_call_id(self) -> None:
        with pytest.raises(CallPlacementError, match="no call id"):
            await _client(lambda r: httpx.Response(201, json={})).place_call(
                "asst_1", "pn_1", "+14155552671", {}
            )


# ---------------------------------------------------------------------------
# get_call_status
# ---------------------------------------------------------------------------

class TestGetCallStatus:
    """GET /call/{id}."""

    @pytest.mark.anyio()
    async def test_status_and_duration(self) -> None:
        client = _client(
            lambda r: httpx.Response(
                200, json={"id": "call_1", "status": "in-progress", "duration": 12.5}
            )
        )

        call = await client.get_call_status("call_1")

        assert call.status == "in-progress"
        assert call.duration_seconds() == 12.5

    @pytest.mark.anyio()
    async def test_duration_from_timestamps(self) -> None:
        payload = {
            "id": "call_1",
            "status": "ended",
            "startedAt": "2025-03-14T15:00:00Z",
            "endedAt": "2025-03-14T15:01:30Z",
            "endedReason": "customer-ended-call",
        }
        call = await _client(lambda r: httpx.Response(200, json=payload)).get_call_status("call_1")

        assert call.duration_seconds() == 90.0
        assert call.ended_reason == "customer-ended-call"

    @pytest.mark.anyio()
    @pytest.mark.parametrize("status_code", [429, 500, 503])
    async def test_transient_statuses(self, status_code: int) -> None:
        client = _client(lambda r: httpx.Response(status_code, json={"message": "busy"}))

        with pytest.raises(ProviderUnavailable):
            await client.get_call_status("call_1")

    @pytest.mark.anyio()
    async def test_timeout_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out")

        with pytest.raises(ProviderUnavailable, match="timed out"):
            await _client(handler).get_call_status("call_1")

    @pytest.mark.anyio()
    async def test_not_found_is_not_transient(self) -> None:
        client = _client(lambda r: httpx.Response(404, json={"message": "Call not found"}))

        with pytest.raises(ProviderError) as exc_info:
            await client.get_call_status("call_1")

        assert not isinstance(exc_info.value, ProviderUnavailable)
        assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# get_call_transcript
# ---------------------------------------------------------------------------

class TestGetCallTranscript:
    """Transcript and summary from the call record."""

    @pytest.mark.anyio()
    async def test_reads_artifact_transcript_and_analysis_summary(self) -> None:
        payload = {
            "id": "call_1",
            "status": "ended",
            "artifact": {
                "transcript": [
                    {"role": "assistant", "message": "Could I get a confirmation code?"},
                    {"role": "user", "message": "Sure, it is RF-99812."},
                ]
            },
            "analysis": {"summary": "Refund approved."},
        }
        client = _client(lambda r: httpx.Response(200, json=payload))

        transcript = await client.get_call_transcript("call_1")

        assert "user: Sure, it is RF-99812." in transcript.transcript
        assert transcript.summary == "Refund approved."

    @pytest.mark.anyio()
    async def test_missing_transcript_raises_after_retries(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "call_1", "status": "ended"})

        client = _client(handler)
        fetch = _without_waits(VapiClient.get_call_transcript)

        with pytest.raises(TranscriptUnavailable):
            await fetch(client, "call_1")

        assert len(requests) == 3

    @pytest.mark.anyio()
    async def test_request_failure_becomes_transcript_unavailable(self) -> None:
        client = _client(lambda r: httpx.Response(500, json={"message": "boom"}))
        fetch = _without_waits(VapiClient.get_call_transcript)

        with pytest.raises(TranscriptUnavailable):
            await fetch(client, "call_1")


# ---------------------------------------------------------------------------
# end_call / phone numbers
# ---------------------------------------------------------------------------

class TestEndCall:
    """POST /call/{id}/end."""

    @pytest.mark.anyio()
    async def test_posts_end(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        await _client(handler).end_call("call_1")

        assert seen[0].method == "POST"
        assert seen[0].url.path == "/call/call_1/end"


class TestResolvePhoneNumberId:
    """GET /phone-number and digit-only matching."""

    @pytest.mark.anyio()
    async def test_matches_digits_only(self) -> None:
        numbers = [
            {"id": "pn_other", "number": "+12125550100"},
            {"id": "pn_ours", "number": "+15719329354"},
        ]
        client = _client(lambda r: httpx.Response(200, json=numbers))

        resolved = await client.resolve_phone_number_id("15719329354")

        assert resolved == "pn_ours"
        assert client.phone_number_id == "pn_ours"

    @pytest.mark.anyio()
    async def test_no_match_leaves_unresolved(self) -> None:
        numbers = [{"id": "pn_1", "number": "+12125550100"}]
        client = _client(lambda r: httpx.Response(200, json=numbers))

        assert await client.resolve_phone_number_id("+15719329354") is None
        assert client.phone_number_id is None
