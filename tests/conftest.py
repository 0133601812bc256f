"""Shared pytest fixtures for the DropIt test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any

import pytest
from fastapi.testclient import TestClient

from dropit.app import create_app
from dropit.auth.service import AuthService
from dropit.config import Settings, get_settings
from dropit.domain.errors import CallPlacementError
from dropit.domain.models import Customer, SubmissionRequest
from dropit.provider.models import CallTranscript, PhoneNumber, ProviderCall
from dropit.tracker.registry import NegotiationRegistry
from dropit.tracker.service import NegotiationService

FIXED_NOW = datetime(2025, 3, 14, 15, 9, 26, tzinfo=UTC)


class FakeProvider:
    """In-memory stand-in for ``VapiClient``.

    ``statuses`` is consumed one entry per poll; the last entry repeats.  An
    entry may be an exception, which is raised instead of returned.
    """

    def __init__(self) -> None:
        self.assistant_id = "asst_test"
        self.phone_number_id: str | None = "pn_test"
        self.statuses: list[ProviderCall | Exception] = [ProviderCall(id="call_1", status="ended")]
        self.transcript: CallTranscript | Exception = CallTranscript(
            transcript="CSR: Your refund is approved. Your confirmation number is 48213."
        )
        self.place_error: Exception | None = None
        self.step_delay = 0.0
        self.events: list[tuple[str, str]] = []
        self.placed: list[dict[str, Any]] = []
        self.ended: list[str] = []
        self.phone_numbers = [PhoneNumber(id="pn_test", number="+15719329354")]
        self.closed = False
        self._calls = 0

    async def configure_agent(self, agent_config: dict[str, Any]) -> dict[str, Any]:
        self.events.append(("configure", agent_config["name"]))
        await asyncio.sleep(self.step_delay)
        return agent_config

    async def place_call(
        self,
        agent_id: str | None,
        phone_number_id: str | None,
        customer_number: str,
        metadata: dict[str, Any],
        *,
        assistant: dict[str, Any] | None = None,
    ) -> str:
        self.events.append(("place", metadata["negotiationId"]))
        await asyncio.sleep(self.step_delay)
        if self.place_error is not None:
            raise self.place_error
        if not phone_number_id:
            raise CallPlacementError("Dial-out number is not registered with the voice provider")
        self._calls += 1
        call_id = f"call_{self._calls}"
        self.placed.append(
            {
                "agent_id": agent_id,
                "phone_number_id": phone_number_id,
                "customer_number": customer_number,
                "metadata": metadata,
                "assistant": assistant,
                "call_id": call_id,
            }
        )
        return call_id

    async def get_call_status(self, call_id: str) -> ProviderCall:
        entry = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(entry, Exception):
            raise entry
        return entry.model_copy(update={"id": call_id})

    async def get_call_transcript(self, call_id: str) -> CallTranscript:
        if isinstance(self.transcript, Exception):
            raise self.transcript
        return self.transcript

    async def end_call(self, call_id: str) -> None:
        self.ended.append(call_id)

    async def list_phone_numbers(self) -> list[PhoneNumber]:
        return list(self.phone_numbers)

    async def resolve_phone_number_id(self, agent_number: str) -> str | None:
        return self.phone_number_id

    async def aclose(self) -> None:
        self.closed = True


class SleepRecorder:
    """Async ``sleep`` replacement that records delays and yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.on_sleep: Callable[[], None] | None = None

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep()
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


@pytest.fixture
def anyio_backend() -> str:
    """Run ``@pytest.mark.anyio()`` tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment, with uploads in a temp dir."""
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        vapi_api_key="test-key",
        vapi_assistant_id="asst_test",
        agent_phone_number="+15719329354",
        jwt_secret_key="test-secret",
        upload_dir=tmp_path / "uploads",
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    """A provider whose calls end immediately with a transcript carrying a code."""
    return FakeProvider()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """Records poll delays without waiting."""
    return SleepRecorder()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """A clock frozen at ``FIXED_NOW``."""
    return lambda: FIXED_NOW


@pytest.fixture
def sample_customer() -> Customer:
    """A representative customer with a normalized US number."""
    return Customer(full_name="Jane Doe", phone="+14155552671", email="jane@example.com")


@pytest.fixture
def refund_request() -> SubmissionRequest:
    """The canonical refund submission with a 10-digit phone number."""
    return SubmissionRequest(
        user_message="I want a refund",
        order_number="ORD1",
        phone_number="4155552671",
    )


@pytest.fixture
def app_services(settings, fake_provider) -> dict[str, Any]:
    """Services wired like ``initialize_services`` around ``FakeProvider``, polling fast."""
    fast = settings.model_copy(update={"poll_interval_seconds": 0.01, "poll_backoff_seconds": 0.01})
    registry = NegotiationRegistry()
    return {
        "_settings": fast,
        "provider": fake_provider,
        "registry": registry,
        "negotiations": NegotiationService(registry, fake_provider, fast),
        "auth": AuthService(fast),
    }


@pytest.fixture
def client(app_services) -> Iterator[TestClient]:
    """TestClient with the lifespan running, so background polling survives requests."""
    with TestClient(create_app(app_services)) as test_client:
        yield test_client
