"""Client side of the status contract: submit, poll, and describe progress.

The server's ``phase`` is authoritative.  ``describe_phase`` only falls back
to elapsed-time bucketing when a snapshot carries no phase, e.g. when talking
to an older server.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx
import structlog

from dropit.domain.errors import DropItError, NotFound, ValidationError
from dropit.domain.types import TERMINAL_STATUSES, NegotiationStatus, Phase

logger = structlog.get_logger()

DEFAULT_SERVER_URL = "http://localhost:3001"
DEFAULT_POLL_INTERVAL = 2.0

Snapshot = dict[str, Any]
UpdateCallback = Callable[[Snapshot], Awaitable[None] | None]

PHASE_LABELS: dict[str, str] = {
    Phase.INITIALIZING: "Preparing your call",
    Phase.DIALING: "Dialing customer service",
    Phase.CONNECTED: "Connected to a representative",
    Phase.NEGOTIATING: "Negotiating on your behalf",
    Phase.COMPLETING: "Wrapping up the call",
    Phase.FAILED: "Call failed",
}

# (upper bound in seconds, phase) for snapshots without a server phase
_ELAPSED_BUCKETS: list[tuple[float, Phase]] = [
    (15.0, Phase.DIALING),
    (45.0, Phase.CONNECTED),
    (120.0, Phase.NEGOTIATING),
]


class ServerError(DropItError):
    """Raised when the server answers with an unexpected error status."""


def describe_phase(snapshot: Snapshot) -> str:
    """Human-readable progress line for a status snapshot."""
    status = snapshot.get("status")
    if status == NegotiationStatus.COMPLETED:
        return "Call complete"
    if status == NegotiationStatus.FAILED:
        label = PHASE_LABELS[Phase.FAILED]
        error = snapshot.get("error")
        if not error:
            return label
        return error if error.startswith(label) else f"{label}: {error}"
    if status == NegotiationStatus.STARTING:
        return PHASE_LABELS[Phase.INITIALIZING]

    phase = snapshot.get("phase")
    if phase in PHASE_LABELS:
        return PHASE_LABELS[phase]

    elapsed = float(snapshot.get("durationSeconds") or 0.0)
    for upper_bound, bucket_phase in _ELAPSED_BUCKETS:
        if elapsed < upper_bound:
            return PHASE_LABELS[bucket_phase]
    return PHASE_LABELS[Phase.COMPLETING]


def is_terminal(snapshot: Snapshot) -> bool:
    return snapshot.get("status") in TERMINAL_STATUSES


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


class DropItClient:
    """Async HTTP client for the DropIt server.

    Args:
        base_url: Server root, e.g. ``http://localhost:3001``.
        token: Optional bearer token; submissions are attributed to its user.
        timeout: Per-request timeout in seconds.
        transport: Custom httpx transport, used by tests.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> DropItClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def submit(
        self,
        user_message: str,
        phone_number: str,
        *,
        order_number: str | None = None,
        full_name: str | None = None,
        email: str | None = None,
        appointment_time: str | None = None,
        appointment_action: str | None = None,
        screenshot: Path | None = None,
    ) -> str:
        """Start a negotiation and return its id.

        Raises:
            ValidationError: If the server rejected the submission (400).
            ServerError: On any other error status.
        """
        fields = {
            "userMessage": user_message,
            "phoneNumber": phone_number,
            "orderNumber": order_number,
            "fullName": full_name,
            "email": email,
            "appointmentTime": appointment_time,
            "appointmentAction": appointment_action,
        }
        data = {key: value for key, value in fields.items() if value is not None}

        if screenshot is not None:
            with screenshot.open("rb") as fh:
                files = {"screenshot": (screenshot.name, fh.read())}
            response = await self._http.post("/start", data=data, files=files)
        else:
            response = await self._http.post("/start", data=data)

        if response.status_code == 400:
            raise ValidationError(_error_message(response))
        if response.is_error:
            raise ServerError(_error_message(response))
        return str(response.json()["negotiationId"])

    async def get_status(self, negotiation_id: str) -> Snapshot:
        """Fetch one status snapshot.

        Raises:
            NotFound: If the server does not know *negotiation_id*.
            httpx.HTTPStatusError: On 5xx responses.
            httpx.TransportError: If the server is unreachable.
        """
        response = await self._http.get(f"/status/{negotiation_id}")
        if response.status_code == 404:
            raise NotFound(negotiation_id)
        response.raise_for_status()
        return dict(response.json())


class NegotiationPoller:
    """Polls a negotiation until it reaches a terminal status.

    Each ``watch`` runs in its own task.  The task finishes as soon as a
    terminal snapshot is seen, so no timer outlives the negotiation.
    Transient failures (network errors, 5xx) are logged and retried on the
    next tick; an unknown id ends the task with ``NotFound``.
    """

    def __init__(
        self,
        client: DropItClient,
        interval: float = DEFAULT_POLL_INTERVAL,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.interval = interval
        self._sleep = sleep
        self._tasks: set[asyncio.Task[Snapshot]] = set()

    async def _poll(self, negotiation_id: str, on_update: UpdateCallback | None) -> Snapshot:
        while True:
            try:
                snapshot = await self.client.get_status(negotiation_id)
            except (httpx.TransportError, httpx.HTTPStatusError) as exc:
                logger.warning("Status check failed", negotiation_id=negotiation_id, error=str(exc))
            else:
                if on_update is not None:
                    outcome = on_update(snapshot)
                    if inspect.isawaitable(outcome):
                        await outcome
                if is_terminal(snapshot):
                    return snapshot
            await self._sleep(self.interval)

    def watch(
        self,
        negotiation_id: str,
        on_update: UpdateCallback | None = None,
    ) -> asyncio.Task[Snapshot]:
        """Start polling in the background.

        Returns:
            A task resolving to the terminal snapshot.  Cancel it to stop early.
        """
        task = asyncio.create_task(
            self._poll(negotiation_id, on_update), name=f"watch-{negotiation_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait(self, negotiation_id: str, on_update: UpdateCallback | None = None) -> Snapshot:
        """Poll in the foreground until the negotiation finishes."""
        return await self.watch(negotiation_id, on_update)

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
