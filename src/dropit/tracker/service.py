"""Negotiation lifecycle: submission, call placement, polling, and completion.

``NegotiationService`` is the only writer of negotiation records.  Each
accepted submission gets one background task that places the call and then
polls the provider until the negotiation reaches a terminal status:

1. **Placement**: build the instruction script, configure the agent and
   place the call.  Success moves ``starting -> in_progress``; any provider
   rejection moves ``starting -> failed`` with the provider's message.  There
   is no automatic retry.
2. **Polling**: every ``poll_interval_seconds`` fetch the raw call status and
   infer the phase.  ``ProviderUnavailable`` (timeouts included) backs off for
   ``poll_backoff_seconds`` and tries again; any other provider error fails
   the negotiation.
3. **Completion**: on ``ended`` fetch the transcript and extract the result.
   A missing transcript still completes the negotiation with a generic
   fallback result.

The provider's end-of-call webhook may complete a negotiation at any time;
the polling loop notices the terminal status and stops.  A webhook that
beats placement and carries no call id is held until the call is placed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog

from dropit.config import Settings
from dropit.domain.errors import ProviderError, ProviderUnavailable
from dropit.domain.models import Negotiation, NegotiationResult, SubmissionRequest
from dropit.domain.types import NegotiationStatus, Phase, ProviderCallStatus
from dropit.intake.submission import validate_submission
from dropit.observability.metrics import (
    ACTIVE_NEGOTIATIONS,
    FALLBACK_CODES,
    NEGOTIATIONS_COMPLETED,
    NEGOTIATIONS_FAILED,
    NEGOTIATIONS_STARTED,
)
from dropit.prompts.builder import build_agent_config, build_instruction_script
from dropit.provider.client import VapiClient
from dropit.state_machine.phases import advance_phase, infer_phase
from dropit.state_machine.transitions import NegotiationEvent
from dropit.tracker.extraction import (
    FallbackCodeGenerator,
    generic_fallback_result,
    result_from_transcript,
    result_from_webhook,
)
from dropit.tracker.registry import NegotiationRegistry

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class NegotiationService:
    """Drives every negotiation from submission to a terminal status.

    Args:
        registry: Where records live.
        provider: The voice provider adapter.
        settings: Polling intervals and agent configuration mode.
        clock: Source of the current time.
        sleep: Awaitable delay used between polls.
        id_factory: Generates negotiation ids.
    """

    def __init__(
        self,
        registry: NegotiationRegistry,
        provider: VapiClient,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        id_factory: Callable[[], str] = lambda: uuid4().hex,
    ) -> None:
        self.registry = registry
        self.provider = provider
        self.settings = settings
        self._clock = clock
        self._sleep = sleep
        self._id_factory = id_factory
        self._fallback_codes = FallbackCodeGenerator()
        self._agent_lock = asyncio.Lock()
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._held_results: dict[str, NegotiationResult] = {}

    @property
    def running_tasks(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def submit(self, request: SubmissionRequest) -> str:
        """Validate *request*, create its record, and start the call in the background.

        Returns immediately with the new negotiation id.

        Raises:
            ValidationError: If a required field is missing; no record is created.
            InvalidPhoneNumber: If the phone number is not E.164; no record is created.
        """
        submission = validate_submission(request)
        now = self._clock()

        record = Negotiation(
            id=self._id_factory(),
            user_message=submission.user_message,
            category=submission.category,
            reference_number=submission.reference_number,
            attachment_ref=submission.attachment_ref,
            customer=submission.customer,
            created_at=now,
            last_update=now,
            submitted_by=submission.submitted_by,
        )
        self.registry.add(record)

        ACTIVE_NEGOTIATIONS.inc()
        NEGOTIATIONS_STARTED.labels(category=record.category.value).inc()
        logger.info(
            "Negotiation submitted",
            negotiation_id=record.id,
            category=record.category,
            customer_phone=record.customer.phone,
        )

        task = asyncio.create_task(self._run(record.id), name=f"negotiation-{record.id}")
        self._tasks[record.id] = task
        task.add_done_callback(lambda _t, nid=record.id: self._tasks.pop(nid, None))
        return record.id

    def get_status(self, negotiation_id: str) -> dict[str, Any]:
        """Return the client-visible snapshot of a negotiation.

        Raises:
            NotFound: If *negotiation_id* is unknown.
        """
        return self.registry.snapshot(negotiation_id).to_snapshot(self._clock())

    async def log_result(
        self,
        call_id: str | None,
        refund: object = None,
        code: object = None,
        negotiation_id: str | None = None,
    ) -> bool:
        """Complete a negotiation from the provider's end-of-call webhook.

        The record is found by provider call id, or by *negotiation_id* when
        the provider echoes the call metadata before the call id is known
        locally.  A webhook call id is recorded on a record that has none yet.
        Without any call id the result is held and applied once placement
        records the call.  Unknown calls and already terminal negotiations are
        ignored.

        Returns:
            True if a negotiation was completed.
        """
        target = self.registry.find_by_call_id(call_id) if call_id else None
        if target is None and negotiation_id and negotiation_id in self.registry:
            target = negotiation_id
        if target is None:
            logger.warning("Result logged for unknown call", call_id=call_id)
            return False

        result = result_from_webhook(
            refund, code, now=self._clock(), fallback_codes=self._fallback_codes
        )
        with structlog.contextvars.bound_contextvars(negotiation_id=target):
            record = self.registry.snapshot(target)
            if not record.provider_call_id and not call_id and not record.is_terminal:
                self._held_results.setdefault(target, result)
                logger.info("Result held until the call is placed")
                return False
            return await self._complete(
                target, NegotiationEvent.RESULT_LOGGED, result, call_id=call_id
            )

    async def wait(self, negotiation_id: str) -> None:
        """Wait until background tracking of *negotiation_id* has finished."""
        task = self._tasks.get(negotiation_id)
        if task is not None:
            await task

    async def shutdown(self) -> None:
        """Stop every polling loop, optionally hanging up live calls first."""
        if self.settings.end_calls_on_shutdown:
            for negotiation_id in self.registry.ids(active_only=True):
                call_id = self.registry.snapshot(negotiation_id).provider_call_id
                if not call_id:
                    continue
                try:
                    await self.provider.end_call(call_id)
                except ProviderError as exc:
                    logger.warning(
                        "Could not end call on shutdown",
                        negotiation_id=negotiation_id,
                        call_id=call_id,
                        error=str(exc),
                    )

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Negotiation tracking stopped", cancelled=len(tasks))

    # ------------------------------------------------------------------
    # Background lifecycle
    # ------------------------------------------------------------------

    async def _run(self, negotiation_id: str) -> None:
        structlog.contextvars.bind_contextvars(negotiation_id=negotiation_id)
        try:
            if await self._place_call(negotiation_id):
                await self._poll(negotiation_id)
        except asyncio.CancelledError:
            logger.info("Negotiation tracking cancelled")
            raise
        except Exception:
            logger.exception("Negotiation tracking crashed")
            await self._fail(
                negotiation_id,
                "Internal error while tracking the call",
                reason="internal",
            )

    async def _place_call(self, negotiation_id: str) -> bool:
        """Configure the agent and place the call.

        Returns:
            True if the call was placed and should be polled.
        """
        record = self.registry.snapshot(negotiation_id)
        script = build_instruction_script(
            record.category, record.user_message, record.reference_number, record.customer
        )
        agent_config = build_agent_config(record.category, script, self.settings)
        metadata = {
            "negotiationId": record.id,
            "category": record.category.value,
            "referenceNumber": record.reference_number,
            "attachmentRef": record.attachment_ref,
        }

        try:
            if self.settings.agent_config_mode == "per_call":
                call_id = await self.provider.place_call(
                    None,
                    self.provider.phone_number_id,
                    record.customer.phone,
                    metadata,
                    assistant=agent_config,
                )
            else:
                # The shared assistant must not be rewritten between our
                # configure and our place.
                async with self._agent_lock:
                    await self.provider.configure_agent(agent_config)
                    call_id = await self.provider.place_call(
                        self.provider.assistant_id,
                        self.provider.phone_number_id,
                        record.customer.phone,
                        metadata,
                    )
        except ProviderError as exc:
            await self._fail(
                negotiation_id,
                str(exc),
                event=NegotiationEvent.PLACEMENT_FAILED,
                reason="placement",
            )
            return False

        async with self.registry.mutate(negotiation_id) as mutation:
            if mutation.record.is_terminal:
                logger.info(
                    "Call placed after negotiation already finished",
                    call_id=call_id,
                    recorded_call_id=mutation.record.provider_call_id,
                )
                return False
            mutation.record.provider_call_id = call_id
            mutation.record.start_time = self._clock()
            mutation.transition(NegotiationEvent.CALL_PLACED)

        logger.info("Negotiation in progress", call_id=call_id)

        held = self._held_results.pop(negotiation_id, None)
        if held is not None:
            await self._complete(negotiation_id, NegotiationEvent.RESULT_LOGGED, held)
            return False
        return True

    async def _poll(self, negotiation_id: str) -> None:
        interval = self.settings.poll_interval_seconds
        backoff = self.settings.poll_backoff_seconds

        while True:
            record = self.registry.snapshot(negotiation_id)
            if record.is_terminal or record.provider_call_id is None:
                return

            try:
                call = await self.provider.get_call_status(record.provider_call_id)
            except ProviderUnavailable as exc:
                logger.warning("Status poll failed, backing off", error=str(exc), backoff=backoff)
                await self._sleep(backoff)
                continue
            except ProviderError as exc:
                await self._fail(negotiation_id, f"Lost track of the call: {exc}", reason="poll")
                return

            stop = await self._apply_call_status(
                negotiation_id,
                call.status,
                call.duration_seconds(self._clock()),
                call.ended_reason,
            )
            if stop:
                return
            await self._sleep(interval)

    async def _apply_call_status(
        self,
        negotiation_id: str,
        provider_status: str,
        duration_seconds: float | None,
        ended_reason: str | None,
    ) -> bool:
        """Record one poll result.

        Returns:
            True if polling should stop.
        """
        if provider_status == ProviderCallStatus.FAILED:
            await self._fail(
                negotiation_id,
                f"Call failed: {ended_reason or 'the provider reported a failure'}",
                reason="provider",
                provider_status=provider_status,
            )
            return True

        now = self._clock()
        async with self.registry.mutate(negotiation_id) as mutation:
            record = mutation.record
            if record.is_terminal:
                return True
            record.provider_call_status = provider_status
            if duration_seconds is not None:
                record.provider_duration_seconds = duration_seconds
            previous_phase = record.phase
            record.phase = infer_phase(provider_status, record.duration_seconds(now), record.phase)

        if record.phase != previous_phase:
            logger.info(
                "Negotiation phase changed",
                phase=record.phase,
                previous_phase=previous_phase,
                provider_status=provider_status,
            )

        if provider_status == ProviderCallStatus.ENDED:
            await self._finish_ended_call(negotiation_id, record)
            return True
        return False

    async def _finish_ended_call(self, negotiation_id: str, record: Negotiation) -> None:
        call_id = record.provider_call_id or ""
        now = self._clock()
        duration = record.duration_seconds(now)

        try:
            transcript = await self.provider.get_call_transcript(call_id)
        except ProviderError as exc:
            logger.warning(
                "Transcript unavailable, using fallback result",
                call_id=call_id,
                error=str(exc),
            )
            result = generic_fallback_result(
                duration_seconds=duration, now=now, fallback_codes=self._fallback_codes
            )
        else:
            result = result_from_transcript(
                transcript,
                duration_seconds=duration,
                now=now,
                fallback_codes=self._fallback_codes,
            )

        await self._complete(negotiation_id, NegotiationEvent.CALL_ENDED, result)

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def _complete(
        self,
        negotiation_id: str,
        event: NegotiationEvent,
        result: NegotiationResult,
        *,
        call_id: str | None = None,
    ) -> bool:
        async with self.registry.mutate(negotiation_id) as mutation:
            if not mutation.can_transition(event):
                logger.info(
                    "Result ignored",
                    event=event,
                    status=mutation.record.status,
                )
                return False
            if call_id and not mutation.record.provider_call_id:
                mutation.record.provider_call_id = call_id
            mutation.transition(event)
            mutation.record.result = result
            mutation.record.phase = advance_phase(mutation.record.phase, Phase.COMPLETING)

        ACTIVE_NEGOTIATIONS.dec()
        NEGOTIATIONS_COMPLETED.labels(source=result.source.value).inc()
        if result.code_synthesized:
            FALLBACK_CODES.inc()
        logger.info(
            "Negotiation completed",
            source=result.source,
            code=result.code,
            code_synthesized=result.code_synthesized,
            refund_amount=str(result.refund_amount) if result.refund_amount is not None else None,
        )
        return True

    async def _fail(
        self,
        negotiation_id: str,
        message: str,
        *,
        event: NegotiationEvent = NegotiationEvent.CALL_FAILED,
        reason: str,
        provider_status: str | None = None,
    ) -> bool:
        self._held_results.pop(negotiation_id, None)
        async with self.registry.mutate(negotiation_id) as mutation:
            record = mutation.record
            if record.status == NegotiationStatus.STARTING:
                event = NegotiationEvent.PLACEMENT_FAILED
            if not mutation.can_transition(event):
                return False
            mutation.transition(event)
            record.error = message
            record.phase = Phase.FAILED
            if provider_status is not None:
                record.provider_call_status = provider_status

        ACTIVE_NEGOTIATIONS.dec()
        NEGOTIATIONS_FAILED.labels(reason=reason).inc()
        logger.error("Negotiation failed", reason=reason, error=message)
        return True
