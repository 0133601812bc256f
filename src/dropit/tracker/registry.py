"""In-memory negotiation registry with atomic read-modify-write.

One registry exists per server process.  Records live in a dict, each guarded
by its own ``asyncio.Lock``.  Writers go through ``mutate()``, which hands out
a private working copy and commits it only if the block finishes cleanly and
the record's invariants still hold.  Readers get deep copies and never see a
half-applied update.

State is lost on restart.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

from dropit.domain.errors import InvalidTransitionError, NotFound
from dropit.domain.models import Negotiation
from dropit.domain.types import NegotiationStatus
from dropit.state_machine.machine import NegotiationStateMachine

TransitionRecord = tuple[NegotiationStatus, str, NegotiationStatus]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class _Entry:
    record: Negotiation
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    history: list[TransitionRecord] = field(default_factory=list)


class Mutation:
    """Working copy of one negotiation inside ``NegotiationRegistry.mutate``.

    Field changes go straight onto ``record``.  Status changes go through
    ``transition()`` so they are checked against the transition table.
    """

    def __init__(self, record: Negotiation) -> None:
        self.record = record
        self.transitions: list[TransitionRecord] = []

    def can_transition(self, event: str) -> bool:
        """Return True if *event* is valid from the working copy's status."""
        return NegotiationStateMachine(self.record.status).can_trigger(event)

    def transition(self, event: str) -> NegotiationStatus:
        """Move the working copy's status by *event*.

        Raises:
            InvalidTransitionError: If *event* is not valid from the current status.
        """
        machine = NegotiationStateMachine(self.record.status)
        new_status = machine.trigger(event)
        self.transitions.extend(machine.history)
        self.record.status = new_status
        return new_status


class NegotiationRegistry:
    """Process-wide store of negotiation records."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._by_call_id: dict[str, str] = {}

    def __contains__(self, negotiation_id: object) -> bool:
        return negotiation_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, record: Negotiation) -> None:
        """Store a freshly created record.

        Raises:
            ValueError: If a record with the same id already exists.
        """
        if record.id in self._entries:
            raise ValueError(f"Negotiation {record.id} already exists")
        self._entries[record.id] = _Entry(record=record.model_copy(deep=True))
        if record.provider_call_id:
            self._by_call_id[record.provider_call_id] = record.id

    def _entry(self, negotiation_id: str) -> _Entry:
        try:
            return self._entries[negotiation_id]
        except KeyError:
            raise NotFound(negotiation_id) from None

    def snapshot(self, negotiation_id: str) -> Negotiation:
        """Return a deep copy of the record.

        Raises:
            NotFound: If no record has *negotiation_id*.
        """
        return self._entry(negotiation_id).record.model_copy(deep=True)

    def history(self, negotiation_id: str) -> list[TransitionRecord]:
        """Return the ``(from_status, event, to_status)`` transitions of a record."""
        return list(self._entry(negotiation_id).history)

    def find_by_call_id(self, provider_call_id: str) -> str | None:
        """Return the negotiation id that owns *provider_call_id*, if any."""
        return self._by_call_id.get(provider_call_id)

    def ids(self, *, active_only: bool = False) -> list[str]:
        if not active_only:
            return list(self._entries)
        return [nid for nid, entry in self._entries.items() if not entry.record.is_terminal]

    @asynccontextmanager
    async def mutate(self, negotiation_id: str) -> AsyncIterator[Mutation]:
        """Atomically read, modify and write one record.

        The per-record lock is held for the whole block.  On a clean exit the
        working copy replaces the stored record and ``last_update`` is
        refreshed if anything changed.  An exception inside the block discards
        every change.

        Raises:
            NotFound: If no record has *negotiation_id*.
            InvalidTransitionError: If the block changed a terminal record.
            ValueError: If the modified record breaks a status invariant.
        """
        entry = self._entry(negotiation_id)
        async with entry.lock:
            mutation = Mutation(entry.record.model_copy(deep=True))
            yield mutation

            updated = mutation.record
            if updated == entry.record:
                return
            if entry.record.is_terminal:
                raise InvalidTransitionError(entry.record.status, "update")

            updated.last_update = self._clock()
            updated.check_invariants()
            entry.record = updated
            entry.history.extend(mutation.transitions)
            if updated.provider_call_id:
                self._by_call_id[updated.provider_call_id] = negotiation_id
