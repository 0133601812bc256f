"""Inference of the user-facing phase from raw provider call status.

The provider only reports coarse statuses.  ``connected`` versus
``negotiating`` is a time-boxed guess: an in-progress call is considered to
have moved past introductions once it has run longer than
``CONNECTED_THRESHOLD_SECONDS``.
"""

from __future__ import annotations

from dropit.domain.types import Phase, ProviderCallStatus

# Fixed threshold (seconds) between the connected and negotiating phases.
CONNECTED_THRESHOLD_SECONDS: float = 45.0

# Forward order of phases.  FAILED sits outside the order: it is reachable
# from anywhere and nothing follows it.
PHASE_ORDER: dict[Phase, int] = {
    Phase.INITIALIZING: 0,
    Phase.DIALING: 1,
    Phase.CONNECTED: 2,
    Phase.NEGOTIATING: 3,
    Phase.COMPLETING: 4,
}

_STATUS_PHASES: dict[str, Phase] = {
    ProviderCallStatus.QUEUED: Phase.INITIALIZING,
    ProviderCallStatus.RINGING: Phase.DIALING,
    ProviderCallStatus.FORWARDING: Phase.NEGOTIATING,
    ProviderCallStatus.ENDED: Phase.COMPLETING,
    ProviderCallStatus.FAILED: Phase.FAILED,
}


def phase_for_status(provider_status: str, duration_seconds: float | None) -> Phase | None:
    """Map a raw provider status to a phase, ignoring history.

    Args:
        provider_status: Raw status string from the provider.
        duration_seconds: Elapsed call time, used only for ``in-progress``.

    Returns:
        The phase, or ``None`` for an unrecognized status.
    """
    if provider_status == ProviderCallStatus.IN_PROGRESS:
        if (duration_seconds or 0.0) > CONNECTED_THRESHOLD_SECONDS:
            return Phase.NEGOTIATING
        return Phase.CONNECTED
    return _STATUS_PHASES.get(provider_status)


def advance_phase(current: Phase, candidate: Phase | None) -> Phase:
    """Apply *candidate* only if it moves the phase forward.

    ``FAILED`` always wins and is never left.  Unknown candidates and
    backwards moves keep *current*.
    """
    if current == Phase.FAILED or candidate is None:
        return current
    if candidate == Phase.FAILED:
        return Phase.FAILED
    if PHASE_ORDER[candidate] > PHASE_ORDER[current]:
        return candidate
    return current


def infer_phase(
    provider_status: str,
    duration_seconds: float | None,
    current_phase: Phase,
) -> Phase:
    """Infer the next phase from provider status while keeping phases monotonic.

    - ``queued`` -> initializing
    - ``ringing`` -> dialing
    - ``in-progress`` -> connected (<= 45s) or negotiating (> 45s)
    - ``forwarding`` -> negotiating
    - ``ended`` -> completing
    - ``failed`` -> failed
    - anything else -> *current_phase*

    Args:
        provider_status: Raw status string from the provider.
        duration_seconds: Elapsed call time in seconds.
        current_phase: The last phase shown to the user.

    Returns:
        The phase to show next.
    """
    return advance_phase(current_phase, phase_for_status(provider_status, duration_seconds))
