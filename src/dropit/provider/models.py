"""Pydantic models for the subset of Vapi responses the tracker reads."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PhoneNumber(BaseModel):
    """A dial-out number registered with the provider account."""

    model_config = ConfigDict(extra="ignore")

    id: str
    number: str | None = None


class ProviderCall(BaseModel):
    """Call record as returned by ``GET /call/{id}``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    status: str = ""
    duration: float | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    ended_reason: str | None = None

    def duration_seconds(self, now: datetime | None = None) -> float | None:
        """Reported duration, or the span between ``startedAt`` and ``endedAt``/*now*."""
        if self.duration is not None:
            return self.duration
        if self.started_at is None:
            return None
        end = self.ended_at or now or datetime.now(tz=UTC)
        return max(0.0, (end - self.started_at).total_seconds())


class CallTranscript(BaseModel):
    """Post-call artifacts: the transcript text and the provider's summary."""

    transcript: str
    summary: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_call_payload(cls, payload: dict[str, Any]) -> CallTranscript | None:
        """Pull transcript and summary out of a call payload.

        Looks at the top-level fields first, then ``artifact`` / ``analysis``.
        Returns ``None`` when the payload carries no transcript text.
        """
        artifact = payload.get("artifact") or {}
        analysis = payload.get("analysis") or {}

        transcript = payload.get("transcript") or artifact.get("transcript")
        if isinstance(transcript, list):
            transcript = "\n".join(
                f"{entry.get('role', 'unknown')}: {entry.get('message', '')}"
                for entry in transcript
                if isinstance(entry, dict)
            )
        if not isinstance(transcript, str) or not transcript.strip():
            return None

        summary = payload.get("summary") or analysis.get("summary")
        return cls(
            transcript=transcript,
            summary=summary if isinstance(summary, str) else None,
            raw=payload,
        )
