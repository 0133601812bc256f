"""Prometheus metrics for the negotiation tracker.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus the business metrics below.
- ``ACTIVE_NEGOTIATIONS``: Gauge of negotiations not yet completed or failed.
- ``NEGOTIATIONS_STARTED``: Counter of accepted submissions, by category.
- ``NEGOTIATIONS_COMPLETED``: Counter of completed negotiations, by result source.
- ``NEGOTIATIONS_FAILED``: Counter of failed negotiations, by the event that failed them.
- ``FALLBACK_CODES``: Counter of results carrying a synthesized confirmation code.

Business metrics are updated at status transitions by the tracker.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

ACTIVE_NEGOTIATIONS: Gauge = Gauge(
    "dropit_negotiations_active",
    "Number of negotiations that are starting or in progress",
)

NEGOTIATIONS_STARTED: Counter = Counter(
    "dropit_negotiations_started_total",
    "Total number of accepted negotiation submissions",
    ["category"],
)

NEGOTIATIONS_COMPLETED: Counter = Counter(
    "dropit_negotiations_completed_total",
    "Total number of negotiations reaching COMPLETED",
    ["source"],
)

NEGOTIATIONS_FAILED: Counter = Counter(
    "dropit_negotiations_failed_total",
    "Total number of negotiations reaching FAILED",
    ["reason"],
)

FALLBACK_CODES: Counter = Counter(
    "dropit_fallback_codes_total",
    "Total number of completed negotiations with a synthesized confirmation code",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Health, readiness and status polling endpoints are excluded; clients poll
    ``/status`` every couple of seconds and would drown the dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics", "/status/.*"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
