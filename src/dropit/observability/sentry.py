"""Sentry error reporting wired through structlog.

- ``init_sentry(dsn, environment)`` starts the SDK, or does nothing without a DSN.
- ``get_sentry_processor()`` returns the structlog processor that forwards
  ERROR-level events, including failed negotiations and crashed polling
  tasks, to Sentry.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor


def init_sentry(dsn: str, environment: str = "development") -> bool:
    """Initialize the Sentry SDK.

    Args:
        dsn: Sentry DSN.  Empty disables Sentry entirely.
        environment: Reported environment name.

    Returns:
        True if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        integrations=[
            # structlog-sentry reports errors; the stdlib bridge would report them twice.
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Processor forwarding ERROR events to Sentry.

    Goes after ``add_log_level`` and before the renderer in the chain.
    """
    return SentryProcessor(event_level=logging.ERROR)
