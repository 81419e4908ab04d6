"""Error reporting through Sentry, fed by structlog.

``init_sentry`` is a no-op without a DSN, so it is safe to call
unconditionally at startup.  ``get_sentry_processor`` returns the structlog
processor that forwards ERROR events (oracle exhaustion, run crashes) to
Sentry; ``configure_logging`` inserts it when reporting is enabled.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor


def init_sentry(dsn: str, *, production: bool = False) -> bool:
    """Initialize the Sentry SDK.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        production: Tags events with the ``production`` or ``development``
            environment.

    Returns:
        True if Sentry was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment="production" if production else "development",
        traces_sample_rate=0.1,
        send_default_pii=False,
        # structlog-sentry does the capturing; the stdlib bridge would double-report.
        integrations=[LoggingIntegration(event_level=None, level=None)],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Must sit after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
