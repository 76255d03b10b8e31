"""Sentry integration for error tracking."""
from __future__ import annotations

import logging
import os
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

_initialized = False


def init_sentry(
    dsn: str | None,
    environment: str = "production",
    enable_logging: bool = True,
    sample_rate: float = 1.0,
    traces_sample_rate: float = 0.1,
) -> bool:
    """Initialize Sentry error tracking.

    Args:
        dsn: Sentry DSN; tracking stays disabled when empty
        environment: Environment name (production, staging, development)
        enable_logging: Capture ERROR log records as events
        sample_rate: Error sampling rate (1.0 = 100%)
        traces_sample_rate: Performance tracing rate

    Returns:
        True if Sentry was initialized
    """
    global _initialized
    if not dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    integrations = []
    if enable_logging:
        integrations.append(LoggingIntegration(level=logging.INFO, event_level=logging.ERROR))

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            integrations=integrations,
            sample_rate=sample_rate,
            traces_sample_rate=traces_sample_rate,
            send_default_pii=False,
            release=os.getenv("GIT_COMMIT_SHA", "unknown"),
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    _initialized = True
    logger.info("Sentry initialized for %s environment", environment)
    return True


def capture_exception(error: BaseException, **extra: Any) -> None:
    """Capture exception with additional context blocks."""
    if not _initialized:
        return
    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in extra.items():
                scope.set_context(key, value if isinstance(value, dict) else {"value": value})
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.error(f"Failed to capture exception in Sentry: {e}")


def add_breadcrumb(message: str, category: str = "default", level: str = "info", **data: Any) -> None:
    if not _initialized:
        return
    try:
        sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data)
    except Exception as e:
        logger.error(f"Failed to add breadcrumb in Sentry: {e}")
