"""
Sentry Integration for Error Tracking

Usage:
    from supportdesk.utils.monitoring import init_sentry

    # In main.py lifespan
    init_sentry()

Everything here is a no-op until init_sentry() has run with a DSN.
"""

import logging
import sys
from typing import Optional, Dict, Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.pymongo import PyMongoIntegration

from supportdesk.config import settings


logger = logging.getLogger(__name__)

_enabled = False


def init_sentry(
    dsn: Optional[str] = None,
    environment: Optional[str] = None,
    traces_sample_rate: float = 0.2,
) -> bool:
    """
    Initialize Sentry SDK with FastAPI integration

    Args:
        dsn: Sentry DSN (defaults to settings.sentry_dsn)
        environment: Environment name (defaults to settings.environment)
        traces_sample_rate: APM sampling rate (0.0 - 1.0)

    Returns:
        bool: True if Sentry initialized successfully, False otherwise
    """
    global _enabled

    dsn = dsn or settings.sentry_dsn
    if not dsn:
        logger.info("SENTRY_DSN not configured. Error tracking disabled.")
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment or settings.environment,
            integrations=[
                FastApiIntegration(
                    transaction_style="url",
                    failed_request_status_codes={*range(500, 600)},
                ),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
                PyMongoIntegration(),
            ],
            traces_sample_rate=traces_sample_rate,
            send_default_pii=False,
            before_send=_before_send_filter,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    sentry_sdk.set_tag("application", "support-desk")
    sentry_sdk.set_tag("python_version", f"{sys.version_info.major}.{sys.version_info.minor}")
    _enabled = True
    logger.info(f"Sentry initialized - Environment: {environment or settings.environment}")
    return True


def _before_send_filter(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Drop health check noise"""
    if "/api/health" in event.get("request", {}).get("url", ""):
        return None
    return event


def capture_exception(
    error: BaseException,
    tags: Optional[Dict[str, str]] = None,
    extra: Optional[Dict[str, Any]] = None
):
    """
    Manually capture exception to Sentry

    Args:
        error: Exception to capture
        tags: Additional tags
        extra: Additional context
    """
    if not _enabled:
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(error)


def flush_events(timeout: float = 2.0):
    """
    Flush pending Sentry events (useful before shutdown)

    Args:
        timeout: Timeout in seconds
    """
    if not _enabled:
        return

    sentry_sdk.flush(timeout=timeout)


def is_enabled() -> bool:
    """Check if Sentry is enabled and initialized"""
    return _enabled
