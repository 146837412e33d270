import logging
import os
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from ..config import parse_rate
from ..exceptions import DomainException

logger = logging.getLogger(__name__)


def _before_send(event: dict[str, Any], hint: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Drop events for domain errors that are answered with a problem response.

    A retryable conflict that still escapes (the retries were exhausted) is
    reported, tagged with its problem code.
    """

    exc_info = hint.get("exc_info")
    exc = exc_info[1] if exc_info else None
    if isinstance(exc, DomainException):
        if not getattr(exc, "retryable", False):
            return None
        event.setdefault("tags", {})["problem_code"] = exc.code
    return event


def init_sentry() -> bool:
    """Configure Sentry from ``SENTRY_*`` variables and report whether it is on."""

    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        logger.info("SENTRY_DSN not provided; skipping Sentry initialization.")
        return False

    environment = (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None
    release = (os.getenv("SENTRY_RELEASE") or "").strip() or None
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        environment=environment,
        release=release,
        traces_sample_rate=parse_rate("SENTRY_TRACES_SAMPLE_RATE"),
        profiles_sample_rate=parse_rate("SENTRY_PROFILES_SAMPLE_RATE"),
        before_send=_before_send,
    )
    logger.info("Sentry reporting enabled for %s", environment or "default environment")
    return True
