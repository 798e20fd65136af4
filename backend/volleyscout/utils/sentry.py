import logging
import os
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

logger = logging.getLogger(__name__)


def _parse_sample_rate(env_var: str, default: float = 0.0) -> float:
    """Read a sampling rate in [0, 1]; anything else falls back to ``default``."""

    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid float (got %r); defaulting to %.2f",
            env_var,
            raw_value,
            default,
        )
        return default
    if not 0 <= value <= 1:
        logger.warning("%s must be within [0, 1]; defaulting to %.2f", env_var, default)
        return default
    return value


def _dsn() -> Optional[str]:
    return (os.getenv("SENTRY_DSN") or "").strip() or None


def sentry_enabled() -> bool:
    return _dsn() is not None


def init_sentry() -> bool:
    """Initialise Sentry from ``SENTRY_*`` variables; ``False`` when no DSN is set."""

    dsn = _dsn()
    if dsn is None:
        logger.info("SENTRY_DSN not provided; error reporting disabled.")
        return False

    options: Dict[str, Any] = {
        "dsn": dsn,
        "integrations": [FastApiIntegration()],
        "environment": (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None,
        "traces_sample_rate": _parse_sample_rate("SENTRY_TRACES_SAMPLE_RATE"),
        "profiles_sample_rate": _parse_sample_rate("SENTRY_PROFILES_SAMPLE_RATE"),
    }
    sentry_sdk.init(**options)
    logger.info("Sentry enabled (environment=%s)", options["environment"] or "default")
    return True


def capture_persistence_failure(exc: BaseException, **context: Any) -> None:
    """Report a failed point log write with the rally key as context."""

    if not sentry_enabled():
        return
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("component", "point_log")
        scope.set_context("rally", context)
        sentry_sdk.capture_exception(exc)
