"""Structured logging helpers shared across guarded client components."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging"]

_SENSITIVE_MARKERS = ("authorization", "token", "secret", "password", "api-key", "api_key", "cookie")


def mask_sensitive_data(payload: Any) -> Any:
    """Return ``payload`` with credential-looking values replaced by ``***``."""

    if isinstance(payload, dict):
        masked = {}
        for key, value in payload.items():
            if isinstance(key, str) and any(marker in key.lower() for marker in _SENSITIVE_MARKERS):
                masked[key] = "***"
            else:
                masked[key] = mask_sensitive_data(value)
        return masked
    if isinstance(payload, list):
        return [mask_sensitive_data(item) for item in payload]
    return payload


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string including ``extra_fields``."""

        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def setup_logging(
    *,
    level: Optional[str] = None,
    json_format: bool = False,
    stream: Optional[TextIO] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``RequestGuard`` logger with a single managed stream handler.

    Handlers installed by earlier calls are replaced, so repeated calls never
    duplicate output.  ``level`` defaults to the ``log_level`` setting.
    """

    if level is None:
        from .settings import get_settings

        level = get_settings().log_level

    logger = logging.getLogger("RequestGuard")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_requestguard_managed", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    handler._requestguard_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    logger.propagate = propagate
    return logger
