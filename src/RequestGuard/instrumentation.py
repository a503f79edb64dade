# === NAVMAP v1 ===
# {
#   "module": "RequestGuard.instrumentation",
#   "purpose": "HTTPX event hooks logging per-request timing.",
#   "sections": [
#     {
#       "id": "create-http-event-hooks",
#       "name": "create_http_event_hooks",
#       "anchor": "function-create-http-event-hooks",
#       "kind": "function"
#     },
#     {
#       "id": "redact-url",
#       "name": "_redact_url",
#       "anchor": "function-redact-url",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX event hooks logging per-request timing.

The hooks run inside ``httpx.AsyncClient`` for every dispatched request,
including each retry attempt, and log method, redacted URL, status and
elapsed time at DEBUG level.
"""

import logging
import time
from typing import Any
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

START_TIME_EXTENSION = "requestguard.started_at"


def create_http_event_hooks() -> dict:
    """Create async HTTPX event hooks for request timing.

    Returns:
        Dict with 'request' and 'response' hooks for ``httpx.AsyncClient``

    Usage:
        >>> import httpx
        >>> hooks = create_http_event_hooks()
        >>> client = httpx.AsyncClient(event_hooks=hooks)
    """

    async def on_request(request: Any) -> None:
        # Stored on the request so the mark dies with it, whether or not a
        # response ever arrives.
        request.extensions[START_TIME_EXTENSION] = time.perf_counter()

    async def on_response(response: Any) -> None:
        start_time = response.request.extensions.get(START_TIME_EXTENSION)
        if start_time is None:
            return

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "HTTP request completed",
            extra={
                "extra_fields": {
                    "method": response.request.method,
                    "url_redacted": _redact_url(str(response.request.url)),
                    "status": response.status_code,
                    "elapsed_ms": round(elapsed_ms, 3),
                }
            },
        )

    return {
        "request": [on_request],
        "response": [on_response],
    }


def _redact_url(url: str) -> str:
    """Strip query string and fragment, keeping scheme, host and path."""
    parsed = urlsplit(url)
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, "", ""))


__all__ = [
    "START_TIME_EXTENSION",
    "create_http_event_hooks",
]
