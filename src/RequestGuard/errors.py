"""Exception hierarchy shared across key derivation, dispatch, and retry.

A guarded request can fail in two caller-visible ways: the transport
reports a network or HTTP failure, or the request is aborted because a
newer request under the same key superseded it (or the caller cancelled
it explicitly).  The retry controller needs to tell these apart, so the
cancellation flavour gets its own class instead of a flag on the
transport error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .models import RequestConfig

__all__ = [
    "RequestGuardError",
    "ConfigurationError",
    "TransportError",
    "CancellationError",
    "is_cancellation",
]


class RequestGuardError(RuntimeError):
    """Base exception for guarded request failures."""


class ConfigurationError(RequestGuardError):
    """Raised when client options, retry layers, or settings are invalid."""


class TransportError(RequestGuardError):
    """Raised when the transport fails to produce a successful response.

    ``response`` is ``None`` when no response was received (connection
    refused, DNS failure, timeout); otherwise it is the raw
    :class:`httpx.Response` whose status failed validation.
    """

    def __init__(
        self,
        message: str,
        *,
        config: Optional["RequestConfig"] = None,
        response: Any = None,
    ) -> None:
        super().__init__(message)
        self.config = config
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        if self.response is None:
            return None
        return getattr(self.response, "status_code", None)


class CancellationError(RequestGuardError):
    """Raised when a pending request is aborted through its cancellation handle."""

    def __init__(self, reason: Optional[str] = None, *, config: Optional["RequestConfig"] = None) -> None:
        super().__init__(reason or "Request cancelled")
        self.reason = reason
        self.config = config


def is_cancellation(error: BaseException) -> bool:
    """Return ``True`` when ``error`` signals a caller-initiated abort."""

    return isinstance(error, CancellationError)


# === NAVMAP v1 ===
# {
#   "module": "RequestGuard.errors",
#   "purpose": "Define the exception hierarchy used across key derivation, dispatch, and retry",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "transport", "name": "Transport Errors", "anchor": "TRN", "kind": "api"},
#     {"id": "cancellation", "name": "Cancellation Errors", "anchor": "CAN", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
