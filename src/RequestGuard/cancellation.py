"""Cooperative cancellation primitives for in-flight guarded requests.

Every request attempt owns a :class:`CancellationHandle`.  The transport
races the network call against the handle's ``signal`` and raises
:class:`~RequestGuard.errors.CancellationError` when the signal wins.
:class:`CancellationRegistry` maps request keys to the live handle for
that key, which is how a newer request supersedes an older identical one.

All registry operations run on the event loop without awaiting, so each
one completes before any other registry operation can start.  Per-key
exclusivity comes from supersede-on-register rather than from locks.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Optional

from .errors import CancellationError
from .models import RequestKey
from .policy import DEFAULT_CANCEL_REASON

if TYPE_CHECKING:  # pragma: no cover
    from .models import RequestConfig

logger = logging.getLogger(__name__)

__all__ = ["CancellationHandle", "CancellationRegistry"]

AbortCallback = Callable[["CancellationHandle"], None]


class CancellationHandle:
    """Single-use token that moves a request from pending to aborted.

    Examples:
        >>> handle = CancellationHandle()
        >>> handle.abort("superseded")
        True
        >>> handle.abort("again")
        False
        >>> handle.reason
        'superseded'
    """

    def __init__(self, key: Optional[RequestKey] = None) -> None:
        self.key = key
        self._signal = asyncio.Event()
        self._aborted = False
        self._reason: Optional[str] = None
        self._callbacks: list[AbortCallback] = []

    def __repr__(self) -> str:
        state = "aborted" if self._aborted else "pending"
        return f"<CancellationHandle key={self.key!r} {state}>"

    @property
    def signal(self) -> asyncio.Event:
        """Event set once the handle is aborted; observed by the transport."""
        return self._signal

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def abort(self, reason: Optional[str] = None) -> bool:
        """Abort the handle.

        Returns:
            True if this call performed the transition, False if the handle
            was already aborted.
        """
        if self._aborted:
            return False
        self._aborted = True
        self._reason = reason or DEFAULT_CANCEL_REASON
        self._signal.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)
        return True

    def add_abort_callback(self, callback: AbortCallback) -> None:
        """Run ``callback(handle)`` on abort, immediately if already aborted."""
        if self._aborted:
            callback(self)
            return
        self._callbacks.append(callback)

    async def wait(self) -> Optional[str]:
        """Suspend until the handle is aborted and return the reason."""
        await self._signal.wait()
        return self._reason

    def raise_if_aborted(self, config: Optional["RequestConfig"] = None) -> None:
        if self._aborted:
            raise CancellationError(self._reason, config=config)


class CancellationRegistry:
    """Mapping of request key to the live cancellation handle for that key.

    Each client owns exactly one registry; registries are never shared, so
    independent clients cannot cancel each other's requests.
    """

    def __init__(self) -> None:
        self._handles: dict[RequestKey, CancellationHandle] = {}

    def register(self, key: RequestKey) -> CancellationHandle:
        """Supersede any handle under ``key`` and return a fresh one."""
        if self.cancel(key, "Superseded by a newer request"):
            logger.debug("Superseded pending request", extra={"extra_fields": {"key": repr(key)}})
        handle = CancellationHandle(key)
        self._handles[key] = handle
        return handle

    def cancel(self, key: RequestKey, reason: Optional[str] = None) -> bool:
        """Abort and drop the handle under ``key``.

        Returns:
            True if a handle was present, False otherwise (not an error).
        """
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.abort(reason)
        return True

    def cancel_all(self, reason: Optional[str] = None) -> int:
        """Abort every registered handle and empty the registry.

        The handles are snapshotted before aborting.  Anything registered by
        an abort callback while draining is dropped by the final clear.

        Returns:
            Number of handles aborted.
        """
        snapshot = list(self._handles.values())
        for handle in snapshot:
            handle.abort(reason)
        self._handles.clear()
        if snapshot:
            logger.info(
                "Cancelled pending requests",
                extra={"extra_fields": {"count": len(snapshot), "reason": reason}},
            )
        return len(snapshot)

    def release(self, key: RequestKey, handle: Optional[CancellationHandle] = None) -> bool:
        """Drop the entry for ``key`` without aborting it.

        When ``handle`` is given the entry is only dropped if it still maps to
        that handle, so a superseded attempt finishing late cannot evict its
        successor.  Releasing an absent key is a no-op.
        """
        current = self._handles.get(key)
        if current is None:
            return False
        if handle is not None and current is not handle:
            return False
        del self._handles[key]
        return True

    def get(self, key: RequestKey) -> Optional[CancellationHandle]:
        return self._handles.get(key)

    def keys(self) -> list[RequestKey]:
        return list(self._handles)

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[RequestKey]:
        return iter(list(self._handles))


# === NAVMAP v1 ===
# {
#   "module": "RequestGuard.cancellation",
#   "purpose": "Provide cooperative cancellation handles and the per-client key registry",
#   "sections": [
#     {"id": "handle", "name": "CancellationHandle", "anchor": "HDL", "kind": "api"},
#     {"id": "registry", "name": "CancellationRegistry", "anchor": "REG", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
