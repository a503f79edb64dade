"""Replaceable request/response hook pairs wired into the transport.

The manager keeps the current :class:`InterceptorSet` and the ids of the
pairs it installed, so replacing a pair always ejects the old one first and
no hook runs twice.  The installed response pair releases the registry
entry of the completed attempt before handing control to the user hook.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Optional

from .cancellation import CancellationRegistry
from .models import RequestConfig
from .transport import Hook, Transport

logger = logging.getLogger(__name__)

__all__ = ["InterceptorSet", "InterceptorManager"]


def _identity(value: Any) -> Any:
    return value


def _reject(error: BaseException) -> Any:
    raise error


@dataclass(frozen=True)
class InterceptorSet:
    """Four independently optional hook slots."""

    on_request: Optional[Hook] = None
    on_request_error: Optional[Hook] = None
    on_response: Optional[Hook] = None
    on_response_error: Optional[Hook] = None

    def resolved(self) -> "InterceptorSet":
        """Return a copy with every unset slot filled by its passthrough default."""
        return InterceptorSet(
            on_request=self.on_request if callable(self.on_request) else _identity,
            on_request_error=self.on_request_error if callable(self.on_request_error) else _reject,
            on_response=self.on_response if callable(self.on_response) else _identity,
            on_response_error=(
                self.on_response_error if callable(self.on_response_error) else _reject
            ),
        )


class InterceptorManager:
    """Own the installed hook pairs of one client."""

    def __init__(
        self,
        transport: Transport,
        registry: CancellationRegistry,
        interceptors: Optional[InterceptorSet] = None,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._config = interceptors or InterceptorSet()
        self._request_id: Optional[int] = None
        self._response_id: Optional[int] = None

    @property
    def hooks(self) -> InterceptorSet:
        return self._config.resolved()

    def install(self) -> None:
        self._install_request_hooks()
        self._install_response_hooks()

    def set_request_hooks(
        self, on_request: Optional[Hook] = None, on_request_error: Optional[Hook] = None
    ) -> None:
        """Replace the request pair and reinstall it."""
        if self._request_id is not None:
            self._transport.interceptors.request.eject(self._request_id)
            self._request_id = None
        self._config = replace(self._config, on_request=on_request, on_request_error=on_request_error)
        self._install_request_hooks()
        logger.debug("Replaced request interceptors")

    def set_response_hooks(
        self, on_response: Optional[Hook] = None, on_response_error: Optional[Hook] = None
    ) -> None:
        """Replace the response pair and reinstall it."""
        if self._response_id is not None:
            self._transport.interceptors.response.eject(self._response_id)
            self._response_id = None
        self._config = replace(
            self._config, on_response=on_response, on_response_error=on_response_error
        )
        self._install_response_hooks()
        logger.debug("Replaced response interceptors")

    def _install_request_hooks(self) -> None:
        hooks = self.hooks
        self._request_id = self._transport.interceptors.request.use(
            hooks.on_request, hooks.on_request_error
        )

    def _install_response_hooks(self) -> None:
        hooks = self.hooks

        def on_response(response: Any) -> Any:
            self._release(getattr(response, "config", None))
            return hooks.on_response(response)

        def on_response_error(error: BaseException) -> Any:
            self._release(getattr(error, "config", None))
            return hooks.on_response_error(error)

        self._response_id = self._transport.interceptors.response.use(
            on_response, on_response_error
        )

    def _release(self, config: Optional[RequestConfig]) -> None:
        # Use the key stored at dispatch time; recomputing it could drift.
        key = getattr(config, "dispatch_key", None)
        if key is None:
            return
        self._registry.release(key, getattr(config, "handle", None))
