# === NAVMAP v1 ===
# {
#   "module": "RequestGuard.transport",
#   "purpose": "HTTPX-backed transport with interceptor chains and cooperative cancellation.",
#   "sections": [
#     {
#       "id": "interceptorchain",
#       "name": "InterceptorChain",
#       "anchor": "class-interceptorchain",
#       "kind": "class"
#     },
#     {
#       "id": "run-chain",
#       "name": "run_chain",
#       "anchor": "function-run-chain",
#       "kind": "function"
#     },
#     {
#       "id": "transport",
#       "name": "Transport",
#       "anchor": "class-transport",
#       "kind": "class"
#     },
#     {
#       "id": "httpxtransport",
#       "name": "HttpxTransport",
#       "anchor": "class-httpxtransport",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX-backed transport with interceptor chains and cooperative cancellation.

The guarded client never talks to ``httpx`` directly.  It drives a
:class:`Transport`, which supplies four things:

- ``send(config)``: run the request interceptors, dispatch, run the
  response interceptors, and return a :class:`ClientResponse` or raise.
- ``interceptors.request`` / ``interceptors.response``: ordered hook-pair
  chains whose ``use()`` returns an id that ``eject()`` later removes.
- Cancellation: when ``config.handle`` is aborted mid-flight the pending
  ``httpx`` call is cancelled and :class:`CancellationError` is raised.
- Default configuration: a mutable ``headers`` mapping and ``base_url``.

Chain semantics follow the usual fulfilled/rejected model.  Each hook pair
sees either the current value (``fulfilled``) or the current error
(``rejected``).  A rejected hook that returns a value recovers the chain;
one that raises keeps it failed.  A failure in the request chain skips
dispatch and enters the response chain as an error.

Example:
    >>> transport = HttpxTransport(base_url="https://api.example.com")
    >>> hook_id = transport.interceptors.response.use(lambda r: r)
    >>> transport.interceptors.response.eject(hook_id)
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from .errors import CancellationError, TransportError
from .models import ClientResponse, ParamsSerializer, RequestConfig
from .policy import DEFAULT_BASE_URL, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

Hook = Callable[[Any], Any]


def _passthrough(value: Any) -> Any:
    return value


def _reraise(error: BaseException) -> Any:
    raise error


# ============================================================================
# Interceptor Chains
# ============================================================================


class InterceptorChain:
    """Ordered collection of ``(fulfilled, rejected)`` hook pairs."""

    def __init__(self) -> None:
        self._handlers: dict[int, tuple[Hook, Hook]] = {}
        self._ids = itertools.count()

    def use(self, fulfilled: Optional[Hook] = None, rejected: Optional[Hook] = None) -> int:
        """Append a hook pair and return its id for :meth:`eject`."""
        handler_id = next(self._ids)
        self._handlers[handler_id] = (fulfilled or _passthrough, rejected or _reraise)
        return handler_id

    def eject(self, handler_id: int) -> bool:
        return self._handlers.pop(handler_id, None) is not None

    def clear(self) -> None:
        self._handlers.clear()

    def handlers(self) -> list[tuple[Hook, Hook]]:
        return list(self._handlers.values())

    def __len__(self) -> int:
        return len(self._handlers)


@dataclass
class Interceptors:
    request: InterceptorChain = field(default_factory=InterceptorChain)
    response: InterceptorChain = field(default_factory=InterceptorChain)


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


async def run_chain(
    chain: InterceptorChain,
    value: Any = None,
    error: Optional[BaseException] = None,
) -> tuple[Any, Optional[BaseException]]:
    """Push ``value`` (or ``error``) through ``chain``.

    Returns:
        ``(value, None)`` when the chain ends fulfilled, ``(None, error)``
        when it ends rejected.
    """
    for fulfilled, rejected in chain.handlers():
        try:
            if error is None:
                value = await _resolve(fulfilled(value))
            else:
                value = await _resolve(rejected(error))
                error = None
        except Exception as exc:
            value, error = None, exc
    return value, error


# ============================================================================
# Transport Protocol
# ============================================================================


@runtime_checkable
class Transport(Protocol):
    """Primitives the guarded client consumes."""

    interceptors: Interceptors

    @property
    def headers(self) -> MutableMapping[str, str]: ...

    @property
    def base_url(self) -> str: ...

    @base_url.setter
    def base_url(self, value: str) -> None: ...

    async def send(self, config: RequestConfig) -> ClientResponse: ...

    async def aclose(self) -> None: ...


# ============================================================================
# HTTPX Implementation
# ============================================================================


def _default_validate_status(status_code: int) -> bool:
    return 200 <= status_code < 300


class HttpxTransport:
    """:class:`Transport` implementation over :class:`httpx.AsyncClient`."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        headers: Optional[MutableMapping[str, str]] = None,
        params_serializer: Optional[ParamsSerializer] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        event_hooks: Optional[dict[str, list[Callable[..., Any]]]] = None,
        validate_status: Callable[[int], bool] = _default_validate_status,
    ) -> None:
        self._base_url = base_url or ""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers=dict(headers or {}),
            transport=http_transport,
            event_hooks=event_hooks,
        )
        self.params_serializer = params_serializer
        self.validate_status = validate_status
        self.interceptors = Interceptors()

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def headers(self) -> httpx.Headers:
        return self._client.headers

    @property
    def base_url(self) -> str:
        return self._base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        self._base_url = value or ""
        self._client.base_url = self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, config: RequestConfig) -> ClientResponse:
        value, error = await run_chain(self.interceptors.request, config)
        if error is None:
            try:
                value = await self._dispatch(value)
            except Exception as exc:
                value, error = None, exc
        value, error = await run_chain(self.interceptors.response, value, error)
        if error is not None:
            raise error
        return value

    async def _dispatch(self, config: RequestConfig) -> ClientResponse:
        handle = config.handle
        if handle is None:
            return await self._perform(config)

        handle.raise_if_aborted(config)
        send_task = asyncio.ensure_future(self._perform(config))
        abort_task = asyncio.ensure_future(handle.wait())
        handle.add_abort_callback(lambda _handle: send_task.cancel())
        try:
            await asyncio.wait({send_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            send_task.cancel()
            abort_task.cancel()
            raise

        # An abort observed before this call returns always wins, even when
        # the response became ready in the same loop iteration.
        if not handle.aborted:
            abort_task.cancel()
            return send_task.result()

        abort_task.cancel()
        send_task.cancel()
        await asyncio.gather(send_task, return_exceptions=True)
        logger.debug(
            "Aborted in-flight request",
            extra={"extra_fields": {"method": config.method, "url": config.url, "reason": handle.reason}},
        )
        raise CancellationError(handle.reason, config=config)

    async def _perform(self, config: RequestConfig) -> ClientResponse:
        request = self._build_request(config)
        try:
            response = await self._client.send(request)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"{config.method} {config.url} failed: {exc!r}", config=config
            ) from exc

        if not self.validate_status(response.status_code):
            raise TransportError(
                f"{config.method} {config.url} -> {response.status_code}",
                config=config,
                response=response,
            )
        return ClientResponse.from_httpx(response, config)

    def _build_request(self, config: RequestConfig) -> httpx.Request:
        url = config.url
        params: Optional[dict[str, Any]] = dict(config.params) if config.params else None
        serializer = config.params_serializer or self.params_serializer
        if params and serializer is not None:
            query = serializer(params)
            if query:
                url = f"{url}{'&' if '?' in url else '?'}{query}"
            params = None

        body: dict[str, Any] = {}
        if isinstance(config.data, (str, bytes)):
            body["content"] = config.data
        elif isinstance(config.data, bytearray):
            body["content"] = bytes(config.data)
        elif config.data is not None:
            body["json"] = config.data

        timeout: Any = httpx.USE_CLIENT_DEFAULT if config.timeout is None else config.timeout
        return self._client.build_request(
            config.method.upper(),
            url,
            params=params,
            headers=config.headers or None,
            timeout=timeout,
            **body,
        )


__all__ = [
    "Hook",
    "InterceptorChain",
    "Interceptors",
    "run_chain",
    "Transport",
    "HttpxTransport",
]
