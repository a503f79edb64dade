"""Guarded HTTP client facade.

:class:`GuardedClient` composes the pieces of the package into one object:

- a per-client :class:`~RequestGuard.cancellation.CancellationRegistry`,
- an :class:`~RequestGuard.interceptors.InterceptorManager` whose response
  hooks release registry entries,
- a :class:`~RequestGuard.retry.RetryController` that drives attempts,
- an :class:`~RequestGuard.transport.HttpxTransport` (or any
  :class:`~RequestGuard.transport.Transport`) doing the I/O.

Identical requests supersede each other: issuing ``GET /search?q=a`` while
an earlier ``GET /search?q=a`` is still pending aborts the earlier one,
which fails with :class:`~RequestGuard.errors.CancellationError`.

Example:
    >>> async with GuardedClient(base_url="https://api.example.com", retry={"count": 2}) as client:
    ...     response = await client.get("/users", params={"page": 1})
    ...     created = await client.post("/users", {"name": "ada"}, request_key="create-user")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

import httpx

from .cancellation import CancellationRegistry
from .errors import ConfigurationError
from .instrumentation import create_http_event_hooks
from .interceptors import InterceptorManager, InterceptorSet
from .keys import generate_request_key
from .models import ClientResponse, ParamsSerializer, RequestConfig, RequestKey
from .retry import RetryController, RetryLayer, RetryOverrides, RetryPolicy, merge_retry_policy
from .settings import ClientSettings, get_settings
from .transport import Hook, HttpxTransport, Transport

logger = logging.getLogger(__name__)

__all__ = ["GuardedClient"]

InterceptorOption = Union[InterceptorSet, Mapping[str, Optional[Hook]], None]


def _coerce_interceptors(option: InterceptorOption) -> InterceptorSet:
    if option is None:
        return InterceptorSet()
    if isinstance(option, InterceptorSet):
        return option
    if isinstance(option, Mapping):
        known = {"on_request", "on_request_error", "on_response", "on_response_error"}
        unknown = set(option) - known
        if unknown:
            raise ConfigurationError(f"unknown interceptor slots: {sorted(unknown)}")
        return InterceptorSet(**dict(option))
    raise ConfigurationError("interceptors must be an InterceptorSet or a mapping of hooks")


class GuardedClient:
    """HTTP client with request deduplication, cancellation and retries."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
        params_serializer: Optional[ParamsSerializer] = None,
        interceptors: InterceptorOption = None,
        retry: RetryLayer = None,
        transport: Optional[Transport] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[ClientSettings] = None,
    ) -> None:
        settings = settings or get_settings()
        self._params_serializer = params_serializer if callable(params_serializer) else None

        if transport is None:
            transport = HttpxTransport(
                base_url=base_url if base_url is not None else settings.base_url,
                timeout=timeout if timeout is not None else settings.timeout,
                headers={**settings.headers, **dict(headers or {})},
                params_serializer=self._params_serializer,
                http_transport=http_transport,
                event_hooks=create_http_event_hooks(),
            )
        self._transport = transport

        self._registry = CancellationRegistry()
        self._retry_policy = merge_retry_policy(
            RetryOverrides(count=settings.retry_count, delay=settings.retry_delay),
            retry,
        )
        self._interceptors = InterceptorManager(
            transport, self._registry, _coerce_interceptors(interceptors)
        )
        self._interceptors.install()
        self._controller = RetryController(
            transport,
            self._registry,
            key_generator=self.generate_request_key,
            policy=self._retry_policy,
        )

    # ------------ lifecycle ------------
    async def __aenter__(self) -> "GuardedClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel every pending request and close the transport."""
        cancelled = self.cancel_all_requests("Client closed")
        await self._transport.aclose()
        logger.debug("Guarded client closed", extra={"extra_fields": {"cancelled": cancelled}})

    # ------------ introspection ------------
    @property
    def registry(self) -> CancellationRegistry:
        return self._registry

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def interceptors(self) -> InterceptorSet:
        return self._interceptors.hooks

    def get_instance(self) -> Any:
        """Return the underlying ``httpx.AsyncClient`` (or the transport itself)."""
        return getattr(self._transport, "client", self._transport)

    def generate_request_key(self, config: RequestConfig) -> str:
        return generate_request_key(config, default_serializer=self._params_serializer)

    # ------------ interceptors ------------
    def set_request_interceptor(
        self, on_request: Optional[Hook] = None, on_request_error: Optional[Hook] = None
    ) -> None:
        self._interceptors.set_request_hooks(on_request, on_request_error)

    def set_response_interceptor(
        self, on_response: Optional[Hook] = None, on_response_error: Optional[Hook] = None
    ) -> None:
        self._interceptors.set_response_hooks(on_response, on_response_error)

    # ------------ cancellation ------------
    def cancel_request(self, key: RequestKey, reason: Optional[str] = None) -> bool:
        return self._registry.cancel(key, reason)

    def cancel_all_requests(self, reason: Optional[str] = None) -> int:
        return self._registry.cancel_all(reason)

    # ------------ defaults ------------
    @property
    def headers(self) -> Any:
        return self._transport.headers

    def get_header(self, key: str) -> Optional[str]:
        return self._transport.headers.get(key)

    def set_header(self, key: str, value: str) -> None:
        self._transport.headers[key] = value

    def set_headers(self, headers: Mapping[str, str]) -> None:
        for key, value in headers.items():
            self._transport.headers[key] = value

    def remove_header(self, key: str) -> None:
        self._transport.headers.pop(key, None)

    def get_base_url(self) -> str:
        return self._transport.base_url or ""

    def set_base_url(self, url: str) -> None:
        self._transport.base_url = url

    # ------------ requests ------------
    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        data: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        params_serializer: Optional[ParamsSerializer] = None,
        request_key: Optional[RequestKey] = None,
        retry: RetryLayer = None,
    ) -> ClientResponse:
        """Send a guarded request.

        Args:
            method: HTTP method.
            url: Absolute URL or path relative to the base URL.
            params: Query parameters.
            data: Body; strings and bytes are sent as-is, anything else as JSON.
            headers: Per-request headers merged over the client defaults.
            timeout: Per-request timeout in seconds.
            params_serializer: Overrides the client-level params serializer.
            request_key: Explicit identity; derived from the request when omitted.
            retry: Per-call retry override merged over the client policy.

        Raises:
            CancellationError: The request was superseded or cancelled.
            TransportError: The final attempt failed.
        """
        config = RequestConfig(
            method=method.upper(),
            url=url,
            headers=dict(headers or {}),
            params=params,
            data=data,
            params_serializer=params_serializer,
            timeout=timeout,
            request_key=request_key,
            retry=retry,
        )
        return await self._controller.execute(config)

    async def get(self, url: str, **options: Any) -> ClientResponse:
        return await self.request("GET", url, **options)

    async def delete(self, url: str, **options: Any) -> ClientResponse:
        return await self.request("DELETE", url, **options)

    async def head(self, url: str, **options: Any) -> ClientResponse:
        return await self.request("HEAD", url, **options)

    async def options(self, url: str, **options: Any) -> ClientResponse:
        return await self.request("OPTIONS", url, **options)

    async def post(self, url: str, data: Any = None, **options: Any) -> ClientResponse:
        return await self.request("POST", url, data={} if data is None else data, **options)

    async def put(self, url: str, data: Any = None, **options: Any) -> ClientResponse:
        return await self.request("PUT", url, data={} if data is None else data, **options)

    async def patch(self, url: str, data: Any = None, **options: Any) -> ClientResponse:
        return await self.request("PATCH", url, data={} if data is None else data, **options)
