"""Request descriptors and responses passed between the client and its transport."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

import httpx

if TYPE_CHECKING:  # pragma: no cover
    from .cancellation import CancellationHandle

__all__ = [
    "RequestKey",
    "ParamsSerializer",
    "RequestConfig",
    "ClientResponse",
]

#: Identity used to deduplicate and cancel requests (a string or any hashable sentinel)
RequestKey = Hashable

ParamsSerializer = Callable[[Mapping[str, Any]], str]


@dataclass
class RequestConfig:
    """Everything needed to dispatch one request.

    ``dispatch_key`` and ``handle`` are filled in by the retry controller
    for each attempt; response hooks read them back to release the
    registry entry the attempt created.
    """

    method: str = "GET"
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    params: Optional[Mapping[str, Any]] = None
    data: Any = None
    params_serializer: Optional[ParamsSerializer] = None
    timeout: Optional[float] = None
    request_key: Optional[RequestKey] = None
    retry: Any = None
    dispatch_key: Optional[RequestKey] = None
    handle: Optional["CancellationHandle"] = None

    def replace(self, **changes: Any) -> "RequestConfig":
        """Return a shallow copy with ``changes`` applied."""

        return dataclasses.replace(self, **changes)


@dataclass
class ClientResponse:
    """Successful response paired with the config that produced it."""

    status_code: int
    headers: httpx.Headers
    data: Any
    config: RequestConfig
    raw: httpx.Response

    @classmethod
    def from_httpx(cls, response: httpx.Response, config: RequestConfig) -> "ClientResponse":
        content_type = response.headers.get("content-type", "")
        data: Any
        if "json" in content_type and response.content:
            try:
                data = response.json()
            except ValueError:
                data = response.text
        else:
            data = response.text
        return cls(
            status_code=response.status_code,
            headers=response.headers,
            data=data,
            config=config,
            raw=response,
        )
