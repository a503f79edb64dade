"""Derive deterministic request identities from request shape.

Keys are built from the uppercased method, the URL as given, the params
(minus the ``_t`` cache-busting field), and for body-carrying methods the
body.  Components are joined with ``|``::

    GET|/users|{"page":1}|
    POST|/users||{"name":"ada"}

The derivation never mutates the caller's params mapping.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from .models import ParamsSerializer, RequestConfig
from .policy import BODY_METHODS, CACHE_BUSTING_PARAM, KEY_DELIMITER
from .serialization import stable_stringify

__all__ = ["generate_request_key", "serialize_params", "serialize_body"]


def generate_request_key(
    config: RequestConfig,
    *,
    default_serializer: Optional[ParamsSerializer] = None,
) -> str:
    """Return the identity string for ``config``.

    Args:
        config: Request descriptor to identify.
        default_serializer: Client-level params serializer, used when the
            request does not carry its own.
    """

    method = (config.method or "GET").upper()
    url = config.url or ""
    serializer = config.params_serializer or default_serializer

    params_part = serialize_params(config.params, serializer)
    body_part = serialize_body(config.data) if method in BODY_METHODS else ""

    return KEY_DELIMITER.join((method, url, params_part, body_part))


def serialize_params(
    params: Optional[Mapping[str, Any]],
    serializer: Optional[ParamsSerializer] = None,
) -> str:
    """Serialize ``params`` for identity purposes, ignoring the cache-busting field."""

    if not params:
        return ""
    cleaned = dict(params)
    cleaned.pop(CACHE_BUSTING_PARAM, None)
    if not cleaned:
        return ""
    if serializer is not None:
        return serializer(cleaned)
    return stable_stringify(cleaned)


def serialize_body(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8", errors="replace")
    return stable_stringify(data)
