"""Canonical, key-order independent serialization for request identity.

:func:`stable_stringify` renders params and bodies so that two structurally
equal mappings always produce the same string regardless of insertion
order.  Sequences keep their order.  The output is only used for identity,
never sent over the wire, so it favours determinism over strict JSON.

Example:
    >>> stable_stringify({"b": 1, "a": [1, 2]})
    '{"a":[1,2],"b":1}'
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

__all__ = ["stable_stringify"]


def stable_stringify(value: Any) -> str:
    """Serialize ``value`` canonically.

    Raises:
        ValueError: If ``value`` contains a reference cycle.
    """

    return _stringify(value, set())


def _stringify(value: Any, active: set[int]) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        with _guard(value, active):
            return "[" + ",".join(_stringify(item, active) for item in value) + "]"
    if isinstance(value, Mapping):
        with _guard(value, active):
            pairs = [
                f'"{key}":{_stringify(value[key], active)}'
                for key in sorted(value, key=str)
            ]
            return "{" + ",".join(pairs) + "}"
    return json.dumps(value, ensure_ascii=False, default=str)


class _guard:
    """Track containers on the current path so cycles fail loudly."""

    def __init__(self, container: Any, active: set[int]) -> None:
        self._id = id(container)
        self._active = active

    def __enter__(self) -> None:
        if self._id in self._active:
            raise ValueError("cannot serialize a cyclic structure")
        self._active.add(self._id)

    def __exit__(self, *_exc: object) -> None:
        self._active.discard(self._id)
