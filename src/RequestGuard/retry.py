"""Retry policies and the attempt loop that drives guarded requests.

A :class:`RetryPolicy` answers three questions about a failed attempt: how
many more attempts are allowed (``count``), how long to pause first
(``delay``, seconds), and whether this error is worth retrying at all
(``condition``).  Policies are layered, lowest precedence first::

    built-in default  ->  client default  ->  per-call override

:func:`merge_retry_policy` performs that merge explicitly and field by
field, so a per-call ``{"count": 3}`` keeps the client's ``delay`` and
``condition``.

:class:`RetryController` runs the attempts on top of Tenacity:

- the request key is resolved once per call and reused by every attempt;
- each attempt registers a fresh cancellation handle under that key;
- cancellations are never retried, whatever the policy says;
- the error of the final attempt is re-raised unwrapped.

Example:
    >>> policy = merge_retry_policy({"count": 2}, RetryOverrides(delay=0))
    >>> policy.count, policy.delay
    (2, 0.0)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from contextlib import suppress
from dataclasses import dataclass, fields
from typing import Any, Optional, Union

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_fixed

from .cancellation import CancellationRegistry
from .errors import ConfigurationError, is_cancellation
from .models import ClientResponse, RequestConfig, RequestKey
from .policy import DEFAULT_RETRY_COUNT, DEFAULT_RETRY_DELAY, SERVER_ERROR_THRESHOLD
from .transport import Transport

logger = logging.getLogger(__name__)

RetryCondition = Callable[[BaseException], bool]


def default_retry_condition(error: BaseException) -> bool:
    """Retry network failures and server errors, never cancellations."""

    if is_cancellation(error):
        return False
    response = getattr(error, "response", None)
    if response is None:
        return True
    status_code = getattr(response, "status_code", None)
    return status_code is not None and status_code >= SERVER_ERROR_THRESHOLD


def _coerce_count(value: Union[int, float]) -> int:
    return max(0, int(value))


def _coerce_delay(value: Union[int, float]) -> float:
    return max(0.0, float(value))


@dataclass(frozen=True)
class RetryPolicy:
    """Fully resolved retry policy."""

    count: int = DEFAULT_RETRY_COUNT
    delay: float = DEFAULT_RETRY_DELAY
    condition: RetryCondition = default_retry_condition

    def __post_init__(self) -> None:
        if not callable(self.condition):
            raise ConfigurationError("retry condition must be callable")
        object.__setattr__(self, "count", _coerce_count(self.count))
        object.__setattr__(self, "delay", _coerce_delay(self.delay))


@dataclass(frozen=True)
class RetryOverrides:
    """Field-level overrides; ``None`` leaves the lower layer's value in place."""

    count: Optional[int] = None
    delay: Optional[float] = None
    condition: Optional[RetryCondition] = None


DEFAULT_RETRY_POLICY = RetryPolicy()

RetryLayer = Union[RetryPolicy, RetryOverrides, Mapping[str, Any], None]

_FIELDS = tuple(f.name for f in fields(RetryOverrides))


def _coerce_layer(layer: RetryLayer) -> Optional[RetryOverrides]:
    if layer is None:
        return None
    if isinstance(layer, RetryOverrides):
        return layer
    if isinstance(layer, RetryPolicy):
        return RetryOverrides(count=layer.count, delay=layer.delay, condition=layer.condition)
    if isinstance(layer, Mapping):
        unknown = set(layer) - set(_FIELDS)
        if unknown:
            raise ConfigurationError(f"unknown retry options: {sorted(map(str, unknown))}")
        return RetryOverrides(**{key: layer[key] for key in _FIELDS if key in layer})
    raise ConfigurationError(
        f"retry layer must be a RetryPolicy, RetryOverrides or mapping, got {type(layer).__name__}"
    )


def merge_retry_policy(*layers: RetryLayer, base: RetryPolicy = DEFAULT_RETRY_POLICY) -> RetryPolicy:
    """Shallow-merge ``layers`` over ``base``; later layers win field by field."""

    merged = {name: getattr(base, name) for name in _FIELDS}
    for layer in layers:
        overrides = _coerce_layer(layer)
        if overrides is None:
            continue
        for name in _FIELDS:
            value = getattr(overrides, name)
            if value is not None:
                merged[name] = value
    return RetryPolicy(**merged)


async def _sleep(seconds: float) -> None:
    # A zero delay retries straight away.
    if seconds > 0:
        await asyncio.sleep(seconds)


class RetryController:
    """Execute requests through ``transport`` with bounded, policy-driven retries."""

    def __init__(
        self,
        transport: Transport,
        registry: CancellationRegistry,
        *,
        key_generator: Callable[[RequestConfig], RequestKey],
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[None]] = _sleep,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._key_generator = key_generator
        self.policy = policy
        self._sleep = sleep

    def resolve_policy(self, override: RetryLayer = None) -> RetryPolicy:
        return merge_retry_policy(override, base=self.policy)

    def resolve_key(self, config: RequestConfig) -> RequestKey:
        if config.request_key is not None:
            return config.request_key
        return self._key_generator(config)

    async def execute(self, config: RequestConfig) -> ClientResponse:
        """Send ``config``, retrying failed attempts as the resolved policy allows.

        Raises:
            CancellationError: The attempt in flight was aborted.
            TransportError: The final permitted attempt failed.
        """
        policy = self.resolve_policy(config.retry)
        key = self.resolve_key(config)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.count + 1),
            wait=wait_fixed(policy.delay),
            retry=retry_if_exception(self._retry_predicate(policy)),
            sleep=self._sleep,
            before_sleep=self._before_sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt(config, key, attempt.retry_state.attempt_number)
        except Exception as exc:
            logger.debug(
                "Guarded request failed",
                extra={
                    "extra_fields": {
                        "method": config.method,
                        "url": config.url,
                        "exception": repr(exc),
                    }
                },
            )
            raise
        raise AssertionError("retry loop exited without an outcome")  # pragma: no cover

    async def _attempt(
        self, config: RequestConfig, key: RequestKey, attempt_number: int = 1
    ) -> ClientResponse:
        if attempt_number > 1:
            # A retry drops whatever holds the key without aborting it; a newer
            # call that registered during the delay keeps running.
            self._registry.release(key)
        handle = self._registry.register(key)
        attempt_config = config.replace(dispatch_key=key, handle=handle)
        try:
            return await self._transport.send(attempt_config)
        except BaseException:
            # The response hook releases by the key on ``error.config``; errors
            # raised without a config (hook failures, task cancellation) are
            # released here.  Identity-checked, so a second release is a no-op.
            self._registry.release(key, handle)
            raise

    @staticmethod
    def _retry_predicate(policy: RetryPolicy) -> Callable[[BaseException], bool]:
        def should_retry(error: BaseException) -> bool:
            if not isinstance(error, Exception) or is_cancellation(error):
                return False
            return bool(policy.condition(error))

        return should_retry

    @staticmethod
    def _before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None and outcome.failed else None
        delay = 0.0
        if retry_state.next_action is not None:
            with suppress(TypeError, ValueError):
                delay = max(float(retry_state.next_action.sleep), 0.0)
        logger.warning(
            "Retrying guarded request",
            extra={
                "extra_fields": {
                    "attempt": retry_state.attempt_number,
                    "delay": round(delay, 3),
                    "exception": repr(exc) if exc is not None else None,
                }
            },
        )


__all__ = [
    "RetryCondition",
    "RetryPolicy",
    "RetryOverrides",
    "RetryLayer",
    "DEFAULT_RETRY_POLICY",
    "default_retry_condition",
    "merge_retry_policy",
    "RetryController",
]
