"""RequestGuard: request deduplication, cancellation and retries over HTTPX.

Public surface:
- :class:`GuardedClient` for issuing requests,
- :class:`RetryPolicy` / :class:`RetryOverrides` / :func:`merge_retry_policy`
  for retry configuration,
- :class:`InterceptorSet` for request/response hooks,
- :class:`CancellationError` and :class:`TransportError` for failures.
- :func:`setup_logging` for structured (optionally JSON) log output.

Example:
    >>> from RequestGuard import GuardedClient
    >>> client = GuardedClient(base_url="https://api.example.com", retry={"count": 1, "delay": 0})
"""

from RequestGuard.cancellation import CancellationHandle, CancellationRegistry
from RequestGuard.client import GuardedClient
from RequestGuard.errors import (
    CancellationError,
    ConfigurationError,
    RequestGuardError,
    TransportError,
    is_cancellation,
)
from RequestGuard.interceptors import InterceptorManager, InterceptorSet
from RequestGuard.keys import generate_request_key
from RequestGuard.logging_utils import JSONFormatter, mask_sensitive_data, setup_logging
from RequestGuard.models import ClientResponse, RequestConfig, RequestKey
from RequestGuard.retry import (
    DEFAULT_RETRY_POLICY,
    RetryController,
    RetryOverrides,
    RetryPolicy,
    default_retry_condition,
    merge_retry_policy,
)
from RequestGuard.serialization import stable_stringify
from RequestGuard.settings import ClientSettings, get_settings, reset_settings
from RequestGuard.transport import HttpxTransport, InterceptorChain, Transport

__all__ = [
    # Client
    "GuardedClient",
    "ClientResponse",
    "RequestConfig",
    "RequestKey",
    # Identity
    "generate_request_key",
    "stable_stringify",
    # Cancellation
    "CancellationHandle",
    "CancellationRegistry",
    # Retry
    "RetryController",
    "RetryPolicy",
    "RetryOverrides",
    "DEFAULT_RETRY_POLICY",
    "default_retry_condition",
    "merge_retry_policy",
    # Interceptors & transport
    "InterceptorManager",
    "InterceptorSet",
    "InterceptorChain",
    "Transport",
    "HttpxTransport",
    # Logging
    "setup_logging",
    "JSONFormatter",
    "mask_sensitive_data",
    # Settings
    "ClientSettings",
    "get_settings",
    "reset_settings",
    # Errors
    "RequestGuardError",
    "ConfigurationError",
    "TransportError",
    "CancellationError",
    "is_cancellation",
]
