# === NAVMAP v1 ===
# {
#   "module": "RequestGuard.policy",
#   "purpose": "Built-in client defaults.",
#   "sections": []
# }
# === /NAVMAP ===

"""Built-in client defaults.

These are the lowest-precedence layer: environment settings override them,
and constructor arguments override the settings.
"""

# ============================================================================
# Transport Defaults
# ============================================================================

#: Base URL prefixed to relative request URLs ("" disables prefixing)
DEFAULT_BASE_URL = ""

#: Overall request timeout (seconds) handed to httpx
DEFAULT_TIMEOUT = 10.0

#: Default headers installed on every client
DEFAULT_HEADERS = {
    "Content-Type": "application/json;charset=utf-8",
}


# ============================================================================
# Retry Defaults
# ============================================================================

#: Retries after the first attempt (0 = never retry)
DEFAULT_RETRY_COUNT = 0

#: Pause between attempts (seconds)
DEFAULT_RETRY_DELAY = 1.0

#: Status codes at or above this are treated as server failures
SERVER_ERROR_THRESHOLD = 500


# ============================================================================
# Request Identity
# ============================================================================

#: Query parameter used purely for cache busting; ignored by key derivation
CACHE_BUSTING_PARAM = "_t"

#: Separator between key components
KEY_DELIMITER = "|"

#: Methods whose body participates in the request key
BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

#: Reason recorded on handles aborted without an explicit reason
DEFAULT_CANCEL_REASON = "Request cancelled"


__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEOUT",
    "DEFAULT_HEADERS",
    "DEFAULT_RETRY_COUNT",
    "DEFAULT_RETRY_DELAY",
    "SERVER_ERROR_THRESHOLD",
    "CACHE_BUSTING_PARAM",
    "KEY_DELIMITER",
    "BODY_METHODS",
    "DEFAULT_CANCEL_REASON",
]
