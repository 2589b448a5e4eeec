"""Base exception and helpers for turning failures into user-facing text."""

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."
NETWORK_ERROR_MESSAGE = (
    "Network error. Please check your connection and try again."
)
STORAGE_ERROR_MESSAGE = "Storage error. Please try again or restart the app."

_NETWORK_MARKERS = ("network", "fetch", "connect")
_RETRYABLE_MARKERS = ("network", "fetch", "timeout", "timed out", "connect")


class RestockError(Exception):
    """Base exception for the restock core."""


def user_friendly_error(error: BaseException | None) -> str:
    """Map an exception to a short message suitable for display."""
    if error is None:
        return GENERIC_ERROR_MESSAGE
    message = str(error)
    lowered = message.lower()
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return NETWORK_ERROR_MESSAGE
    if "storage" in lowered or "sqlite" in lowered:
        return STORAGE_ERROR_MESSAGE
    return message or GENERIC_ERROR_MESSAGE


def is_retryable_error(error: BaseException | None) -> bool:
    """True for failures worth retrying (network, timeout, connection)."""
    if error is None:
        return False
    lowered = str(error).lower()
    return any(marker in lowered for marker in _RETRYABLE_MARKERS)
