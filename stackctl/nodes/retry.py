"""
Retry classification and backoff for compute node calls.
"""

import httpx

from stackctl.constants import RETRYABLE_ERROR_PHRASES, NodeErrorKind
from stackctl.exceptions import NodeError


def is_retryable_kind(kind: NodeErrorKind) -> bool:
    """Whether a tagged node failure is worth another attempt."""
    match kind:
        case (
            NodeErrorKind.TIMEOUT
            | NodeErrorKind.CONNECTION_REFUSED
            | NodeErrorKind.CONNECTION_RESET
            | NodeErrorKind.UNHEALTHY
        ):
            return True
        case NodeErrorKind.COMMAND_FAILED | NodeErrorKind.OTHER:
            return False


def is_retryable(exc: BaseException) -> bool:
    """
    Classify an error raised during a dispatch attempt.

    Tagged NodeErrors are classified by kind. Anything else is retryable if
    it is a timeout by type, or if its message contains a known transient
    failure phrase.
    """
    if isinstance(exc, NodeError):
        return is_retryable_kind(exc.kind)

    if isinstance(exc, (TimeoutError, httpx.TimeoutException)):
        return True

    msg = str(exc).lower()
    return any(phrase in msg for phrase in RETRYABLE_ERROR_PHRASES)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """
    Delay to wait after a failed attempt.

    delay(n) = base_delay * 2^(n-1), attempts counted from 1.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return base_delay * (2 ** (attempt - 1))
