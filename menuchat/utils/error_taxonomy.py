"""
Failure taxonomy for conversational turns.

Invariants:
- Every failed turn carries exactly one FailureKind
- The set of kinds is closed; callers never receive free-text exceptions
- The kind is diagnostic only; rendering never depends on it

Design:
- FailureKind is a string-based enum for JSON serialization
- BadGateway is a family: NOT_FOUND, UNAUTHORIZED, FORBIDDEN and
  SERVER_ERROR are its subdivisions, BAD_GATEWAY covers the remaining
  non-2xx statuses
- Response Normalizer is the only producer; Session Controller only reads
  ok/error_message and applies one preserve-state policy for every kind
"""

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """
    Closed classification of why a turn did not produce a reply.

    NETWORK_UNREACHABLE:
        No response obtained (DNS failure, connection refused, reset).

    TIMEOUT:
        Response not received within the transport deadline.

    BAD_GATEWAY / NOT_FOUND / UNAUTHORIZED / FORBIDDEN / SERVER_ERROR:
        Non-2xx HTTP status, subdivided by status class.

    MALFORMED_PAYLOAD:
        Body was not structured data (HTML error page, plain text, empty).

    SERVER_REPORTED_FAILURE:
        Structured body explicitly signalled success=false.

    MISSING_FIELD:
        Structured body had no recognizable reply-text field.
    """
    NETWORK_UNREACHABLE = "network_unreachable"
    TIMEOUT = "timeout"
    BAD_GATEWAY = "bad_gateway"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    SERVER_ERROR = "server_error"
    MALFORMED_PAYLOAD = "malformed_payload"
    SERVER_REPORTED_FAILURE = "server_reported_failure"
    MISSING_FIELD = "missing_field"


# Single source of truth for valid kind strings (snapshot restore validates against it)
VALID_FAILURE_KINDS = {kind.value for kind in FailureKind}

# Non-2xx status family
BAD_GATEWAY_KINDS = frozenset({
    FailureKind.BAD_GATEWAY,
    FailureKind.NOT_FOUND,
    FailureKind.UNAUTHORIZED,
    FailureKind.FORBIDDEN,
    FailureKind.SERVER_ERROR,
})


def classify_status(status_code: int) -> Optional[FailureKind]:
    """
    Map an HTTP status code to a failure kind.

    Args:
        status_code: HTTP status returned by the backend

    Returns:
        FailureKind for non-2xx statuses, None for 2xx

    Examples:
        >>> classify_status(200) is None
        True
        >>> classify_status(404)
        <FailureKind.NOT_FOUND: 'not_found'>
        >>> classify_status(503)
        <FailureKind.SERVER_ERROR: 'server_error'>
    """
    if 200 <= status_code < 300:
        return None
    if status_code == 404:
        return FailureKind.NOT_FOUND
    if status_code == 401:
        return FailureKind.UNAUTHORIZED
    if status_code == 403:
        return FailureKind.FORBIDDEN
    if status_code >= 500:
        return FailureKind.SERVER_ERROR
    return FailureKind.BAD_GATEWAY


def status_message(kind: FailureKind, status_code: int, url: str = "") -> str:
    """
    Humanized message for a status-class failure.

    Args:
        kind: Kind returned by classify_status()
        status_code: HTTP status
        url: Request URL (included for NOT_FOUND so the route can be checked)

    Returns:
        str: Short message suitable for a bot turn
    """
    if kind == FailureKind.NOT_FOUND:
        return f"API endpoint not found (404). Check if the route exists at: {url}"
    if kind == FailureKind.UNAUTHORIZED:
        return "Authentication required. Please check API configuration"
    if kind == FailureKind.FORBIDDEN:
        return "Access forbidden. You may not have permission to access this endpoint"
    if kind == FailureKind.SERVER_ERROR:
        return f"Server error ({status_code}). The API server may be experiencing issues"
    return f"Server returned status {status_code}"
