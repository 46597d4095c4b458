"""
stratostream - Error Classes

Structured errors for the Messages API.

Every failure surfaced by the client is an ``APIError`` carrying a ``kind``
from a closed taxonomy. Kinds split into:

- Terminal (caller must fix the request): invalid_request, authentication,
  permission, not_found
- Transient (retried by the retry wrapper): rate_limit, api_error,
  overloaded, transport
- stream_error: protocol error event received mid-stream, never retried
- unknown: unrecognized error shape, not retried
"""

import json
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import httpx


class ErrorKind(str, Enum):
    """Error taxonomy."""
    INVALID_REQUEST = "invalid_request"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    OVERLOADED = "overloaded"
    TRANSPORT = "transport"
    STREAM_ERROR = "stream_error"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMIT,
    ErrorKind.API_ERROR,
    ErrorKind.OVERLOADED,
    ErrorKind.TRANSPORT,
})

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 529})

# Wire error "type" -> kind, for HTTP error bodies
_WIRE_TYPES = {
    "invalid_request_error": ErrorKind.INVALID_REQUEST,
    "authentication_error": ErrorKind.AUTHENTICATION,
    "permission_error": ErrorKind.PERMISSION,
    "not_found_error": ErrorKind.NOT_FOUND,
    "rate_limit_error": ErrorKind.RATE_LIMIT,
    "api_error": ErrorKind.API_ERROR,
    "overloaded_error": ErrorKind.OVERLOADED,
}

# Wire error "type" -> kind, for SSE error events
_SSE_TYPES = {
    "invalid_request_error": ErrorKind.INVALID_REQUEST,
    "rate_limit_error": ErrorKind.RATE_LIMIT,
    "api_error": ErrorKind.API_ERROR,
    "overloaded_error": ErrorKind.OVERLOADED,
}

_STATUS_KINDS = {
    400: ErrorKind.INVALID_REQUEST,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.PERMISSION,
    404: ErrorKind.NOT_FOUND,
    429: ErrorKind.RATE_LIMIT,
    500: ErrorKind.API_ERROR,
    502: ErrorKind.API_ERROR,
    503: ErrorKind.API_ERROR,
    529: ErrorKind.OVERLOADED,
}

_DEFAULT_MESSAGES = {
    400: "Bad request",
    401: "Invalid API key",
    403: "Access denied",
    404: "Resource not found",
    429: "Rate limited",
    500: "Internal server error",
    502: "Bad gateway",
    503: "Service unavailable",
    529: "API is overloaded",
}

HeadersLike = Union[Mapping[str, str], Iterable[Tuple[str, str]], httpx.Headers, None]


class APIError(Exception):
    """
    Base exception for stratostream.

    All client errors inherit from this class. Subclasses pin ``kind``;
    ``APIError`` itself is used for the ``unknown`` kind.

    Attributes:
        message: Human-readable error message
        kind: Error kind for programmatic handling
        status: HTTP status code if applicable
        request_id: Server request ID for support/debugging
        headers: Response headers (lower-cased names)
        retry_after_ms: Server-suggested delay before retrying
        retries_exhausted: Set once the retry budget ran out on this error
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        request_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        retry_after_ms: Optional[int] = None,
        retries_exhausted: bool = False
    ):
        self.message = message
        self.status = status
        self.request_id = request_id
        self.headers = headers or {}
        self.retry_after_ms = retry_after_ms
        self.retries_exhausted = retries_exhausted
        super().__init__(message)

    def __str__(self) -> str:
        status_str = f" ({self.status})" if self.status is not None else ""
        retry_str = " [retries exhausted]" if self.retries_exhausted else ""
        req_id_str = f" [{self.request_id}]" if self.request_id else ""
        return f"{self.kind.value}{status_str}: {self.message}{retry_str}{req_id_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"kind={self.kind.value!r}, "
            f"message={self.message!r}, "
            f"status={self.status})"
        )

    @property
    def retryable(self) -> bool:
        """Whether the retry wrapper may re-issue the exchange."""
        return self.kind in RETRYABLE_KINDS

    def mark_retries_exhausted(self) -> "APIError":
        """Flag this error as having used up the retry budget."""
        self.retries_exhausted = True
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "retries_exhausted": self.retries_exhausted,
        }
        if self.status is not None:
            result["status"] = self.status
        if self.request_id:
            result["request_id"] = self.request_id
        if self.retry_after_ms is not None:
            result["retry_after_ms"] = self.retry_after_ms
        return result

    # ============================================================
    # Constructors
    # ============================================================

    @classmethod
    def from_response(
        cls,
        status: int,
        body: Union[bytes, str, None],
        headers: HeadersLike = None
    ) -> "APIError":
        """
        Create an error from a whole HTTP error response.

        Never raises: an unparseable body falls back to a per-status
        kind and message.
        """
        header_map = _normalize_headers(headers)
        kind, message = _parse_error_body(status, body)

        return error_for_kind(
            kind,
            message,
            status=status,
            request_id=header_map.get("request-id") or header_map.get("x-request-id"),
            headers=header_map,
            retry_after_ms=_parse_retry_after(header_map.get("retry-after")),
        )

    @classmethod
    def from_transport(cls, reason: Any) -> "APIError":
        """Create an error from a connection/network failure."""
        return APIConnectionError(_format_transport_error(reason))

    @classmethod
    def from_sse_event(cls, data: Any) -> "APIError":
        """
        Create an error from the payload of an SSE ``error`` event.

        Accepts either ``{"type": ..., "message": ...}`` or the wrapped
        ``{"error": {"type": ..., "message": ...}}`` form.
        """
        error = data.get("error", data) if isinstance(data, dict) else {}
        if not isinstance(error, dict):
            error = {}

        error_type = error.get("type")
        kind = ErrorKind.STREAM_ERROR
        if isinstance(error_type, str):
            kind = _SSE_TYPES.get(error_type, ErrorKind.STREAM_ERROR)
        return error_for_kind(kind, str(error.get("message") or "Unknown error"))


class InvalidRequestError(APIError):
    """Request parameters are invalid (400)."""
    kind = ErrorKind.INVALID_REQUEST


class AuthenticationError(APIError):
    """
    API key is invalid or missing (401).

    Also raised client-side when no API key is configured.
    """
    kind = ErrorKind.AUTHENTICATION


class PermissionDeniedError(APIError):
    """The key has no access to the requested resource (403)."""
    kind = ErrorKind.PERMISSION


class NotFoundError(APIError):
    """Resource not found (404)."""
    kind = ErrorKind.NOT_FOUND


class RateLimitError(APIError):
    """
    Rate limit exceeded (429).

    Check ``retry_after_ms`` for the server-suggested wait.
    """
    kind = ErrorKind.RATE_LIMIT


class APIServerError(APIError):
    """Server-side failure (500, 502, 503)."""
    kind = ErrorKind.API_ERROR


class OverloadedError(APIError):
    """The API is overloaded (529)."""
    kind = ErrorKind.OVERLOADED


class APIConnectionError(APIError):
    """
    Failed to reach the API or the connection broke.

    Covers connect failures, timeouts and resets, before or during a stream.
    """
    kind = ErrorKind.TRANSPORT


class StreamError(APIError):
    """Protocol-level error event received during a stream."""
    kind = ErrorKind.STREAM_ERROR


_ERROR_CLASSES = {
    ErrorKind.INVALID_REQUEST: InvalidRequestError,
    ErrorKind.AUTHENTICATION: AuthenticationError,
    ErrorKind.PERMISSION: PermissionDeniedError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.RATE_LIMIT: RateLimitError,
    ErrorKind.API_ERROR: APIServerError,
    ErrorKind.OVERLOADED: OverloadedError,
    ErrorKind.TRANSPORT: APIConnectionError,
    ErrorKind.STREAM_ERROR: StreamError,
}


def error_for_kind(kind: ErrorKind, message: str, **kwargs: Any) -> APIError:
    """Instantiate the error class matching ``kind``."""
    error_class = _ERROR_CLASSES.get(kind, APIError)
    return error_class(message, **kwargs)


def is_retryable_error(error: Any) -> bool:
    """
    Check if an error is retryable.

    Transient errors (rate limits, server errors, overload, transport
    failures) are retryable. Everything else, including exceptions that
    are not ``APIError``, is not.
    """
    if isinstance(error, APIError):
        return error.retryable

    return False


def retryable_status(status: int) -> bool:
    """Check if an HTTP status denotes a transient failure."""
    return status in RETRYABLE_STATUS_CODES


def kind_from_status(status: int) -> ErrorKind:
    return _STATUS_KINDS.get(status, ErrorKind.UNKNOWN)


def default_message(status: int) -> str:
    return _DEFAULT_MESSAGES.get(status, "Unknown error")


# ============================================================
# Private helpers
# ============================================================

def _normalize_headers(headers: HeadersLike) -> Dict[str, str]:
    if headers is None:
        return {}
    items = headers.items() if hasattr(headers, "items") else headers
    result: Dict[str, str] = {}
    for key, value in items:
        if isinstance(key, str):
            result[key.lower()] = value
    return result


def _parse_error_body(status: int, body: Union[bytes, str, None]) -> Tuple[ErrorKind, str]:
    if body is None:
        return kind_from_status(status), default_message(status)

    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body

    try:
        data = json.loads(text)
    except ValueError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and "type" in error and "message" in error:
            if isinstance(error["type"], str):
                return _WIRE_TYPES.get(error["type"], ErrorKind.UNKNOWN), str(error["message"])
            return kind_from_status(status), str(error["message"])

    return kind_from_status(status), text or default_message(status)


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    if seconds <= 0:
        return None
    return seconds * 1000


def _format_transport_error(reason: Any) -> str:
    if isinstance(reason, httpx.TimeoutException) or reason == "timeout":
        return "Request timeout"
    if isinstance(reason, (httpx.RemoteProtocolError, httpx.CloseError)) or reason == "closed":
        return "Connection closed"
    if isinstance(reason, BaseException):
        detail = str(reason) or reason.__class__.__name__
        return f"Connection error: {detail}"
    return f"Connection error: {reason!r}"
