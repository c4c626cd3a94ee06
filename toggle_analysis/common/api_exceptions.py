"""Error classification for the analysis API client.

Maps httpx failures and unsuccessful response envelopes onto the client's
exception hierarchy so callers only ever handle one family of errors.
"""

from typing import Any, NoReturn

import httpx


class AnalysisClientError(Exception):
    """Base exception for analysis API errors."""


class AuthenticationError(AnalysisClientError):
    """Raised when the API token is missing or rejected."""


class NotFoundError(AnalysisClientError):
    """Raised when the project, environment or toggle does not exist."""


class RateLimitError(AnalysisClientError):
    """Raised when the API rate limit is exceeded."""


class TransientError(AnalysisClientError):
    """Raised for 5xx gateway errors, connection failures and timeouts."""


def raise_for_httpx_status_error(exc: httpx.HTTPStatusError, scope_context: str = "") -> NoReturn:
    """Classify an httpx HTTPStatusError and raise the matching client error.

    Args:
        exc: The httpx HTTPStatusError to classify
        scope_context: Optional ``project/environment/toggle`` string for messages
    """
    status_code = exc.response.status_code
    where = f" for {scope_context}" if scope_context else ""

    if status_code == 401 or status_code == 403:
        raise AuthenticationError(f"Authentication failed{where}: {exc}") from exc

    if status_code == 404:
        raise NotFoundError(f"Not found{where}: {exc}") from exc

    if status_code == 429:
        raise RateLimitError(f"Rate limit exceeded{where}: {exc}") from exc

    if status_code in (502, 503, 504):
        raise TransientError(f"Transient error ({status_code}){where}: {exc}") from exc

    raise AnalysisClientError(f"API error{where}: {exc}") from exc


def raise_for_transport_error(exc: httpx.TransportError, scope_context: str = "") -> NoReturn:
    """Raise TransientError for connection problems and timeouts."""
    where = f" for {scope_context}" if scope_context else ""
    raise TransientError(f"Transport error{where}: {type(exc).__name__}: {exc}") from exc


def unwrap_envelope(payload: Any, scope_context: str = "") -> Any:
    """Return ``payload["data"]`` from a ``{"success": ..., "data": ...}`` envelope.

    Raises:
        AnalysisClientError: If the payload is not an envelope or reports failure
    """
    if not isinstance(payload, dict) or "success" not in payload:
        raise AnalysisClientError(f"Malformed response envelope for {scope_context or 'request'}")
    if not payload["success"]:
        message = payload.get("message") or "request unsuccessful"
        raise AnalysisClientError(f"{message} ({scope_context or 'request'})")
    return payload.get("data")
