"""Exception hierarchy for resilio.

All exceptions inherit from :class:`ResilioError`, which carries two tags:

* ``exit_code`` -- a constant from :mod:`resilio.exit_codes`, used by the
  CLI entry point in :func:`resilio.app.main`.
* ``kind`` -- an :class:`ErrorKind` produced at the call site that raised
  the error.  The retry executor classifies typed errors by this tag
  instead of by scanning the message text.

Subclass hierarchy::

    ResilioError (exit 1, kind=unknown)
    +-- InvalidUsageError   (exit 2, validation)
    +-- ConfigError         (exit 1, validation)
    +-- HTTPError           (kind derived from the status code)
    |   +-- AuthError       (exit 3, auth)
    |   +-- NotFoundError   (exit 4, not_found)
    |   +-- ClientError     (exit 2, client)
    |   +-- RateLimitError  (exit 5, rate_limited)
    |   +-- ServerError     (exit 5, server)
    +-- ConnectionError_    (exit 6, network)
    +-- TimeoutError_       (exit 6, timeout)
    +-- OfflineError        (exit 6, offline)
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from resilio.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class ErrorKind(str, enum.Enum):
    """Failure category attached to every :class:`ResilioError`."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    OFFLINE = "offline"
    RATE_LIMITED = "rate_limited"
    SERVER = "server"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    CLIENT = "client"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


TRANSIENT_KINDS = frozenset(
    {
        ErrorKind.TIMEOUT,
        ErrorKind.NETWORK,
        ErrorKind.OFFLINE,
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVER,
    }
)
"""Kinds that the retry executor treats as worth another attempt."""


class ResilioError(Exception):
    """Base exception for all resilio errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
        kind: Optional override for the class-level :class:`ErrorKind`.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        kind: ErrorKind | None = None,
    ):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code
        if kind is not None:
            self.kind = kind

    @property
    def is_transient(self) -> bool:
        """``True`` when :attr:`kind` is one of :data:`TRANSIENT_KINDS`."""
        return self.kind in TRANSIENT_KINDS


class InvalidUsageError(ResilioError):
    """Raised for invalid CLI arguments or malformed request input."""

    exit_code = EXIT_INVALID_USAGE
    kind = ErrorKind.VALIDATION


class ConfigError(ResilioError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
    kind = ErrorKind.VALIDATION


class HTTPError(ResilioError):
    """The API answered with a non-2xx status.

    Args:
        message: Error description, conventionally ``"HTTP <status>: <detail>"``.
        status_code: The HTTP status code.
        url: The request URL.
        body: The decoded response body, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        url: Optional[str] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body = body


class AuthError(HTTPError):
    """Raised when the API rejects the credentials (HTTP 401 / 403)."""

    exit_code = EXIT_AUTH_FAILURE
    kind = ErrorKind.AUTH


class NotFoundError(HTTPError):
    """Raised when the API returns HTTP 404."""

    exit_code = EXIT_NOT_FOUND
    kind = ErrorKind.NOT_FOUND


class ClientError(HTTPError):
    """Raised for any other HTTP 4xx response."""

    exit_code = EXIT_INVALID_USAGE
    kind = ErrorKind.CLIENT


class RateLimitError(HTTPError):
    """Raised when the API returns HTTP 429."""

    exit_code = EXIT_SERVER_ERROR
    kind = ErrorKind.RATE_LIMITED


class ServerError(HTTPError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR
    kind = ErrorKind.SERVER


class ConnectionError_(ResilioError):
    """Raised on transport failures (DNS resolution, connection refused, reset).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
    kind = ErrorKind.NETWORK


class TimeoutError_(ResilioError):
    """Raised when a single network call exceeds its timeout."""

    exit_code = EXIT_CONNECTION_ERROR
    kind = ErrorKind.TIMEOUT


class OfflineError(ResilioError):
    """Raised instead of calling the network while the tracker reports offline."""

    exit_code = EXIT_CONNECTION_ERROR
    kind = ErrorKind.OFFLINE

    def __init__(self, message: str = "Network is offline"):
        super().__init__(message)


def error_for_status(
    status_code: int,
    message: str,
    url: Optional[str] = None,
    body: Any = None,
) -> HTTPError:
    """Build the :class:`HTTPError` subclass matching *status_code*."""
    if status_code in (401, 403):
        return AuthError(message, status_code, url, body)
    if status_code == 404:
        return NotFoundError(message, status_code, url, body)
    if status_code == 429:
        return RateLimitError(message, status_code, url, body)
    if status_code >= 500:
        return ServerError(message, status_code, url, body)
    return ClientError(message, status_code, url, body)
