"""Exception hierarchy for hookfetch.

All exceptions inherit from :class:`HookFetchError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`hookfetch.exit_codes`.
The command line entry point in :func:`hookfetch.app.main` catches
``HookFetchError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    HookFetchError (exit 1)
    +-- InvalidUsageError       (exit 2)
    |   +-- InvalidStateError   (exit 2)
    |   +-- StreamConsumedError (exit 2)
    +-- ConfigError             (exit 1)
    +-- PluginError             (exit 10)
    +-- ResponseError           (exit code derived from the error kind)

:class:`ResponseError` is the single failure type a request settles with.
Transport exceptions, cancellation and hook failures are folded into it by
:func:`normalize_error` before the ``on_error`` chain sees them.
"""

from __future__ import annotations

import enum
from typing import Any, Optional, Union

import httpx

from hookfetch.cancel import AttemptCancelled, CancelReason
from hookfetch.exit_codes import (
    EXIT_ABORTED,
    EXIT_CLIENT_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PLUGIN_ERROR,
    EXIT_SERVER_ERROR,
    EXIT_STREAM_ERROR,
    EXIT_TIMEOUT,
)
from hookfetch.models import RequestConfig, StatusCode


class HookFetchError(Exception):
    """Base exception for all hookfetch errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(HookFetchError):
    """Raised for invalid CLI arguments or malformed request options."""

    exit_code = EXIT_INVALID_USAGE


class InvalidStateError(InvalidUsageError):
    """Raised when a request handle is asked to do something its state forbids.

    The usual case is calling :meth:`~hookfetch.client.request.RequestHandle.retry`
    on an attempt that is still running or that resolved successfully.
    """


class StreamConsumedError(InvalidUsageError):
    """Raised when the body stream of an attempt is claimed a second time."""


class ConfigError(HookFetchError):
    """Raised for configuration problems (missing profiles, invalid JSON)."""

    exit_code = EXIT_GENERIC_FAILURE


class PluginError(HookFetchError):
    """Raised when a plugin fails to load or is registered without a name."""

    exit_code = EXIT_PLUGIN_ERROR


# ------------------------------------------------------------------ #
# Response errors
# ------------------------------------------------------------------ #


class ErrorKind(str, enum.Enum):
    """Classification of a failed request.

    The value is what :attr:`ResponseError.name` reports, so plugins can
    compare against either the enum member or the plain string.
    """

    TIMEOUT = "Timeout"
    ABORTED = "Aborted"
    NETWORK_ERROR = "NetworkError"
    BODY_NULL = "BodyNull"
    HTTP_STATUS = "HTTPStatus"
    DEDUPE = "Dedupe"
    EXCEEDED = "Exceeded"
    UNKNOWN = "Unknown"


_DEFAULT_STATUS: dict[ErrorKind, int] = {
    ErrorKind.TIMEOUT: StatusCode.TIME_OUT.value,
    ErrorKind.ABORTED: StatusCode.ABORTED.value,
    ErrorKind.NETWORK_ERROR: StatusCode.NETWORK_ERROR.value,
    ErrorKind.BODY_NULL: StatusCode.BODY_NULL.value,
    ErrorKind.DEDUPE: StatusCode.DEDUPE.value,
    ErrorKind.UNKNOWN: StatusCode.UNKNOWN.value,
}

_KIND_EXIT_CODES: dict[ErrorKind, int] = {
    ErrorKind.TIMEOUT: EXIT_TIMEOUT,
    ErrorKind.ABORTED: EXIT_ABORTED,
    ErrorKind.NETWORK_ERROR: EXIT_CONNECTION_ERROR,
    ErrorKind.BODY_NULL: EXIT_STREAM_ERROR,
    ErrorKind.DEDUPE: EXIT_INVALID_USAGE,
}


class ResponseError(HookFetchError):
    """The error a request attempt settles with.

    Args:
        message: Human-readable description.
        kind: An :class:`ErrorKind`, or a plugin-defined string.
        status: Numeric status. Defaults to the conventional status of *kind*
            (408 timeout, 499 aborted, 599 network, 502 body null,
            400 dedupe, 601 unknown), else to the attached response status.
        status_text: Optional status phrase.
        config: The :class:`~hookfetch.models.RequestConfig` of the attempt.
        response: The :class:`httpx.Response`, when one was received.
        cause: The underlying exception, also installed as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: Union[ErrorKind, str] = ErrorKind.UNKNOWN,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        config: Optional[RequestConfig] = None,
        response: Optional[httpx.Response] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        if status is None:
            if isinstance(kind, ErrorKind) and kind in _DEFAULT_STATUS:
                status = _DEFAULT_STATUS[kind]
            elif response is not None:
                status = response.status_code
        self.status = status
        if status_text is None and response is not None:
            status_text = response.reason_phrase
        self.status_text = status_text
        self.config = config
        self.response = response
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def name(self) -> str:
        """Classification name, e.g. ``"Timeout"`` or ``"DedupeError"``."""
        if isinstance(self.kind, ErrorKind):
            return self.kind.value
        return str(self.kind)

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        if self.kind in _KIND_EXIT_CODES:
            return _KIND_EXIT_CODES[self.kind]  # type: ignore[index]
        if self.status is not None and 400 <= self.status < 500:
            return EXIT_CLIENT_ERROR
        if self.status is not None and 500 <= self.status < 600:
            return EXIT_SERVER_ERROR
        return EXIT_GENERIC_FAILURE

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, name={self.name!r}, "
            f"status={self.status!r})"
        )


def normalize_error(
    exc: BaseException,
    config: Optional[RequestConfig] = None,
    response: Optional[httpx.Response] = None,
) -> ResponseError:
    """Fold any exception raised during an attempt into a :class:`ResponseError`.

    A ``ResponseError`` passes through unchanged. Cancellation maps to
    ``Timeout`` or ``Aborted`` according to the token's reason, httpx
    timeouts to ``Timeout``, other httpx transport failures to
    ``NetworkError``, and everything else to ``Unknown``. The original
    exception is kept as ``cause``.
    """
    if isinstance(exc, ResponseError):
        return exc

    kind: ErrorKind
    message: str
    if isinstance(exc, AttemptCancelled):
        if exc.reason is CancelReason.TIMEOUT:
            kind, message = ErrorKind.TIMEOUT, "Request timeout"
        else:
            kind, message = ErrorKind.ABORTED, "Request aborted"
    elif isinstance(exc, httpx.TimeoutException):
        kind, message = ErrorKind.TIMEOUT, str(exc) or "Request timeout"
    elif isinstance(exc, httpx.TransportError):
        kind, message = ErrorKind.NETWORK_ERROR, str(exc) or "Network error"
    else:
        kind, message = ErrorKind.UNKNOWN, str(exc) or type(exc).__name__

    return ResponseError(
        message, kind=kind, config=config, response=response, cause=exc
    )


def error_kind(error: Any) -> Optional[str]:
    """Return the classification name of *error*, or ``None`` for non-response errors."""
    if isinstance(error, ResponseError):
        return error.name
    return None
