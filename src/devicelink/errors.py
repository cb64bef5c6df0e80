"""Transport error taxonomy for devicelink.

This module classifies low-level transport failures into a small exception
tree whose every member carries a fixed wire-level error code, a retryable
flag and an optional wrapped cause.

Wire conditions are registered as members of :class:`ErrorKind`, a closed
variant table of ``(family, code, retryable)``. Adding a new wire error means
adding one member; the exception class for it is picked by its family.

Example:
    >>> from devicelink.errors import AmqpFramingError, classify_failure
    >>>
    >>> error = AmqpFramingError("peer closed the connection mid-frame")
    >>> error.code
    'amqp:connection:framing-error'
    >>> error.retryable
    False
    >>>
    >>> classify_failure(ConnectionResetError()).retryable
    True
"""

from __future__ import annotations

import ssl
from enum import Enum
from typing import Any

import httpx

# Families group kinds onto exception classes
FAMILY_TRANSPORT = "transport"
FAMILY_TARGET = "target"
FAMILY_STATE = "state"
FAMILY_ARGUMENT = "argument"
FAMILY_CONNECTION = "connection"
FAMILY_PROTOCOL = "protocol"

# HTTP statuses presumed transient when classifying status failures
RETRYABLE_HTTP_STATUSES = frozenset({408, 429})


class ErrorKind(Enum):
    """Closed table of classified transport conditions.

    Each member is ``(family, code, retryable)`` where ``code`` is the wire
    string used for diagnostics and log correlation and ``retryable`` is the
    default presumption for that condition.
    """

    TRANSPORT = (FAMILY_TRANSPORT, "devicelink:transport/error", False)
    SECURITY = (FAMILY_TRANSPORT, "devicelink:transport/security", False)
    INVALID_TARGET = (FAMILY_TARGET, "devicelink:transport/invalid_target", False)
    INVALID_STATE = (FAMILY_STATE, "devicelink:transport/invalid_state", False)
    INVALID_ARGUMENT = (FAMILY_ARGUMENT, "devicelink:transport/invalid_argument", False)
    CONNECTION = (FAMILY_CONNECTION, "devicelink:transport/connection", True)
    PROTOCOL = (FAMILY_PROTOCOL, "devicelink:protocol/error", False)
    HTTP_STATUS = (FAMILY_PROTOCOL, "devicelink:protocol/http_status", False)

    # AMQP 1.0 error conditions (amqp-core section 2.8.15 - 2.8.17)
    AMQP_INTERNAL_ERROR = (FAMILY_PROTOCOL, "amqp:internal-error", True)
    AMQP_NOT_FOUND = (FAMILY_PROTOCOL, "amqp:not-found", False)
    AMQP_UNAUTHORIZED_ACCESS = (FAMILY_PROTOCOL, "amqp:unauthorized-access", False)
    AMQP_DECODE_ERROR = (FAMILY_PROTOCOL, "amqp:decode-error", False)
    AMQP_RESOURCE_LIMIT_EXCEEDED = (FAMILY_PROTOCOL, "amqp:resource-limit-exceeded", True)
    AMQP_NOT_ALLOWED = (FAMILY_PROTOCOL, "amqp:not-allowed", False)
    AMQP_INVALID_FIELD = (FAMILY_PROTOCOL, "amqp:invalid-field", False)
    AMQP_NOT_IMPLEMENTED = (FAMILY_PROTOCOL, "amqp:not-implemented", False)
    AMQP_RESOURCE_LOCKED = (FAMILY_PROTOCOL, "amqp:resource-locked", False)
    AMQP_PRECONDITION_FAILED = (FAMILY_PROTOCOL, "amqp:precondition-failed", False)
    AMQP_RESOURCE_DELETED = (FAMILY_PROTOCOL, "amqp:resource-deleted", False)
    AMQP_ILLEGAL_STATE = (FAMILY_PROTOCOL, "amqp:illegal-state", False)
    AMQP_FRAME_SIZE_TOO_SMALL = (FAMILY_PROTOCOL, "amqp:frame-size-too-small", False)
    AMQP_CONNECTION_FORCED = (FAMILY_PROTOCOL, "amqp:connection:forced", True)
    AMQP_FRAMING_ERROR = (FAMILY_PROTOCOL, "amqp:connection:framing-error", False)
    AMQP_CONNECTION_REDIRECT = (FAMILY_PROTOCOL, "amqp:connection:redirect", False)
    AMQP_SESSION_WINDOW_VIOLATION = (FAMILY_PROTOCOL, "amqp:session:window-violation", False)
    AMQP_SESSION_ERRANT_LINK = (FAMILY_PROTOCOL, "amqp:session:errant-link", False)
    AMQP_SESSION_HANDLE_IN_USE = (FAMILY_PROTOCOL, "amqp:session:handle-in-use", False)
    AMQP_SESSION_UNATTACHED_HANDLE = (FAMILY_PROTOCOL, "amqp:session:unattached-handle", False)
    AMQP_LINK_DETACH_FORCED = (FAMILY_PROTOCOL, "amqp:link:detach-forced", True)
    AMQP_LINK_TRANSFER_LIMIT_EXCEEDED = (
        FAMILY_PROTOCOL,
        "amqp:link:transfer-limit-exceeded",
        False,
    )
    AMQP_LINK_MESSAGE_SIZE_EXCEEDED = (FAMILY_PROTOCOL, "amqp:link:message-size-exceeded", False)
    AMQP_LINK_REDIRECT = (FAMILY_PROTOCOL, "amqp:link:redirect", False)
    AMQP_LINK_STOLEN = (FAMILY_PROTOCOL, "amqp:link:stolen", False)

    def __init__(self, family: str, code: str, retryable: bool) -> None:
        self.family = family
        self.code = code
        self.retryable = retryable

    @classmethod
    def from_code(cls, code: str) -> ErrorKind | None:
        """Look up the kind registered for a wire code, or None."""
        return _KINDS_BY_CODE.get(code)


_KINDS_BY_CODE: dict[str, ErrorKind] = {kind.code: kind for kind in ErrorKind}


class TransportError(Exception):
    """Base exception for all classified transport failures.

    Every subclass supports the same four constructions: no arguments,
    message only, message and cause, or cause only (``cause=`` keyword).
    When no message is given the kind's code is used so that the error is
    still diagnostic on its own.

    Attributes:
        kind: The ErrorKind this failure was classified as
        code: Wire-level error code of the kind
        message: Human-readable error message
        cause: The wrapped lower-level failure, if any
        details: Optional additional error context
    """

    default_kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str | None = None,
        cause: BaseException | None = None,
        *,
        kind: ErrorKind | None = None,
        retryable: bool | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        kind = kind or self.default_kind
        if message is None:
            message = f"{kind.code}: {cause}" if cause is not None else kind.code
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.details = details or {}
        self._retryable = kind.retryable if retryable is None else retryable
        if cause is not None:
            self.__cause__ = cause

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def retryable(self) -> bool:
        """Whether the failure is presumed transient and safe to resend unchanged."""
        return self._retryable

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, retryable, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class InvalidTargetError(TransportError):
    """Raised when a request target is not a secure HTTP URL."""

    default_kind = ErrorKind.INVALID_TARGET


class InvalidStateError(TransportError):
    """Raised when a method/body combination or lifecycle state is violated.

    This error occurs at mutation time, for example when switching a request
    that already carries a body to GET, or when configuring a request after
    it has been sent.
    """

    default_kind = ErrorKind.INVALID_STATE


class InvalidArgumentError(TransportError):
    """Raised when a required argument is missing or out of range."""

    default_kind = ErrorKind.INVALID_ARGUMENT


class RetryableConnectionError(TransportError):
    """Raised when opening, sending or receiving fails at the I/O level.

    Connection refused, reset and timeouts are presumed transient, so this
    error defaults to retryable.
    """

    default_kind = ErrorKind.CONNECTION


class ProtocolError(TransportError):
    """Raised when a peer signals a wire-protocol level violation.

    Pass ``kind=`` to select the wire condition; resending identical bytes is
    presumed to reproduce the same rejection, so most protocol kinds default
    to non-retryable.
    """

    default_kind = ErrorKind.PROTOCOL

    def __init__(
        self,
        message: str | None = None,
        cause: BaseException | None = None,
        *,
        kind: ErrorKind | None = None,
        retryable: bool | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if kind is not None and kind.family != FAMILY_PROTOCOL:
            raise ValueError(f"{kind.name} is not a protocol error kind")
        super().__init__(message, cause, kind=kind, retryable=retryable, details=details)


class AmqpFramingError(ProtocolError):
    """Raised when an ``amqp:connection:framing-error`` is received.

    The peer found the frame boundaries or structure on the connection
    malformed. See the AMQP 1.0 core specification, section 2.8.16.
    """

    default_kind = ErrorKind.AMQP_FRAMING_ERROR


class UnknownProtocolCondition(ProtocolError):
    """Protocol error for a wire condition that has no registered kind.

    The received condition string is kept verbatim as ``code``. Without one, the
    generic protocol code is used.
    """

    def __init__(
        self,
        message: str | None = None,
        cause: BaseException | None = None,
        *,
        condition: str = ErrorKind.PROTOCOL.code,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.condition = condition
        if message is None:
            message = f"{condition}: {cause}" if cause is not None else condition
        super().__init__(
            message,
            cause,
            details={"condition": condition, **(details or {})},
        )

    @property
    def code(self) -> str:
        return self.condition


_PROTOCOL_CLASSES: dict[ErrorKind, type[ProtocolError]] = {
    ErrorKind.AMQP_FRAMING_ERROR: AmqpFramingError,
}


def from_amqp_condition(
    condition: str,
    message: str | None = None,
    cause: BaseException | None = None,
) -> ProtocolError:
    """Build the protocol error for an AMQP error condition received from a peer.

    Args:
        condition: Symbolic AMQP error condition, e.g. ``amqp:connection:framing-error``
        message: Optional description sent along with the condition
        cause: Optional lower-level failure to chain

    Returns:
        ProtocolError carrying the registered kind for ``condition``, or an
        UnknownProtocolCondition keeping ``condition`` verbatim.
    """
    kind = ErrorKind.from_code(condition)
    if kind is None or kind.family != FAMILY_PROTOCOL:
        return UnknownProtocolCondition(message, cause, condition=condition)
    error_cls = _PROTOCOL_CLASSES.get(kind, ProtocolError)
    if error_cls is ProtocolError:
        return ProtocolError(message, cause, kind=kind)
    return error_cls(message, cause)


def _chained_ssl_error(error: BaseException) -> ssl.SSLError | None:
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        if isinstance(current, ssl.SSLError):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None


def classify_failure(error: BaseException) -> TransportError:
    """Map a lower-level failure onto the taxonomy.

    The original failure is always kept as ``cause``. Already classified
    errors are returned unchanged.

    TLS failures are recognised anywhere in the ``__cause__`` / ``__context__``
    chain, since httpx reports handshake errors as ``httpx.ConnectError``.
    """
    if isinstance(error, TransportError):
        return error
    if _chained_ssl_error(error) is not None:
        return TransportError(cause=error, kind=ErrorKind.SECURITY)
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        retryable = status in RETRYABLE_HTTP_STATUSES or status >= 500
        return ProtocolError(
            f"Peer responded with HTTP status {status}",
            error,
            kind=ErrorKind.HTTP_STATUS,
            retryable=retryable,
            details={"status_code": status},
        )
    if isinstance(error, (httpx.TransportError, OSError)):
        return RetryableConnectionError(cause=error)
    return TransportError(cause=error)


__all__ = [
    "AmqpFramingError",
    "ErrorKind",
    "InvalidArgumentError",
    "InvalidStateError",
    "InvalidTargetError",
    "ProtocolError",
    "RetryableConnectionError",
    "TransportError",
    "UnknownProtocolCondition",
    "classify_failure",
    "from_amqp_condition",
]
