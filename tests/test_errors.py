"""Tests for the transport error taxonomy."""

import ssl

import httpx
import pytest

from devicelink.errors import (
    AmqpFramingError,
    ErrorKind,
    InvalidArgumentError,
    InvalidStateError,
    InvalidTargetError,
    ProtocolError,
    RetryableConnectionError,
    TransportError,
    UnknownProtocolCondition,
    classify_failure,
    from_amqp_condition,
)

FRAMING_ERROR_CODE = "amqp:connection:framing-error"


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://hub.example.net/devices/d1/messages/deviceBound")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("status failure", request=request, response=response)


class TestErrorKind:
    """Test the variant table."""

    def test_codes_are_unique(self) -> None:
        codes = [kind.code for kind in ErrorKind]
        assert len(codes) == len(set(codes))

    def test_framing_error_code_is_verbatim(self) -> None:
        assert ErrorKind.AMQP_FRAMING_ERROR.code == FRAMING_ERROR_CODE
        assert ErrorKind.AMQP_FRAMING_ERROR.retryable is False

    def test_from_code(self) -> None:
        assert ErrorKind.from_code(FRAMING_ERROR_CODE) is ErrorKind.AMQP_FRAMING_ERROR
        assert ErrorKind.from_code("amqp:nonsense") is None

    @pytest.mark.parametrize(
        "kind",
        [
            ErrorKind.AMQP_INTERNAL_ERROR,
            ErrorKind.AMQP_RESOURCE_LIMIT_EXCEEDED,
            ErrorKind.AMQP_CONNECTION_FORCED,
            ErrorKind.AMQP_LINK_DETACH_FORCED,
            ErrorKind.CONNECTION,
        ],
    )
    def test_transient_kinds_are_retryable(self, kind: ErrorKind) -> None:
        assert kind.retryable is True


class TestTransportError:
    """Test TransportError base class."""

    def test_defaults(self) -> None:
        error = TransportError()

        assert error.kind is ErrorKind.TRANSPORT
        assert error.code == "devicelink:transport/error"
        assert error.message == "devicelink:transport/error"
        assert error.retryable is False
        assert error.cause is None
        assert error.details == {}

    def test_to_dict(self) -> None:
        error = InvalidStateError("bad shape", details={"method": "GET"})

        assert error.to_dict() == {
            "code": "devicelink:transport/invalid_state",
            "message": "bad shape",
            "retryable": False,
            "details": {"method": "GET"},
        }

    def test_retryable_is_read_only(self) -> None:
        error = RetryableConnectionError()

        with pytest.raises(AttributeError):
            error.retryable = False  # type: ignore[misc]

        assert error.retryable is True

    def test_retryable_override_at_construction(self) -> None:
        assert RetryableConnectionError(retryable=False).retryable is False
        assert ProtocolError(retryable=True).retryable is True

    def test_details_not_shared_between_instances(self) -> None:
        error1 = TransportError()
        error2 = TransportError()
        error1.details["key"] = "value"

        assert error2.details == {}

    @pytest.mark.parametrize(
        ("error_cls", "retryable"),
        [
            (InvalidTargetError, False),
            (InvalidStateError, False),
            (InvalidArgumentError, False),
            (RetryableConnectionError, True),
            (ProtocolError, False),
            (AmqpFramingError, False),
        ],
    )
    def test_hierarchy_and_default_retryable(self, error_cls: type, retryable: bool) -> None:
        error = error_cls()

        assert isinstance(error, TransportError)
        assert isinstance(error, Exception)
        assert error.retryable is retryable


class TestAmqpFramingError:
    """Test the four construction forms of the framing error."""

    def test_no_arguments(self) -> None:
        error = AmqpFramingError()

        assert error.code == FRAMING_ERROR_CODE
        assert str(error) == FRAMING_ERROR_CODE
        assert error.cause is None

    def test_message_only(self) -> None:
        error = AmqpFramingError("frame exceeded max-frame-size")

        assert error.code == FRAMING_ERROR_CODE
        assert str(error) == "frame exceeded max-frame-size"
        assert error.cause is None

    def test_message_and_cause(self) -> None:
        cause = ValueError("truncated frame header")
        error = AmqpFramingError("peer rejected frame", cause)

        assert error.code == FRAMING_ERROR_CODE
        assert error.message == "peer rejected frame"
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_cause_only(self) -> None:
        cause = ConnectionResetError("reset by peer")
        error = AmqpFramingError(cause=cause)

        assert error.code == FRAMING_ERROR_CODE
        assert error.cause is cause
        assert FRAMING_ERROR_CODE in str(error)
        assert "reset by peer" in str(error)

    def test_is_protocol_error(self) -> None:
        error = AmqpFramingError()

        assert isinstance(error, ProtocolError)
        assert error.kind is ErrorKind.AMQP_FRAMING_ERROR
        assert error.retryable is False

    def test_cause_chain_survives_raise(self) -> None:
        cause = OSError("socket closed")

        with pytest.raises(AmqpFramingError) as exc_info:
            try:
                raise cause
            except OSError as e:
                raise AmqpFramingError(cause=e) from e

        assert exc_info.value.__cause__ is cause


class TestProtocolError:
    def test_rejects_non_protocol_kind(self) -> None:
        with pytest.raises(ValueError):
            ProtocolError(kind=ErrorKind.CONNECTION)

    def test_selects_wire_condition_by_kind(self) -> None:
        error = ProtocolError("link stolen by another receiver", kind=ErrorKind.AMQP_LINK_STOLEN)

        assert error.code == "amqp:link:stolen"
        assert error.retryable is False


class TestFromAmqpCondition:
    """Test building protocol errors from wire condition strings."""

    def test_framing_error_condition(self) -> None:
        cause = RuntimeError("decoder failure")
        error = from_amqp_condition(FRAMING_ERROR_CODE, "bad frame", cause)

        assert type(error) is AmqpFramingError
        assert error.message == "bad frame"
        assert error.cause is cause

    def test_registered_condition(self) -> None:
        error = from_amqp_condition("amqp:connection:forced")

        assert type(error) is ProtocolError
        assert error.kind is ErrorKind.AMQP_CONNECTION_FORCED
        assert error.retryable is True

    def test_unknown_condition_kept_verbatim(self) -> None:
        error = from_amqp_condition("com.microsoft:device-container-throttled", "slow down")

        assert isinstance(error, UnknownProtocolCondition)
        assert error.code == "com.microsoft:device-container-throttled"
        assert error.message == "slow down"
        assert error.retryable is False
        assert error.details["condition"] == "com.microsoft:device-container-throttled"

    def test_non_protocol_code_is_not_a_condition(self) -> None:
        error = from_amqp_condition("devicelink:transport/connection")

        assert isinstance(error, UnknownProtocolCondition)


class TestUnknownProtocolCondition:
    """Test the four construction forms without a wire condition."""

    def test_no_arguments(self) -> None:
        error = UnknownProtocolCondition()

        assert error.code == ErrorKind.PROTOCOL.code
        assert str(error) == ErrorKind.PROTOCOL.code
        assert error.cause is None

    def test_message_only(self) -> None:
        error = UnknownProtocolCondition("unexpected performative")

        assert error.code == ErrorKind.PROTOCOL.code
        assert error.message == "unexpected performative"
        assert error.cause is None

    def test_message_and_cause(self) -> None:
        cause = ValueError("unknown descriptor")
        error = UnknownProtocolCondition("cannot decode performative", cause)

        assert error.message == "cannot decode performative"
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_cause_only(self) -> None:
        cause = ValueError("unknown descriptor")
        error = UnknownProtocolCondition(cause=cause)

        assert error.cause is cause
        assert ErrorKind.PROTOCOL.code in str(error)
        assert "unknown descriptor" in str(error)
        assert error.retryable is False


class TestClassifyFailure:
    """Test mapping lower-level failures onto the taxonomy."""

    @pytest.mark.parametrize(
        "failure",
        [
            ConnectionRefusedError("refused"),
            ConnectionResetError("reset"),
            TimeoutError("timed out"),
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("read timed out"),
            httpx.RemoteProtocolError("server disconnected"),
        ],
    )
    def test_io_failures_are_retryable(self, failure: BaseException) -> None:
        classified = classify_failure(failure)

        assert isinstance(classified, RetryableConnectionError)
        assert classified.retryable is True
        assert classified.cause is failure

    def test_classified_errors_returned_unchanged(self) -> None:
        error = AmqpFramingError()
        assert classify_failure(error) is error

    def test_tls_failures_are_not_retryable(self) -> None:
        failure = ssl.SSLCertVerificationError("certificate verify failed")

        classified = classify_failure(failure)

        assert classified.kind is ErrorKind.SECURITY
        assert classified.retryable is False
        assert classified.cause is failure

    def test_tls_failure_wrapped_by_httpx_is_not_retryable(self) -> None:
        handshake = ssl.SSLCertVerificationError("certificate verify failed")
        try:
            try:
                raise handshake
            except ssl.SSLError as e:
                raise httpx.ConnectError(str(e)) from e
        except httpx.ConnectError as e:
            failure = e

        classified = classify_failure(failure)

        assert not isinstance(classified, RetryableConnectionError)
        assert classified.kind is ErrorKind.SECURITY
        assert classified.retryable is False
        assert classified.cause is failure

    def test_tls_failure_in_implicit_context_is_not_retryable(self) -> None:
        failure = httpx.ConnectError("handshake failed")
        failure.__context__ = ssl.SSLError("wrong version number")

        classified = classify_failure(failure)

        assert classified.kind is ErrorKind.SECURITY
        assert classified.retryable is False

    def test_cyclic_context_chain_terminates(self) -> None:
        outer = httpx.ReadError("read failed")
        inner = OSError("socket closed")
        outer.__context__ = inner
        inner.__context__ = outer

        classified = classify_failure(outer)

        assert isinstance(classified, RetryableConnectionError)

    @pytest.mark.parametrize(
        ("status", "retryable"),
        [(400, False), (401, False), (404, False), (408, True), (429, True), (500, True), (503, True)],
    )
    def test_status_failures(self, status: int, retryable: bool) -> None:
        failure = _status_error(status)

        classified = classify_failure(failure)

        assert isinstance(classified, ProtocolError)
        assert classified.kind is ErrorKind.HTTP_STATUS
        assert classified.retryable is retryable
        assert classified.details["status_code"] == status

    def test_unknown_failures_are_not_retryable(self) -> None:
        failure = KeyError("missing")

        classified = classify_failure(failure)

        assert type(classified) is TransportError
        assert classified.retryable is False
        assert classified.cause is failure
