"""Single-exchange HTTPS request lifecycle.

A :class:`RequestLifecycle` owns exactly one outbound HTTPS exchange on top of
an ``httpx.Client``:

- Validates the target scheme and method/body combinations at mutation time
- Buffers the request body until :meth:`RequestLifecycle.connect`, so no
  network activity happens before an explicit connect
- Keeps the response body channel open after connect and drains it fully
  (then closes it) in exactly one read operation

Failures of the network stack itself are raised as ``httpx.HTTPError``
subclasses and are not classified here; callers that need a retry decision
pass them through :func:`devicelink.errors.classify_failure`.

Example:
    >>> from devicelink.transport.https import RequestLifecycle
    >>>
    >>> with RequestLifecycle("https://hub.example.net/devices/d1/messages/events", "POST") as conn:
    ...     conn.set_header("Content-Type", "application/json")
    ...     conn.write_body(b'{"temp": 21}')
    ...     conn.connect()
    ...     status = conn.get_status_code()
"""

from __future__ import annotations

import ssl
from enum import Enum
from types import TracebackType

import httpx

from devicelink.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    ERROR_STATUS_THRESHOLD,
    SECURE_SCHEME,
)
from devicelink.errors import (
    InvalidArgumentError,
    InvalidStateError,
    InvalidTargetError,
    RetryableConnectionError,
)
from devicelink.observability import get_logger, sanitize_for_logging
from devicelink.transport.methods import HttpsMethod
from devicelink.utils.sanitization import sanitize_url

logger = get_logger(__name__)


class LifecycleState(str, Enum):
    CONFIGURED = "configured"
    CONNECTED = "connected"
    CLOSED = "closed"


class RequestLifecycle:
    """One request/response exchange, from configuration to drained channel.

    The lifecycle moves ``CONFIGURED -> CONNECTED -> CLOSED`` and never back.
    Setters are only valid while CONFIGURED. Reading the response or error
    body drains the channel and closes the lifecycle; status and headers stay
    readable afterwards.

    Instances are single-use and not meant to be shared between threads.

    Attributes:
        url: The validated https target
        state: Current LifecycleState
    """

    def __init__(
        self,
        url: str | httpx.URL,
        method: HttpsMethod | str = HttpsMethod.GET,
        *,
        transport: httpx.BaseTransport | None = None,
        read_timeout: float | None = None,
    ) -> None:
        """Validate the target and open the underlying client handle.

        Args:
            url: Target URL; must use the https scheme
            method: Initial request method
            transport: Optional custom transport (e.g. httpx.MockTransport)
            read_timeout: Seconds to wait for response data; 0 disables the
                read timeout. Defaults to DEFAULT_READ_TIMEOUT.

        Raises:
            InvalidTargetError: If the URL is malformed or not https.
            InvalidArgumentError: If the method or timeout is invalid.
            RetryableConnectionError: If the client handle cannot be opened.
        """
        self.url = self._parse_target(url)
        self._method = HttpsMethod.parse(method)
        self._headers = httpx.Headers()
        self._body = b""
        self._read_timeout = DEFAULT_READ_TIMEOUT
        if read_timeout is not None:
            self._read_timeout = self._check_timeout(read_timeout)
        self._transport = transport
        self._tls_context: ssl.SSLContext | None = None
        self._response: httpx.Response | None = None
        self._channel_drained = False
        self.state = LifecycleState.CONFIGURED
        self._client = self._open_client()

    @staticmethod
    def _parse_target(url: str | httpx.URL) -> httpx.URL:
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidTargetError(f"Malformed request target: {e}", e) from e
        if parsed.scheme.lower() != SECURE_SCHEME:
            raise InvalidTargetError(
                f"Expected URL that uses protocol HTTPS but received one that uses "
                f"protocol '{parsed.scheme}'",
                details={"scheme": parsed.scheme},
            )
        if not parsed.host:
            raise InvalidTargetError(f"Request target has no host: {sanitize_url(str(url))}")
        return parsed

    @staticmethod
    def _check_timeout(seconds: float) -> float:
        if seconds < 0:
            raise InvalidArgumentError(
                f"Read timeout must be non-negative, got {seconds}",
                details={"read_timeout": seconds},
            )
        return float(seconds)

    def _open_client(self) -> httpx.Client:
        verify: ssl.SSLContext | bool = self._tls_context or True
        try:
            return httpx.Client(transport=self._transport, verify=verify, follow_redirects=False)
        except (OSError, httpx.TransportError) as e:
            raise RetryableConnectionError(
                f"Unable to open connection to {sanitize_url(str(self.url))}", e
            ) from e

    def _require_configured(self, operation: str) -> None:
        if self.state is not LifecycleState.CONFIGURED:
            raise InvalidStateError(
                f"Cannot {operation}: request is already {self.state.value}",
                details={"operation": operation, "state": self.state.value},
            )

    @property
    def method(self) -> HttpsMethod:
        return self._method

    @property
    def body(self) -> bytes:
        return self._body

    @property
    def read_timeout(self) -> float:
        return self._read_timeout

    @property
    def tls_context(self) -> ssl.SSLContext | None:
        return self._tls_context

    @property
    def request_headers(self) -> dict[str, str]:
        return dict(self._headers)

    def set_method(self, method: HttpsMethod | str) -> None:
        """Change the request method.

        Raises:
            InvalidStateError: If a non-empty body is staged and the new
                method does not allow one, if the verb is unknown, or if the
                request was already sent.
        """
        self._require_configured("set method")
        try:
            new_method = HttpsMethod.parse(method)
        except InvalidArgumentError as e:
            raise InvalidStateError(e.message, e, details=e.details) from e

        if self._body and not new_method.allows_body:
            raise InvalidStateError(
                "Cannot change the request method from POST or PUT when the request "
                "body is non-empty",
                details={"from_method": self._method.value, "to_method": new_method.value},
            )
        self._method = new_method

    def set_header(self, field: str, value: str) -> None:
        """Set a request header; the last write for a field name wins."""
        self._require_configured("set header")
        self._headers[field] = value

    def set_read_timeout(self, seconds: float) -> None:
        """Set the read timeout used by the next connect.

        Has no effect once the request has been sent.
        """
        seconds = self._check_timeout(seconds)
        if self.state is not LifecycleState.CONFIGURED:
            logger.debug(
                "devicelink.https.read_timeout_ignored",
                state=self.state.value,
                read_timeout=seconds,
            )
            return
        self._read_timeout = seconds

    def write_body(self, body: bytes | bytearray | memoryview) -> None:
        """Stage the request body, copying it.

        Nothing is written to the network until connect().

        Raises:
            InvalidStateError: If the body is non-empty and the current
                method is neither POST nor PUT.
        """
        self._require_configured("write body")
        if not self._method.allows_body:
            if len(body) > 0:
                raise InvalidStateError(
                    "Cannot write a body to a request that is not a POST or a PUT request",
                    details={"method": self._method.value, "body_length": len(body)},
                )
            return
        self._body = bytes(body)

    def set_tls_context(self, context: ssl.SSLContext | None) -> None:
        """Use ``context`` for the TLS handshake of this exchange.

        Raises:
            InvalidArgumentError: If context is None.
            InvalidStateError: If the request was already sent, or a custom
                transport was supplied; such a transport owns its TLS setup
                (e.g. ``httpx.HTTPTransport(verify=context)``).
        """
        if context is None:
            raise InvalidArgumentError("SSL context cannot be None")
        self._require_configured("set TLS context")
        if self._transport is not None:
            raise InvalidStateError(
                "Cannot set TLS context on a request with a custom transport; "
                "configure TLS on the transport instead",
                details={"operation": "set TLS context", "transport": type(self._transport).__name__},
            )
        self._tls_context = context
        # The idle client has not touched the network yet, so it can be swapped.
        self._client.close()
        self._client = self._open_client()

    def connect(self) -> None:
        """Send the request and receive the status line and headers.

        The buffered body, if any, is streamed as the request content. The
        response body stays unread until read_response_body() or
        read_error_body().

        Raises:
            httpx.HTTPError: If the connection or send fails.
            InvalidStateError: If connect was already called.
        """
        self._require_configured("connect")
        timeout = httpx.Timeout(DEFAULT_CONNECT_TIMEOUT, read=self._read_timeout or None)
        request = self._client.build_request(
            self._method.value,
            self.url,
            headers=self._headers,
            content=self._body or None,
            timeout=timeout,
        )
        target = sanitize_url(str(self.url))
        logger.debug(
            "devicelink.https.connect",
            method=self._method.value,
            url=target,
            headers=sanitize_for_logging(self._headers),
            body_length=len(self._body),
        )
        try:
            self._response = self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.warning(
                "devicelink.https.connect_failed",
                method=self._method.value,
                url=target,
                error=type(e).__name__,
                message=str(e),
            )
            self.close()
            raise

        self.state = LifecycleState.CONNECTED
        logger.debug(
            "devicelink.https.connected",
            method=self._method.value,
            url=target,
            status=self._response.status_code,
        )

    def _require_response(self) -> httpx.Response:
        if self._response is None:
            raise httpx.ReadError(f"No response received from {sanitize_url(str(self.url))}")
        return self._response

    def _drain(self, response: httpx.Response) -> bytes:
        if self._channel_drained:
            raise httpx.ReadError(
                "Response channel was already read and closed", request=response.request
            )
        try:
            return response.read()
        finally:
            self._channel_drained = True
            self.close()

    def read_response_body(self) -> bytes:
        """Read the success body fully, then close the channel.

        Raises:
            httpx.ReadError: If no response was received, or the channel was
                already drained.
            httpx.HTTPStatusError: If the peer answered with an error status;
                the body is then only available via read_error_body().
        """
        response = self._require_response()
        if response.status_code >= ERROR_STATUS_THRESHOLD:
            raise httpx.HTTPStatusError(
                f"Server returned HTTP status {response.status_code} for "
                f"{self._method.value} {sanitize_url(str(self.url))}",
                request=response.request,
                response=response,
            )
        return self._drain(response)

    def read_error_body(self) -> bytes:
        """Read the error body fully, then close the channel.

        Returns empty bytes when the peer signalled no error condition.
        """
        response = self._response
        if response is None or response.status_code < ERROR_STATUS_THRESHOLD:
            return b""
        return self._drain(response)

    def get_status_code(self) -> int:
        """Return the response status code.

        Raises:
            httpx.ReadError: If no response was received.
        """
        return self._require_response().status_code

    def get_response_headers(self) -> dict[str, list[str]]:
        """Map each response header field (lower-cased) to its values in arrival order.

        Raises:
            httpx.ReadError: If no response was received.
        """
        headers: dict[str, list[str]] = {}
        for field, value in self._require_response().headers.multi_items():
            headers.setdefault(field, []).append(value)
        return headers

    def close(self) -> None:
        """Release the response channel and client handle. Idempotent."""
        if self._response is not None:
            self._response.close()
        self._client.close()
        self.state = LifecycleState.CLOSED

    def __enter__(self) -> RequestLifecycle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
