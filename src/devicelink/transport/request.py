"""One-shot HTTPS requests built on RequestLifecycle.

:class:`HttpsRequest` describes a request as a value and :meth:`HttpsRequest.send`
drives one :class:`~devicelink.transport.https.RequestLifecycle` through
configure, connect and drain, returning an :class:`HttpsResponse`. Unlike the
lifecycle itself, ``send`` classifies network failures so the caller's retry
policy only ever sees :class:`~devicelink.errors.TransportError`.
"""

from __future__ import annotations

import ssl
from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx

from devicelink.constants import ERROR_STATUS_THRESHOLD
from devicelink.errors import classify_failure
from devicelink.observability import get_logger
from devicelink.transport.https import RequestLifecycle
from devicelink.transport.methods import HttpsMethod
from devicelink.utils.sanitization import sanitize_url

logger = get_logger(__name__)


@dataclass(frozen=True)
class HttpsResponse:
    """Status, body, headers and error reason of a completed exchange.

    ``body`` is empty for error statuses; ``error_reason`` holds what the
    peer sent on the error channel instead.
    """

    status: int
    body: bytes
    headers: dict[str, list[str]]
    error_reason: bytes = b""

    @property
    def is_success(self) -> bool:
        return self.status < ERROR_STATUS_THRESHOLD

    def header(self, name: str) -> str | None:
        """Return the first value of a response header, or None."""
        values = self.headers.get(name.lower())
        return values[0] if values else None


@dataclass
class HttpsRequest:
    url: str
    method: HttpsMethod | str = HttpsMethod.GET
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    read_timeout: float | None = None
    tls_context: ssl.SSLContext | None = None

    def send(self, transport: httpx.BaseTransport | None = None) -> HttpsResponse:
        """Perform the exchange and return the response.

        Validation errors from the lifecycle propagate unchanged. Network
        failures are raised as classified TransportErrors chaining the
        original failure.

        A ``tls_context`` cannot be combined with a custom ``transport``; the
        lifecycle raises InvalidStateError before anything is sent.
        """
        with RequestLifecycle(
            self.url, self.method, transport=transport, read_timeout=self.read_timeout
        ) as conn:
            for name, value in self.headers.items():
                conn.set_header(name, value)
            conn.write_body(self.body)
            if self.tls_context is not None:
                conn.set_tls_context(self.tls_context)

            try:
                conn.connect()
                status = conn.get_status_code()
                headers = conn.get_response_headers()
                if status < ERROR_STATUS_THRESHOLD:
                    body, error_reason = conn.read_response_body(), b""
                else:
                    body, error_reason = b"", conn.read_error_body()
            except httpx.HTTPError as e:
                classified = classify_failure(e)
                logger.warning(
                    "devicelink.https.send_failed",
                    method=conn.method.value,
                    url=sanitize_url(self.url),
                    code=classified.code,
                    retryable=classified.retryable,
                )
                raise classified from e

        logger.debug(
            "devicelink.https.send",
            method=conn.method.value,
            url=sanitize_url(self.url),
            status=status,
        )
        return HttpsResponse(status=status, body=body, headers=headers, error_reason=error_reason)
