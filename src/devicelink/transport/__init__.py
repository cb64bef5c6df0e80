"""devicelink HTTPS transport layer.

This package provides the single-exchange HTTPS lifecycle used by the
device-to-cloud client, built on httpx:

Public exports:
    RequestLifecycle: One request/response exchange with deferred body write
    LifecycleState: CONFIGURED / CONNECTED / CLOSED
    HttpsMethod: HTTP verbs and their body rules
    HttpsRequest: Request value that drives one lifecycle via send()
    HttpsResponse: Status, body, headers and error reason of an exchange
    TlsConfig: Device certificate configuration
    create_ssl_context: Build a client SSLContext from a TlsConfig

Example:
    >>> from devicelink.transport import HttpsRequest
    >>> response = HttpsRequest(
    ...     "https://hub.example.net/devices/d1/messages/events?api-version=2021-04-12",
    ...     "POST",
    ...     body=b'{"temp": 21}',
    ...     headers={"Authorization": sas_token},
    ... ).send()
    >>> response.status
    204
"""

from devicelink.transport.https import LifecycleState, RequestLifecycle
from devicelink.transport.methods import BODY_METHODS, HttpsMethod
from devicelink.transport.request import HttpsRequest, HttpsResponse
from devicelink.transport.tls import TlsConfig, create_ssl_context

__all__ = [
    "BODY_METHODS",
    "HttpsMethod",
    "HttpsRequest",
    "HttpsResponse",
    "LifecycleState",
    "RequestLifecycle",
    "TlsConfig",
    "create_ssl_context",
]
