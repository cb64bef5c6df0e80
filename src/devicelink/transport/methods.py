"""HTTPS request methods understood by the transport."""

from __future__ import annotations

from enum import Enum

from devicelink.errors import InvalidArgumentError


class HttpsMethod(str, Enum):
    """HTTP verbs, sent on the wire exactly as their value."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @property
    def allows_body(self) -> bool:
        """True for the methods a request body may be attached to."""
        return self in BODY_METHODS

    @classmethod
    def parse(cls, method: HttpsMethod | str) -> HttpsMethod:
        """Coerce a verb token into an HttpsMethod.

        Tokens are matched case-sensitively, as they appear on the wire.

        Raises:
            InvalidArgumentError: If the token is not a known verb.
        """
        if isinstance(method, cls):
            return method
        try:
            return cls(method)
        except ValueError as e:
            raise InvalidArgumentError(
                f"Unsupported HTTPS method {method!r}",
                e,
                details={"method": str(method)},
            ) from e


BODY_METHODS = frozenset({HttpsMethod.POST, HttpsMethod.PUT})
