"""Observability module for devicelink.

Structured logging for the transport layer.

Example:
    >>> from devicelink.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("devicelink.https.connect", method="GET", status=200)
"""

from devicelink.observability.logging import (
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_for_logging",
]
