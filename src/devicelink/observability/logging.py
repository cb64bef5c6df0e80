"""Structured logging configuration for devicelink.

structlog is configured once per process with a console renderer for
development and a JSON renderer for devices shipping logs to a collector.
Transport modules log dotted event names (``devicelink.https.connect``) with
key/value context; header maps pass through :func:`sanitize_for_logging`
first so SAS tokens and shared access keys never reach the log stream.

Environment Variables:
    DEVICELINK_LOG_FORMAT: "json" or "console" (default)
    DEVICELINK_LOG_LEVEL: DEBUG, INFO (default), WARNING, ERROR
    DEVICELINK_SERVICE_NAME: Value bound as ``service`` on every event
    DEVICELINK_DEBUG: "true" or "1" to log header values unredacted

Example:
    >>> from devicelink.observability.logging import configure_logging, get_logger
    >>>
    >>> configure_logging(log_format="json", log_level="DEBUG")
    >>> logger = get_logger("devicelink.transport.https")
    >>> logger.info("devicelink.https.connect", method="POST", status=204)
"""

import logging
import os
import sys
from collections.abc import Mapping
from typing import Any

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "devicelink"

ENV_LOG_FORMAT = "DEVICELINK_LOG_FORMAT"
ENV_LOG_LEVEL = "DEVICELINK_LOG_LEVEL"
ENV_SERVICE_NAME = "DEVICELINK_SERVICE_NAME"
ENV_DEBUG = "DEVICELINK_DEBUG"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Key substrings (case-insensitive) whose values are credentials
_SENSITIVE_KEY_PATTERNS = frozenset(
    {"authorization", "auth", "signature", "sas", "token", "secret", "key", "password"}
)

_logging_configured = False


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(pattern in lower for pattern in _SENSITIVE_KEY_PATTERNS)


def is_debug_mode() -> bool:
    """Return True if DEVICELINK_DEBUG is set to a truthy value."""
    value = os.environ.get(ENV_DEBUG, "").strip().lower()
    return value in ("true", "1", "yes", "on")


def sanitize_for_logging(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with credential-looking values redacted.

    Keys are matched case-insensitively against authorization, sas, token,
    secret, key and similar; nested mappings are sanitized recursively. In
    debug mode the copy is returned unredacted.

    Example:
        >>> sanitize_for_logging({"Authorization": "SharedAccessSignature sr=..."})
        {'Authorization': '***REDACTED***'}
    """
    if not data:
        return {}
    debug = is_debug_mode()
    result: dict[str, Any] = {}
    for k, v in data.items():
        if not debug and _is_sensitive_key(k):
            result[k] = REDACTED_PLACEHOLDER
        elif isinstance(v, Mapping):
            result[k] = sanitize_for_logging(v)
        else:
            result[k] = v
    return result


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
    install_handler: bool = True,
) -> None:
    """Configure structlog and the stdlib root handler.

    Without ``install_handler`` the root logger is left untouched and events
    are rendered before reaching whatever handlers the host application has.

    Args:
        log_format: "json" or "console". Defaults to env var or "console"
        log_level: Minimum log level. Defaults to env var or "INFO"
        service_name: Bound as ``service`` on every event. Defaults to env var
            or "devicelink"
        force: Reconfigure even if logging was already configured
        install_handler: Replace the root handlers with a stdout handler
            and set the root level
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    log_format = (log_format or os.environ.get(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)).lower()
    log_level = (log_level or os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
    service_name = service_name or os.environ.get(ENV_SERVICE_NAME, DEFAULT_SERVICE_NAME)

    shared_processors = _shared_processors()

    final_processor = (
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter
        if install_handler
        else _renderer(log_format)
    )
    structlog.configure(
        processors=[*shared_processors, final_processor],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if install_handler:
        _install_root_handler(shared_processors, log_format, log_level)

    structlog.contextvars.bind_contextvars(service=service_name)

    _logging_configured = True


def _install_root_handler(
    shared_processors: list[Processor], log_format: str, log_level: str
) -> None:
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_format),
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring defaults on first use.

    Handlers already installed on the root logger are kept.
    """
    if not _logging_configured:
        configure_logging(install_handler=not logging.getLogger().handlers)

    return structlog.stdlib.get_logger(name)
