"""Utility modules for devicelink.

Helpers shared across the transport layer, such as redacting credentials
from URLs before they are logged.
"""

__all__: list[str] = []
