"""Constants for devicelink.

This module defines transport-wide constants used across the codebase.
"""

# The only URL scheme a request target may use
SECURE_SCHEME = "https"

# Default configuration values
DEFAULT_READ_TIMEOUT = 240.0
"""Seconds to wait for the service to start sending the response.

Device-to-cloud requests may be parked by the service (e.g. long-polling for
cloud-to-device messages), so the read timeout is much longer than the
connect timeout.
"""

DEFAULT_CONNECT_TIMEOUT = 30.0

# Status codes at or above this value deliver their body on the error channel
ERROR_STATUS_THRESHOLD = 400
