"""X.509 client TLS contexts for device authentication.

Devices that authenticate with a certificate instead of a shared access
signature present it during the TLS handshake. The context built here is
handed to :meth:`RequestLifecycle.set_tls_context`.
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass
from pathlib import Path

from devicelink.errors import InvalidArgumentError


@dataclass
class TlsConfig:
    cert_file: str | Path
    key_file: str | Path
    ca_certs: str | Path | None = None
    key_password: str | None = None


def _existing(path: str | Path, label: str) -> Path:
    resolved = Path(path)
    if not resolved.exists():
        raise InvalidArgumentError(
            f"{label} file not found: {resolved}", details={"path": str(resolved)}
        )
    return resolved


def create_ssl_context(config: TlsConfig) -> ssl.SSLContext:
    cert_path = _existing(config.cert_file, "Certificate")
    key_path = _existing(config.key_file, "Key")

    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    ctx.load_cert_chain(
        certfile=str(cert_path),
        keyfile=str(key_path),
        password=config.key_password,
    )
    if config.ca_certs:
        ctx.load_verify_locations(cafile=str(_existing(config.ca_certs, "CA certs")))
    else:
        ctx.load_default_certs(ssl.Purpose.SERVER_AUTH)
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED

    return ctx
