"""Transport-level options shared by every routing strategy."""

import ssl
from pathlib import Path

import httpx
from pydantic import BaseModel, Field

from proxyswitch.core.logging import get_logger


logger = get_logger(__name__)


class TransportOptions(BaseModel):
    """Options applied to each underlying transport, whatever the route."""

    # SSL/TLS settings
    ssl_verify: bool = Field(default=True, description="Enable SSL verification")
    ssl_ca_bundle: str | None = Field(
        default=None, description="Path to CA bundle file"
    )
    ssl_client_cert: str | None = Field(
        default=None, description="Path to client certificate file"
    )
    ssl_client_key: str | None = Field(
        default=None, description="Path to client key file"
    )

    # Protocol settings
    http1: bool = Field(default=True, description="Enable HTTP/1.1")
    http2: bool = Field(default=False, description="Enable HTTP/2")

    # Connection settings
    max_connections: int = Field(
        default=100, description="Maximum number of connections"
    )
    max_keepalive_connections: int = Field(
        default=20, description="Maximum keepalive connections"
    )
    keepalive_expiry: float = Field(
        default=5.0, description="Idle keepalive connection expiry in seconds"
    )

    # SOCKS settings
    socks_rdns: bool = Field(
        default=True,
        description="Resolve target host names on the SOCKS5 server",
    )

    @property
    def limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_keepalive_connections,
            keepalive_expiry=self.keepalive_expiry,
        )

    def create_ssl_context(self) -> ssl.SSLContext | bool:
        """Create SSL context from configuration."""
        if not self.ssl_verify:
            return False  # Disable SSL verification

        context = ssl.create_default_context()

        if self.ssl_ca_bundle:
            ca_path = Path(self.ssl_ca_bundle)
            if ca_path.exists():
                context.load_verify_locations(ca_path)
                logger.debug("ca_bundle_loaded", path=str(ca_path))
            else:
                logger.warning("ca_bundle_not_found", path=str(ca_path))

        if self.ssl_client_cert:
            cert_path = Path(self.ssl_client_cert)
            key_path = (
                Path(self.ssl_client_key) if self.ssl_client_key else cert_path
            )

            if cert_path.exists() and key_path.exists():
                context.load_cert_chain(cert_path, key_path)
                logger.debug("client_certificate_loaded", path=str(cert_path))
            else:
                logger.warning(
                    "client_certificate_not_found",
                    cert_path=str(cert_path),
                    key_path=str(key_path),
                )

        return context
