"""Core abstractions: errors, logging and proxy routing."""

from proxyswitch.core.errors import (
    ProxyConfigurationError,
    ProxySwitchError,
    ProxyURLParseError,
    SOCKS5DialerConstructionError,
    UnsupportedSchemeError,
)


__all__ = [
    "ProxySwitchError",
    "ProxyConfigurationError",
    "ProxyURLParseError",
    "UnsupportedSchemeError",
    "SOCKS5DialerConstructionError",
]
