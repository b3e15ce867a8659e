"""Proxy-switching HTTP client with global header injection."""

from proxyswitch.client import (
    AsyncProxyClient,
    ProxyClient,
    RedirectPolicy,
    always_follow,
    never_follow,
)
from proxyswitch.config import Settings, TransportOptions, get_settings
from proxyswitch.core.errors import (
    ProxyConfigurationError,
    ProxySwitchError,
    ProxyURLParseError,
    SOCKS5DialerConstructionError,
    UnsupportedSchemeError,
)
from proxyswitch.core.logging import get_logger, setup_logging
from proxyswitch.core.routing import ProxyScheme, ProxySpec, resolve_proxy
from proxyswitch.utils.headers import DEFAULT_USER_AGENT, GlobalHeaders
from proxyswitch.utils.http_transport import (
    AsyncHeaderInjectingTransport,
    HeaderInjectingTransport,
)


__all__ = [
    "AsyncHeaderInjectingTransport",
    "AsyncProxyClient",
    "DEFAULT_USER_AGENT",
    "GlobalHeaders",
    "HeaderInjectingTransport",
    "ProxyClient",
    "ProxyConfigurationError",
    "ProxyScheme",
    "ProxySpec",
    "ProxySwitchError",
    "ProxyURLParseError",
    "RedirectPolicy",
    "SOCKS5DialerConstructionError",
    "Settings",
    "TransportOptions",
    "UnsupportedSchemeError",
    "always_follow",
    "get_logger",
    "get_settings",
    "never_follow",
    "resolve_proxy",
    "setup_logging",
]
