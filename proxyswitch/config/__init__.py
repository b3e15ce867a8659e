"""Configuration module for proxyswitch clients."""

from .settings import DEFAULT_MAX_REDIRECTS, DEFAULT_TIMEOUT, Settings, get_settings
from .transport import TransportOptions


__all__ = [
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_TIMEOUT",
    "Settings",
    "TransportOptions",
    "get_settings",
]
