"""Proxy URL parsing and per-route transport construction.

A proxy string is parsed into a ProxySpec, which selects one RoutingStrategy:

- DirectRoute: plain httpx transport, no proxy
- HTTPProxyRoute: httpx transport forwarding every request through an
  HTTP/HTTPS proxy (httpcore handles forwarding and CONNECT tunnels)
- SOCKS5ProxyRoute: httpx-socks transport opening every connection through
  a SOCKS5 server

Every strategy builds a fresh transport on each call so that no two clients
ever share connection pools or TLS state.
"""

from abc import ABC, abstractmethod
from enum import Enum

import httpx
from httpx_socks import AsyncProxyTransport, SyncProxyTransport
from pydantic import BaseModel, ConfigDict, Field
from python_socks import ProxyType

from proxyswitch.config.transport import TransportOptions
from proxyswitch.core.errors import (
    ProxyURLParseError,
    SOCKS5DialerConstructionError,
    UnsupportedSchemeError,
)
from proxyswitch.core.logging import get_logger


logger = get_logger(__name__)


DEFAULT_SOCKS5_PORT = 1080


class ProxyScheme(str, Enum):
    """Proxy schemes with a routing strategy."""

    NONE = ""
    HTTP = "http"
    HTTPS = "https"
    SOCKS5 = "socks5"


class ProxySpec(BaseModel):
    """Parsed proxy URL."""

    model_config = ConfigDict(frozen=True)

    raw: str = Field(default="", description="Proxy string as configured")
    scheme: ProxyScheme = Field(default=ProxyScheme.NONE)
    host: str = Field(default="")
    port: int | None = Field(default=None)
    username: str | None = Field(default=None)
    password: str | None = Field(default=None)

    @property
    def is_direct(self) -> bool:
        return self.scheme is ProxyScheme.NONE

    @property
    def address(self) -> str:
        """``host:port`` of the proxy server."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}" if self.port is not None else host

    @property
    def url(self) -> httpx.URL:
        """Normalized proxy URL including credentials."""
        kwargs: dict[str, str | int] = {"scheme": self.scheme.value, "host": self.host}
        if self.port is not None:
            kwargs["port"] = self.port
        if self.username is not None:
            kwargs["username"] = self.username
            kwargs["password"] = self.password or ""
        return httpx.URL(**kwargs)  # type: ignore[arg-type]

    def redacted(self) -> str:
        """Render the spec for logs with any password masked."""
        if self.is_direct:
            return ""
        userinfo = ""
        if self.username is not None:
            userinfo = f"{self.username}:***@" if self.password else f"{self.username}@"
        return f"{self.scheme.value}://{userinfo}{self.address}"

    def __str__(self) -> str:
        return self.raw


def parse_proxy_spec(spec: str) -> ProxySpec:
    """Parse a proxy string.

    Args:
        spec: ``scheme://[user[:password]@]host:port`` or ``""`` for direct

    Returns:
        The parsed ProxySpec

    Raises:
        ProxyURLParseError: If the string is not a valid URL, or has no
            scheme or no host
        UnsupportedSchemeError: If the scheme has no routing strategy
    """
    if spec == "":
        return ProxySpec()

    try:
        url = httpx.URL(spec)
    except (httpx.InvalidURL, TypeError) as e:
        raise ProxyURLParseError(
            f"Failed to parse proxy URL: {e}", url=spec, cause=e
        ) from e

    if not url.scheme:
        raise ProxyURLParseError("Proxy URL has no scheme", url=spec)

    try:
        scheme = ProxyScheme(url.scheme.lower())
    except ValueError as e:
        raise UnsupportedSchemeError(url.scheme, cause=e) from e

    if not url.host:
        raise ProxyURLParseError("Proxy URL has no host", url=spec)

    username: str | None = None
    password: str | None = None
    if url.userinfo:
        username = url.username
        password = url.password or ""

    return ProxySpec(
        raw=spec,
        scheme=scheme,
        host=url.host,
        port=url.port,
        username=username,
        password=password,
    )


class RoutingStrategy(ABC):
    """Strategy producing the underlying transport for one kind of route."""

    def __init__(self, spec: ProxySpec) -> None:
        self.spec = spec

    @abstractmethod
    def build_transport(self, options: TransportOptions) -> httpx.BaseTransport:
        """Build a new synchronous transport for this route."""

    @abstractmethod
    def build_async_transport(
        self, options: TransportOptions
    ) -> httpx.AsyncBaseTransport:
        """Build a new asynchronous transport for this route."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.spec.redacted()!r})"


class DirectRoute(RoutingStrategy):
    """Connect straight to the target host."""

    def build_transport(self, options: TransportOptions) -> httpx.BaseTransport:
        return httpx.HTTPTransport(
            verify=options.create_ssl_context(),
            http1=options.http1,
            http2=options.http2,
            limits=options.limits,
        )

    def build_async_transport(
        self, options: TransportOptions
    ) -> httpx.AsyncBaseTransport:
        return httpx.AsyncHTTPTransport(
            verify=options.create_ssl_context(),
            http1=options.http1,
            http2=options.http2,
            limits=options.limits,
        )


class HTTPProxyRoute(RoutingStrategy):
    """Forward every request through an HTTP or HTTPS proxy."""

    def build_transport(self, options: TransportOptions) -> httpx.BaseTransport:
        return httpx.HTTPTransport(
            proxy=httpx.Proxy(self.spec.url),
            verify=options.create_ssl_context(),
            http1=options.http1,
            http2=options.http2,
            limits=options.limits,
        )

    def build_async_transport(
        self, options: TransportOptions
    ) -> httpx.AsyncBaseTransport:
        return httpx.AsyncHTTPTransport(
            proxy=httpx.Proxy(self.spec.url),
            verify=options.create_ssl_context(),
            http1=options.http1,
            http2=options.http2,
            limits=options.limits,
        )


class SOCKS5ProxyRoute(RoutingStrategy):
    """Open every connection through a SOCKS5 server.

    When the URL carries a username, authentication is always configured; a
    missing password is sent as an empty string. Target host names are
    resolved by the SOCKS5 server unless ``socks_rdns`` is turned off.
    """

    def _socks_kwargs(self, options: TransportOptions) -> dict[str, object]:
        return {
            "proxy_type": ProxyType.SOCKS5,
            "proxy_host": self.spec.host,
            "proxy_port": self.spec.port or DEFAULT_SOCKS5_PORT,
            "username": self.spec.username,
            "password": self.spec.password,
            "rdns": options.socks_rdns,
            "verify": options.create_ssl_context(),
            "http1": options.http1,
            "http2": options.http2,
            "limits": options.limits,
        }

    def build_transport(self, options: TransportOptions) -> httpx.BaseTransport:
        try:
            kwargs = self._socks_kwargs(options)
            return SyncProxyTransport(**kwargs)  # type: ignore[arg-type]
        except Exception as e:
            raise SOCKS5DialerConstructionError(
                f"Failed to create SOCKS5 transport: {e}",
                url=self.spec.redacted(),
                cause=e,
            ) from e

    def build_async_transport(
        self, options: TransportOptions
    ) -> httpx.AsyncBaseTransport:
        try:
            kwargs = self._socks_kwargs(options)
            return AsyncProxyTransport(**kwargs)  # type: ignore[arg-type]
        except Exception as e:
            raise SOCKS5DialerConstructionError(
                f"Failed to create SOCKS5 transport: {e}",
                url=self.spec.redacted(),
                cause=e,
            ) from e


_ROUTES: dict[ProxyScheme, type[RoutingStrategy]] = {
    ProxyScheme.NONE: DirectRoute,
    ProxyScheme.HTTP: HTTPProxyRoute,
    ProxyScheme.HTTPS: HTTPProxyRoute,
    ProxyScheme.SOCKS5: SOCKS5ProxyRoute,
}


def routing_strategy_for(spec: ProxySpec) -> RoutingStrategy:
    """Select the routing strategy for a parsed spec."""
    return _ROUTES[spec.scheme](spec)


def resolve_proxy(
    spec: str, options: TransportOptions | None = None
) -> httpx.BaseTransport:
    """Build the synchronous transport for a proxy string.

    Nothing outside the returned transport is touched, so a failure here
    leaves every caller-visible state as it was.

    Raises:
        ProxyURLParseError: Malformed proxy string
        UnsupportedSchemeError: Scheme other than http, https or socks5
        SOCKS5DialerConstructionError: The SOCKS5 transport could not be built
    """
    strategy = routing_strategy_for(parse_proxy_spec(spec))
    transport = strategy.build_transport(options or TransportOptions())
    logger.debug("transport_built", route=repr(strategy))
    return transport


def resolve_async_proxy(
    spec: str, options: TransportOptions | None = None
) -> httpx.AsyncBaseTransport:
    """Asynchronous counterpart of :func:`resolve_proxy`."""
    strategy = routing_strategy_for(parse_proxy_spec(spec))
    transport = strategy.build_async_transport(options or TransportOptions())
    logger.debug("async_transport_built", route=repr(strategy))
    return transport
