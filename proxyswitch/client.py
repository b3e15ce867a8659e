"""Proxy-switching HTTP clients with global header injection.

ProxyClient wraps an ``httpx.Client`` whose transport is a
HeaderInjectingTransport. Switching proxies builds a new underlying transport
and swaps it into the wrapper, so the httpx client, its cookies and the
global header set all survive the switch. AsyncProxyClient offers the same
configuration API around an ``httpx.AsyncClient``.

Configuration methods are synchronous on both clients: they never perform
I/O, and are serialized by a re-entrant lock.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any, Generic, TypeVar

import httpx

from proxyswitch.config.settings import Settings, get_settings
from proxyswitch.core.logging import get_logger
from proxyswitch.core.routing import ProxySpec, parse_proxy_spec, routing_strategy_for
from proxyswitch.utils.headers import GlobalHeaders
from proxyswitch.utils.http_transport import (
    AsyncHeaderInjectingTransport,
    HeaderInjectingTransport,
)


logger = get_logger(__name__)


TransportT = TypeVar("TransportT", httpx.BaseTransport, httpx.AsyncBaseTransport)
InjectorT = TypeVar(
    "InjectorT", HeaderInjectingTransport, AsyncHeaderInjectingTransport
)

# Called with the request about to be sent and the responses received so far;
# returns True to follow the redirect, False to hand back the 3xx response.
RedirectPolicy = Callable[[httpx.Request, list[httpx.Response]], bool]


def never_follow(request: httpx.Request, history: list[httpx.Response]) -> bool:
    """Default policy: return 3xx responses to the caller as-is."""
    return False


def always_follow(request: httpx.Request, history: list[httpx.Response]) -> bool:
    """Follow every redirect, bounded by the client's ``max_redirects``."""
    return True


# httpx defaults that would otherwise shadow global headers of the same name
_SHADOWING_DEFAULT_HEADERS = ("User-Agent", "Accept")


def _strip_default_headers(headers: httpx.Headers) -> None:
    for name in _SHADOWING_DEFAULT_HEADERS:
        if name in headers:
            del headers[name]


class _BaseProxyClient(ABC, Generic[TransportT, InjectorT]):
    """Configuration state shared by the sync and async clients."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the client from settings.

        Args:
            settings: Client settings; defaults to settings loaded from the
                environment

        Raises:
            ProxyConfigurationError: If ``settings.proxy`` cannot be applied
        """
        self.settings = settings or get_settings()
        self._lock = threading.RLock()
        self._default_user_agent = self.settings.user_agent
        self._timeout = self.settings.timeout
        self._user_agent_is_default = self.settings.auto_user_agent
        self._redirect_policy: RedirectPolicy = never_follow

        spec = parse_proxy_spec(self.settings.proxy)
        headers = (
            GlobalHeaders({"User-Agent": self._default_user_agent})
            if self.settings.auto_user_agent
            else GlobalHeaders()
        )
        self._spec = spec
        self._injector: InjectorT = self._create_injector(
            self._build_transport(spec), headers
        )
        logger.debug("proxy_client_created", proxy=spec.redacted() or "direct")

    @abstractmethod
    def _build_transport(self, spec: ProxySpec) -> TransportT:
        """Build the underlying transport for a parsed spec."""

    @abstractmethod
    def _create_injector(
        self, transport: TransportT, headers: GlobalHeaders
    ) -> InjectorT:
        """Wrap the underlying transport in a header-injecting transport."""

    @abstractmethod
    def _apply_timeout(self, timeout: float | None) -> None:
        """Push the timeout down to the httpx client."""

    @property
    def transport(self) -> InjectorT:
        """The header-injecting transport owned by this client."""
        return self._injector

    @property
    def proxy(self) -> str:
        return self._spec.raw

    @property
    def proxy_spec(self) -> ProxySpec:
        return self._spec

    @property
    def max_redirects(self) -> int:
        return self.settings.max_redirects

    def set_proxy(self, spec: str) -> None:
        """Route subsequent requests through ``spec``.

        Args:
            spec: ``http://``, ``https://`` or ``socks5://`` proxy URL, or
                ``""`` for a direct connection

        Raises:
            ProxyURLParseError: Malformed proxy string
            UnsupportedSchemeError: Scheme other than http, https or socks5
            SOCKS5DialerConstructionError: SOCKS5 transport construction failed

        On any error the previous proxy stays in effect.
        """
        with self._lock:
            parsed = parse_proxy_spec(spec)
            transport = self._build_transport(parsed)
            self._injector.replace_transport(transport)
            self._spec = parsed
        logger.info("proxy_switched", proxy=parsed.redacted() or "direct")

    def clear_proxy(self) -> None:
        """Switch back to direct connections."""
        self.set_proxy("")

    def set_transport(self, transport: TransportT | None) -> None:
        """Install a caller-built underlying transport.

        ``None`` installs a fresh direct transport and resets the proxy
        string. Otherwise the proxy string is left as it was, since the
        route of a caller-built transport is unknown.
        """
        with self._lock:
            spec = self._spec
            if transport is None:
                spec = ProxySpec()
                transport = self._build_transport(spec)
            self._injector.replace_transport(transport)
            self._spec = spec

    def set_timeout(self, timeout: float | None) -> None:
        """Set the request timeout in seconds; ``None`` disables it.

        The value bounds each phase separately (connect, read, write and
        waiting for a pooled connection); it is not a deadline for the whole
        request. Only requests built after this call are affected.
        """
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive or None")
        with self._lock:
            self._timeout = timeout
            self._apply_timeout(timeout)

    def get_timeout(self) -> float | None:
        return self._timeout

    def set_redirect_policy(self, policy: RedirectPolicy | None) -> None:
        """Install the redirect decision function; ``None`` restores the default."""
        with self._lock:
            self._redirect_policy = policy or never_follow

    def set_global_header(self, name: str, value: str) -> None:
        """Send ``name: value`` on every request, replacing configured values."""
        with self._lock:
            self._injector.set_header(name, value)
            self._mark_explicit(name)
        logger.debug("global_header_set", header=name)

    def add_global_header(self, name: str, value: str) -> None:
        with self._lock:
            self._injector.add_header(name, value)
            self._mark_explicit(name)
        logger.debug("global_header_added", header=name)

    def delete_global_header(self, name: str) -> None:
        with self._lock:
            self._injector.delete_header(name)
            self._mark_explicit(name)
        logger.debug("global_header_deleted", header=name)

    def clear_global_headers(self) -> None:
        with self._lock:
            self._injector.clear_headers()
            self._user_agent_is_default = False
        logger.debug("global_headers_cleared")

    def get_global_headers(self) -> GlobalHeaders:
        """Return the current (immutable) global header snapshot."""
        return self._injector.headers

    def _mark_explicit(self, name: str) -> None:
        if name.strip().lower() == "user-agent":
            self._user_agent_is_default = False

    def auto_set_user_agent(self, enabled: bool) -> None:
        """Install or remove the default User-Agent global header.

        A User-Agent configured through the global header methods is never
        touched. Calling this repeatedly with the same value is a no-op.
        """
        with self._lock:
            present = "User-Agent" in self._injector.headers
            if present and not self._user_agent_is_default:
                return
            if enabled:
                if not present:
                    self._injector.set_header("User-Agent", self._default_user_agent)
                self._user_agent_is_default = True
            else:
                if present:
                    self._injector.delete_header("User-Agent")
                self._user_agent_is_default = False

    def _should_follow(
        self, response: httpx.Response, history: list[httpx.Response]
    ) -> httpx.Request | None:
        """Return the redirect request to send next, or None to stop."""
        next_request = response.next_request
        if next_request is None:
            return None
        chain = [*history, response]
        if not self._redirect_policy(next_request, chain):
            return None
        if len(chain) > self.max_redirects:
            raise httpx.TooManyRedirects(
                "Exceeded maximum allowed redirects.", request=next_request
            )
        return next_request

    def __str__(self) -> str:
        return self._spec.raw

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(proxy={self._spec.redacted()!r}, "
            f"timeout={self._timeout!r})"
        )


class ProxyClient(_BaseProxyClient[httpx.BaseTransport, HeaderInjectingTransport]):
    """Thread-safe HTTP client with a switchable proxy route."""

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__(settings)
        self._client = httpx.Client(
            transport=self._injector,
            timeout=self._timeout,
            follow_redirects=False,
            max_redirects=self.settings.max_redirects,
            trust_env=False,
        )
        _strip_default_headers(self._client.headers)

    def _build_transport(self, spec: ProxySpec) -> httpx.BaseTransport:
        return routing_strategy_for(spec).build_transport(self.settings.transport)

    def _create_injector(
        self, transport: httpx.BaseTransport, headers: GlobalHeaders
    ) -> HeaderInjectingTransport:
        return HeaderInjectingTransport(transport, headers)

    def _apply_timeout(self, timeout: float | None) -> None:
        self._client.timeout = timeout  # type: ignore[assignment]

    @property
    def client(self) -> httpx.Client:
        """The underlying httpx client.

        Requests sent on it directly bypass the redirect policy and are never
        redirected.
        """
        return self._client

    def build_request(
        self, method: str, url: httpx.URL | str, **kwargs: Any
    ) -> httpx.Request:
        """Build a request carrying the current timeout."""
        return self._client.build_request(method, url, **kwargs)

    def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        """Send a request, following redirects as the redirect policy allows.

        Transport errors propagate unchanged.
        """
        history: list[httpx.Response] = []
        response = self._client.send(request, stream=stream, follow_redirects=False)
        try:
            while (next_request := self._should_follow(response, history)) is not None:
                response.close()
                history.append(response)
                response = self._client.send(
                    next_request, stream=stream, follow_redirects=False
                )
        except BaseException:
            response.close()
            raise
        response.history = history
        return response

    def request(
        self, method: str, url: httpx.URL | str, **kwargs: Any
    ) -> httpx.Response:
        return self.send(self.build_request(method, url, **kwargs))

    @contextmanager
    def stream(
        self, method: str, url: httpx.URL | str, **kwargs: Any
    ) -> Iterator[httpx.Response]:
        """Send a request and yield the response with an unread body."""
        response = self.send(self.build_request(method, url, **kwargs), stream=True)
        try:
            yield response
        finally:
            response.close()

    def get(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Make a GET request."""
        return self.request("GET", url, **kwargs)

    def post(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Make a POST request."""
        return self.request("POST", url, **kwargs)

    def put(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Make a PUT request."""
        return self.request("PUT", url, **kwargs)

    def patch(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Make a PATCH request."""
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Make a DELETE request."""
        return self.request("DELETE", url, **kwargs)

    def head(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Make a HEAD request."""
        return self.request("HEAD", url, **kwargs)

    def options(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Make an OPTIONS request."""
        return self.request("OPTIONS", url, **kwargs)

    def release_retired_transports(self) -> None:
        """Close transports replaced by earlier proxy switches right away.

        Retired transports close by themselves once their last request is
        done; this also closes the ones still in use.
        """
        self._injector.release_retired()

    def close(self) -> None:
        """Close the active transport and every retired one."""
        self._client.close()

    def __enter__(self) -> "ProxyClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class AsyncProxyClient(
    _BaseProxyClient[httpx.AsyncBaseTransport, AsyncHeaderInjectingTransport]
):
    """Asyncio HTTP client with a switchable proxy route."""

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__(settings)
        self._client = httpx.AsyncClient(
            transport=self._injector,
            timeout=self._timeout,
            follow_redirects=False,
            max_redirects=self.settings.max_redirects,
            trust_env=False,
        )
        _strip_default_headers(self._client.headers)

    def _build_transport(self, spec: ProxySpec) -> httpx.AsyncBaseTransport:
        return routing_strategy_for(spec).build_async_transport(
            self.settings.transport
        )

    def _create_injector(
        self, transport: httpx.AsyncBaseTransport, headers: GlobalHeaders
    ) -> AsyncHeaderInjectingTransport:
        return AsyncHeaderInjectingTransport(transport, headers)

    def _apply_timeout(self, timeout: float | None) -> None:
        self._client.timeout = timeout  # type: ignore[assignment]

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def build_request(
        self, method: str, url: httpx.URL | str, **kwargs: Any
    ) -> httpx.Request:
        return self._client.build_request(method, url, **kwargs)

    async def send(
        self, request: httpx.Request, *, stream: bool = False
    ) -> httpx.Response:
        """Send a request, following redirects as the redirect policy allows."""
        history: list[httpx.Response] = []
        response = await self._client.send(
            request, stream=stream, follow_redirects=False
        )
        try:
            while (next_request := self._should_follow(response, history)) is not None:
                await response.aclose()
                history.append(response)
                response = await self._client.send(
                    next_request, stream=stream, follow_redirects=False
                )
        except BaseException:
            await response.aclose()
            raise
        response.history = history
        return response

    async def request(
        self, method: str, url: httpx.URL | str, **kwargs: Any
    ) -> httpx.Response:
        return await self.send(self.build_request(method, url, **kwargs))

    @asynccontextmanager
    async def stream(
        self, method: str, url: httpx.URL | str, **kwargs: Any
    ) -> AsyncIterator[httpx.Response]:
        response = await self.send(
            self.build_request(method, url, **kwargs), stream=True
        )
        try:
            yield response
        finally:
            await response.aclose()

    async def get(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("OPTIONS", url, **kwargs)

    async def release_retired_transports(self) -> None:
        await self._injector.release_retired()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncProxyClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
