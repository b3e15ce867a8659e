"""Header-injecting httpx transports with hot-swappable underlying transports.

The wrapped transport and the global header set are published together as one
immutable InjectionSnapshot. A request takes the snapshot under the lock that
guards publication, so a request in flight during a reconfiguration sees
either the complete old pairing or the complete new one.

Replaced transports are retired rather than closed: each one is closed as
soon as no request or open response body is still using it.
"""

import asyncio
import threading
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

import httpx

from proxyswitch.core.logging import get_logger
from proxyswitch.utils.headers import GlobalHeaders, merge_global_headers


logger = get_logger(__name__)


TransportT = TypeVar("TransportT", httpx.BaseTransport, httpx.AsyncBaseTransport)


@dataclass(frozen=True)
class InjectionSnapshot(Generic[TransportT]):
    """Header set and underlying transport active at one point in time."""

    headers: GlobalHeaders
    transport: TransportT


class _TrackedStream(httpx.SyncByteStream):
    """Response body that reports when it is closed."""

    def __init__(
        self, stream: httpx.SyncByteStream, on_close: Callable[[], None]
    ) -> None:
        self._stream = stream
        self._on_close = on_close
        self._closed = False

    def __iter__(self) -> Iterator[bytes]:
        yield from self._stream

    def close(self) -> None:
        try:
            self._stream.close()
        finally:
            if not self._closed:
                self._closed = True
                self._on_close()


class _TrackedAsyncStream(httpx.AsyncByteStream):
    def __init__(
        self, stream: httpx.AsyncByteStream, on_close: Callable[[], Awaitable[None]]
    ) -> None:
        self._stream = stream
        self._on_close = on_close
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            yield chunk

    async def aclose(self) -> None:
        try:
            await self._stream.aclose()
        finally:
            if not self._closed:
                self._closed = True
                await self._on_close()


class _HeaderInjector(Generic[TransportT]):
    """State management shared by the sync and async transports."""

    def __init__(
        self, transport: TransportT, headers: GlobalHeaders | None = None
    ) -> None:
        self._lock = threading.RLock()
        self._snapshot: InjectionSnapshot[TransportT] = InjectionSnapshot(
            headers=headers if headers is not None else GlobalHeaders(),
            transport=transport,
        )
        # transport -> requests or response bodies still using it
        self._in_flight: dict[TransportT, int] = {}
        self._retired: list[TransportT] = []

    @property
    def snapshot(self) -> InjectionSnapshot[TransportT]:
        return self._snapshot

    @property
    def headers(self) -> GlobalHeaders:
        return self._snapshot.headers

    @property
    def transport(self) -> TransportT:
        return self._snapshot.transport

    @property
    def retired(self) -> tuple[TransportT, ...]:
        """Replaced transports not yet closed."""
        with self._lock:
            return tuple(self._retired)

    def publish(
        self,
        *,
        headers: GlobalHeaders | None = None,
        transport: TransportT | None = None,
    ) -> InjectionSnapshot[TransportT]:
        """Atomically replace the headers and/or transport.

        The caller stays responsible for any transport this replaces.

        Returns:
            The snapshot that was active before this call
        """
        changes: dict[str, object] = {}
        if headers is not None:
            changes["headers"] = headers
        if transport is not None:
            changes["transport"] = transport

        with self._lock:
            previous = self._snapshot
            self._snapshot = replace(previous, **changes)  # type: ignore[arg-type]
        return previous

    def replace_transport(self, transport: TransportT) -> TransportT:
        """Swap the underlying transport, keeping the global headers.

        The previous transport is retired: requests already using it run to
        completion, and it is closed once the last of them is done.
        """
        with self._lock:
            previous = self.publish(transport=transport).transport
            if transport in self._retired:
                self._retired.remove(transport)
            if previous is not transport:
                self._retired.append(previous)
        logger.debug(
            "transport_replaced",
            previous=type(previous).__name__,
            current=type(transport).__name__,
        )
        return previous

    def set_header(self, name: str, value: str) -> None:
        """Set ``name`` to the single value ``value``, replacing existing values."""
        with self._lock:
            self.publish(headers=self._snapshot.headers.with_set(name, value))

    def add_header(self, name: str, value: str) -> None:
        """Append ``value`` to the values configured for ``name``."""
        with self._lock:
            self.publish(headers=self._snapshot.headers.with_added(name, value))

    def delete_header(self, name: str) -> None:
        with self._lock:
            self.publish(headers=self._snapshot.headers.without(name))

    def clear_headers(self) -> None:
        self.publish(headers=GlobalHeaders())

    def _inject(self, request: httpx.Request) -> tuple[httpx.Request, TransportT]:
        with self._lock:
            snapshot = self._snapshot
            transport = snapshot.transport
            self._in_flight[transport] = self._in_flight.get(transport, 0) + 1
        # Build a new request so the caller's request object stays untouched
        injected = httpx.Request(
            method=request.method,
            url=request.url,
            headers=merge_global_headers(request.headers, snapshot.headers),
            stream=request.stream,
            extensions=request.extensions,
        )
        return injected, transport

    def _done(self, transport: TransportT) -> None:
        with self._lock:
            remaining = self._in_flight[transport] - 1
            if remaining:
                self._in_flight[transport] = remaining
            else:
                del self._in_flight[transport]

    def _take_idle_retired(self) -> list[TransportT]:
        with self._lock:
            idle = [t for t in self._retired if t not in self._in_flight]
            self._retired = [t for t in self._retired if t in self._in_flight]
        return idle

    def _take_all_retired(self) -> list[TransportT]:
        with self._lock:
            retired, self._retired = self._retired, []
        return retired


class HeaderInjectingTransport(
    _HeaderInjector[httpx.BaseTransport], httpx.BaseTransport
):
    """Synchronous transport merging global headers into every request."""

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        injected, transport = self._inject(request)
        try:
            response = transport.handle_request(injected)
        except BaseException:
            self._finish(transport)
            raise

        if isinstance(response.stream, httpx.ByteStream):
            # Body already in memory; nothing holds the connection
            self._finish(transport)
        else:
            response.stream = _TrackedStream(
                response.stream,  # type: ignore[arg-type]
                lambda: self._finish(transport),
            )
        return response

    def _finish(self, transport: httpx.BaseTransport) -> None:
        self._done(transport)
        self.close_idle_retired()

    def replace_transport(self, transport: httpx.BaseTransport) -> httpx.BaseTransport:
        previous = super().replace_transport(transport)
        self.close_idle_retired()
        return previous

    def close_idle_retired(self) -> None:
        """Close retired transports no request is using any more."""
        for transport in self._take_idle_retired():
            transport.close()
            logger.debug("retired_transport_closed", transport=type(transport).__name__)

    def release_retired(self) -> None:
        """Close every retired transport, busy or not."""
        for transport in self._take_all_retired():
            transport.close()

    def close(self) -> None:
        self.release_retired()
        self.transport.close()


class AsyncHeaderInjectingTransport(
    _HeaderInjector[httpx.AsyncBaseTransport], httpx.AsyncBaseTransport
):
    """Asynchronous transport merging global headers into every request.

    Swaps happen from synchronous code, so an idle retired transport is closed
    by a task on the running event loop, or by the next request to finish
    when no loop is running.
    """

    def __init__(
        self, transport: httpx.AsyncBaseTransport, headers: GlobalHeaders | None = None
    ) -> None:
        super().__init__(transport, headers)
        self._close_tasks: set[asyncio.Task[None]] = set()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        injected, transport = self._inject(request)
        try:
            response = await transport.handle_async_request(injected)
        except BaseException:
            await self._finish(transport)
            raise

        if isinstance(response.stream, httpx.ByteStream):
            await self._finish(transport)
        else:
            response.stream = _TrackedAsyncStream(
                response.stream,  # type: ignore[arg-type]
                lambda: self._finish(transport),
            )
        return response

    async def _finish(self, transport: httpx.AsyncBaseTransport) -> None:
        self._done(transport)
        await self.close_idle_retired()

    def replace_transport(
        self, transport: httpx.AsyncBaseTransport
    ) -> httpx.AsyncBaseTransport:
        previous = super().replace_transport(transport)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return previous
        task = loop.create_task(self.close_idle_retired())
        self._close_tasks.add(task)
        task.add_done_callback(self._close_tasks.discard)
        return previous

    async def close_idle_retired(self) -> None:
        for transport in self._take_idle_retired():
            await transport.aclose()
            logger.debug("retired_transport_closed", transport=type(transport).__name__)

    async def release_retired(self) -> None:
        for transport in self._take_all_retired():
            await transport.aclose()

    async def aclose(self) -> None:
        await self.release_retired()
        await self.transport.aclose()
