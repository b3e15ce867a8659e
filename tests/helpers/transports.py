"""Mock transports for exercising proxyswitch without network access."""

from collections.abc import Callable

import httpx


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it receives.

    Responses are tagged with an ``X-Transport`` header naming the transport
    that produced them.
    """

    def __init__(
        self,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
        name: str = "mock",
    ) -> None:
        self.name = name
        self.requests: list[httpx.Request] = []
        self.closed = False
        respond = handler or (lambda request: httpx.Response(200))

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            response = respond(request)
            response.headers["X-Transport"] = self.name
            return response

        super().__init__(record)

    def close(self) -> None:
        self.closed = True

    async def aclose(self) -> None:
        self.closed = True


def redirect_handler(hops: int) -> Callable[[httpx.Request], httpx.Response]:
    """Handler redirecting ``/hop/N`` to ``/hop/N+1`` until ``hops`` is reached."""

    def handle(request: httpx.Request) -> httpx.Response:
        step = int(request.url.path.rsplit("/", 1)[-1])
        if step < hops:
            return httpx.Response(
                302, headers={"Location": f"/hop/{step + 1}"}, request=request
            )
        return httpx.Response(200, json={"step": step}, request=request)

    return handle
