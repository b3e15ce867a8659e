"""Shared test fixtures for proxyswitch tests.

Fixtures build clients from explicit Settings (never from .env files) and
provide recording mock transports so tests can inspect the exact requests
that reach the underlying transport.
"""

from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio

from proxyswitch.client import AsyncProxyClient, ProxyClient
from proxyswitch.config.settings import Settings
from tests.helpers.transports import RecordingTransport


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from .env files, direct route, 20s timeout."""
    return Settings(_env_file=None, proxy="", timeout=20.0)  # type: ignore[call-arg]


@pytest.fixture
def proxy_client(test_settings: Settings) -> Generator[ProxyClient, None, None]:
    client = ProxyClient(test_settings)
    yield client
    client.close()


@pytest_asyncio.fixture
async def async_proxy_client(
    test_settings: Settings,
) -> AsyncGenerator[AsyncProxyClient, None]:
    client = AsyncProxyClient(test_settings)
    yield client
    await client.aclose()


@pytest.fixture
def recording_transport() -> RecordingTransport:
    return RecordingTransport()
