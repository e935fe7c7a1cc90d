"""
Pytest configuration and fixtures for all tests.
"""

import httpx
import pytest
import pytest_asyncio

from ai_builder.backend.client import BackendClient
from ai_builder.history import InMemoryHistoryRecorder
from backend_fakes import BASE_URL, FakeBackend


@pytest.fixture
def backend() -> FakeBackend:
    """Fake completion service with no routes."""
    return FakeBackend()


@pytest_asyncio.fixture
async def client(backend: FakeBackend):
    """BackendClient talking to the fake backend."""
    backend_client = BackendClient(
        base_url=BASE_URL,
        api_key="test-key",
        timeout=5.0,
        transport=httpx.MockTransport(backend),
    )
    yield backend_client
    await backend_client.aclose()


@pytest.fixture
def recorder() -> InMemoryHistoryRecorder:
    return InMemoryHistoryRecorder()
