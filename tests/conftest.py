"""
Pytest configuration and fixtures for the test suite.

Gateways are replaced with AsyncMocks for service tests; adapter tests talk
to an httpx.MockTransport standing in for the remote platform.
"""

import itertools
import os
from datetime import datetime, timedelta, timezone
from typing import Callable
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

# Set test environment before importing app modules
os.environ.setdefault("APS_CLIENT_ID", "TestClient")
os.environ.setdefault("APS_CLIENT_SECRET", "test-secret")

from viewer_service.aps import PlatformService
from viewer_service.aps.models import BucketDetails, TokenGrant

TEST_BASE_URL = "https://aps.test"


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def auth_gateway() -> AsyncMock:
    """Issues token-1, token-2, ... each valid for one hour."""
    counter = itertools.count(1)
    gateway = AsyncMock()
    gateway.get_two_legged_token.side_effect = lambda client_id, client_secret, scopes: TokenGrant(
        access_token=f"token-{next(counter)}", expires_in=3600
    )
    return gateway


@pytest.fixture
def storage_gateway() -> AsyncMock:
    gateway = AsyncMock()
    gateway.get_bucket_details.return_value = BucketDetails(bucket_key="testclient-basic-app")
    return gateway


@pytest.fixture
def derivative_gateway() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(auth_gateway, storage_gateway, derivative_gateway, clock) -> PlatformService:
    return PlatformService(
        "TestClient",
        "test-secret",
        auth=auth_gateway,
        storage=storage_gateway,
        derivatives=derivative_gateway,
        clock=clock,
    )


@pytest.fixture
def mock_platform() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by the given handler."""

    def build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=TEST_BASE_URL)

    return build


@pytest_asyncio.fixture
async def async_client(service):
    """API client wired to the mocked service."""
    from viewer_service.webapi import app, get_platform

    app.dependency_overrides[get_platform] = lambda: service
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
