"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import time

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

from routekit.config import settings
from routekit.dispatchers import CollectingDispatcher
from routekit.models.request import HttpRequest
from main import app


@pytest_asyncio.fixture
async def client():
    """Create test client against the demo application."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def dispatcher():
    """Dispatcher that keeps registrations and returns plain dict responses."""
    return CollectingDispatcher()


@pytest.fixture
def make_request():
    """Build an HttpRequest from keyword arguments."""

    def factory(method="GET", **kwargs):
        return HttpRequest(method=method, **kwargs)

    return factory


@pytest.fixture
def make_token():
    """Mint HS256 tokens signed with the configured secret."""

    def factory(secret=None, **claims):
        payload = {"sub": "42", "exp": int(time.time()) + 3600}
        payload.update(claims)
        return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm="HS256")

    return factory


@pytest.fixture
def auth_headers(make_token):
    """Create authorization headers with JWT token."""
    return {"Authorization": f"Bearer {make_token()}"}
