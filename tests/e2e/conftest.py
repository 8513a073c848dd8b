"""E2E test fixtures for HTTP testing."""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.middleware.rate_limit import limiter


@pytest_asyncio.fixture
async def http_client(store):
    """HTTP client for testing actual FastAPI app.

    Uses the store fixture so every test starts from an empty in-memory store.
    The app's lifespan context manager is not run; the store fixture has
    already configured the backend it would have chosen.
    """
    limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
