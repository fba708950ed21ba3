from httpx import ASGITransport, AsyncClient
import pytest_asyncio

from artistphere.artist import ArtistStore
from artistphere.db import with_db, with_optional_db
from artistphere.server.core import app
from artistphere.server.helpers import with_resolver, with_store


@pytest_asyncio.fixture
async def httpx_client(db_session, resolver, clock):
    """Client wired to the in-memory session and the fake object store."""

    async def _with_db():
        yield db_session

    app.dependency_overrides[with_db] = _with_db
    app.dependency_overrides[with_optional_db] = _with_db
    app.dependency_overrides[with_store] = lambda: ArtistStore(db_session, clock)
    app.dependency_overrides[with_resolver] = lambda: resolver

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def aria(httpx_client):
    """Artist created through the API"""
    response = await httpx_client.post(
        "/api/artists",
        json={"name": "Aria", "img": "https://x/y.png", "bio": "Singer"},
    )
    assert response.status_code == 201
    return response.json()["data"]
