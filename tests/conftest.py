"""Shared pytest fixtures for document store tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from fakeredis import FakeServer, aioredis
from httpx import ASGITransport, AsyncClient

from docshelf.core.dependencies import services
from docshelf.document_service import app
from docshelf.services.document_store import DocumentStore
from docshelf.services.kv_store import KVStoreService

MAX_SIZE = 64


@pytest_asyncio.fixture()
async def redis_client() -> AsyncIterator[aioredis.FakeRedis]:
    """Provide an isolated in-process Redis."""

    client = aioredis.FakeRedis(
        server=FakeServer(), decode_responses=True
    )
    yield client
    await client.aclose()


@pytest.fixture()
def kv_store(redis_client: aioredis.FakeRedis) -> KVStoreService:
    return KVStoreService(client=redis_client)


@pytest.fixture()
def store(kv_store: KVStoreService) -> DocumentStore:
    return DocumentStore(kv_store, max_size=MAX_SIZE)


@pytest_asyncio.fixture()
async def async_client(
    kv_store: KVStoreService, store: DocumentStore, monkeypatch: pytest.MonkeyPatch
) -> AsyncIterator[AsyncClient]:
    """Provide an HTTPX async client bound to the FastAPI app."""

    monkeypatch.setattr(services, "kv_store", kv_store)
    monkeypatch.setattr(services, "document_store", store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
