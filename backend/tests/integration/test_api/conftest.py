"""API fixtures: the FastAPI app on an in-memory store with seeded users"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from docflow.main import create_app
from docflow.repositories.memory_store import InMemoryDocumentStore
from tests.conftest import USERS


@pytest.fixture
def api_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def app(settings, api_store):
    application = create_app(settings, store=api_store)

    async def seed():
        for user in USERS:
            await application.state.services.directory.create(user)

    asyncio.run(seed())
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def insert_document(api_store):
    """Insert a raw document and return its id"""
    def _insert(collection: str = "blogs", **fields) -> str:
        fields.setdefault("title", "Hello World")
        fields.setdefault("created_by", "u-author")
        return asyncio.run(api_store.create(collection, fields))["id"]
    return _insert


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}
