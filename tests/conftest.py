"""
Pytest configuration for API tests.

The app runs in-process over httpx's ASGI transport; MongoDB is replaced by
mongomock-motor through the ``get_db`` dependency override.
"""
import httpx
import pytest
from httpx import ASGITransport
from mongomock_motor import AsyncMongoMockClient

import main
import security
from database import get_db

# Keep bcrypt cheap in tests.
security.pwd_context.update(bcrypt__default_rounds=4)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db():
    return AsyncMongoMockClient()["learning_platform_test"]


@pytest.fixture
async def client(db):
    main.app.dependency_overrides[get_db] = lambda: db
    async with httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as c:
        yield c
    main.app.dependency_overrides.clear()
