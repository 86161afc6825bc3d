"""Pytest fixtures: local object store in tmp_path, test client, logged-in sessions."""
import os

# Settings are read at import time; pin them before the app is imported
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("MEMBER_ACCESS_CODE", "member-code")
os.environ.setdefault("ADMIN_ACCESS_CODE", "admin-code")
os.environ.setdefault("LOCAL_BLOB_BASE_URL", "http://test")

import pytest
from httpx import ASGITransport, AsyncClient

from choir_portal.main import app
from choir_portal.core.rate_limit import reset_rate_limits
from choir_portal.services.storage import LocalObjectStore, get_object_store

MEMBER_CODE = os.environ["MEMBER_ACCESS_CODE"]
ADMIN_CODE = os.environ["ADMIN_ACCESS_CODE"]


def put_object(store: LocalObjectStore, key: str, data: bytes = b"x", mtime: float | None = None) -> None:
    """Write an object straight into the local store, optionally with a fixed mtime."""
    path = store.path_for(key)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    if mtime is not None:
        os.utime(path, (mtime, mtime))


@pytest.fixture
def store(tmp_path) -> LocalObjectStore:
    root = tmp_path / "store"
    root.mkdir()
    return LocalObjectStore(root, "http://test")


@pytest.fixture
async def client(store):
    reset_rate_limits()
    app.dependency_overrides[get_object_store] = lambda: store
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


async def login(client: AsyncClient, code: str) -> dict:
    """Log in and return headers carrying the CSRF token."""
    r = await client.post("/api/auth/login", json={"code": code})
    assert r.status_code == 200, r.text
    return {"X-CSRF-Token": r.json()["csrfToken"]}


@pytest.fixture
async def admin_headers(client):
    return await login(client, ADMIN_CODE)


@pytest.fixture
async def member_headers(client):
    return await login(client, MEMBER_CODE)
