"""Shared fixtures for photobooth and share server tests."""

from datetime import datetime, timezone

import pytest

from photobooth.errors import UploadError
from photobooth.store import LocalPhotoStore
from photobooth.sync.remote import PhotoMetaUpsert, RemotePhotoMeta


class FakeRemote:
    """In-memory object storage and metadata service.

    Set fail_upload / fail_metadata to make the next calls raise
    UploadError, or fail_ids to fail only specific photos. throttle_after
    answers 429 to every upload past that many.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.metadata: dict[str, RemotePhotoMeta] = {}
        self.upload_calls: list[str] = []
        self.metadata_calls: list[str] = []
        self.fail_upload = False
        self.fail_metadata = False
        self.fail_ids: set[str] = set()
        self.throttle_after: int | None = None

    async def upload(self, key, data, *, content_type="image/png", upsert=True):
        self.upload_calls.append(key)
        if self.throttle_after is not None and len(self.upload_calls) > self.throttle_after:
            raise UploadError("Client error: 429 - Rate limit exceeded", status_code=429)
        if self.fail_upload or key.rsplit(".", 1)[0] in self.fail_ids:
            raise UploadError("Connection error: network unreachable")
        if key in self.objects and not upsert:
            raise UploadError("Client error: 409", status_code=409, transient=False)
        self.objects[key] = data

    def get_public_url(self, key):
        return f"http://share.test/p/{key}"

    async def upsert_metadata(self, meta: PhotoMetaUpsert) -> RemotePhotoMeta:
        self.metadata_calls.append(meta.id)
        if self.fail_metadata:
            raise UploadError("Server error: 503", status_code=503)
        existing = self.metadata.get(meta.id)
        created_at = existing.created_at if existing else datetime.now(timezone.utc)
        stored = RemotePhotoMeta(
            id=meta.id,
            file_url=meta.file_url,
            created_at=created_at,
            width=meta.width,
            height=meta.height,
            layout_name=meta.layout_name,
        )
        self.metadata[meta.id] = stored
        return stored

    async def get_metadata(self, photo_id):
        return self.metadata.get(photo_id)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def store(tmp_path):
    photo_store = LocalPhotoStore(tmp_path / "photos.db")
    yield photo_store
    photo_store.close()


@pytest.fixture
def server_env(tmp_path, monkeypatch):
    """Point the share server at a temporary database and storage dir."""
    from photobooth_server.api.deps import get_rate_limiter, get_storage
    from photobooth_server.config import get_settings
    from photobooth_server.db import get_engine, get_sessionmaker

    monkeypatch.setenv(
        "PHOTOBOOTH_SERVER_DATABASE_URL",
        f"sqlite+aiosqlite:///{tmp_path / 'server.db'}",
    )
    monkeypatch.setenv("PHOTOBOOTH_SERVER_STORAGE_PATH", str(tmp_path / "shared"))
    monkeypatch.setenv("PHOTOBOOTH_SERVER_ADMIN_TOKEN", "test-admin-token")
    monkeypatch.setenv("PHOTOBOOTH_SERVER_PUBLIC_BASE_URL", "http://testserver")

    caches = [get_settings, get_storage, get_rate_limiter, get_engine, get_sessionmaker]
    for cached in caches:
        cached.cache_clear()
    yield tmp_path
    for cached in caches:
        cached.cache_clear()


@pytest.fixture
def app(server_env):
    from photobooth_server.main import create_app

    return create_app()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client
