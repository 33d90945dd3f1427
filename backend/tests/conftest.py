"""
Pytest Configuration and Test Fixtures for the Tubely Backend

This module provides:
- Test settings pointing the assets root and staging directory at tmp_path
- An in-memory stand-in for VideoService with failure injection
- A mocked S3 StorageClient that records what was put and when
- FastAPI app and TestClient fixtures with dependency overrides
- Bearer token helpers and sample upload payloads (real PNG images via Pillow)
- A spy on FormData.close for checking that spooled form parts are released

The TestClient is used without entering its context manager, so the
application lifespan (MongoDB connection, S3 client creation) never runs.
"""

import os
import uuid

from collections.abc import Callable, Generator
from io import BytesIO
from pathlib import Path
from typing import Any
from unittest.mock import Mock
from uuid import UUID

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image
from starlette.datastructures import FormData, UploadFile

from tubely.api.v1.dependencies import get_storage_client, get_video_service
from tubely.config import Settings
from tubely.core.auth import create_access_token
from tubely.core.errors import TubelyError, VideoNotFound
from tubely.core.storage import StorageClient
from tubely.main import create_app
from tubely.models.video import VideoRecord


TEST_SECRET = "test-secret-key-for-jwt-signing-minimum-32-chars"
TEST_BUCKET = "test-bucket"
TEST_REGION = "us-east-2"
TEST_PORT = 8091

MIB = 1024 * 1024


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: isolated tests with no external services")
    config.addinivalue_line("markers", "integration: tests exercising the HTTP surface end to end")


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def assets_root(tmp_path: Path) -> Path:
    return tmp_path / "assets"


@pytest.fixture
def settings_factory(assets_root: Path, staging_dir: Path) -> Callable[..., Settings]:
    """Build Settings for tests; keyword arguments override the defaults."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "app_env": "testing",
            "secret_key": TEST_SECRET,
            "json_logs": False,
            "port": TEST_PORT,
            "public_host": "localhost",
            "assets_root": str(assets_root),
            "staging_dir": str(staging_dir),
            "s3_bucket_name": TEST_BUCKET,
            "s3_region": TEST_REGION,
            "s3_access_key_id": "test-access-key",
            "s3_secret_access_key": "test-secret-key",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def test_settings(settings_factory: Callable[..., Settings]) -> Settings:
    return settings_factory()


# ==============================================================================
# Collaborator Fakes
# ==============================================================================


class InMemoryVideoService:
    """
    Dict-backed VideoService with the same contract.

    Records are copied on the way in and out so tests can tell what was
    persisted apart from what a handler holds in memory. Set ``update_error``
    to make every ``update_video`` call fail with that error.
    """

    def __init__(self) -> None:
        self.records: dict[UUID, VideoRecord] = {}
        self.update_error: TubelyError | None = None
        self.update_calls = 0

    def add(self, record: VideoRecord) -> VideoRecord:
        self.records[record.id] = record.model_copy(deep=True)
        return record

    async def get_video(self, video_id: UUID) -> VideoRecord:
        if video_id not in self.records:
            raise VideoNotFound()
        return self.records[video_id].model_copy(deep=True)

    async def update_video(self, video: VideoRecord) -> None:
        self.update_calls += 1
        if self.update_error is not None:
            raise self.update_error
        if video.id not in self.records:
            raise VideoNotFound()
        self.records[video.id] = video.model_copy(deep=True)


@pytest.fixture
def video_service() -> InMemoryVideoService:
    return InMemoryVideoService()


@pytest.fixture
def storage_client(staging_dir: Path) -> Mock:
    """
    Mocked StorageClient.

    ``put_object`` reads the body it is given into ``uploaded[key]`` and
    records the staging directory listing at call time in ``staged_during_put``.
    """
    client = Mock(spec=StorageClient)
    client.uploaded = {}
    client.staged_during_put = []

    def _put_object(key: str, body: Any, content_length: int, content_type: str) -> None:
        client.staged_during_put.append(sorted(os.listdir(staging_dir)))
        client.uploaded[key] = body.read()

    def _object_url(key: str) -> str:
        return f"https://{TEST_BUCKET}.s3.{TEST_REGION}.amazonaws.com/{key}"

    def _key_from_url(url: str) -> str | None:
        prefix = _object_url("")
        return url[len(prefix):] if url.startswith(prefix) else None

    client.put_object.side_effect = _put_object
    client.object_url.side_effect = _object_url
    client.key_from_url.side_effect = _key_from_url
    return client


# ==============================================================================
# Application Fixtures
# ==============================================================================


@pytest.fixture
def app_factory(
    settings_factory: Callable[..., Settings],
    video_service: InMemoryVideoService,
    storage_client: Mock,
) -> Generator[Callable[..., FastAPI], None, None]:
    """Create apps wired to the shared fakes; keyword arguments override settings."""
    created: list[FastAPI] = []

    def _make(**overrides: Any) -> FastAPI:
        application = create_app(settings_factory(**overrides))
        application.dependency_overrides[get_video_service] = lambda: video_service
        application.dependency_overrides[get_storage_client] = lambda: storage_client
        created.append(application)
        return application

    yield _make

    for application in created:
        application.dependency_overrides.clear()


@pytest.fixture
def app(app_factory: Callable[..., FastAPI]) -> FastAPI:
    return app_factory()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


# ==============================================================================
# Form Cleanup Spy
# ==============================================================================


@pytest.fixture
def closed_forms(monkeypatch: pytest.MonkeyPatch) -> list[FormData]:
    """Record every parsed form that gets closed, still closing it for real."""
    closed: list[FormData] = []
    original_close = FormData.close

    async def _close(self: FormData) -> None:
        closed.append(self)
        await original_close(self)

    monkeypatch.setattr(FormData, "close", _close)
    return closed


def spooled_parts(form: FormData) -> list[UploadFile]:
    return [value for _, value in form.multi_items() if isinstance(value, UploadFile)]


# ==============================================================================
# Identity Fixtures
# ==============================================================================


@pytest.fixture
def owner_id() -> UUID:
    return uuid.uuid4()


@pytest.fixture
def owned_video(video_service: InMemoryVideoService, owner_id: UUID) -> VideoRecord:
    return video_service.add(
        VideoRecord(id=uuid.uuid4(), user_id=owner_id, title="Boots in the snow")
    )


@pytest.fixture
def token_for(test_settings: Settings) -> Callable[[UUID], str]:
    def _token(user_id: UUID) -> str:
        return create_access_token(user_id, test_settings)

    return _token


@pytest.fixture
def auth_headers(token_for: Callable[[UUID], str], owner_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(owner_id)}"}


# ==============================================================================
# Payload Helpers
# ==============================================================================


def make_png(min_bytes: int = 0) -> bytes:
    """
    Encode a real PNG of random pixels that is at least ``min_bytes`` long.

    Random pixels barely compress, so the encoded size tracks the pixel count.
    """
    side = max(8, int((min_bytes / 3) ** 0.5) + 16)
    image = Image.frombytes("RGB", (side, side), os.urandom(side * side * 3))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    data = buffer.getvalue()
    assert len(data) >= min_bytes
    return data


def raw_multipart(
    field: str,
    data: bytes,
    filename: str | None = "upload.bin",
    content_type: str | None = None,
    boundary: str = "tubely-test-boundary",
) -> tuple[bytes, str]:
    """
    Hand-build a single-part multipart body.

    Unlike httpx's ``files=`` this can omit the part Content-Type or the
    filename. Returns ``(body, request_content_type)``.
    """
    disposition = f'Content-Disposition: form-data; name="{field}"'
    if filename is not None:
        disposition += f'; filename="{filename}"'
    lines = [f"--{boundary}", disposition]
    if content_type is not None:
        lines.append(f"Content-Type: {content_type}")
    head = ("\r\n".join(lines) + "\r\n\r\n").encode()
    tail = f"\r\n--{boundary}--\r\n".encode()
    return head + data + tail, f"multipart/form-data; boundary={boundary}"


@pytest.fixture
def png_bytes() -> bytes:
    return make_png(4096)
