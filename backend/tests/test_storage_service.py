"""
Tests for the local and object store committers and the S3 client wrapper.
"""

import io
import os

from collections.abc import Callable
from pathlib import Path
from unittest.mock import Mock

import pytest

from botocore.exceptions import ClientError
from botocore.stub import ANY, Stubber

from tests.conftest import TEST_BUCKET, TEST_REGION
from tubely.config import Settings
from tubely.core.errors import StorageWriteFailed
from tubely.core.storage import StorageClient
from tubely.services.storage_service import LocalAssetStore, ObjectAssetStore


BASE_URL = "http://localhost:8091"


@pytest.fixture
def local_store(assets_root: Path) -> LocalAssetStore:
    return LocalAssetStore(str(assets_root), BASE_URL + "/")


# =============================================================================
# Local Disk
# =============================================================================


@pytest.mark.unit
class TestLocalAssetStore:
    @pytest.mark.asyncio
    async def test_commit_writes_file_and_returns_url(
        self, local_store: LocalAssetStore, assets_root: Path
    ) -> None:
        payload = os.urandom(2 * 1024 * 1024 + 3)
        source = io.BytesIO(payload)
        source.seek(50)

        url = await local_store.commit("abcdefghijkl.png", source, len(payload), "image/png")

        assert url == f"{BASE_URL}/assets/abcdefghijkl.png"
        assert (assets_root / "abcdefghijkl.png").read_bytes() == payload

    @pytest.mark.asyncio
    async def test_existing_key_is_never_overwritten(
        self, local_store: LocalAssetStore, assets_root: Path
    ) -> None:
        await local_store.commit("taken.png", io.BytesIO(b"first"), 5, "image/png")

        with pytest.raises(StorageWriteFailed):
            await local_store.commit("taken.png", io.BytesIO(b"second"), 6, "image/png")

        assert (assets_root / "taken.png").read_bytes() == b"first"

    @pytest.mark.parametrize("key", ["../escape.png", "nested/key.png", "..", ""])
    def test_key_outside_root_is_refused(self, local_store: LocalAssetStore, key: str) -> None:
        with pytest.raises(StorageWriteFailed):
            local_store.path_for(key)

    def test_key_from_url(self, local_store: LocalAssetStore) -> None:
        assert local_store.key_from_url(f"{BASE_URL}/assets/abc.png") == "abc.png"
        assert local_store.key_from_url("https://elsewhere.example.com/assets/abc.png") is None
        assert local_store.key_from_url(f"{BASE_URL}/assets/") is None

    @pytest.mark.asyncio
    async def test_delete(self, local_store: LocalAssetStore, assets_root: Path) -> None:
        await local_store.commit("gone.png", io.BytesIO(b"data"), 4, "image/png")

        await local_store.delete("gone.png")
        await local_store.delete("gone.png")

        assert not (assets_root / "gone.png").exists()


# =============================================================================
# Object Store
# =============================================================================


@pytest.mark.unit
class TestObjectAssetStore:
    @pytest.mark.asyncio
    async def test_commit_puts_object(self, storage_client: Mock) -> None:
        source = io.BytesIO(b"video-bytes")

        url = await ObjectAssetStore(storage_client).commit("k.mp4", source, 11, "video/mp4")

        storage_client.put_object.assert_called_once_with("k.mp4", source, 11, "video/mp4")
        assert url == f"https://{TEST_BUCKET}.s3.{TEST_REGION}.amazonaws.com/k.mp4"

    @pytest.mark.asyncio
    async def test_client_error_becomes_storage_failure(self, storage_client: Mock) -> None:
        storage_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )

        with pytest.raises(StorageWriteFailed) as exc_info:
            await ObjectAssetStore(storage_client).commit("k.mp4", io.BytesIO(b""), 0, "video/mp4")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_delete_failure(self, storage_client: Mock) -> None:
        storage_client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "InternalError", "Message": "boom"}}, "DeleteObject"
        )

        with pytest.raises(StorageWriteFailed):
            await ObjectAssetStore(storage_client).delete("k.mp4")


# =============================================================================
# S3 Client
# =============================================================================


@pytest.mark.unit
class TestStorageClient:
    def test_aws_object_url(self, test_settings: Settings) -> None:
        client = StorageClient(test_settings)

        url = client.object_url("abc.mp4")

        assert url == f"https://{TEST_BUCKET}.s3.{TEST_REGION}.amazonaws.com/abc.mp4"
        assert client.key_from_url(url) == "abc.mp4"

    def test_endpoint_object_url(self, settings_factory: Callable[..., Settings]) -> None:
        client = StorageClient(settings_factory(s3_endpoint_url="http://minio:9000/"))

        url = client.object_url("abc.mp4")

        assert url == f"http://minio:9000/{TEST_BUCKET}/abc.mp4"
        assert client.key_from_url(url) == "abc.mp4"
        assert client.key_from_url("http://minio:9000/other-bucket/abc.mp4") is None

    def test_put_object_request(self, test_settings: Settings) -> None:
        client = StorageClient(test_settings)
        body = io.BytesIO(b"0123456789")

        with Stubber(client.s3_client) as stubber:
            stubber.add_response(
                "put_object",
                {"ETag": '"etag"'},
                {
                    "Bucket": TEST_BUCKET,
                    "Key": "abc.mp4",
                    "Body": ANY,
                    "ContentLength": 10,
                    "ContentType": "video/mp4",
                },
            )
            client.put_object("abc.mp4", body, 10, "video/mp4")
            stubber.assert_no_pending_responses()

    def test_put_object_error_is_reraised(self, test_settings: Settings) -> None:
        client = StorageClient(test_settings)

        with Stubber(client.s3_client) as stubber:
            stubber.add_client_error("put_object", service_error_code="NoSuchBucket")
            with pytest.raises(ClientError):
                client.put_object("abc.mp4", io.BytesIO(b""), 0, "video/mp4")
