"""
Tests for UploadService orchestration: commit, metadata sync and the
superseded-asset policy.
"""

import io
import logging
import os
import uuid

from collections.abc import Callable
from pathlib import Path
from unittest.mock import Mock

import pytest

from botocore.exceptions import ClientError

from tests.conftest import InMemoryVideoService
from tubely.config import Settings
from tubely.core.errors import MetadataUnavailable, StorageWriteFailed, VideoNotFound
from tubely.models.video import VideoRecord
from tubely.services.storage_service import LocalAssetStore, ObjectAssetStore
from tubely.services.upload_intake import UploadedAsset
from tubely.services.upload_service import UploadService
from tubely.utils.file_validator import AssetKind


@pytest.fixture
def record(video_service: InMemoryVideoService, owner_id: uuid.UUID) -> VideoRecord:
    return video_service.add(VideoRecord(id=uuid.uuid4(), user_id=owner_id))


@pytest.fixture
def service_factory(
    settings_factory: Callable[..., Settings],
    video_service: InMemoryVideoService,
    storage_client: Mock,
) -> Callable[..., UploadService]:
    def _make(**overrides) -> UploadService:
        settings = settings_factory(**overrides)
        return UploadService(
            settings,
            video_service,
            LocalAssetStore(settings.assets_root, settings.public_base_url),
            ObjectAssetStore(storage_client),
        )

    return _make


def thumbnail(data: bytes = b"png-bytes") -> UploadedAsset:
    return UploadedAsset(
        kind=AssetKind.THUMBNAIL,
        file=io.BytesIO(data),
        media_type="image/png",
        size=len(data),
        filename="boots.png",
    )


def video(data: bytes = b"mp4-bytes") -> UploadedAsset:
    return UploadedAsset(
        kind=AssetKind.VIDEO,
        file=io.BytesIO(data),
        media_type="video/mp4",
        size=len(data),
        filename="boots.mp4",
    )


@pytest.mark.unit
class TestPublish:
    @pytest.mark.asyncio
    async def test_thumbnail_persisted(
        self,
        service_factory: Callable[..., UploadService],
        video_service: InMemoryVideoService,
        record: VideoRecord,
        owner_id: uuid.UUID,
        assets_root: Path,
    ) -> None:
        result = await service_factory().publish_thumbnail(record, thumbnail(), owner_id)

        assert result.thumbnail_url.startswith("http://localhost:8091/assets/")
        assert video_service.records[record.id].thumbnail_url == result.thumbnail_url
        assert len(os.listdir(assets_root)) == 1

    @pytest.mark.asyncio
    async def test_key_size_follows_settings(
        self,
        service_factory: Callable[..., UploadService],
        record: VideoRecord,
        owner_id: uuid.UUID,
    ) -> None:
        result = await service_factory(storage_key_bytes=12).publish_thumbnail(
            record, thumbnail(), owner_id
        )

        assert len(result.thumbnail_url.rsplit("/", 1)[1]) == 16 + len(".png")

    @pytest.mark.asyncio
    async def test_video_staged_then_put(
        self,
        service_factory: Callable[..., UploadService],
        storage_client: Mock,
        record: VideoRecord,
        owner_id: uuid.UUID,
        staging_dir: Path,
    ) -> None:
        result = await service_factory().publish_video(record, video(b"0123456789"), owner_id)

        key, _, length, content_type = storage_client.put_object.call_args.args
        assert result.video_url.endswith("/" + key)
        assert (length, content_type) == (10, "video/mp4")
        assert storage_client.uploaded[key] == b"0123456789"
        assert storage_client.staged_during_put[0][0].endswith(".mp4")
        assert os.listdir(staging_dir) == []

    @pytest.mark.asyncio
    async def test_failed_put_leaves_record_untouched(
        self,
        service_factory: Callable[..., UploadService],
        storage_client: Mock,
        video_service: InMemoryVideoService,
        record: VideoRecord,
        owner_id: uuid.UUID,
        staging_dir: Path,
    ) -> None:
        storage_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "SlowDown", "Message": "slow down"}}, "PutObject"
        )

        with pytest.raises(StorageWriteFailed):
            await service_factory().publish_video(record, video(), owner_id)

        assert video_service.update_calls == 0
        assert os.listdir(staging_dir) == []


@pytest.mark.unit
class TestMetadataSync:
    @pytest.mark.parametrize(
        "error", [MetadataUnavailable("Couldn't update video"), VideoNotFound()]
    )
    @pytest.mark.asyncio
    async def test_failure_tolerated_by_default(
        self,
        service_factory: Callable[..., UploadService],
        video_service: InMemoryVideoService,
        record: VideoRecord,
        owner_id: uuid.UUID,
        caplog: pytest.LogCaptureFixture,
        error: Exception,
    ) -> None:
        video_service.update_error = error

        with caplog.at_level(logging.WARNING, logger="tubely.services.upload_service"):
            result = await service_factory().publish_thumbnail(record, thumbnail(), owner_id)

        assert result.thumbnail_url is not None
        assert video_service.records[record.id].thumbnail_url is None
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    @pytest.mark.asyncio
    async def test_failure_raised_in_strict_mode(
        self,
        service_factory: Callable[..., UploadService],
        video_service: InMemoryVideoService,
        record: VideoRecord,
        owner_id: uuid.UUID,
        assets_root: Path,
    ) -> None:
        video_service.update_error = MetadataUnavailable("Couldn't update video")

        with pytest.raises(MetadataUnavailable):
            await service_factory(strict_metadata_sync=True).publish_thumbnail(
                record, thumbnail(), owner_id
            )

        # the committed asset stays on disk
        assert len(os.listdir(assets_root)) == 1


@pytest.mark.unit
class TestSupersededAssets:
    @pytest.mark.asyncio
    async def test_retained_by_default(
        self,
        service_factory: Callable[..., UploadService],
        video_service: InMemoryVideoService,
        record: VideoRecord,
        owner_id: uuid.UUID,
        assets_root: Path,
    ) -> None:
        service = service_factory()
        first = await service.publish_thumbnail(record, thumbnail(), owner_id)
        first_url = first.thumbnail_url
        second = await service.publish_thumbnail(first, thumbnail(), owner_id)

        # the record is updated in place
        assert second is first
        assert second.thumbnail_url != first_url
        assert len(os.listdir(assets_root)) == 2

    @pytest.mark.asyncio
    async def test_deleted_when_enabled(
        self,
        service_factory: Callable[..., UploadService],
        storage_client: Mock,
        record: VideoRecord,
        owner_id: uuid.UUID,
    ) -> None:
        service = service_factory(delete_superseded_assets=True)
        first = await service.publish_video(record, video(), owner_id)
        first_key = first.video_url.rsplit("/", 1)[1]

        await service.publish_video(first, video(), owner_id)

        storage_client.delete_object.assert_called_once_with(first_key)

    @pytest.mark.asyncio
    async def test_foreign_url_left_alone(
        self,
        service_factory: Callable[..., UploadService],
        storage_client: Mock,
        record: VideoRecord,
        owner_id: uuid.UUID,
    ) -> None:
        record.video_url = "https://cdn.example.com/legacy.mp4"

        await service_factory(delete_superseded_assets=True).publish_video(record, video(), owner_id)

        storage_client.delete_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_failure_does_not_fail_upload(
        self,
        service_factory: Callable[..., UploadService],
        storage_client: Mock,
        video_service: InMemoryVideoService,
        record: VideoRecord,
        owner_id: uuid.UUID,
    ) -> None:
        service = service_factory(delete_superseded_assets=True)
        first = await service.publish_video(record, video(), owner_id)
        storage_client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
        )

        second = await service.publish_video(first, video(), owner_id)

        assert video_service.records[record.id].video_url == second.video_url
