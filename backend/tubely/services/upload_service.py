"""
Upload-and-publish orchestration.

``UploadService`` turns a validated upload into a stored, publicly
addressable asset referenced by its video record:

    generate key -> [stage to scratch file] -> commit to storage
                 -> set URL on the record -> persist the record

Thumbnails go to the local asset store; videos are staged to a scratch file
and put into the object store. Once the commit has succeeded the asset is
published, and by default a failure to persist the record does not fail the
request: the URL index is eventually consistent, the failure is logged with
the video id and the new URL, and the caller receives the in-memory record.
``strict_metadata_sync`` turns that failure into ``MetadataUnavailable``.

A re-upload replaces the URL on the record (last write wins). The asset the
record pointed at before is retained, or deleted when
``delete_superseded_assets`` is enabled.
"""

import logging

from uuid import UUID

from tubely.config import Settings
from tubely.core.errors import MetadataUnavailable, StorageWriteFailed, VideoNotFound
from tubely.models.video import VideoRecord
from tubely.services.staging import stage_upload
from tubely.services.storage_service import AssetStore
from tubely.services.upload_intake import UploadedAsset
from tubely.services.video_service import VideoService
from tubely.utils.file_validator import AssetKind
from tubely.utils.logger import ContextLoggerAdapter, add_log_context
from tubely.utils.security import generate_storage_key


logger = logging.getLogger(__name__)

URL_FIELDS: dict[AssetKind, str] = {
    AssetKind.THUMBNAIL: "thumbnail_url",
    AssetKind.VIDEO: "video_url",
}


class UploadService:
    """
    Publishes thumbnails and video files for an already authorized video.

    Args:
        settings: Key size, staging directory and consistency policy.
        videos: Metadata store access.
        local_store: Committer for thumbnails.
        object_store: Committer for video files.
    """

    def __init__(
        self,
        settings: Settings,
        videos: VideoService,
        local_store: AssetStore,
        object_store: AssetStore,
    ) -> None:
        self.settings = settings
        self.videos = videos
        self.local_store = local_store
        self.object_store = object_store

    async def publish_thumbnail(
        self, video: VideoRecord, asset: UploadedAsset, user_id: UUID
    ) -> VideoRecord:
        """
        Store a thumbnail image on local disk and point ``video`` at it.

        Raises:
            StorageWriteFailed: The image could not be written.
            MetadataUnavailable: The record could not be updated (strict mode only).
        """
        ctx_logger = self._context(video, asset.kind, user_id)
        key = generate_storage_key(asset.media_type, asset.kind, self.settings.storage_key_bytes)

        url = await self.local_store.commit(key, asset.file, asset.size or 0, asset.media_type)
        ctx_logger.info("Thumbnail committed", extra={"key": key, "url": url})

        return await self._synchronize(video, asset.kind, url, self.local_store, ctx_logger)

    async def publish_video(
        self, video: VideoRecord, asset: UploadedAsset, user_id: UUID
    ) -> VideoRecord:
        """
        Stage a video file, put it into the object store and point ``video`` at it.

        The scratch file is removed before the record is synchronized,
        whether or not the put succeeded.

        Raises:
            StorageWriteFailed: The file could not be staged or uploaded.
            MetadataUnavailable: The record could not be updated (strict mode only).
        """
        ctx_logger = self._context(video, asset.kind, user_id)
        key = generate_storage_key(asset.media_type, asset.kind, self.settings.storage_key_bytes)

        async with stage_upload(
            asset.file, suffix=asset.kind.default_extension, directory=self.settings.staging_dir
        ) as staged:
            ctx_logger.debug("Video staged", extra={"path": staged.path, "size": staged.size})
            try:
                url = await self.object_store.commit(key, staged.file, staged.size, asset.media_type)
            except StorageWriteFailed:
                ctx_logger.exception("Video upload to object storage failed", extra={"key": key})
                raise
        ctx_logger.info("Video committed", extra={"key": key, "url": url, "size": staged.size})

        return await self._synchronize(video, asset.kind, url, self.object_store, ctx_logger)

    async def _synchronize(
        self,
        video: VideoRecord,
        kind: AssetKind,
        url: str,
        store: AssetStore,
        ctx_logger: ContextLoggerAdapter,
    ) -> VideoRecord:
        field = URL_FIELDS[kind]
        previous_url = getattr(video, field)
        setattr(video, field, url)

        try:
            await self.videos.update_video(video)
        except (MetadataUnavailable, VideoNotFound) as e:
            if self.settings.strict_metadata_sync:
                ctx_logger.error(
                    "Video record not updated; committed asset is unreferenced",
                    extra={"url": url},
                )
                raise MetadataUnavailable("Couldn't update video") from e
            ctx_logger.warning(
                "Video record not updated; returning unsaved record",
                extra={"url": url, "reason": e.message},
            )
            return video

        await self._handle_superseded(previous_url, url, store, ctx_logger)
        return video

    async def _handle_superseded(
        self,
        previous_url: str | None,
        url: str,
        store: AssetStore,
        ctx_logger: ContextLoggerAdapter,
    ) -> None:
        if previous_url is None or previous_url == url:
            return
        key = store.key_from_url(previous_url)
        if key is None:
            ctx_logger.debug("Superseded URL not managed here", extra={"previous_url": previous_url})
            return
        if not self.settings.delete_superseded_assets:
            ctx_logger.info("Superseded asset retained", extra={"previous_key": key})
            return
        try:
            await store.delete(key)
        except StorageWriteFailed:
            ctx_logger.exception("Failed to delete superseded asset", extra={"previous_key": key})
            return
        ctx_logger.info("Superseded asset deleted", extra={"previous_key": key})

    @staticmethod
    def _context(video: VideoRecord, kind: AssetKind, user_id: UUID) -> ContextLoggerAdapter:
        return add_log_context(
            logger, video_id=str(video.id), user_id=str(user_id), kind=kind.value
        )
