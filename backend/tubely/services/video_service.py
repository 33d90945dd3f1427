"""
Video metadata access.

``VideoService`` is the seam between the upload pipeline and the metadata
store: it loads a video record by id and writes back the asset URL fields.
Driver failures surface as ``MetadataUnavailable``; an id with no record
surfaces as ``VideoNotFound``.
"""

import logging

from datetime import UTC, datetime
from uuid import UUID

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from tubely.core.errors import MetadataUnavailable, VideoNotFound
from tubely.models.video import VideoRecord


logger = logging.getLogger(__name__)


class VideoService:
    """
    Reads and writes ``VideoRecord`` documents in the ``videos`` collection.

    Example:
        ```python
        service = VideoService(db_client.get_videos_collection())
        video = await service.get_video(video_id)
        video.thumbnail_url = url
        await service.update_video(video)
        ```
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def get_video(self, video_id: UUID) -> VideoRecord:
        """
        Load the record for ``video_id``.

        Raises:
            VideoNotFound: If no record has this id.
            MetadataUnavailable: If the store cannot be queried.
        """
        try:
            document = await self.collection.find_one({"_id": str(video_id)})
        except PyMongoError as e:
            logger.exception("Failed to load video", extra={"video_id": str(video_id)})
            raise MetadataUnavailable("Couldn't get video") from e

        if document is None:
            raise VideoNotFound()
        return VideoRecord.from_document(document)

    async def update_video(self, video: VideoRecord) -> None:
        """
        Persist the asset URL fields of ``video`` and bump ``updated_at``.

        Only ``thumbnail_url``, ``video_url`` and ``updated_at`` are written;
        concurrent updates to the same record are last-write-wins.

        Raises:
            VideoNotFound: If the record was deleted in the meantime.
            MetadataUnavailable: If the store cannot be written.
        """
        video.updated_at = datetime.now(UTC)
        try:
            result = await self.collection.update_one(
                {"_id": str(video.id)},
                {
                    "$set": {
                        "thumbnail_url": video.thumbnail_url,
                        "video_url": video.video_url,
                        "updated_at": video.updated_at,
                    }
                },
            )
        except PyMongoError as e:
            logger.exception("Failed to update video", extra={"video_id": str(video.id)})
            raise MetadataUnavailable("Couldn't update video") from e

        if result.matched_count == 0:
            raise VideoNotFound()
