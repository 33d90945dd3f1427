"""
Request dependencies for the v1 API.

Collaborators are built per request from the objects the application
lifespan placed on ``app.state`` (settings, MongoDB client, S3 client). Tests
replace them through ``app.dependency_overrides``.

``authorize_video_owner`` is the identity and ownership guard every upload
endpoint runs before it touches the request body.
"""

import logging

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials

from tubely.config import Settings
from tubely.core.auth import AuthContext, authenticate_credentials, security
from tubely.core.errors import InvalidIdentifier, Unauthorized
from tubely.core.storage import StorageClient
from tubely.models.video import VideoRecord
from tubely.services.storage_service import LocalAssetStore, ObjectAssetStore
from tubely.services.upload_service import UploadService
from tubely.services.video_service import VideoService


logger = logging.getLogger(__name__)


# =============================================================================
# Collaborators
# =============================================================================


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_video_service(request: Request) -> VideoService:
    return VideoService(request.app.state.db.get_videos_collection())


def get_storage_client(request: Request) -> StorageClient:
    return request.app.state.storage_client


def get_upload_service(
    settings: Settings = Depends(get_app_settings),
    videos: VideoService = Depends(get_video_service),
    storage_client: StorageClient = Depends(get_storage_client),
) -> UploadService:
    """
    Dependency injection for UploadService.

    Thumbnails are committed under ``assets_root``; video files go to the
    configured bucket.
    """
    return UploadService(
        settings=settings,
        videos=videos,
        local_store=LocalAssetStore(settings.assets_root, settings.public_base_url),
        object_store=ObjectAssetStore(storage_client),
    )


# =============================================================================
# Identity & Ownership Guard
# =============================================================================


@dataclass(frozen=True)
class AuthorizedUpload:
    """The guard's result: the target video, its id and the authenticated owner."""

    video_id: UUID
    auth: AuthContext
    video: VideoRecord


async def authorize_video_owner(
    video_id: str,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_app_settings),
    videos: VideoService = Depends(get_video_service),
) -> AuthorizedUpload:
    """
    Authorize the caller to replace assets of ``video_id``.

    Checks run strictly in order and the first failure wins:
    1. ``video_id`` must be a UUID (InvalidIdentifier, 400)
    2. a bearer credential must be present and valid (Unauthenticated, 401)
    3. the video must exist and be readable (VideoNotFound 404, MetadataUnavailable 500)
    4. the caller must own the video (Unauthorized, 401)

    The guard only reads; it never modifies the record.
    """
    try:
        parsed_id = UUID(video_id)
    except ValueError as e:
        raise InvalidIdentifier() from e

    auth = authenticate_credentials(credentials, settings)
    video = await videos.get_video(parsed_id)

    if video.user_id != auth.user_id:
        logger.info(
            "Rejected upload by non-owner",
            extra={"video_id": str(parsed_id), "user_id": str(auth.user_id)},
        )
        raise Unauthorized()

    return AuthorizedUpload(video_id=parsed_id, auth=auth, video=video)
