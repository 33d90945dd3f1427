"""
Video asset upload endpoints.

    POST /api/v1/videos/{video_id}/thumbnail  multipart field "thumbnail", images up to 10 MiB
    POST /api/v1/videos/{video_id}/video      multipart field "video", video/mp4 up to 1 GiB

Both endpoints authorize the caller as the video's owner before reading the
body, and respond with the updated video record.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel

from tubely.api.v1.dependencies import (
    AuthorizedUpload,
    authorize_video_owner,
    get_app_settings,
    get_upload_service,
)
from tubely.config import Settings
from tubely.models.video import VideoRecord
from tubely.services.upload_intake import receive_upload
from tubely.services.upload_service import UploadService
from tubely.utils.file_validator import AssetKind


logger = logging.getLogger(__name__)

router = APIRouter()


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    error: str


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid id, malformed form or unsupported type"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token, or not the owner"},
    404: {"model": ErrorResponse, "description": "Video not found"},
    413: {"model": ErrorResponse, "description": "Upload exceeds the size limit"},
    500: {"model": ErrorResponse, "description": "Storage or metadata failure"},
}


@router.post(
    "/{video_id}/thumbnail",
    response_model=VideoRecord,
    status_code=status.HTTP_200_OK,
    summary="Upload a video thumbnail",
    description="Store an image (png, jpeg, gif, webp) and set it as the video's thumbnail.",
    responses=ERROR_RESPONSES,
)
async def upload_thumbnail(
    request: Request,
    authorized: AuthorizedUpload = Depends(authorize_video_owner),
    settings: Settings = Depends(get_app_settings),
    upload_service: UploadService = Depends(get_upload_service),
) -> VideoRecord:
    logger.info(
        "Thumbnail upload for video %s by user %s", authorized.video_id, authorized.auth.user_id
    )
    async with receive_upload(request, AssetKind.THUMBNAIL, settings) as asset:
        return await upload_service.publish_thumbnail(
            authorized.video, asset, authorized.auth.user_id
        )


@router.post(
    "/{video_id}/video",
    response_model=VideoRecord,
    status_code=status.HTTP_200_OK,
    summary="Upload a video file",
    description="Store an MP4 file in object storage and set it as the video's file.",
    responses=ERROR_RESPONSES,
)
async def upload_video(
    request: Request,
    authorized: AuthorizedUpload = Depends(authorize_video_owner),
    settings: Settings = Depends(get_app_settings),
    upload_service: UploadService = Depends(get_upload_service),
) -> VideoRecord:
    logger.info(
        "Video upload for video %s by user %s", authorized.video_id, authorized.auth.user_id
    )
    async with receive_upload(request, AssetKind.VIDEO, settings) as asset:
        return await upload_service.publish_video(
            authorized.video, asset, authorized.auth.user_id
        )
