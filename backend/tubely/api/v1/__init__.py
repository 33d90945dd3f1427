"""
Tubely API v1 Router Aggregator.

Combines the v1 endpoint routers into a single APIRouter that the
application registers under the /api/v1 prefix.

Router Structure:
    - /videos: thumbnail and video file uploads for an owned video
"""

from fastapi import APIRouter

from tubely.api.v1.videos import router as videos_router


api_router = APIRouter()

api_router.include_router(
    videos_router,
    prefix="/videos",
    tags=["videos"],
)

__all__ = ["api_router"]
