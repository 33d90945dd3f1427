"""
Media Type Validation Utilities for Tubely

Upload validation is based on the media type the client declares for the
form part; file contents are not sniffed. This module holds:

- AssetKind: the two uploadable asset kinds and their per-kind policy
- Allow-lists of accepted media types per kind
- Base media type normalization (parameters stripped, lower-cased)
- Extension lookup for storage keys with a per-kind fallback
"""

import logging

from enum import Enum

from tubely.config import Settings
from tubely.core.errors import UnsupportedMediaType


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS - Allowed Media Types
# =============================================================================

ALLOWED_IMAGE_TYPES: frozenset[str] = frozenset(
    {"image/png", "image/jpeg", "image/gif", "image/webp"}
)

ALLOWED_VIDEO_TYPES: frozenset[str] = frozenset({"video/mp4"})

# Extension per allowed type; every allow-listed type must have an entry.
EXTENSION_BY_TYPE: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
}


# =============================================================================
# ENUMS
# =============================================================================


class AssetKind(str, Enum):
    """
    The two kinds of asset a video record can reference.

    The value doubles as the multipart form field name the upload is read from.
    """

    THUMBNAIL = "thumbnail"
    VIDEO = "video"

    @property
    def field_name(self) -> str:
        return self.value

    @property
    def allowed_types(self) -> frozenset[str]:
        if self is AssetKind.THUMBNAIL:
            return ALLOWED_IMAGE_TYPES
        return ALLOWED_VIDEO_TYPES

    @property
    def default_extension(self) -> str:
        if self is AssetKind.THUMBNAIL:
            return ".jpg"
        return ".mp4"

    def max_size(self, settings: Settings) -> int:
        """Upper bound on the request body for this kind, in bytes."""
        if self is AssetKind.THUMBNAIL:
            return settings.max_thumbnail_size_bytes
        return settings.max_video_size_bytes


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================


def base_media_type(content_type: str | None) -> str | None:
    """
    Reduce a Content-Type header value to its base media type.

    Examples:
        >>> base_media_type("Image/PNG; charset=binary")
        'image/png'
        >>> base_media_type("  ") is None
        True
    """
    if content_type is None:
        return None
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type or None


def validate_media_type(content_type: str | None, kind: AssetKind) -> str:
    """
    Check a declared part Content-Type against the allow-list for ``kind``.

    Returns:
        str: The base media type.

    Raises:
        UnsupportedMediaType: If no type was declared or it is not allowed.
    """
    media_type = base_media_type(content_type)
    if media_type is None:
        raise UnsupportedMediaType("Missing Content-Type for file")
    if media_type not in kind.allowed_types:
        raise UnsupportedMediaType(
            f"Invalid file type {media_type}; expected one of: "
            f"{', '.join(sorted(kind.allowed_types))}"
        )
    return media_type


def extension_for(media_type: str, kind: AssetKind) -> str:
    """
    Pick the file extension used in a storage key.

    Looks the type up in EXTENSION_BY_TYPE and falls back to the kind's
    default. Never fails.
    """
    extension = EXTENSION_BY_TYPE.get(media_type)
    if extension:
        return extension
    logger.warning(
        "No extension known for media type, using default",
        extra={"media_type": media_type, "kind": kind.value, "extension": kind.default_extension},
    )
    return kind.default_extension
