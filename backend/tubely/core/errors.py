"""
Tubely pipeline error taxonomy.

Every failure the upload pipeline can report to a caller is a subclass of
``TubelyError``. Each class carries the HTTP status it maps to; the
application installs a single exception handler that renders any of them as
``{"error": "<message>"}``. Internal causes are chained with ``raise ... from``
and logged where they are detected, never placed in the response body.
"""

from fastapi import status


class TubelyError(Exception):
    """Base exception for upload pipeline failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None


# =============================================================================
# Identity & Ownership
# =============================================================================


class InvalidIdentifier(TubelyError):
    """Raised when the path video id is not a UUID."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid ID"


class Unauthenticated(TubelyError):
    """Raised when the bearer credential is missing, malformed or expired."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Couldn't validate JWT"

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Unauthorized(TubelyError):
    """Raised when the authenticated user does not own the video."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized to update this video"


class VideoNotFound(TubelyError):
    """Raised when no video record exists for the requested id."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Video not found"


class MetadataUnavailable(TubelyError):
    """Raised when the metadata store cannot be read or written."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Couldn't access video metadata"


# =============================================================================
# Upload Intake
# =============================================================================


class MissingField(TubelyError):
    """Raised when the expected multipart file field is absent."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Missing upload field"


class MalformedUpload(TubelyError):
    """Raised when the request body is not parseable multipart form data."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Unable to parse form file"


class PayloadTooLarge(TubelyError):
    """Raised when the request body exceeds the ceiling for its asset kind."""

    # literal; the Starlette name for 413 differs between releases
    status_code = 413
    default_message = "Upload exceeds the maximum allowed size"


class UnsupportedMediaType(TubelyError):
    """Raised when the declared media type is missing or not allowed."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Unsupported media type"


# =============================================================================
# Storage
# =============================================================================


class StorageWriteFailed(TubelyError):
    """Raised when the asset cannot be written to disk or the object store."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Error saving file"


__all__ = [
    "TubelyError",
    "InvalidIdentifier",
    "Unauthenticated",
    "Unauthorized",
    "VideoNotFound",
    "MetadataUnavailable",
    "MissingField",
    "MalformedUpload",
    "PayloadTooLarge",
    "UnsupportedMediaType",
    "StorageWriteFailed",
]
