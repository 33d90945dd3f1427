"""
Tubely S3-Compatible Storage Client

A thin boto3 wrapper used to publish video files. It supports AWS S3 (no
endpoint URL) and MinIO or any other S3-compatible service (explicit
endpoint URL, path-style addressing).

The client performs exactly one attempt per call; retries are left to the
caller, and the upload pipeline does not retry. Public object URLs are
computed from configuration rather than requested from the service.
"""

import logging

from typing import BinaryIO

import boto3

from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from tubely.config import Settings


logger = logging.getLogger(__name__)


class StorageClient:
    """
    S3-compatible storage client for AWS S3 or MinIO.

    Attributes:
        s3_client: Initialized boto3 S3 client
        bucket_name: Target bucket for all operations
        region: Bucket region, used in virtual-hosted style URLs
        endpoint_url: Custom endpoint, or None for AWS S3

    Example usage:
        ```python
        storage = StorageClient(settings)
        storage.put_object("Q2x1c3RlcjAx.mp4", fileobj, 1048576, "video/mp4")
        storage.object_url("Q2x1c3RlcjAx.mp4")
        # https://tubely-videos.s3.us-east-1.amazonaws.com/Q2x1c3RlcjAx.mp4
        ```
    """

    def __init__(self, settings: Settings) -> None:
        """
        Create the boto3 client from settings.

        When ``s3_endpoint_url`` is None boto3 targets AWS S3 and resolves
        credentials through its default chain if no explicit keys are set.
        """
        self.bucket_name = settings.s3_bucket_name
        self.region = settings.s3_region
        self.endpoint_url = settings.s3_endpoint_url.rstrip("/") if settings.s3_endpoint_url else None

        client_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path" if self.endpoint_url else "auto"},
            retries={"max_attempts": 1, "mode": "standard"},
        )

        self.s3_client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=self.region,
            config=client_config,
        )

        logger.info(
            "S3 storage client initialized",
            extra={
                "bucket": self.bucket_name,
                "region": self.region,
                "endpoint": self.endpoint_url or "AWS S3 (default)",
            },
        )

    def put_object(self, key: str, body: BinaryIO, content_length: int, content_type: str) -> None:
        """
        Upload ``content_length`` bytes from ``body`` as ``key``.

        Args:
            key: Object key inside the bucket.
            body: Readable binary file positioned at offset 0.
            content_length: Exact number of bytes to send.
            content_type: Media type recorded on the object.

        Raises:
            ClientError: If the service rejects the request.
            BotoCoreError: If the request could not be sent.
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=body,
                ContentLength=content_length,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError):
            logger.exception(
                "Failed to put object to S3",
                extra={"bucket": self.bucket_name, "key": key, "content_length": content_length},
            )
            raise

        logger.info(
            "Put object to S3",
            extra={"bucket": self.bucket_name, "key": key, "content_length": content_length},
        )

    def delete_object(self, key: str) -> None:
        """
        Delete ``key``. Deleting a missing key is not an error.

        Raises:
            ClientError: If the service rejects the request.
            BotoCoreError: If the request could not be sent.
        """
        self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        logger.info("Deleted object from S3", extra={"bucket": self.bucket_name, "key": key})

    def object_url(self, key: str) -> str:
        """Public URL under which ``key`` is served."""
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    def key_from_url(self, url: str) -> str | None:
        """Inverse of ``object_url``; None if ``url`` is not an object in this bucket."""
        prefix = self.object_url("")
        if not url.startswith(prefix):
            return None
        key = url[len(prefix):]
        return key or None
