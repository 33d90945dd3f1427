"""
Storage committers for published assets.

Two backends place an asset durably and report the public URL it can be
fetched from:

- LocalAssetStore writes thumbnails under ``assets_root``, which the
  application serves at ``/assets``.
- ObjectAssetStore puts video files into the S3-compatible bucket.

Both make a single attempt per asset and translate backend failures into
``StorageWriteFailed``. Both can map a URL they produced back to its key and
delete it, which the superseded-asset hook uses after a re-upload.
"""

import asyncio
import logging

from pathlib import Path
from typing import BinaryIO, Protocol

import aiofiles
import aiofiles.os

from botocore.exceptions import BotoCoreError, ClientError

from tubely.core.errors import StorageWriteFailed
from tubely.core.storage import StorageClient


logger = logging.getLogger(__name__)

WRITE_CHUNK_SIZE = 1024 * 1024


class AssetStore(Protocol):
    """What the upload pipeline needs from a storage backend."""

    async def commit(self, key: str, source: BinaryIO, size: int, content_type: str) -> str: ...

    def key_from_url(self, url: str) -> str | None: ...

    async def delete(self, key: str) -> None: ...


# =============================================================================
# Local Disk
# =============================================================================


class LocalAssetStore:
    """
    Writes assets as flat files under ``assets_root``.

    Keys are single path segments; a key that would resolve outside the root
    is refused. Files are created exclusively, so an existing asset is never
    overwritten.
    """

    def __init__(self, assets_root: str, public_base_url: str) -> None:
        self.root = Path(assets_root).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def path_for(self, key: str) -> Path:
        """Absolute path for ``key``; raises StorageWriteFailed if it escapes the root."""
        path = (self.root / key).resolve()
        if path.parent != self.root:
            logger.error("Refused storage key outside assets root", extra={"key": key})
            raise StorageWriteFailed("Invalid storage key")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/assets/{key}"

    def key_from_url(self, url: str) -> str | None:
        prefix = self.url_for("")
        if not url.startswith(prefix):
            return None
        return url[len(prefix):] or None

    async def commit(self, key: str, source: BinaryIO, size: int, content_type: str) -> str:
        """
        Copy ``source`` into ``assets_root/key`` and return its public URL.

        A partially written file is removed before the error is raised.

        Raises:
            StorageWriteFailed: If the file cannot be created or written.
        """
        path = self.path_for(key)
        created = False
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
            source.seek(0)
            async with aiofiles.open(path, "xb") as out:
                created = True
                while chunk := await asyncio.to_thread(source.read, WRITE_CHUNK_SIZE):
                    await out.write(chunk)
        except OSError as e:
            logger.exception("Failed to write asset to disk", extra={"key": key, "path": str(path)})
            if created:
                await self._remove_partial(path)
            raise StorageWriteFailed("Couldn't save file") from e

        logger.info(
            "Wrote asset to disk",
            extra={"key": key, "size": size, "content_type": content_type},
        )
        return self.url_for(key)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.info("Asset already absent", extra={"key": key})
        except OSError as e:
            raise StorageWriteFailed("Couldn't delete file") from e

    async def _remove_partial(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except OSError:
            logger.exception("Failed to remove partial asset", extra={"path": str(path)})


# =============================================================================
# Object Store
# =============================================================================


class ObjectAssetStore:
    """Puts assets into the configured S3-compatible bucket."""

    def __init__(self, client: StorageClient) -> None:
        self.client = client

    def key_from_url(self, url: str) -> str | None:
        return self.client.key_from_url(url)

    async def commit(self, key: str, source: BinaryIO, size: int, content_type: str) -> str:
        """
        Upload ``size`` bytes of ``source`` as ``key`` in one put.

        Raises:
            StorageWriteFailed: If the object store rejects the put or cannot be reached.
        """
        try:
            await asyncio.to_thread(self.client.put_object, key, source, size, content_type)
        except (ClientError, BotoCoreError) as e:
            raise StorageWriteFailed("Couldn't upload file to object storage") from e
        return self.client.object_url(key)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, key)
        except (ClientError, BotoCoreError) as e:
            raise StorageWriteFailed("Couldn't delete object") from e
