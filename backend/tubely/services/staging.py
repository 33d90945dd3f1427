"""
Staging buffer for video payloads.

A video is copied out of the request's form spool into a scratch file of its
own before the object store upload, so the upload reads from a seekable file
of known length. The scratch file lives only for the ``stage_upload`` block
and is removed on every exit path.
"""

import asyncio
import logging
import shutil
import tempfile

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import BinaryIO

from tubely.core.errors import StorageWriteFailed


logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024
SCRATCH_PREFIX = "tubely-upload-"


@dataclass(frozen=True)
class StagedFile:
    """A staged payload, positioned at offset 0."""

    file: BinaryIO
    path: str
    size: int


def _copy_to_scratch(source: BinaryIO, scratch: BinaryIO) -> int:
    source.seek(0)
    shutil.copyfileobj(source, scratch, COPY_CHUNK_SIZE)
    scratch.flush()
    size = scratch.tell()
    scratch.seek(0)
    return size


@asynccontextmanager
async def stage_upload(
    source: BinaryIO,
    suffix: str = ".mp4",
    directory: str | None = None,
) -> AsyncIterator[StagedFile]:
    """
    Copy ``source`` into a uniquely named scratch file.

    Args:
        source: Readable binary stream; read from offset 0 to EOF.
        suffix: File name suffix of the scratch file.
        directory: Where to create the scratch file; None for the system
            temp directory.

    Yields:
        StagedFile: The flushed and rewound scratch file with its exact size.

    Raises:
        StorageWriteFailed: If the scratch file cannot be created or written.
    """
    try:
        scratch = tempfile.NamedTemporaryFile(
            mode="w+b",
            prefix=SCRATCH_PREFIX,
            suffix=suffix,
            dir=directory,
            delete=True,
        )
    except OSError as e:
        logger.exception("Could not create scratch file", extra={"directory": directory})
        raise StorageWriteFailed("Could not create temp file") from e

    with scratch:
        try:
            size = await asyncio.to_thread(_copy_to_scratch, source, scratch)
        except OSError as e:
            logger.exception("Could not write scratch file", extra={"path": scratch.name})
            raise StorageWriteFailed("Could not write file to disk") from e

        logger.debug("Staged upload", extra={"path": scratch.name, "size": size})
        yield StagedFile(file=scratch, path=scratch.name, size=size)
