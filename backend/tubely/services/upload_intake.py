"""
Upload intake: bounded multipart parsing and declared-type validation.

The request body is wrapped in a byte-counting limiter before it reaches the
multipart parser, so an oversized upload is cut off mid-stream and reported
as ``PayloadTooLarge`` rather than as a parse error. A declared
``Content-Length`` above the ceiling is rejected before any byte is read.
A body that ends before the closing multipart delimiter is
``MalformedUpload``.

Parsed form parts are spooled by Starlette's parser; ``receive_upload`` owns
the parsed form and closes it on every exit path.
"""

import logging

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import BinaryIO

from fastapi import Request
from python_multipart.multipart import parse_options_header
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from tubely.config import Settings
from tubely.core.errors import MalformedUpload, MissingField, PayloadTooLarge
from tubely.utils.file_validator import AssetKind, base_media_type, validate_media_type


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedAsset:
    """A validated file part, readable until the intake context exits."""

    kind: AssetKind
    file: BinaryIO
    media_type: str
    size: int | None
    filename: str | None


class BoundedBody:
    """
    Async byte stream that fails once more than ``limit`` bytes have passed.

    The failure is raised as ``MultiPartException`` so the parser releases the
    parts it has spooled so far; ``exceeded`` tells the caller why it failed.

    When ``boundary`` is given, a stream that ends before the closing
    multipart delimiter fails the same way. The parser itself accepts a body
    that simply stops and drops the unfinished part.
    """

    def __init__(
        self,
        stream: AsyncIterator[bytes],
        limit: int,
        boundary: bytes | None = None,
    ) -> None:
        self._stream = stream
        self.limit = limit
        self.received = 0
        self.exceeded = False
        self._terminator = b"\r\n--" + boundary + b"--" if boundary else None
        # a body that opens with the closing delimiter has no parts
        self._tail = b"\r\n"
        self.terminated = self._terminator is None

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            self.received += len(chunk)
            if self.received > self.limit:
                self.exceeded = True
                raise MultiPartException(f"Request body exceeds {self.limit} bytes")
            self._watch(chunk)
            yield chunk
        if not self.terminated:
            raise MultiPartException("Multipart body ended before the closing boundary")

    def _watch(self, chunk: bytes) -> None:
        if self.terminated or not chunk:
            return
        window = self._tail + chunk
        if self._terminator in window:
            self.terminated = True
            return
        self._tail = window[-(len(self._terminator) - 1):]


def _check_declared_length(request: Request, limit: int) -> None:
    declared = request.headers.get("content-length")
    if declared is None:
        return
    try:
        length = int(declared)
    except ValueError:
        return
    if length > limit:
        logger.info(
            "Rejected upload by declared length",
            extra={"content_length": length, "limit": limit},
        )
        raise PayloadTooLarge()


def _boundary(content_type: str) -> bytes | None:
    _, params = parse_options_header(content_type)
    return params.get(b"boundary") or None


async def _parse_form(request: Request, limit: int) -> FormData:
    content_type = request.headers.get("content-type")
    if base_media_type(content_type) != "multipart/form-data":
        raise MalformedUpload("Request must be multipart/form-data")

    _check_declared_length(request, limit)

    body = BoundedBody(request.stream(), limit, _boundary(content_type))
    parser = MultiPartParser(request.headers, body)
    try:
        return await parser.parse()
    except MultiPartException as e:
        if body.exceeded:
            logger.info(
                "Rejected upload exceeding body limit",
                extra={"received": body.received, "limit": limit},
            )
            raise PayloadTooLarge() from e
        logger.info("Rejected malformed multipart body: %s", e)
        raise MalformedUpload() from e
    except ValueError as e:
        # python-multipart parse errors
        logger.info("Rejected malformed multipart body: %s", e)
        raise MalformedUpload() from e


def _extract_asset(form: FormData, kind: AssetKind) -> UploadedAsset:
    part = form.get(kind.field_name)
    if not isinstance(part, UploadFile):
        raise MissingField(f'Missing "{kind.field_name}" file field')

    media_type = validate_media_type(part.content_type, kind)
    return UploadedAsset(
        kind=kind,
        file=part.file,
        media_type=media_type,
        size=part.size,
        filename=part.filename,
    )


@asynccontextmanager
async def receive_upload(
    request: Request,
    kind: AssetKind,
    settings: Settings,
) -> AsyncIterator[UploadedAsset]:
    """
    Read the ``kind`` file part out of a multipart request.

    Usage:
        async with receive_upload(request, AssetKind.VIDEO, settings) as asset:
            ...

    Raises:
        PayloadTooLarge: The body exceeds the ceiling for ``kind``.
        MalformedUpload: The body is not parseable multipart form data.
        MissingField: The form has no file part named after ``kind``.
        UnsupportedMediaType: The part's declared type is missing or not allowed.
    """
    form = await _parse_form(request, kind.max_size(settings))
    try:
        yield _extract_asset(form, kind)
    finally:
        await form.close()
