"""Blob storage access for uploaded CV files."""

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Protocol

import boto3

from cvworker.config import Settings

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    async def get_object(self, key: str) -> Any:
        """Return the object body (bytes, a stream, or an async iterable)."""


class S3BlobStore:
    """Reads CV uploads from an S3 bucket."""

    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3BlobStore":
        client = boto3.client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key_id or None,
            aws_secret_access_key=settings.s3_secret_access_key or None,
        )
        return cls(settings.s3_bucket, client)

    async def get_object(self, key: str) -> Any:
        if self.client is None:
            self.client = boto3.client("s3")

        # boto3 is blocking; keep it off the event loop
        response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=key)
        logger.debug(f"Fetched s3://{self.bucket}/{key} ({response.get('ContentLength')} bytes)")
        return response["Body"]


class FilesystemBlobStore:
    """Reads CV uploads from a local directory (development and tests)."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    async def get_object(self, key: str) -> bytes:
        path = self.root / key.lstrip("/")
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        return await asyncio.to_thread(path.read_bytes)


def build_blob_store(settings: Settings) -> BlobStore:
    """Create the blob store selected by configuration."""
    if settings.blob_backend == "filesystem":
        return FilesystemBlobStore(settings.blob_root)
    return S3BlobStore.from_settings(settings)


def _chunk_to_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


async def body_to_bytes(body: Any) -> bytes:
    """
    Collapse a storage response body into a single buffer.

    Accepts bytes-like objects, objects with a sync or async read() (botocore
    StreamingBody, aiobotocore streams, file objects), and sync or async
    iterables of bytes/str chunks.

    Raises:
        ValueError: If the body is empty (None)
        TypeError: If the body type is not supported
    """
    if body is None:
        raise ValueError("Unable to download CV content: empty body")

    if isinstance(body, bytes | bytearray | memoryview):
        return bytes(body)

    read = getattr(body, "read", None)
    if callable(read):
        if inspect.iscoroutinefunction(read):
            data = await read()
        else:
            data = await asyncio.to_thread(read)
        return _chunk_to_bytes(data)

    if hasattr(body, "__aiter__"):
        chunks = [_chunk_to_bytes(chunk) async for chunk in body]
        return b"".join(chunks)

    if hasattr(body, "__iter__") and not isinstance(body, str):
        return b"".join(_chunk_to_bytes(chunk) for chunk in body)

    raise TypeError("Unsupported object body type returned from storage")
