"""Document store implementations: S3-compatible object storage and local filesystem."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from letterflow.collaborators.base import DocumentNotFoundError, DocumentStore, StoredDocument

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


def _normalize_endpoint(url: str | None) -> str | None:
    """Ensure endpoints include a scheme so boto3 accepts them."""
    if not url:
        return url
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"http://{url}"


class S3DocumentStore(DocumentStore):
    """S3 / MinIO / R2 backed store.

    boto3 clients are synchronous; calls are pushed to a worker thread so the
    event loop is never blocked on network I/O.
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str | None = None,
        client: Any = None,
    ):
        self.bucket = bucket
        if client is None:
            session = boto3.session.Session(
                aws_access_key_id=access_key or None,
                aws_secret_access_key=secret_key or None,
                region_name=region or None,
            )
            client = session.client(
                "s3",
                endpoint_url=_normalize_endpoint(endpoint_url),
                config=Config(signature_version="s3v4"),
            )
        self._client = client

    async def get_buffer(self, key: str) -> bytes:
        def _get() -> bytes:
            try:
                response = self._client.get_object(Bucket=self.bucket, Key=key)
            except ClientError as exc:
                code = str(exc.response.get("Error", {}).get("Code", ""))
                if code in _MISSING_KEY_CODES:
                    raise DocumentNotFoundError(key) from exc
                raise
            return response["Body"].read()

        return await asyncio.to_thread(_get)

    async def put_buffer(self, data: bytes, key: str, mime_type: str) -> StoredDocument:
        def _put() -> None:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=mime_type)

        try:
            await asyncio.to_thread(_put)
        except (BotoCoreError, ClientError):
            logger.exception("Upload of %s to bucket %s failed", key, self.bucket)
            raise
        logger.info("Stored %d bytes at %s", len(data), key)
        return StoredDocument(key=key, public_url=None)

    async def signed_url(self, key: str, expires_in: int) -> str:
        def _sign() -> str:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )

        return await asyncio.to_thread(_sign)


class LocalDocumentStore(DocumentStore):
    """Filesystem store for local development mode."""

    def __init__(self, root: str | Path, base_url: str = "http://localhost:8080/local-storage"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Key escapes storage root: {key}")
        return path

    async def get_buffer(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise DocumentNotFoundError(key)
        return await asyncio.to_thread(path.read_bytes)

    async def put_buffer(self, data: bytes, key: str, mime_type: str) -> StoredDocument:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        logger.info("Stored %d bytes at %s (%s)", len(data), key, mime_type)
        return StoredDocument(key=key, public_url=f"{self.base_url}/{key}")

    async def signed_url(self, key: str, expires_in: int) -> str:
        if not self._path_for(key).is_file():
            raise DocumentNotFoundError(key)
        return f"{self.base_url}/{key}?expires_in={expires_in}"
