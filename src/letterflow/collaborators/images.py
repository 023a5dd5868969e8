"""Resolves placement image references to raw bytes."""

import logging

import httpx

from letterflow.collaborators.base import DocumentNotFoundError, DocumentStore

logger = logging.getLogger(__name__)


class ImageFetcher:
    """Fetches ``http(s)://`` URLs over HTTP and treats anything else as a store key.

    Failures are logged and reported as ``None``; one missing image must not
    abort a PDF bake.
    """

    def __init__(self, store: DocumentStore, timeout: float = 15.0, client: httpx.AsyncClient | None = None):
        self.store = store
        self.timeout = timeout
        self._client = client

    async def fetch(self, ref: str) -> bytes | None:
        if ref.startswith("http://") or ref.startswith("https://"):
            return await self._fetch_http(ref)
        try:
            return await self.store.get_buffer(ref)
        except DocumentNotFoundError:
            logger.warning("Image %s not found in document store", ref)
        except Exception as exc:
            logger.warning("Image %s could not be read from document store: %s", ref, exc)
        return None

    async def _fetch_http(self, url: str) -> bytes | None:
        try:
            if self._client is not None:
                resp = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    resp = await client.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Image fetch from %s failed: %s", url, exc)
            return None
        return resp.content
