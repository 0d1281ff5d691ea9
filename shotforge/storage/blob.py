"""Object storage for generation outputs.

Speaks the Supabase storage REST API: objects are uploaded with
``POST /storage/v1/object/{bucket}/{path}`` and served from
``/storage/v1/object/public/{bucket}/{path}``.
"""

from __future__ import annotations

import asyncio

import requests

from shotforge.common.collaborators import default_object_path
from shotforge.common.config import Settings
from shotforge.common.errors import PersistenceError
from shotforge.common.logging import get_logger
from shotforge.engines.http import HttpRequest, RetryingHttpClient

logger = get_logger(__name__)


class HttpBlobStore:
    """Uploads bytes to a storage bucket and returns the public URL."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str,
        http: RetryingHttpClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.http = http or RetryingHttpClient()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http: RetryingHttpClient | None = None,
    ) -> "HttpBlobStore":
        return cls(
            settings.blob_store_url,
            settings.blob_store_key,
            settings.blob_bucket,
            http=http or RetryingHttpClient.from_settings(settings),
        )

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def put(self, data: bytes, content_type: str, path: str | None = None) -> str:
        path = (path or default_object_path(data, content_type)).lstrip("/")
        request = HttpRequest(
            "POST",
            f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
            data=data,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "apikey": self.api_key,
                "Content-Type": content_type,
                "x-upsert": "true",
            },
        )

        try:
            response = await asyncio.to_thread(self.http.send, request)
        except requests.RequestException as e:
            raise PersistenceError("Blob upload failed", detail=str(e)) from e

        if not response.ok:
            raise PersistenceError(
                f"Blob upload failed with status {response.status_code}",
                detail=response.text[:500],
            )

        url = self.public_url(path)
        logger.debug("blob_uploaded", path=path, bytes=len(data), content_type=content_type)
        return url
