"""
Blob storage client for cached source icons.

Talks to a Supabase Storage compatible REST endpoint:

    POST {storage_url}/object/{bucket}/{key}   (x-upsert: true)

Uploads are best effort. A failed download or upload returns None and the
caller keeps the remote icon URL.
"""

import logging

from feed_ingest.feeds.errors import FetchFailedError
from feed_ingest.feeds.http_client import HTTPClient
from feed_ingest.feeds.schemas import Source
from feed_ingest.feeds.utils import file_extension

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT_SECONDS = 5.0


class BlobStorage:
    """
    Upload remote files into a storage bucket.

    Usage:
        storage = BlobStorage(http, "https://xyz.supabase.co/storage/v1", key)
        path = await storage.upload_from_url("sources", icon_url, "u1/src.png")
    """

    def __init__(
        self,
        http: HTTPClient,
        storage_url: str,
        service_key: str,
        bucket: str = "sources",
    ):
        self._http = http
        self._storage_url = storage_url.rstrip("/")
        self._service_key = service_key
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    async def upload_from_url(
        self,
        bucket: str,
        source_url: str,
        target_key: str,
    ) -> str | None:
        """
        Download `source_url` and store it under `bucket/target_key`.

        Returns:
            The stored object key, or None if download or upload failed
        """
        try:
            download = await self._http.get(source_url, timeout=DOWNLOAD_TIMEOUT_SECONDS)
            content_type = download.headers.get("content-type", "application/octet-stream")

            await self._http.post(
                f"{self._storage_url}/object/{bucket}/{target_key}",
                headers={
                    "Authorization": f"Bearer {self._service_key}",
                    "apikey": self._service_key,
                    "Content-Type": content_type,
                    "x-upsert": "true",
                },
                content=download.content,
            )
        except FetchFailedError as e:
            logger.error(f"Failed to upload {source_url} to {bucket}/{target_key}: {e}")
            return None

        logger.debug(f"Uploaded {source_url} to {bucket}/{target_key}")
        return target_key

    async def upload_source_icon(self, source: Source) -> str | None:
        """Store the source's icon under `{userId}/{sourceId}.{extension}`."""
        if not source.icon:
            return None
        key = f"{source.user_id}/{source.id}.{file_extension(source.icon)}"
        return await self.upload_from_url(self._bucket, source.icon, key)
