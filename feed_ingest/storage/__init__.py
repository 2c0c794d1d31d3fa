"""Storage layer - source store and icon blob storage."""

from feed_ingest.storage.blob import BlobStorage
from feed_ingest.storage.database import Database, StoreError
from feed_ingest.storage.repository import SourceRepository

__all__ = ["BlobStorage", "Database", "SourceRepository", "StoreError"]
