"""
Base adapter interface and shared functionality for feed providers.

Each provider adapter turns a (source, profile) pair into a FeedResult: the
refreshed source and the items of entries that passed admission. The base
class provides:
- Option validation
- Bounded feed fetching and parsing with feedparser
- Deterministic id assignment for new sources
- Icon caching through blob storage
- Logging and per-run statistics
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import feedparser
import redis.asyncio as redis

from feed_ingest.config.settings import Settings
from feed_ingest.feeds.admission import AdmissionStats, EntryAdmission
from feed_ingest.feeds.errors import InvalidFeedError, InvalidOptionsError
from feed_ingest.feeds.favicon import Favicon, FaviconFilter, get_favicon
from feed_ingest.feeds.http_client import HTTPClient
from feed_ingest.feeds.schemas import FeedResult, Profile, Source, SourceType
from feed_ingest.feeds.utils import feed_link, generate_source_id
from feed_ingest.storage.blob import BlobStorage

logger = logging.getLogger(__name__)


@dataclass
class AdapterContext:
    """
    Clients an adapter may use. Built once per worker process.

    Attributes:
        http: Open HTTP client for provider requests
        settings: Application settings (timeouts, provider credentials)
        blob: Icon storage, None when uploads are not configured
        cache: Redis client for scraper caches, None when unavailable
    """

    http: HTTPClient
    settings: Settings
    blob: BlobStorage | None = None
    cache: redis.Redis | None = None


@dataclass
class AdapterStats:
    """Statistics for one adapter call."""

    items: int = 0
    admission: AdmissionStats = field(default_factory=AdmissionStats)
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseFeedAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Subclasses must implement:
        - source_type: SourceType handled by the adapter
        - _get_feed(): Fetch and normalize, working on a private copy of the source

    Adapters hold no state between calls. The only side effect they may
    have is the icon upload for a source seen for the first time.
    """

    def __init__(self, context: AdapterContext):
        self._context = context

    @property
    @abstractmethod
    def source_type(self) -> SourceType:
        """Return the provider tag this adapter produces."""
        ...

    @property
    def name(self) -> str:
        return f"{self.source_type.value}_adapter"

    @property
    def option_field(self) -> str:
        """Name of the SourceOptions field holding this provider's configuration."""
        return self.source_type.value

    @property
    def http(self) -> HTTPClient:
        return self._context.http

    @property
    def settings(self) -> Settings:
        return self._context.settings

    async def get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats | None = None,
    ) -> FeedResult:
        """
        Refresh a source and collect its new items.

        The caller's source is never mutated; the returned source is a copy.

        Args:
            source: Source to refresh
            profile: Owner of the source
            stats: Filled with the counters of this call when given

        Raises:
            InvalidOptionsError: The source lacks this provider's option field
            FetchFailedError: Network error, timeout or non-success response
            InvalidFeedError: Payload could not be parsed or has no title
        """
        stats = stats if stats is not None else AdapterStats()
        working = source.model_copy(deep=True)

        result = await self._get_feed(working, profile, stats)

        stats.items = len(result.items)
        logger.info(
            f"{self.name} completed: source={result.source.id}, "
            f"items={stats.items}, "
            f"skipped={stats.admission.skipped}, "
            f"elapsed={stats.elapsed_seconds:.2f}s"
        )
        return result

    @abstractmethod
    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        ...

    # Helpers for subclasses

    def _require_option(self, source: Source) -> Any:
        """Return this provider's option value or raise InvalidOptionsError."""
        value = getattr(source.options, self.option_field, None) if source.options else None
        if not value:
            raise InvalidOptionsError()
        return value

    def _set_option(self, source: Source, value: Any) -> None:
        """Store the normalized option value back on the source."""
        setattr(source.options, self.option_field, value)

    async def _fetch_feed(
        self,
        url: str,
        headers: dict[str, str] | None = None,
    ) -> feedparser.FeedParserDict:
        """
        Download and parse a feed.

        Raises:
            FetchFailedError: On transport errors or non-success status
            InvalidFeedError: If the payload has no feed title
        """
        response = await self.http.get(
            url,
            headers=headers,
            timeout=self.settings.feed_timeout_seconds,
        )
        logger.debug(f"Fetched {url} for {self.name}: status={response.status_code}")

        feed = feedparser.parse(response.text)
        if not feed.feed.get("title"):
            raise InvalidFeedError()
        return feed

    def _admission(
        self,
        source: Source,
        stats: AdapterStats,
        require_title: bool = True,
    ) -> EntryAdmission:
        admission = EntryAdmission(
            updated_at=source.updated_at or 0,
            require_title=require_title,
            spam_filter=self.settings.spam_filter_enabled,
        )
        stats.admission = admission.stats
        return admission

    def _assign_id(self, source: Source, identifier: str) -> None:
        """Derive the source id on first fetch. Existing ids are kept."""
        if not source.id:
            source.id = generate_source_id(
                self.source_type.value,
                source.user_id,
                source.column_id,
                identifier,
            )

    def _refresh_source(
        self,
        source: Source,
        feed: feedparser.FeedParserDict,
        identifier: str,
    ) -> None:
        """Set id, type, title and link from a parsed feed."""
        self._assign_id(source, identifier)
        source.type = self.source_type.value
        source.title = feed.feed.get("title", "")
        link = feed_link(feed)
        if link:
            source.link = link

    async def _favicon(
        self,
        url: str,
        favicon_filter: FaviconFilter | None = None,
    ) -> Favicon | None:
        return await get_favicon(self.http, url, favicon_filter)

    async def _cache_icon(self, source: Source) -> None:
        """
        Upload the source icon to blob storage.

        The stored key replaces the remote URL; if storage is not configured
        or the upload fails, the remote URL is kept.
        """
        if not source.icon or self._context.blob is None:
            return
        stored = await self._context.blob.upload_source_icon(source)
        if stored:
            source.icon = stored
