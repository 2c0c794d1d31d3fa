"""
Google News adapter.

Items are news articles of many publishers. The publisher's favicon is used
as item media; favicon lookups are cached in Redis per publisher URL because
the same few publishers appear over and over.
"""

import logging
from typing import Any
from urllib.parse import urlencode

import redis.asyncio as redis

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.schemas import (
    FeedResult,
    GoogleNewsOptions,
    Item,
    Profile,
    Source,
    SourceType,
)
from feed_ingest.feeds.utils import entry_summary, generate_item_id, unescape_html

logger = logging.getLogger(__name__)

GOOGLE_NEWS_URL = "https://news.google.com"
CACHE_KEY_PREFIX = "scraper-googlenews-"


def canonical_feed_url(options: GoogleNewsOptions) -> str:
    """
    Raises:
        InvalidOptionsError: If a url feed has no url or a search misses one
            of search, ceid, gl and hl
    """
    if options.type == "url" and options.url:
        url = options.url
        if url.startswith(GOOGLE_NEWS_URL) and not url.startswith(f"{GOOGLE_NEWS_URL}/rss"):
            url = f"{GOOGLE_NEWS_URL}/rss{url[len(GOOGLE_NEWS_URL):]}"
        return url

    if options.type == "search" and options.search and options.ceid and options.gl and options.hl:
        query = urlencode(
            {"q": options.search, "hl": options.hl, "gl": options.gl, "ceid": options.ceid}
        )
        return f"{GOOGLE_NEWS_URL}/rss/search?{query}"

    raise InvalidOptionsError()


def _publisher(entry: Any) -> tuple[str | None, str | None]:
    """(name, url) of the publisher from the entry's <source> element."""
    source = entry.get("source") or {}
    return source.get("title") or None, source.get("href") or None


class GoogleNewsAdapter(BaseFeedAdapter):
    """Adapter for Google News topic and search feeds (`options.googlenews`)."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.GOOGLENEWS

    @property
    def cache(self) -> redis.Redis | None:
        return self._context.cache

    async def _publisher_icon(self, publisher_url: str | None) -> str | None:
        """Favicon of a publisher, read from and written to the Redis cache."""
        if not publisher_url or self.cache is None:
            return None

        cache_key = f"{CACHE_KEY_PREFIX}{publisher_url}"
        try:
            cached = await self.cache.get(cache_key)
            if cached:
                return cached

            favicon = await self._favicon(publisher_url)
            if favicon and favicon.url.startswith("https://"):
                await self.cache.set(cache_key, favicon.url)
                return favicon.url
        except Exception as e:
            logger.debug(f"Publisher icon lookup failed for {publisher_url}: {e}")
        return None

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        options: GoogleNewsOptions = self._require_option(source)
        url = canonical_feed_url(options)
        options.url = url

        feed = await self._fetch_feed(url)
        self._refresh_source(source, feed, url)
        source.icon = None

        items = []
        for entry in self._admission(source, stats).admit(feed.entries):
            author, publisher_url = _publisher(entry.raw)
            items.append(
                Item(
                    id=generate_item_id(source.id, entry.identifier),
                    user_id=source.user_id,
                    column_id=source.column_id,
                    source_id=source.id,
                    title=entry.title,
                    link=entry.link,
                    media=await self._publisher_icon(publisher_url),
                    description=unescape_html(entry_summary(entry.raw)),
                    author=author,
                    published_at=entry.published_at,
                )
            )
        return FeedResult(source, items)
