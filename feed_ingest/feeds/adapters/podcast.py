"""Podcast adapter. Accepts feed URLs and Apple Podcasts show pages."""

import logging
import re

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.schemas import FeedResult, Item, Profile, Source, SourceType
from feed_ingest.feeds.utils import (
    entry_author,
    entry_description,
    feed_image,
    generate_item_id,
)

logger = logging.getLogger(__name__)

APPLE_PODCASTS_PREFIX = "https://podcasts.apple.com"
ITUNES_LOOKUP_URL = "https://itunes.apple.com/lookup"

_APPLE_ID_PATTERN = re.compile(r"/id(\d+)")


class PodcastAdapter(BaseFeedAdapter):
    """Adapter for podcast RSS feeds (`options.podcast`)."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.PODCAST

    async def _resolve_apple_podcast(self, url: str) -> str:
        """Translate an Apple Podcasts page into the show's RSS feed URL."""
        match = _APPLE_ID_PATTERN.search(url)
        if not match:
            return url

        data = await self.http.get_json(
            ITUNES_LOOKUP_URL,
            params={"id": match.group(1), "entity": "podcast"},
            timeout=self.settings.feed_timeout_seconds,
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not results or len(results) != 1 or not results[0].get("feedUrl"):
            raise InvalidOptionsError("Failed to get Apple Podcast")
        return results[0]["feedUrl"]

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        url = self._require_option(source)
        if url.startswith(APPLE_PODCASTS_PREFIX):
            url = await self._resolve_apple_podcast(url)
            self._set_option(source, url)

        feed = await self._fetch_feed(url)
        self._refresh_source(source, feed, url)

        image = feed_image(feed)
        if image:
            source.icon = image
            await self._cache_icon(source)

        items = []
        for entry in self._admission(source, stats).admit(feed.entries):
            enclosures = entry.raw.get("enclosures") or []
            media = next(
                (e.get("href") for e in enclosures if e.get("href")),
                None,
            )
            items.append(
                Item(
                    id=generate_item_id(source.id, entry.identifier),
                    user_id=source.user_id,
                    column_id=source.column_id,
                    source_id=source.id,
                    title=entry.title,
                    link=entry.link,
                    media=media,
                    description=entry_description(entry.raw),
                    author=entry_author(entry.raw),
                    published_at=entry.published_at,
                )
            )
        return FeedResult(source, items)
