"""
Generic RSS / Atom adapter.

The catch-all provider: any feed URL the more specific adapters do not
claim ends up here.
"""

import logging
from typing import Any

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.schemas import FeedResult, Item, Profile, Source, SourceType
from feed_ingest.feeds.utils import (
    entry_author,
    entry_content,
    entry_description,
    entry_summary,
    extract_image,
    feed_image,
    generate_item_id,
)

logger = logging.getLogger(__name__)


def _https(url: str | None) -> str | None:
    return url if url and url.startswith("https://") else None


def get_media(entry: Any) -> str | None:
    """
    Representative image of an entry.

    Checked in order: image media:content, media:thumbnail, image enclosures,
    then the first <img> of the summary and of the content. Only https URLs
    are used.
    """
    for media in entry.get("media_content") or []:
        if media.get("medium") == "image" and _https(media.get("url")):
            return media["url"]

    for thumbnail in entry.get("media_thumbnail") or []:
        if _https(thumbnail.get("url")):
            return thumbnail["url"]

    for enclosure in entry.get("enclosures") or []:
        url = enclosure.get("href") or enclosure.get("url")
        if (enclosure.get("type") or "").startswith("image/") and _https(url):
            return url

    return extract_image(entry_summary(entry)) or extract_image(entry_content(entry))


class RSSAdapter(BaseFeedAdapter):
    """Adapter for plain RSS and Atom feeds (`options.rss`)."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.RSS

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        url = self._require_option(source)
        feed = await self._fetch_feed(url)

        self._refresh_source(source, feed, url)

        if not source.icon:
            # Favicons look better in the UI than most feed images
            if source.link:
                favicon = await self._favicon(source.link)
                if favicon and favicon.url.startswith("https://"):
                    source.icon = favicon.url

            if not source.icon:
                source.icon = _https(feed.feed.get("icon")) or _https(feed_image(feed))

            await self._cache_icon(source)

        items = [
            Item(
                id=generate_item_id(source.id, entry.identifier),
                user_id=source.user_id,
                column_id=source.column_id,
                source_id=source.id,
                title=entry.title,
                link=entry.link,
                media=get_media(entry.raw),
                description=entry_description(entry.raw, strip_tags=True),
                author=entry_author(entry.raw),
                published_at=entry.published_at,
            )
            for entry in self._admission(source, stats).admit(feed.entries)
        ]
        return FeedResult(source, items)
