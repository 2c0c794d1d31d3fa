"""
YouTube channel adapter.

Channel pages are translated into the channel's public videos feed. Handles
and custom URLs carry no channel id, so the page is scraped for the feed
link it advertises.
"""

import logging
import re
from typing import Any

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.errors import FetchFailedError, InvalidOptionsError
from feed_ingest.feeds.schemas import FeedResult, Item, Profile, Source, SourceType
from feed_ingest.feeds.utils import generate_item_id, unescape_html

logger = logging.getLogger(__name__)

FEED_URL_PREFIX = "https://www.youtube.com/feeds/videos.xml?channel_id="
CHANNELS_API_URL = "https://www.googleapis.com/youtube/v3/channels"

_CHANNEL_PREFIXES = (
    "https://www.youtube.com/channel/",
    "https://m.youtube.com/channel/",
)
_FEED_LINK_PATTERN = re.compile(
    r'"https://www\.youtube\.com/feeds/videos\.xml\?channel_id=(.*?)"'
)


def is_youtube_url(url: str) -> bool:
    return url.startswith("https://www.youtube.com/") or url.startswith(
        "https://m.youtube.com/"
    )


def _media_description(entry: Any) -> str | None:
    # feedparser exposes media:group/media:description as the entry summary
    value = entry.get("media_description") or entry.get("summary")
    return unescape_html(value) if value else None


def _media_thumbnail(entry: Any) -> str | None:
    for thumbnail in entry.get("media_thumbnail") or []:
        if thumbnail.get("url"):
            return thumbnail["url"]
    return None


class YoutubeAdapter(BaseFeedAdapter):
    """Adapter for YouTube channels (`options.youtube`)."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.YOUTUBE

    async def _canonical_url(self, url: str) -> str:
        for prefix in _CHANNEL_PREFIXES:
            if url.startswith(prefix):
                channel_id = url.split("?")[0][len(prefix):].strip("/")
                return FEED_URL_PREFIX + channel_id

        if url.startswith(FEED_URL_PREFIX):
            return url

        if is_youtube_url(url):
            channel_id = await self._scrape_channel_id(url)
            if channel_id:
                return FEED_URL_PREFIX + channel_id

        raise InvalidOptionsError()

    async def _scrape_channel_id(self, url: str) -> str | None:
        try:
            markup = await self.http.get_text(url, timeout=self.settings.feed_timeout_seconds)
        except FetchFailedError as e:
            logger.debug(f"Could not load YouTube page {url}: {e}")
            return None
        match = _FEED_LINK_PATTERN.search(markup)
        return match.group(1) if match else None

    async def _channel_icon(self, channel_id: str) -> str | None:
        """Default thumbnail of the channel from the Data API, if a key is configured."""
        if not self.settings.youtube_api_key:
            return None
        try:
            data = await self.http.get_json(
                CHANNELS_API_URL,
                params={
                    "id": channel_id,
                    "part": "id,snippet",
                    "maxResults": "1",
                    "key": self.settings.youtube_api_key,
                },
                timeout=self.settings.feed_timeout_seconds,
            )
            items = data.get("items") or []
            if len(items) == 1:
                return items[0]["snippet"]["thumbnails"]["default"]["url"]
        except (FetchFailedError, KeyError, TypeError, AttributeError) as e:
            logger.debug(f"Could not load YouTube channel icon for {channel_id}: {e}")
        return None

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        url = await self._canonical_url(self._require_option(source))
        self._set_option(source, url)

        feed = await self._fetch_feed(url)

        is_new = not source.id
        self._refresh_source(source, feed, url)

        if is_new and not source.icon:
            source.icon = await self._channel_icon(url[len(FEED_URL_PREFIX):])
            await self._cache_icon(source)

        author_detail = feed.feed.get("author_detail") or {}
        author = author_detail.get("name") or feed.feed.get("author")

        items = [
            Item(
                id=generate_item_id(source.id, entry.identifier),
                user_id=source.user_id,
                column_id=source.column_id,
                source_id=source.id,
                title=entry.title,
                link=entry.link,
                media=_media_thumbnail(entry.raw),
                description=_media_description(entry.raw),
                author=author,
                published_at=entry.published_at,
            )
            for entry in self._admission(source, stats).admit(feed.entries)
        ]
        return FeedResult(source, items)
