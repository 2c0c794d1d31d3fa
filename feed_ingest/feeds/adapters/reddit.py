"""Reddit adapter for subreddit and user feeds."""

import logging
from typing import Any

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.schemas import FeedResult, Item, Profile, Source, SourceType
from feed_ingest.feeds.utils import (
    entry_author,
    entry_content,
    generate_item_id,
    hostname,
    unescape_html,
)

logger = logging.getLogger(__name__)

REDDIT_BASE_URL = "https://www.reddit.com"


def is_reddit_url(url: str) -> bool:
    """
    Raises:
        ValueError: If the URL has no host.
    """
    return hostname(url).endswith("reddit.com")


def canonical_feed_url(value: str) -> str:
    """
    Feed URL for `/r/<name>`, `/u/<name>` or a reddit.com page.

    Raises:
        InvalidOptionsError: For anything else.
    """
    if value.startswith("/r/") or value.startswith("/u/"):
        return f"{REDDIT_BASE_URL}{value}.rss"

    try:
        reddit = is_reddit_url(value)
    except ValueError as e:
        raise InvalidOptionsError() from e
    if not reddit:
        raise InvalidOptionsError()

    return value if value.endswith(".rss") else f"{value}.rss"


def _thumbnail(entry: Any) -> str | None:
    for thumbnail in entry.get("media_thumbnail") or []:
        if thumbnail.get("url"):
            return thumbnail["url"]
    return None


class RedditAdapter(BaseFeedAdapter):
    """
    Adapter for Reddit RSS feeds (`options.reddit`).

    Reddit enforces strict quotas on anonymous feed access; the scheduler
    refreshes free-tier Reddit sources at most once a day.
    """

    @property
    def source_type(self) -> SourceType:
        return SourceType.REDDIT

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        url = canonical_feed_url(self._require_option(source))
        self._set_option(source, url)

        feed = await self._fetch_feed(url)
        self._refresh_source(source, feed, url)

        items = [
            Item(
                id=generate_item_id(source.id, entry.identifier),
                user_id=source.user_id,
                column_id=source.column_id,
                source_id=source.id,
                title=entry.title,
                link=entry.link,
                media=_thumbnail(entry.raw),
                description=unescape_html(entry_content(entry.raw)),
                author=entry_author(entry.raw),
                published_at=entry.published_at,
            )
            for entry in self._admission(source, stats).admit(feed.entries)
        ]
        return FeedResult(source, items)
