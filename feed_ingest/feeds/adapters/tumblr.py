"""Tumblr blog adapter."""

import logging
from urllib.parse import urlparse

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.schemas import FeedResult, Item, Profile, Source, SourceType
from feed_ingest.feeds.utils import (
    entry_summary,
    extract_image,
    generate_item_id,
    hostname,
    unescape_html,
)

logger = logging.getLogger(__name__)


def is_tumblr_url(url: str) -> bool:
    """
    Raises:
        ValueError: If the URL has no host.
    """
    return hostname(url).endswith("tumblr.com")


def canonical_feed_url(value: str) -> str:
    """
    RSS URL of a blog given as `https://<blog>.tumblr.com` or
    `https://www.tumblr.com/<blog>`.

    Raises:
        InvalidOptionsError: If the host does not have exactly three labels
    """
    try:
        host = hostname(value)
    except ValueError as e:
        raise InvalidOptionsError() from e

    labels = host.split(".")
    if len(labels) != 3:
        raise InvalidOptionsError()

    if labels[0] == "www":
        blog = urlparse(value).path.strip("/").split("/")[0]
        if not blog:
            raise InvalidOptionsError()
        return f"https://{blog}.tumblr.com/rss"

    return f"https://{host}/rss"


class TumblrAdapter(BaseFeedAdapter):
    """Adapter for Tumblr blogs (`options.tumblr`). Tumblr sources carry no icon."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.TUMBLR

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
        source.icon = None

        items = []
        for entry in self._admission(source, stats).admit(feed.entries):
            description = unescape_html(entry_summary(entry.raw))
            items.append(
                Item(
                    id=generate_item_id(source.id, entry.identifier),
                    user_id=source.user_id,
                    column_id=source.column_id,
                    source_id=source.id,
                    title=entry.title,
                    link=entry.link,
                    media=extract_image(description),
                    description=description,
                    published_at=entry.published_at,
                )
            )
        return FeedResult(source, items)
