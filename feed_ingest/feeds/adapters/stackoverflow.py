"""StackOverflow adapter for tag feeds and arbitrary StackExchange feed URLs."""

import logging
from urllib.parse import urlencode

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.schemas import (
    FeedResult,
    Item,
    Profile,
    Source,
    SourceType,
    StackOverflowOptions,
)
from feed_ingest.feeds.utils import entry_summary, generate_item_id, unescape_html

logger = logging.getLogger(__name__)

TAG_FEED_URL = "https://stackoverflow.com/feeds/tag"
DEFAULT_SORT = "newest"


def canonical_feed_url(options: StackOverflowOptions) -> str:
    """
    Raises:
        InvalidOptionsError: If a tag feed has no tag or a url feed no url
    """
    if options.type == "tag":
        if not options.tag:
            raise InvalidOptionsError()
        query = urlencode({"tagnames": options.tag, "sort": options.sort or DEFAULT_SORT})
        return f"{TAG_FEED_URL}?{query}"

    if options.type == "url" and options.url:
        return options.url

    raise InvalidOptionsError()


class StackOverflowAdapter(BaseFeedAdapter):
    """Adapter for StackOverflow feeds (`options.stackoverflow`)."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.STACKOVERFLOW

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        options: StackOverflowOptions = self._require_option(source)
        url = canonical_feed_url(options)
        options.url = url

        feed = await self._fetch_feed(url)
        self._refresh_source(source, feed, url)
        source.icon = None

        items = [
            Item(
                id=generate_item_id(source.id, entry.identifier),
                user_id=source.user_id,
                column_id=source.column_id,
                source_id=source.id,
                title=entry.title,
                link=entry.link,
                description=unescape_html(entry_summary(entry.raw)),
                published_at=entry.published_at,
            )
            for entry in self._admission(source, stats).admit(feed.entries)
        ]
        return FeedResult(source, items)
