"""Medium adapter for publications, users and tags."""

import logging

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.favicon import Favicon
from feed_ingest.feeds.schemas import FeedResult, Item, Profile, Source, SourceType
from feed_ingest.feeds.utils import (
    entry_author,
    entry_content,
    entry_description,
    entry_summary,
    extract_image,
    generate_item_id,
    hostname,
)

logger = logging.getLogger(__name__)

MEDIUM_FEED_URL = "https://medium.com/feed/"


def is_medium_url(url: str) -> bool:
    """
    Raises:
        ValueError: If the URL has no host.
    """
    return hostname(url).endswith("medium.com")


def canonical_feed_url(value: str) -> str:
    """
    Feed URL for `#tag`, `@user`, a medium.com page or a custom medium subdomain.

    Raises:
        InvalidOptionsError: For anything else.
    """
    if len(value) > 1 and value[0] == "#":
        return f"{MEDIUM_FEED_URL}tag/{value[1:]}"
    if len(value) > 1 and value[0] == "@":
        return f"{MEDIUM_FEED_URL}{value}"

    try:
        labels = hostname(value).split(".")
    except ValueError as e:
        raise InvalidOptionsError() from e

    if labels == ["medium", "com"]:
        path = value.split("medium.com/", 1)[-1] if "medium.com/" in value else ""
        return MEDIUM_FEED_URL + path.replace("feed/", "", 1)
    if len(labels) == 3 and labels[1:] == ["medium", "com"]:
        return f"https://{labels[0]}.medium.com/feed"

    raise InvalidOptionsError()


def _cdn_images(favicons: list[Favicon]) -> list[Favicon]:
    return [f for f in favicons if f.url.startswith("https://cdn-images")]


class MediumAdapter(BaseFeedAdapter):
    """Adapter for Medium feeds (`options.medium`)."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.MEDIUM

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        url = canonical_feed_url(self._require_option(source))
        self._set_option(source, url)

        feed = await self._fetch_feed(url)

        is_new = not source.id
        self._refresh_source(source, feed, url)

        if is_new and source.link:
            favicon = await self._favicon(source.link, _cdn_images)
            if favicon and favicon.url.startswith("https://"):
                source.icon = favicon.url
                await self._cache_icon(source)

        items = [
            Item(
                id=generate_item_id(source.id, entry.identifier),
                user_id=source.user_id,
                column_id=source.column_id,
                source_id=source.id,
                title=entry.title,
                link=entry.link,
                media=extract_image(entry_content(entry.raw))
                or extract_image(entry_summary(entry.raw)),
                description=entry_description(entry.raw),
                author=entry_author(entry.raw),
                published_at=entry.published_at,
            )
            for entry in self._admission(source, stats).admit(feed.entries)
        ]
        return FeedResult(source, items)
