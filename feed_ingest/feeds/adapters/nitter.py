"""
Nitter adapter (deprecated).

Nitter sources are no longer scheduled. The adapter stays so existing
sources can still be refreshed on demand against a configured instance.
"""

import base64
import logging
from dataclasses import dataclass
from urllib.parse import parse_qs, quote, urlparse

from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.schemas import FeedResult, Item, Profile, Source, SourceType
from feed_ingest.feeds.utils import (
    entry_author,
    entry_summary,
    extract_images,
    feed_image,
    generate_item_id,
    unescape_html,
)

logger = logging.getLogger(__name__)


@dataclass
class NitterTarget:
    """Where and how to fetch a nitter option value."""

    feed_url: str
    title: str
    is_username: bool
    is_custom_instance: bool


def parse_option(value: str, instance: str | None) -> NitterTarget:
    """
    Resolve `@user`, a search term or a full feed URL.

    Raises:
        InvalidOptionsError: For a username or search term when no instance
            is configured
    """
    if value.startswith("http://") or value.startswith("https://"):
        if value.endswith("/rss"):
            user = value[: -len("/rss")].rsplit("/", 1)[-1]
            return NitterTarget(value, f"@{user}", True, True)
        query = parse_qs(urlparse(value).query).get("q")
        return NitterTarget(value, query[0] if query else value, False, True)

    if not instance:
        raise InvalidOptionsError("Nitter instance is not configured")
    instance = instance.rstrip("/")

    if value.startswith("@"):
        return NitterTarget(f"{instance}/{value[1:]}/rss", value, True, False)

    return NitterTarget(
        f"{instance}/search/rss?f=tweets&q={quote(value, safe='')}",
        value,
        False,
        False,
    )


def basic_auth_header(credentials: str) -> dict[str, str]:
    """
    Authorization header for the configured instance.

    `credentials` is either `user:password` or an already encoded token.
    """
    if ":" in credentials:
        credentials = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {credentials}"}


class NitterAdapter(BaseFeedAdapter):
    """Adapter for legacy nitter sources (`options.nitter`)."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.NITTER

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        value = self._require_option(source)
        target = parse_option(value, self.settings.nitter_instance)

        headers = None
        if not target.is_custom_instance and self.settings.nitter_basic_auth:
            headers = basic_auth_header(self.settings.nitter_basic_auth)

        feed = await self._fetch_feed(target.feed_url, headers=headers)

        # The id keys on the option value so the instance can change later
        self._refresh_source(source, feed, value)
        source.title = target.title

        if not source.icon and target.is_username:
            image = feed_image(feed)
            if image:
                source.icon = image
                await self._cache_icon(source)

        items = []
        for entry in self._admission(source, stats).admit(feed.entries):
            description = entry_summary(entry.raw)
            media = extract_images(description)
            items.append(
                Item(
                    id=generate_item_id(source.id, entry.identifier),
                    user_id=source.user_id,
                    column_id=source.column_id,
                    source_id=source.id,
                    title=entry.title,
                    link=entry.link,
                    options={"media": media} if media else None,
                    description=unescape_html(description),
                    author=entry_author(entry.raw),
                    published_at=entry.published_at,
                )
            )
        return FeedResult(source, items)
