"""
Adapter registry: routes a job's source to its provider adapter.

Every provider is registered once with its adapter class. Generic `rss`
sources get a second look first: feeds hosted on Medium, Reddit, Tumblr or
YouTube are handed to the specialized adapter, which knows how to find the
right feed URL, icon and media for them. If that attempt fails for any
reason the source is parsed as a plain RSS feed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from feed_ingest.feeds.adapters.github import GithubAdapter
from feed_ingest.feeds.adapters.googlenews import GoogleNewsAdapter
from feed_ingest.feeds.adapters.mastodon import MastodonAdapter
from feed_ingest.feeds.adapters.medium import MediumAdapter, is_medium_url
from feed_ingest.feeds.adapters.nitter import NitterAdapter
from feed_ingest.feeds.adapters.podcast import PodcastAdapter
from feed_ingest.feeds.adapters.reddit import RedditAdapter, is_reddit_url
from feed_ingest.feeds.adapters.rss import RSSAdapter
from feed_ingest.feeds.adapters.stackoverflow import StackOverflowAdapter
from feed_ingest.feeds.adapters.tumblr import TumblrAdapter, is_tumblr_url
from feed_ingest.feeds.adapters.youtube import YoutubeAdapter, is_youtube_url
from feed_ingest.feeds.base_adapter import AdapterContext, BaseFeedAdapter
from feed_ingest.feeds.errors import InvalidSourceTypeError
from feed_ingest.feeds.schemas import (
    FeedResult,
    Profile,
    Source,
    SourceType,
    source_with_options,
)

logger = logging.getLogger(__name__)

UrlPredicate = Callable[[str], bool]


@dataclass(frozen=True)
class AdapterSpec:
    """
    Registration of one provider.

    Attributes:
        adapter_cls: Adapter implementing the provider
        matches_url: Host predicate used to reclassify generic RSS sources,
            None for providers that are never reclassified into
    """

    adapter_cls: type[BaseFeedAdapter]
    matches_url: UrlPredicate | None = None


ADAPTERS: dict[SourceType, AdapterSpec] = {
    SourceType.GITHUB: AdapterSpec(GithubAdapter),
    SourceType.GOOGLENEWS: AdapterSpec(GoogleNewsAdapter),
    SourceType.MASTODON: AdapterSpec(MastodonAdapter),
    SourceType.MEDIUM: AdapterSpec(MediumAdapter, is_medium_url),
    SourceType.NITTER: AdapterSpec(NitterAdapter),
    SourceType.PODCAST: AdapterSpec(PodcastAdapter),
    SourceType.REDDIT: AdapterSpec(RedditAdapter, is_reddit_url),
    SourceType.RSS: AdapterSpec(RSSAdapter),
    SourceType.STACKOVERFLOW: AdapterSpec(StackOverflowAdapter),
    SourceType.TUMBLR: AdapterSpec(TumblrAdapter, is_tumblr_url),
    SourceType.YOUTUBE: AdapterSpec(YoutubeAdapter, is_youtube_url),
}

# Order in which generic RSS sources are tested against provider hosts
RECLASSIFY_ORDER = (
    SourceType.MEDIUM,
    SourceType.REDDIT,
    SourceType.TUMBLR,
    SourceType.YOUTUBE,
)


class AdapterRegistry:
    """
    Dispatch table from provider tag to adapter instance.

    Usage:
        registry = AdapterRegistry(context)
        source, items = await registry.get_feed(job.source, job.profile)
    """

    def __init__(
        self,
        context: AdapterContext,
        specs: dict[SourceType, AdapterSpec] | None = None,
    ):
        self._specs = specs or ADAPTERS
        self._adapters: dict[SourceType, BaseFeedAdapter] = {
            source_type: spec.adapter_cls(context)
            for source_type, spec in self._specs.items()
        }

    def get_adapter(self, source_type: SourceType) -> BaseFeedAdapter:
        return self._adapters[source_type]

    @staticmethod
    def resolve_type(value: str) -> SourceType:
        """
        Raises:
            InvalidSourceTypeError: If the tag names no known provider
        """
        try:
            return SourceType(value)
        except ValueError as e:
            raise InvalidSourceTypeError(value) from e

    async def get_feed(self, source: Source, profile: Profile) -> FeedResult:
        """
        Fetch a source with the adapter registered for its type.

        Raises:
            InvalidSourceTypeError: Unknown source type
            FeedError: Any adapter failure (options, fetch, parse)
        """
        source_type = self.resolve_type(source.type)
        if source_type not in self._adapters:
            raise InvalidSourceTypeError(source.type)

        if source_type == SourceType.RSS:
            result = await self._reclassify(source, profile)
            if result is not None:
                return result

        return await self._adapters[source_type].get_feed(source, profile)

    async def _reclassify(self, source: Source, profile: Profile) -> FeedResult | None:
        """Try the provider adapter matching the host of a generic RSS source."""
        url = source.options.rss if source.options else None
        if not url:
            return None

        for source_type in RECLASSIFY_ORDER:
            spec = self._specs.get(source_type)
            if spec is None or spec.matches_url is None:
                continue
            try:
                if not spec.matches_url(url):
                    continue
                candidate = source_with_options(source, **{source_type.value: url})
                return await self._adapters[source_type].get_feed(candidate, profile)
            except Exception as e:
                logger.debug(
                    f"Reclassifying {url} as {source_type.value} failed, "
                    f"falling back to rss: {e}"
                )
                return None
        return None
