"""Provider adapters, one module per provider."""

from feed_ingest.feeds.adapters.github import GithubAdapter
from feed_ingest.feeds.adapters.googlenews import GoogleNewsAdapter
from feed_ingest.feeds.adapters.mastodon import MastodonAdapter
from feed_ingest.feeds.adapters.medium import MediumAdapter
from feed_ingest.feeds.adapters.nitter import NitterAdapter
from feed_ingest.feeds.adapters.podcast import PodcastAdapter
from feed_ingest.feeds.adapters.reddit import RedditAdapter
from feed_ingest.feeds.adapters.rss import RSSAdapter
from feed_ingest.feeds.adapters.stackoverflow import StackOverflowAdapter
from feed_ingest.feeds.adapters.tumblr import TumblrAdapter
from feed_ingest.feeds.adapters.youtube import YoutubeAdapter

__all__ = [
    "GithubAdapter",
    "GoogleNewsAdapter",
    "MastodonAdapter",
    "MediumAdapter",
    "NitterAdapter",
    "PodcastAdapter",
    "RedditAdapter",
    "RSSAdapter",
    "StackOverflowAdapter",
    "TumblrAdapter",
    "YoutubeAdapter",
]
