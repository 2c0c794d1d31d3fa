"""Feed normalization - wire models, provider adapters and entry admission."""

from feed_ingest.feeds.errors import (
    FeedError,
    FetchFailedError,
    InvalidFeedError,
    InvalidOptionsError,
    InvalidSourceTypeError,
)
from feed_ingest.feeds.schemas import (
    FeedResult,
    Item,
    Job,
    Profile,
    Source,
    SourceOptions,
    SourceType,
    Tier,
)

__all__ = [
    "FeedError",
    "FetchFailedError",
    "InvalidFeedError",
    "InvalidOptionsError",
    "InvalidSourceTypeError",
    "FeedResult",
    "Item",
    "Job",
    "Profile",
    "Source",
    "SourceOptions",
    "SourceType",
    "Tier",
]
