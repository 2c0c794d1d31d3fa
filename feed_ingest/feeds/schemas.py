"""
Wire models shared by the scheduler, the job queue, the adapters and the store.

CRITICAL: Field aliases are the camelCase names used in queue payloads and in
the store's columns (userId, columnId, updatedAt, ...). Python code uses the
snake_case attribute names. Serialize with `by_alias=True` when a payload
leaves the process.
"""

from enum import Enum
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SourceType(str, Enum):
    """Provider tags a source can be declared with."""

    GITHUB = "github"
    GOOGLENEWS = "googlenews"
    MASTODON = "mastodon"
    MEDIUM = "medium"
    NITTER = "nitter"
    PODCAST = "podcast"
    REDDIT = "reddit"
    RSS = "rss"
    STACKOVERFLOW = "stackoverflow"
    TUMBLR = "tumblr"
    YOUTUBE = "youtube"


class Tier(str, Enum):
    """Subscription tier of a profile."""

    FREE = "free"
    PREMIUM = "premium"


class WireModel(BaseModel):
    """Base model using camelCase aliases on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump using wire names, dropping unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class GithubAccount(WireModel):
    """Linked GitHub account. The token is stored encrypted."""

    token: str | None = None


class Profile(WireModel):
    """A user account. Read-only to the ingestion pipeline."""

    id: str
    tier: Tier = Tier.FREE
    created_at: int = 0
    updated_at: int = 0
    account_github: GithubAccount | None = None


class GithubOptions(WireModel):
    type: Literal[
        "notifications",
        "repositorynotifications",
        "searchissuesandpullrequests",
        "useractivities",
        "repositoryactivities",
        "organizationactivitiespublic",
        "organizationactivitiesprivate",
    ]
    participating: bool | None = None
    repository: str | None = None
    user: str | None = None
    organization: str | None = None
    query_name: str | None = None
    query: str | None = None


class GoogleNewsOptions(WireModel):
    type: Literal["url", "search"]
    url: str | None = None
    search: str | None = None
    ceid: str | None = None
    gl: str | None = None
    hl: str | None = None


class StackOverflowOptions(WireModel):
    type: Literal["url", "tag"]
    url: str | None = None
    tag: str | None = None
    sort: Literal["newest", "active", "featured", "votes"] | None = None


class SourceOptions(WireModel):
    """Provider configuration. Exactly one field is expected to be set."""

    rss: str | None = None
    podcast: str | None = None
    youtube: str | None = None
    reddit: str | None = None
    medium: str | None = None
    tumblr: str | None = None
    mastodon: str | None = None
    nitter: str | None = None
    github: GithubOptions | None = None
    googlenews: GoogleNewsOptions | None = None
    stackoverflow: StackOverflowOptions | None = None


class Source(WireModel):
    """
    One followed feed belonging to a user's column.

    `id` is empty until the first successful fetch. After that it is
    derived from the provider, user, column and canonical feed identifier,
    so re-adding the same feed never produces a second source.
    """

    id: str = ""
    user_id: str
    column_id: str
    type: str
    title: str = ""
    options: SourceOptions | None = None
    link: str | None = None
    icon: str | None = None
    updated_at: int = 0


class Item(WireModel):
    """One normalized entry of a source."""

    id: str
    user_id: str
    column_id: str
    source_id: str
    title: str
    link: str
    media: str | None = None
    description: str | None = None
    author: str | None = None
    options: dict[str, Any] | None = None
    published_at: int


class Job(WireModel):
    """Queue payload: a source to refresh on behalf of its owner."""

    source: Source
    profile: Profile


class FeedResult(NamedTuple):
    """Output of an adapter: the refreshed source and its new items."""

    source: Source
    items: list[Item]


def new_source(
    user_id: str,
    column_id: str,
    source_type: SourceType | str,
    **options: Any,
) -> Source:
    """Build a not-yet-fetched source with a single option field."""
    type_value = source_type.value if isinstance(source_type, SourceType) else source_type
    return Source(
        id="",
        user_id=user_id,
        column_id=column_id,
        type=type_value,
        options=SourceOptions(**options),
        updated_at=0,
    )


def source_with_options(source: Source, **options: Any) -> Source:
    """Copy of `source` whose options are replaced by the given fields."""
    return source.model_copy(
        update={"options": SourceOptions(**options)},
        deep=True,
    )

