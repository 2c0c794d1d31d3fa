"""
GitHub adapter.

Reads the REST API with the profile's linked GitHub token. Supported
source types:

- notifications / repositorynotifications: the user's notification inbox,
  optionally limited to threads the user participates in
- useractivities / repositoryactivities / organizationactivitiespublic /
  organizationactivitiesprivate: event streams, one item per event
- searchissuesandpullrequests: results of an issue search query

Event payloads differ per event type; `format_event` turns each supported
type into a title, link and short description.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from feed_ingest.feeds.admission import MAX_ENTRIES, AdmissionStats, is_stale
from feed_ingest.feeds.base_adapter import AdapterStats, BaseFeedAdapter
from feed_ingest.feeds.crypto import TokenCipher
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.schemas import (
    FeedResult,
    GithubOptions,
    Item,
    Profile,
    Source,
    SourceType,
)
from feed_ingest.feeds.utils import md5_hex

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
API_REPOS_URL = f"{API_URL}/repos/"
API_VERSION = "2022-11-28"
REQUEST_TIMEOUT_SECONDS = 5.0
NOTIFICATIONS_LINK = "https://github.com/notifications"

NOTIFICATIONS_PER_PAGE = "50"
EVENTS_PER_PAGE = "100"

NOTIFICATION_REASONS = {
    "assign": "You were assigned to the issue.",
    "author": "You created the thread.",
    "comment": "You commented on the thread.",
    "ci_activity": "A GitHub Actions workflow run that you triggered was completed.",
    "invitation": "You accepted an invitation to contribute to the repository.",
    "manual": "You subscribed to the thread (via an issue or pull request).",
    "mention": "You were specifically @mentioned in the content.",
    "review_requested": (
        "You, or a team you're a member of, were requested to review a pull request."
    ),
    "security_alert": "GitHub discovered a security vulnerability in your repository.",
    "state_change": (
        "You changed the thread state (for example, closing an issue or merging a pull request)."
    ),
    "subscribed": "You're watching the repository.",
    "team_mention": "You were on a team that was mentioned.",
}

_REF_CREATED = {
    "repository": "Created a new repository",
    "branch": "Created a new branch",
    "tag": "Created a new tag",
}
_REF_DELETED = {
    "repository": "Deleted a repository",
    "branch": "Deleted a branch",
    "tag": "Deleted a tag",
}
_ISSUE_ACTIONS = {
    "assigned": "Assigned",
    "unassigned": "Unassigned",
    "review_requested": "Requested a review",
    "review_request_removed": "Removed a requested review",
    "labeled": "Added a label",
    "unlabeled": "Removed a label",
}
# Issue actions whose wording depends on whether the issue is a pull request
_ISSUE_SUBJECT_ACTIONS = {
    "opened": "Opened",
    "closed": "Closed",
    "reopened": "Reopened",
    "synchronize": "Synchronized",
    "edited": "Edited",
}
_PULL_REQUEST_ACTIONS = {
    **_ISSUE_ACTIONS,
    "opened": "Opened",
    "reopened": "Reopened",
    "synchronize": "Synchronized",
    "edited": "Edited",
}
_REVIEW_COMMENT_ACTIONS = {
    "created": "Added a review comment",
    "edited": "Updated a review comment",
    "deleted": "Deleted a review comment",
}
_RELEASE_ACTIONS = {
    "created": "Release was created",
    "deleted": "Release was deleted",
    "edited": "Release was updated",
    "prereleased": "Prerelease was created",
    "published": "Release was published",
    "released": "Release was released",
    "unpublished": "Release was unpublished",
}


@dataclass
class EventDetails:
    title: str
    link: str
    description: str


def parse_timestamp(value: str | None) -> int:
    """Epoch seconds of an ISO 8601 timestamp as returned by the API."""
    if not value:
        return 0
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())


def link_from_api_url(url: str | None) -> str:
    """Browser link for an API subject URL, or the notifications page."""
    if not url:
        return NOTIFICATIONS_LINK

    if url.startswith(API_REPOS_URL):
        head, sep, number = url.rpartition("/pulls/")
        if sep and number.isdigit():
            url = f"{head}/pull/{number}"

    return f"https://github.com/{url.replace(API_REPOS_URL, '')}"


def format_notification_reason(reason: str | None) -> str | None:
    return NOTIFICATION_REASONS.get(reason) if reason else None


def format_event(event: dict[str, Any]) -> EventDetails | None:
    """
    Title, link and description of an event.

    Returns None for unsupported event types and for events missing the
    payload fields their type needs.
    """
    event_type = event.get("type")
    payload = event.get("payload") or {}
    repo = event.get("repo") or {}
    actor = event.get("actor") or {}

    if event_type == "CommitCommentEvent":
        comment = payload.get("comment") or {}
        if comment.get("html_url"):
            return EventDetails("", comment["html_url"], "Added a comment to a commit")

    elif event_type in ("CreateEvent", "DeleteEvent"):
        ref_type = payload.get("ref_type")
        if ref_type:
            if event_type == "CreateEvent":
                description = _REF_CREATED.get(ref_type, "Created something")
            else:
                description = _REF_DELETED.get(ref_type, "Deleted something")
            return EventDetails("", repo.get("html_url") or "", description)

    elif event_type == "ForkEvent":
        forkee = payload.get("forkee")
        if forkee:
            return EventDetails(
                forkee.get("name") or "",
                forkee.get("html_url") or "",
                "Forked a repository",
            )

    elif event_type == "GollumEvent":
        pages = payload.get("pages") or []
        if pages:
            page = pages[0]
            if page.get("action") == "created":
                description = "Created a new wiki page"
            else:
                description = "Updated a wiki page"
            return EventDetails(page.get("title") or "", page.get("html_url") or "", description)

    elif event_type == "IssueCommentEvent":
        issue = payload.get("issue")
        comment = payload.get("comment")
        if issue and comment:
            return EventDetails(
                issue.get("title") or "",
                comment.get("html_url") or "",
                "Added a comment",
            )

    elif event_type == "IssuesEvent":
        action = payload.get("action")
        issue = payload.get("issue")
        if action and issue:
            if action in _ISSUE_SUBJECT_ACTIONS:
                subject = "pull request" if issue.get("pull_request") else "issue"
                article = "a" if subject == "pull request" else "an"
                description = f"{_ISSUE_SUBJECT_ACTIONS[action]} {article} {subject}"
            else:
                description = _ISSUE_ACTIONS.get(action, "")
            return EventDetails(issue.get("title") or "", issue.get("html_url") or "", description)

    elif event_type == "MemberEvent":
        action = payload.get("action")
        member = payload.get("member")
        if action and member:
            description = "Was added as member" if action == "added" else ""
            return EventDetails(
                member.get("login") or "",
                member.get("html_url") or "",
                description,
            )

    elif event_type == "PullRequestEvent":
        action = payload.get("action")
        pull_request = payload.get("pull_request")
        if action and pull_request:
            if action == "closed":
                description = "Merged" if pull_request.get("merged") is True else "Closed"
            else:
                description = _PULL_REQUEST_ACTIONS.get(action, "")
            return EventDetails(
                pull_request.get("title") or "",
                pull_request.get("html_url") or "",
                description,
            )

    elif event_type == "PullRequestReviewEvent":
        pull_request = payload.get("pull_request")
        review = payload.get("review")
        if pull_request and review:
            return EventDetails(
                pull_request.get("title") or "",
                review.get("html_url") or "",
                "Added a review",
            )

    elif event_type == "PullRequestReviewCommentEvent":
        action = payload.get("action")
        pull_request = payload.get("pull_request")
        comment = payload.get("comment")
        if action and pull_request and comment:
            return EventDetails(
                pull_request.get("title") or "",
                comment.get("html_url") or "",
                _REVIEW_COMMENT_ACTIONS.get(action, ""),
            )

    elif event_type == "PushEvent":
        repository = payload.get("repository")
        if repository:
            commits = payload.get("commits")
            if commits is None:
                description = ""
            elif len(commits) == 1:
                description = "Pushed 1 commit"
            else:
                description = f"Pushed {len(commits)} commits"
            return EventDetails("", repository.get("html_url") or "", description)

    elif event_type == "ReleaseEvent":
        action = payload.get("action")
        release = payload.get("release")
        if action and release:
            return EventDetails(
                release.get("name") or "",
                release.get("html_url") or "",
                _RELEASE_ACTIONS.get(action, ""),
            )

    elif event_type == "WatchEvent":
        if actor:
            login = actor.get("login")
            repository = (payload.get("repository") or {}).get("name") or "the repository"
            return EventDetails("", f"https://github.com/{login}", f"{login} starred {repository}")

    return None


def _avatar(account: dict[str, Any] | None) -> str | None:
    account = account or {}
    if account.get("avatar_url"):
        return account["avatar_url"]
    if account.get("login"):
        return f"https://github.com/{account['login']}.png"
    return None


class GithubAdapter(BaseFeedAdapter):
    """Adapter for GitHub sources (`options.github`)."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.GITHUB

    def _token(self, profile: Profile) -> str:
        """
        Plain text GitHub token of the profile.

        Raises:
            InvalidOptionsError: If the profile has no usable linked account
            ConfigError: If token encryption is not configured
        """
        encrypted = profile.account_github.token if profile.account_github else None
        if not encrypted:
            raise InvalidOptionsError("GitHub token is missing")
        try:
            return TokenCipher.from_settings(self.settings).decrypt(encrypted)
        except ValueError as e:
            raise InvalidOptionsError("GitHub token could not be decrypted") from e

    async def _request(
        self,
        token: str,
        path: str,
        params: dict[str, str] | None = None,
    ) -> Any:
        return await self.http.get_json(
            f"{API_URL}{path}",
            params=params,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": API_VERSION,
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    def _base_id(self, source: Source, options: GithubOptions) -> str:
        return f"github-{source.user_id}-{source.column_id}-{options.type}"

    def _recent(
        self,
        source: Source,
        records: list[dict[str, Any]],
        timestamp_key: str,
        stats: AdmissionStats,
    ) -> list[dict[str, Any]]:
        """Leading records not already seen at the last refresh."""
        recent = []
        for record in records[:MAX_ENTRIES]:
            stats.considered += 1
            if is_stale(parse_timestamp(record.get(timestamp_key)), source.updated_at or 0):
                stats.stale += 1
                continue
            stats.admitted += 1
            recent.append(record)
        return recent

    async def _get_feed(
        self,
        source: Source,
        profile: Profile,
        stats: AdapterStats,
    ) -> FeedResult:
        options: GithubOptions = self._require_option(source)
        token = self._token(profile)

        if options.type in ("notifications", "repositorynotifications"):
            items = await self._notifications(source, options, token, stats.admission)
        elif options.type == "searchissuesandpullrequests":
            items = await self._search(source, options, token, stats.admission)
        else:
            items = await self._activities(source, options, token, stats.admission)

        source.type = self.source_type.value
        return FeedResult(source, items)

    async def _notifications(
        self,
        source: Source,
        options: GithubOptions,
        token: str,
        stats: AdmissionStats,
    ) -> list[Item]:
        params = {
            "all": "true",
            "participating": "true" if options.participating else "false",
            "page": "1",
            "per_page": NOTIFICATIONS_PER_PAGE,
        }
        # Existing ids embed the flag as given, an unset flag included
        if options.participating is None:
            participating = "undefined"
        else:
            participating = "true" if options.participating else "false"

        if options.type == "notifications":
            notifications = await self._request(token, "/notifications", params)
            user = await self._request(token, "/user")
            source.id = f"{self._base_id(source, options)}-{participating}"
            source.title = user.get("login") or ""
            source.icon = user.get("avatar_url")
        else:
            owner, repo = _split_repository(options.repository)
            notifications = await self._request(
                token, f"/repos/{owner}/{repo}/notifications", params
            )
            source.id = (
                f"{self._base_id(source, options)}--{participating}-{options.repository}"
            )
            source.title = f"{owner}/{repo}"
            first_owner = (
                ((notifications[0].get("repository") or {}).get("owner") or {})
                if notifications
                else {}
            )
            source.icon = first_owner.get("avatar_url") or f"https://github.com/{owner}.png"

        await self._cache_icon(source)
        source.link = NOTIFICATIONS_LINK

        items = []
        for notification in self._recent(source, notifications, "updated_at", stats):
            subject = notification.get("subject") or {}
            repository = notification.get("repository") or {}
            items.append(
                Item(
                    id=f"{source.id}-{notification['id']}",
                    user_id=source.user_id,
                    column_id=source.column_id,
                    source_id=source.id,
                    title=subject.get("title") or "Notification",
                    link=link_from_api_url(subject.get("url")),
                    media=(repository.get("owner") or {}).get("avatar_url"),
                    description=format_notification_reason(notification.get("reason")),
                    author=repository.get("full_name"),
                    published_at=parse_timestamp(notification.get("updated_at")),
                )
            )
        return items

    async def _activities(
        self,
        source: Source,
        options: GithubOptions,
        token: str,
        stats: AdmissionStats,
    ) -> list[Item]:
        params = {"page": "1", "per_page": EVENTS_PER_PAGE}
        base_id = self._base_id(source, options)

        if options.type == "useractivities" and options.user:
            events = await self._request(
                token, f"/users/{options.user}/received_events/public", params
            )
            account = await self._request(token, f"/users/{options.user}")
            source.id = f"{base_id}-{options.user}"
            source.title = options.user
            source.link = f"https://github.com/{options.user}"

        elif options.type == "repositoryactivities" and options.repository:
            owner, repo = _split_repository(options.repository)
            events = await self._request(token, f"/repos/{owner}/{repo}/events", params)
            account = await self._request(token, f"/users/{owner}")
            source.id = f"{base_id}-{owner}-{repo}"
            source.title = f"{owner}/{repo}"
            source.link = f"https://github.com/{owner}/{repo}"

        elif options.type == "organizationactivitiespublic" and options.organization:
            events = await self._request(token, f"/orgs/{options.organization}/events", params)
            account = await self._request(token, f"/users/{options.organization}")
            source.id = f"{base_id}-{options.organization}"
            source.title = options.organization
            source.link = f"https://github.com/{options.organization}"

        elif options.type == "organizationactivitiesprivate" and options.organization:
            user = await self._request(token, "/user")
            events = await self._request(
                token,
                f"/users/{user['login']}/events/orgs/{options.organization}",
                params,
            )
            account = await self._request(token, f"/users/{options.organization}")
            source.id = f"{base_id}-{options.organization}"
            source.title = options.organization
            source.link = f"https://github.com/{options.organization}"

        else:
            raise InvalidOptionsError()

        source.icon = account.get("avatar_url")
        await self._cache_icon(source)

        items = []
        for event in self._recent(source, events, "created_at", stats):
            details = format_event(event)
            if details is None:
                logger.debug(f"Skipping unsupported GitHub event {event.get('type')}")
                continue
            actor = event.get("actor") or {}
            items.append(
                Item(
                    id=f"{source.id}-{event['id']}",
                    user_id=source.user_id,
                    column_id=source.column_id,
                    source_id=source.id,
                    title=details.title,
                    link=details.link,
                    media=_avatar(actor),
                    description=details.description,
                    author=actor.get("login"),
                    published_at=parse_timestamp(event.get("created_at")),
                )
            )
        return items

    async def _search(
        self,
        source: Source,
        options: GithubOptions,
        token: str,
        stats: AdmissionStats,
    ) -> list[Item]:
        if not options.query:
            raise InvalidOptionsError()

        result = await self._request(
            token,
            "/search/issues",
            {
                "q": options.query,
                "sort": "created",
                "direction": "desc",
                "page": "1",
                "per_page": EVENTS_PER_PAGE,
            },
        )

        source.id = f"{self._base_id(source, options)}-{md5_hex(options.query)}"
        source.title = options.query_name or "Search"
        source.icon = None
        source.link = None

        items = []
        for issue in self._recent(source, result.get("items") or [], "created_at", stats):
            user = issue.get("user") or {}
            repository = (issue.get("repository_url") or "").replace(API_REPOS_URL, "")
            items.append(
                Item(
                    id=f"{source.id}-{issue['node_id']}",
                    user_id=source.user_id,
                    column_id=source.column_id,
                    source_id=source.id,
                    title=issue.get("title") or "",
                    link=issue.get("html_url") or "",
                    media=_avatar(user),
                    description=f"{repository} #{issue.get('number')}",
                    author=user.get("login"),
                    published_at=parse_timestamp(issue.get("created_at")),
                )
            )
        return items


def _split_repository(repository: str | None) -> tuple[str, str]:
    """
    Raises:
        InvalidOptionsError: If the value is not `owner/repo`
    """
    owner, _, repo = (repository or "").partition("/")
    if not owner or not repo:
        raise InvalidOptionsError()
    return owner, repo
