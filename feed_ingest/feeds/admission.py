"""
Entry admission shared by all adapters.

Decides which feed entries become items:

1. Only the first MAX_ENTRIES entries in feed order are looked at. The rest
   of the system keeps the newest 50 items per source, anything further
   down would be deleted again right away.
2. Entries without a title, a usable link or a publication time are skipped.
3. Entries published more than STALENESS_TOLERANCE_SECONDS before the
   source's last refresh were already seen and are skipped.
4. Entries whose title looks like spam are skipped.
5. Entries without an identifier (entry id or link) are skipped.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from feed_ingest.feeds.spam import SPAM_THRESHOLD, is_spam
from feed_ingest.feeds.utils import entry_link, entry_published, entry_title

logger = logging.getLogger(__name__)

MAX_ENTRIES = 50
# An entry published exactly at updatedAt - 10 is still admitted; one second
# earlier it is stale.
STALENESS_TOLERANCE_SECONDS = 10


def is_stale(published_at: int, updated_at: int) -> bool:
    """True if an entry predates the last refresh by more than the tolerance."""
    return published_at < updated_at - STALENESS_TOLERANCE_SECONDS


@dataclass
class AdmittedEntry:
    """A feed entry that passed admission, with its normalized key fields."""

    raw: Any
    title: str
    link: str
    published_at: int
    identifier: str


@dataclass
class AdmissionStats:
    considered: int = 0
    admitted: int = 0
    incomplete: int = 0
    stale: int = 0
    spam: int = 0

    @property
    def skipped(self) -> int:
        return self.incomplete + self.stale + self.spam


@dataclass
class EntryAdmission:
    """
    Filter feed entries for one source refresh.

    Attributes:
        updated_at: Epoch seconds of the source's last successful refresh
            (0 for a source fetched for the first time)
        require_title: Providers whose entries have no title (Mastodon
            statuses) turn this off
        spam_filter: Apply the title spam heuristic
        limit: Number of leading entries to consider
    """

    updated_at: int = 0
    require_title: bool = True
    spam_filter: bool = True
    spam_threshold: int = SPAM_THRESHOLD
    limit: int = MAX_ENTRIES
    stats: AdmissionStats = field(default_factory=AdmissionStats)

    def admit(self, entries: Iterable[Any]) -> Iterator[AdmittedEntry]:
        """Yield the admitted entries in feed order."""
        for index, entry in enumerate(entries):
            if index >= self.limit:
                break
            self.stats.considered += 1

            admitted = self._check(entry)
            if admitted is not None:
                self.stats.admitted += 1
                yield admitted

    def _check(self, entry: Any) -> AdmittedEntry | None:
        title = entry_title(entry)
        link = entry_link(entry)
        published_at = entry_published(entry)

        if (self.require_title and not title) or not link or published_at is None:
            self.stats.incomplete += 1
            return None

        if is_stale(published_at, self.updated_at):
            self.stats.stale += 1
            return None

        if self.spam_filter and is_spam(title, self.spam_threshold):
            self.stats.spam += 1
            logger.debug(f"Skipping spam entry: {title!r}")
            return None

        identifier = entry.get("id") or link
        if not identifier:
            self.stats.incomplete += 1
            return None

        return AdmittedEntry(
            raw=entry,
            title=title or "",
            link=link,
            published_at=published_at,
            identifier=identifier,
        )
