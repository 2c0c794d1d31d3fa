"""
Source store: profiles, sources and items.

Column names are the camelCase wire names and therefore quoted. Timestamps
are epoch seconds (bigint). All writes are upserts keyed by the
deterministic ids the adapters derive, so concurrent workers writing the
same source or item never conflict.
"""

import json
import logging
from typing import Any, Callable, TypeVar

import asyncpg

from feed_ingest.feeds.schemas import (
    GithubAccount,
    Item,
    Profile,
    Source,
    SourceOptions,
)
from feed_ingest.storage.database import Database, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS profiles (
    id              TEXT PRIMARY KEY,
    tier            TEXT NOT NULL DEFAULT 'free',
    "accountGithub" JSONB,
    "createdAt"     BIGINT NOT NULL DEFAULT EXTRACT(EPOCH FROM NOW())::bigint,
    "updatedAt"     BIGINT NOT NULL DEFAULT EXTRACT(EPOCH FROM NOW())::bigint
);

CREATE TABLE IF NOT EXISTS sources (
    id          TEXT PRIMARY KEY,
    "userId"    TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    "columnId"  TEXT NOT NULL,
    type        TEXT NOT NULL,
    title       TEXT NOT NULL,
    options     JSONB,
    link        TEXT,
    icon        TEXT,
    "createdAt" BIGINT NOT NULL DEFAULT EXTRACT(EPOCH FROM NOW())::bigint,
    "updatedAt" BIGINT NOT NULL DEFAULT EXTRACT(EPOCH FROM NOW())::bigint
);

CREATE TABLE IF NOT EXISTS items (
    id            TEXT PRIMARY KEY,
    "userId"      TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    "columnId"    TEXT NOT NULL,
    "sourceId"    TEXT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    title         TEXT NOT NULL,
    link          TEXT NOT NULL,
    media         TEXT,
    description   TEXT,
    author        TEXT,
    options       JSONB,
    "isRead"      BOOLEAN NOT NULL DEFAULT FALSE,
    "isBookmarked" BOOLEAN NOT NULL DEFAULT FALSE,
    "publishedAt" BIGINT NOT NULL,
    "createdAt"   BIGINT NOT NULL DEFAULT EXTRACT(EPOCH FROM NOW())::bigint
);

CREATE INDEX IF NOT EXISTS idx_profiles_tier_created
    ON profiles(tier, "createdAt");
CREATE INDEX IF NOT EXISTS idx_sources_user_updated
    ON sources("userId", "updatedAt");
CREATE INDEX IF NOT EXISTS idx_items_source_published
    ON items("sourceId", "publishedAt" DESC);
"""

_LIST_PROFILES_SQL = """
SELECT id, tier, "accountGithub", "createdAt", "updatedAt"
FROM profiles
WHERE tier = 'premium' OR "createdAt" > $1
ORDER BY "createdAt"
LIMIT $2 OFFSET $3
"""

_LIST_SOURCES_SQL = """
SELECT id, "userId", "columnId", type, title, options, link, icon, "updatedAt"
FROM sources
WHERE "userId" = $1 AND "updatedAt" < $2
"""

_UPSERT_SOURCE_SQL = """
INSERT INTO sources (id, "userId", "columnId", type, title, options, link, icon)
VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, $8)
ON CONFLICT (id) DO UPDATE SET
    type = EXCLUDED.type,
    title = EXCLUDED.title,
    options = EXCLUDED.options,
    link = EXCLUDED.link,
    icon = EXCLUDED.icon,
    "updatedAt" = EXTRACT(EPOCH FROM NOW())::bigint
"""

# Items are immutable once stored: read/bookmark state lives on the row
_UPSERT_ITEMS_SQL = """
INSERT INTO items (
    id, "userId", "columnId", "sourceId", title, link,
    media, description, author, options, "publishedAt"
)
SELECT * FROM unnest(
    $1::text[], $2::text[], $3::text[], $4::text[], $5::text[], $6::text[],
    $7::text[], $8::text[], $9::text[], $10::jsonb[], $11::bigint[]
)
ON CONFLICT (id) DO NOTHING
"""


def _json_value(value: Any) -> Any:
    """JSONB columns come back as text unless a codec is registered."""
    if isinstance(value, str):
        return json.loads(value)
    return value


def _record_to_profile(record: asyncpg.Record) -> Profile:
    account = _json_value(record["accountGithub"])
    return Profile(
        id=record["id"],
        tier=record["tier"],
        created_at=record["createdAt"] or 0,
        updated_at=record["updatedAt"] or 0,
        account_github=GithubAccount.model_validate(account) if account else None,
    )


def _record_to_source(record: asyncpg.Record) -> Source:
    options = _json_value(record["options"])
    return Source(
        id=record["id"],
        user_id=record["userId"],
        column_id=record["columnId"],
        type=record["type"],
        title=record["title"] or "",
        options=SourceOptions.model_validate(options) if options else None,
        link=record["link"],
        icon=record["icon"],
        updated_at=record["updatedAt"] or 0,
    )


def _map_records(
    records: list[asyncpg.Record],
    mapper: Callable[[asyncpg.Record], T],
    kind: str,
) -> list[T]:
    """Map rows to models. Malformed rows are logged and left out."""
    mapped = []
    for record in records:
        try:
            mapped.append(mapper(record))
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed {kind} {record['id']}: {e}")
    return mapped


class SourceRepository:
    """
    Store operations used by the scheduler and the workers.

    Every method raises StoreError when the database rejects the statement
    or the connection fails.
    """

    def __init__(self, database: Database):
        self._db = database

    async def create_tables(self) -> None:
        """Create tables and indexes (idempotent)."""
        try:
            await self._db.execute(_CREATE_TABLES_SQL)
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Failed to create tables: {e}") from e
        logger.info("Source store tables ensured")

    async def list_profiles(
        self,
        created_after: int,
        limit: int,
        offset: int,
    ) -> list[Profile]:
        """
        One page of profiles eligible for refresh: premium profiles and
        profiles created after `created_after` (epoch seconds).
        """
        try:
            rows = await self._db.fetch(_LIST_PROFILES_SQL, created_after, limit, offset)
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Failed to list profiles at offset {offset}: {e}") from e
        return _map_records(rows, _record_to_profile, "profile")

    async def list_sources(self, user_id: str, stale_before: int) -> list[Source]:
        """Sources of a user last refreshed before `stale_before` (epoch seconds)."""
        try:
            rows = await self._db.fetch(_LIST_SOURCES_SQL, user_id, stale_before)
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Failed to list sources of user {user_id}: {e}") from e
        return _map_records(rows, _record_to_source, "source")

    async def upsert_source(self, source: Source) -> None:
        """Insert or update a source and bump its `updatedAt` to now."""
        options = source.options.to_wire() if source.options else None
        try:
            await self._db.execute(
                _UPSERT_SOURCE_SQL,
                source.id,
                source.user_id,
                source.column_id,
                source.type,
                source.title,
                json.dumps(options) if options is not None else None,
                source.link,
                source.icon,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Failed to upsert source {source.id}: {e}") from e

    async def upsert_items(self, items: list[Item]) -> int:
        """
        Insert items in one statement. Items that already exist are left as is.

        Returns:
            Number of items submitted
        """
        if not items:
            return 0

        try:
            await self._db.execute(
                _UPSERT_ITEMS_SQL,
                [i.id for i in items],
                [i.user_id for i in items],
                [i.column_id for i in items],
                [i.source_id for i in items],
                [i.title for i in items],
                [i.link for i in items],
                [i.media for i in items],
                [i.description for i in items],
                [i.author for i in items],
                [json.dumps(i.options) if i.options is not None else None for i in items],
                [i.published_at for i in items],
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Failed to upsert {len(items)} items: {e}") from e

        logger.debug(f"Upserted {len(items)} items")
        return len(items)
