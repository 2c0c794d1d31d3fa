"""Tests for SourceRepository with a mocked database."""

import json

import asyncpg
import pytest

from feed_ingest.feeds.schemas import Item, Source, SourceOptions, Tier
from feed_ingest.storage.database import StoreError
from feed_ingest.storage.repository import SourceRepository


@pytest.fixture
def repository(mock_database):
    return SourceRepository(mock_database)


def _item(item_id: str, **overrides) -> Item:
    fields = {
        "id": item_id,
        "user_id": "user-1",
        "column_id": "column-1",
        "source_id": "rss-1",
        "title": f"Post {item_id}",
        "link": f"https://example.com/{item_id}",
        "published_at": 1_700_000_000,
    }
    fields.update(overrides)
    return Item(**fields)


class TestListProfiles:
    @pytest.mark.asyncio
    async def test_maps_records(self, repository, mock_database):
        mock_database.fetch.return_value = [
            {
                "id": "user-1",
                "tier": "premium",
                "accountGithub": json.dumps({"token": "abcd"}),
                "createdAt": 1_600_000_000,
                "updatedAt": None,
            },
            {
                "id": "user-2",
                "tier": "free",
                "accountGithub": None,
                "createdAt": 1_700_000_000,
                "updatedAt": 1_700_000_100,
            },
        ]

        profiles = await repository.list_profiles(created_after=123, limit=10, offset=20)

        args = mock_database.fetch.call_args.args
        assert args[1:] == (123, 10, 20)
        assert profiles[0].tier == Tier.PREMIUM
        assert profiles[0].account_github.token == "abcd"
        assert profiles[0].updated_at == 0
        assert profiles[1].account_github is None

    @pytest.mark.asyncio
    async def test_malformed_row_is_skipped(self, repository, mock_database):
        mock_database.fetch.return_value = [
            {
                "id": "user-1",
                "tier": "trial",
                "accountGithub": None,
                "createdAt": 1_600_000_000,
                "updatedAt": None,
            },
            {
                "id": "user-2",
                "tier": "free",
                "accountGithub": None,
                "createdAt": 1_700_000_000,
                "updatedAt": None,
            },
        ]

        profiles = await repository.list_profiles(created_after=0, limit=10, offset=0)

        assert [p.id for p in profiles] == ["user-2"]

    @pytest.mark.asyncio
    async def test_database_error(self, repository, mock_database):
        mock_database.fetch.side_effect = asyncpg.PostgresError("boom")

        with pytest.raises(StoreError, match="offset 40"):
            await repository.list_profiles(created_after=0, limit=20, offset=40)


class TestListSources:
    @pytest.mark.asyncio
    async def test_maps_records(self, repository, mock_database):
        mock_database.fetch.return_value = [
            {
                "id": "rss-1",
                "userId": "user-1",
                "columnId": "column-1",
                "type": "rss",
                "title": None,
                "options": {"rss": "https://example.com/feed.xml"},
                "link": None,
                "icon": "user-1/rss-1.png",
                "updatedAt": 1_700_000_000,
            }
        ]

        sources = await repository.list_sources("user-1", stale_before=1_700_003_600)

        assert mock_database.fetch.call_args.args[1:] == ("user-1", 1_700_003_600)
        source = sources[0]
        assert source.title == ""
        assert source.options.rss == "https://example.com/feed.xml"
        assert source.updated_at == 1_700_000_000

    @pytest.mark.asyncio
    async def test_github_options_without_type_are_skipped(self, repository, mock_database):
        row = {
            "id": "github-1",
            "userId": "user-1",
            "columnId": "column-1",
            "type": "github",
            "title": "octo/repo",
            "options": json.dumps({"github": {"repository": "octo/repo"}}),
            "link": None,
            "icon": None,
            "updatedAt": 1_700_000_000,
        }
        mock_database.fetch.return_value = [
            row,
            {**row, "id": "rss-1", "type": "rss", "options": {"rss": "https://example.com/feed.xml"}},
        ]

        sources = await repository.list_sources("user-1", stale_before=1_700_003_600)

        assert [s.id for s in sources] == ["rss-1"]

    @pytest.mark.asyncio
    async def test_connection_error(self, repository, mock_database):
        mock_database.fetch.side_effect = OSError("connection reset")

        with pytest.raises(StoreError):
            await repository.list_sources("user-1", stale_before=0)


class TestUpsertSource:
    @pytest.mark.asyncio
    async def test_writes_wire_options(self, repository, mock_database):
        source = Source(
            id="rss-1",
            user_id="user-1",
            column_id="column-1",
            type="rss",
            title="Example Blog",
            options=SourceOptions(rss="https://example.com/feed.xml"),
            link="https://example.com",
        )

        await repository.upsert_source(source)

        args = mock_database.execute.call_args.args
        assert "ON CONFLICT (id) DO UPDATE" in args[0]
        assert args[1:6] == ("rss-1", "user-1", "column-1", "rss", "Example Blog")
        assert json.loads(args[6]) == {"rss": "https://example.com/feed.xml"}
        assert args[7:] == ("https://example.com", None)

    @pytest.mark.asyncio
    async def test_database_error(self, repository, mock_database, rss_source):
        mock_database.execute.side_effect = asyncpg.PostgresError("boom")

        with pytest.raises(StoreError):
            await repository.upsert_source(rss_source)


class TestUpsertItems:
    @pytest.mark.asyncio
    async def test_single_statement(self, repository, mock_database):
        items = [
            _item("a", options={"media": ["https://example.com/a.png"]}),
            _item("b", author="Jane"),
        ]

        count = await repository.upsert_items(items)

        assert count == 2
        mock_database.execute.assert_awaited_once()
        args = mock_database.execute.call_args.args
        assert "ON CONFLICT (id) DO NOTHING" in args[0]
        assert args[1] == ["a", "b"]
        assert args[9] == [None, "Jane"]
        assert args[10] == ['{"media": ["https://example.com/a.png"]}', None]
        assert args[11] == [1_700_000_000, 1_700_000_000]

    @pytest.mark.asyncio
    async def test_empty_list_skips_database(self, repository, mock_database):
        assert await repository.upsert_items([]) == 0
        mock_database.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_database_error(self, repository, mock_database):
        mock_database.execute.side_effect = asyncpg.PostgresError("boom")

        with pytest.raises(StoreError, match="1 items"):
            await repository.upsert_items([_item("a")])


@pytest.mark.asyncio
async def test_create_tables(repository, mock_database):
    await repository.create_tables()

    statement = mock_database.execute.call_args.args[0]
    assert "CREATE TABLE IF NOT EXISTS items" in statement
