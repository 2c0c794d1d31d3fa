"""Tests for the generic RSS adapter."""

import asyncio
import time
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from feed_ingest.feeds.adapters.rss import RSSAdapter, get_media
from feed_ingest.feeds.base_adapter import AdapterStats
from feed_ingest.feeds.errors import FetchFailedError, InvalidFeedError, InvalidOptionsError
from feed_ingest.feeds.http_client import HTTPClient
from feed_ingest.feeds.schemas import SourceType, new_source
from feed_ingest.feeds.utils import generate_item_id, generate_source_id

FEED_URL = "https://example.com/feed.xml"


class TestEndToEnd:
    @pytest.mark.asyncio
    @respx.mock
    async def test_new_source_with_one_entry(
        self, rss_source, free_profile, rss_feed, make_context
    ):
        now = int(time.time())
        respx.get(FEED_URL).mock(
            return_value=httpx.Response(
                200,
                text=rss_feed(
                    "Example Blog",
                    [{"title": "Hello", "link": "https://example.com/1", "published": now}],
                ),
            )
        )

        async with HTTPClient() as http:
            source, items = await RSSAdapter(make_context(http)).get_feed(rss_source, free_profile)

        assert source.title == "Example Blog"
        assert source.id == generate_source_id("rss", "user-1", "column-1", FEED_URL)
        assert source.type == "rss"
        assert len(items) == 1
        assert items[0].link == "https://example.com/1"
        assert items[0].title == "Hello"
        assert items[0].source_id == source.id
        assert items[0].published_at == now

    @pytest.mark.asyncio
    @respx.mock
    async def test_ids_are_stable_across_fetches(
        self, rss_source, free_profile, rss_feed, make_context
    ):
        now = int(time.time())
        payload = rss_feed(
            "Example Blog",
            [
                {"title": "One", "link": "https://example.com/1", "guid": "g1", "published": now},
                {"title": "Two", "link": "https://example.com/2", "guid": "g2", "published": now},
            ],
        )
        respx.get(FEED_URL).mock(return_value=httpx.Response(200, text=payload))

        async with HTTPClient() as http:
            adapter = RSSAdapter(make_context(http))
            first_source, first_items = await adapter.get_feed(rss_source, free_profile)

            repeat = rss_source.model_copy(update={"id": first_source.id})
            second_source, second_items = await adapter.get_feed(repeat, free_profile)

        assert second_source.id == first_source.id
        assert [i.id for i in second_items] == [i.id for i in first_items]
        assert first_items[0].id == generate_item_id(first_source.id, "g1")

    @pytest.mark.asyncio
    @respx.mock
    async def test_caller_source_is_not_mutated(
        self, rss_source, free_profile, rss_feed, make_context
    ):
        respx.get(FEED_URL).mock(return_value=httpx.Response(200, text=rss_feed("Example Blog")))

        async with HTTPClient() as http:
            await RSSAdapter(make_context(http)).get_feed(rss_source, free_profile)

        assert rss_source.id == ""
        assert rss_source.title == ""


class TestErrors:
    @pytest.mark.asyncio
    async def test_missing_option(self, free_profile, make_context):
        source = new_source("user-1", "column-1", SourceType.RSS)
        async with HTTPClient() as http:
            with pytest.raises(InvalidOptionsError):
                await RSSAdapter(make_context(http)).get_feed(source, free_profile)

    @pytest.mark.asyncio
    @respx.mock
    async def test_feed_without_title(self, rss_source, free_profile, rss_feed, make_context):
        respx.get(FEED_URL).mock(return_value=httpx.Response(200, text=rss_feed(title=None)))

        async with HTTPClient() as http:
            with pytest.raises(InvalidFeedError):
                await RSSAdapter(make_context(http)).get_feed(rss_source, free_profile)

    @pytest.mark.asyncio
    @respx.mock
    async def test_garbage_payload(self, rss_source, free_profile, make_context):
        respx.get(FEED_URL).mock(return_value=httpx.Response(200, text="not a feed"))

        async with HTTPClient() as http:
            with pytest.raises(InvalidFeedError):
                await RSSAdapter(make_context(http)).get_feed(rss_source, free_profile)

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error(self, rss_source, free_profile, make_context):
        respx.get(FEED_URL).mock(return_value=httpx.Response(502))

        async with HTTPClient() as http:
            with pytest.raises(FetchFailedError):
                await RSSAdapter(make_context(http)).get_feed(rss_source, free_profile)


class TestIcon:
    @pytest.mark.asyncio
    @respx.mock
    async def test_favicon_of_site_is_preferred(
        self, rss_source, free_profile, rss_feed, make_context
    ):
        respx.get(FEED_URL).mock(
            return_value=httpx.Response(
                200,
                text=rss_feed(
                    "Example Blog",
                    link="https://example.com/",
                    image="https://example.com/logo.png",
                ),
            )
        )
        respx.get("https://example.com/").mock(
            return_value=httpx.Response(200, text='<link rel="icon" href="/favicon.png">')
        )
        respx.get("https://example.com/favicon.png").mock(
            return_value=httpx.Response(200, content=b"icon", headers={"content-type": "image/png"})
        )

        async with HTTPClient() as http:
            source, _ = await RSSAdapter(make_context(http)).get_feed(rss_source, free_profile)

        assert source.link == "https://example.com/"
        assert source.icon == "https://example.com/favicon.png"

    @pytest.mark.asyncio
    @respx.mock
    async def test_feed_image_and_upload(self, rss_source, free_profile, rss_feed, make_context):
        respx.get(FEED_URL).mock(
            return_value=httpx.Response(
                200, text=rss_feed("Example Blog", image="https://example.com/logo.png")
            )
        )
        uploaded_icons = []

        async def upload_source_icon(source):
            uploaded_icons.append(source.icon)
            return "user-1/rss-source.png"

        blob = AsyncMock()
        blob.upload_source_icon = AsyncMock(side_effect=upload_source_icon)

        async with HTTPClient() as http:
            source, _ = await RSSAdapter(make_context(http, blob=blob)).get_feed(
                rss_source, free_profile
            )

        assert uploaded_icons == ["https://example.com/logo.png"]
        assert source.icon == "user-1/rss-source.png"

    @pytest.mark.asyncio
    @respx.mock
    async def test_failed_upload_keeps_remote_icon(
        self, rss_source, free_profile, rss_feed, make_context
    ):
        respx.get(FEED_URL).mock(
            return_value=httpx.Response(
                200, text=rss_feed("Example Blog", image="https://example.com/logo.png")
            )
        )
        blob = AsyncMock()
        blob.upload_source_icon = AsyncMock(return_value=None)

        async with HTTPClient() as http:
            source, _ = await RSSAdapter(make_context(http, blob=blob)).get_feed(
                rss_source, free_profile
            )

        assert source.icon == "https://example.com/logo.png"

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_feed_image_is_ignored(
        self, rss_source, free_profile, rss_feed, make_context
    ):
        respx.get(FEED_URL).mock(
            return_value=httpx.Response(
                200, text=rss_feed("Example Blog", image="http://example.com/logo.png")
            )
        )

        async with HTTPClient() as http:
            source, _ = await RSSAdapter(make_context(http)).get_feed(rss_source, free_profile)

        assert source.icon is None


class TestItems:
    @pytest.mark.asyncio
    @respx.mock
    async def test_description_media_and_author(
        self, rss_source, free_profile, rss_feed, make_context
    ):
        now = int(time.time())
        respx.get(FEED_URL).mock(
            return_value=httpx.Response(
                200,
                text=rss_feed(
                    "Example Blog",
                    [
                        {
                            "title": "Hello",
                            "link": "https://example.com/1",
                            "published": now,
                            "description": "Short &amp; sweet",
                            "content": '<p>Long <b>body</b></p><img src="https://example.com/a.jpg">',
                            "author": "Jane",
                        }
                    ],
                ),
            )
        )

        async with HTTPClient() as http:
            _, items = await RSSAdapter(make_context(http)).get_feed(rss_source, free_profile)

        assert items[0].description == "Long body"
        assert items[0].media == "https://example.com/a.jpg"
        assert items[0].author == "Jane"

    @pytest.mark.asyncio
    @respx.mock
    async def test_stale_and_spam_entries_are_dropped(
        self, free_profile, rss_feed, make_context
    ):
        updated_at = int(time.time()) - 3600
        source = new_source("user-1", "column-1", SourceType.RSS, rss=FEED_URL)
        source.id = "rss-user-1-column-1-abc"
        source.updated_at = updated_at
        respx.get(FEED_URL).mock(
            return_value=httpx.Response(
                200,
                text=rss_feed(
                    "Example Blog",
                    [
                        {"title": "New", "link": "https://example.com/3", "published": updated_at + 60},
                        {
                            "title": "Free bitcoin giveaway",
                            "link": "https://example.com/2",
                            "published": updated_at + 30,
                        },
                        {"title": "Old", "link": "https://example.com/1", "published": updated_at - 600},
                    ],
                ),
            )
        )

        stats = AdapterStats()
        async with HTTPClient() as http:
            adapter = RSSAdapter(make_context(http))
            result_source, items = await adapter.get_feed(source, free_profile, stats)

        assert result_source.id == "rss-user-1-column-1-abc"
        assert [i.title for i in items] == ["New"]
        assert stats.admission.stale == 1
        assert stats.admission.spam == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_concurrent_calls_keep_separate_stats(
        self, free_profile, rss_feed, make_context
    ):
        updated_at = int(time.time()) - 3600
        fresh_url = "https://fresh.example.com/feed.xml"
        stale_url = "https://stale.example.com/feed.xml"
        respx.get(fresh_url).mock(
            return_value=httpx.Response(
                200,
                text=rss_feed(
                    "Fresh",
                    [
                        {"title": "A", "link": "https://fresh.example.com/a", "published": updated_at + 60},
                        {"title": "B", "link": "https://fresh.example.com/b", "published": updated_at + 120},
                    ],
                ),
            )
        )
        respx.get(stale_url).mock(
            return_value=httpx.Response(
                200,
                text=rss_feed(
                    "Stale",
                    [{"title": "C", "link": "https://stale.example.com/c", "published": updated_at - 600}],
                ),
            )
        )
        sources = []
        for url, source_id in ((fresh_url, "rss-fresh"), (stale_url, "rss-stale")):
            source = new_source("user-1", "column-1", SourceType.RSS, rss=url)
            source.id = source_id
            source.updated_at = updated_at
            sources.append(source)

        fresh_stats, stale_stats = AdapterStats(), AdapterStats()
        async with HTTPClient() as http:
            adapter = RSSAdapter(make_context(http))
            await asyncio.gather(
                adapter.get_feed(sources[0], free_profile, fresh_stats),
                adapter.get_feed(sources[1], free_profile, stale_stats),
            )

        assert (fresh_stats.items, fresh_stats.admission.stale) == (2, 0)
        assert (stale_stats.items, stale_stats.admission.stale) == (0, 1)


class TestGetMedia:
    def test_image_media_content(self):
        entry = {"media_content": [{"url": "https://example.com/a.jpg", "medium": "image"}]}
        assert get_media(entry) == "https://example.com/a.jpg"

    def test_thumbnail(self):
        entry = {"media_thumbnail": [{"url": "https://example.com/t.jpg"}]}
        assert get_media(entry) == "https://example.com/t.jpg"

    def test_image_enclosure(self):
        entry = {"enclosures": [{"href": "https://example.com/e.png", "type": "image/png"}]}
        assert get_media(entry) == "https://example.com/e.png"

    def test_audio_enclosure_is_not_media(self):
        entry = {"enclosures": [{"href": "https://example.com/e.mp3", "type": "audio/mpeg"}]}
        assert get_media(entry) is None
