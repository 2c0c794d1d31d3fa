"""Tests for the Medium adapter."""

import time

import httpx
import pytest
import respx

from feed_ingest.feeds.adapters.medium import MediumAdapter, canonical_feed_url
from feed_ingest.feeds.errors import InvalidOptionsError
from feed_ingest.feeds.http_client import HTTPClient
from feed_ingest.feeds.schemas import SourceType, new_source


class TestCanonicalFeedUrl:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("#python", "https://medium.com/feed/tag/python"),
            ("@someone", "https://medium.com/feed/@someone"),
            ("https://medium.com/@someone", "https://medium.com/feed/@someone"),
            ("https://medium.com/feed/@someone", "https://medium.com/feed/@someone"),
            ("https://medium.com/better-programming", "https://medium.com/feed/better-programming"),
            ("https://blog.medium.com/some-post", "https://blog.medium.com/feed"),
        ],
    )
    def test_valid(self, value, expected):
        assert canonical_feed_url(value) == expected

    @pytest.mark.parametrize("value", ["#", "someone", "https://example.com/@someone"])
    def test_invalid(self, value):
        with pytest.raises(InvalidOptionsError):
            canonical_feed_url(value)


class TestMediumAdapter:
    @pytest.mark.asyncio
    @respx.mock
    async def test_user_feed(self, free_profile, rss_feed, make_context):
        respx.get("https://medium.com/feed/@someone").mock(
            return_value=httpx.Response(
                200,
                text=rss_feed(
                    "Stories by Someone on Medium",
                    [
                        {
                            "title": "A story",
                            "link": "https://medium.com/@someone/a-story-1",
                            "guid": "https://medium.com/p/1",
                            "published": int(time.time()),
                            "content": '<figure><img src="https://cdn-images-1.medium.com/a.png"></figure><p>Text</p>',
                            "author": "Someone",
                        }
                    ],
                ),
            )
        )
        source = new_source("user-1", "column-1", SourceType.MEDIUM, medium="@someone")

        async with HTTPClient() as http:
            result, items = await MediumAdapter(make_context(http)).get_feed(source, free_profile)

        assert result.type == "medium"
        assert result.title == "Stories by Someone on Medium"
        assert items[0].media == "https://cdn-images-1.medium.com/a.png"
        assert items[0].author == "Someone"
        assert "Text" in items[0].description

    @pytest.mark.asyncio
    @respx.mock
    async def test_new_source_uses_cdn_favicon(self, free_profile, rss_feed, make_context):
        respx.get("https://medium.com/feed/@someone").mock(
            return_value=httpx.Response(
                200, text=rss_feed("Someone", link="https://medium.com/@someone")
            )
        )
        respx.get("https://medium.com/").mock(
            return_value=httpx.Response(
                200,
                text='<link rel="icon" href="https://cdn-images-1.medium.com/fit/c/152/152/a.png">'
                '<link rel="icon" href="/favicon.png">',
            )
        )
        respx.get("https://cdn-images-1.medium.com/fit/c/152/152/a.png").mock(
            return_value=httpx.Response(200, content=b"a", headers={"content-type": "image/png"})
        )
        respx.get("https://medium.com/favicon.png").mock(
            return_value=httpx.Response(200, content=b"a" * 50, headers={"content-type": "image/png"})
        )
        source = new_source("user-1", "column-1", SourceType.MEDIUM, medium="@someone")

        async with HTTPClient() as http:
            result, _ = await MediumAdapter(make_context(http)).get_feed(source, free_profile)

        assert result.icon == "https://cdn-images-1.medium.com/fit/c/152/152/a.png"
