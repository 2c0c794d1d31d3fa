"""Tests for favicon discovery."""

import httpx
import pytest
import respx

from feed_ingest.feeds.favicon import extract_icon_hrefs, get_favicon, normalize_origin
from feed_ingest.feeds.http_client import HTTPClient

PAGE = """
<html><head>
  <link rel="icon" href="/favicon.png">
  <link rel="apple-touch-icon" href="https://cdn.example.com/touch.png">
  <link rel="icon" href="/favicon.svg">
  <link rel="stylesheet" href="/style.css">
</head></html>
"""


class TestNormalizeOrigin:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://example.com/blog/post", "https://example.com"),
            ("http://example.com", "http://example.com"),
            ("//example.com/x", "https://example.com"),
            ("example.com/feed", "https://example.com"),
            ("/relative/path", None),
        ],
    )
    def test_origin(self, url, expected):
        assert normalize_origin(url) == expected


class TestExtractIconHrefs:
    def test_collects_icon_links_in_rel_order(self):
        assert extract_icon_hrefs(PAGE) == [
            "/favicon.png",
            "/favicon.svg",
            "https://cdn.example.com/touch.png",
        ]

    def test_shortcut_icon(self):
        markup = '<link rel="shortcut icon" href="/fav.ico">'
        assert extract_icon_hrefs(markup) == ["/fav.ico"]


class TestGetFavicon:
    @pytest.mark.asyncio
    @respx.mock
    async def test_largest_raster_icon_wins(self):
        respx.get("https://example.com/").mock(return_value=httpx.Response(200, text=PAGE))
        respx.get("https://example.com/favicon.png").mock(
            return_value=httpx.Response(200, content=b"x" * 10, headers={"content-type": "image/png"})
        )
        respx.get("https://example.com/favicon.svg").mock(
            return_value=httpx.Response(
                200, content=b"x" * 500, headers={"content-type": "image/svg+xml"}
            )
        )
        respx.get("https://cdn.example.com/touch.png").mock(
            return_value=httpx.Response(200, content=b"x" * 100, headers={"content-type": "image/png"})
        )

        async with HTTPClient() as http:
            favicon = await get_favicon(http, "https://example.com/blog/post")

        assert favicon is not None
        assert favicon.url == "https://cdn.example.com/touch.png"
        assert favicon.size == 100

    @pytest.mark.asyncio
    @respx.mock
    async def test_filter_is_applied(self):
        respx.get("https://example.com/").mock(return_value=httpx.Response(200, text=PAGE))
        respx.get("https://example.com/favicon.png").mock(
            return_value=httpx.Response(200, content=b"x" * 10, headers={"content-type": "image/png"})
        )
        respx.get("https://example.com/favicon.svg").mock(return_value=httpx.Response(404))
        respx.get("https://cdn.example.com/touch.png").mock(
            return_value=httpx.Response(200, content=b"x" * 100, headers={"content-type": "image/png"})
        )

        async with HTTPClient() as http:
            favicon = await get_favicon(
                http,
                "https://example.com",
                lambda favicons: [f for f in favicons if "cdn" not in f.url],
            )

        assert favicon.url == "https://example.com/favicon.png"

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_image_responses_are_ignored(self):
        respx.get("https://example.com/").mock(
            return_value=httpx.Response(200, text='<link rel="icon" href="/favicon.png">')
        )
        respx.get("https://example.com/favicon.png").mock(
            return_value=httpx.Response(200, text="<html>not found</html>", headers={"content-type": "text/html"})
        )

        async with HTTPClient() as http:
            assert await get_favicon(http, "https://example.com") is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_page_failure_returns_none(self):
        respx.get("https://example.com/").mock(return_value=httpx.Response(500))

        async with HTTPClient() as http:
            assert await get_favicon(http, "https://example.com/feed") is None
