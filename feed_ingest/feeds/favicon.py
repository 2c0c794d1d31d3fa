"""
Favicon discovery for source icons.

Loads the origin page of a URL, collects the icon links it declares and
probes each candidate. Only raster images (png, jpg, jpeg, gif) are kept
and the largest one wins. Discovery is best effort: any failure returns
None instead of raising.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from feed_ingest.feeds.errors import FetchFailedError
from feed_ingest.feeds.http_client import HTTPClient

logger = logging.getLogger(__name__)

ICON_RELS = (
    "shortcut icon",
    "icon shortcut",
    "icon",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
)
ALLOWED_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif"})

PAGE_TIMEOUT_SECONDS = 3.0
ICON_TIMEOUT_SECONDS = 1.0


@dataclass
class Favicon:
    url: str
    size: int
    extension: str


FaviconFilter = Callable[[list[Favicon]], list[Favicon]]


def normalize_origin(url: str) -> str | None:
    """Scheme and host of a URL. Relative URLs have no origin."""
    if url.startswith("/") and not url.startswith("//"):
        return None
    if url.startswith("//"):
        url = "https:" + url
    elif not url.startswith("http"):
        url = "https://" + url
    parsed = urlparse(url)
    if not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def extract_icon_hrefs(markup: str) -> list[str]:
    """Icon hrefs declared by the page, in ICON_RELS order."""
    soup = BeautifulSoup(markup, "html.parser")
    hrefs: list[str] = []
    for rel in ICON_RELS:
        for link in soup.find_all("link", href=True):
            link_rel = link.get("rel")
            # bs4 splits multi-valued rel attributes into a list
            if isinstance(link_rel, list):
                link_rel = " ".join(link_rel)
            if (link_rel or "").lower() == rel:
                hrefs.append(link["href"])
    return hrefs


async def _probe(http: HTTPClient, url: str) -> Favicon | None:
    try:
        response = await http.get(url, timeout=ICON_TIMEOUT_SECONDS)
    except FetchFailedError:
        return None

    content_type = response.headers.get("content-type", "")
    if not content_type.startswith("image/"):
        return None

    extension = urlparse(url).path.rsplit(".", 1)[-1].lower()
    return Favicon(url=url, size=len(response.content), extension=extension)


async def get_favicon(
    http: HTTPClient,
    url: str,
    favicon_filter: FaviconFilter | None = None,
) -> Favicon | None:
    """
    Find the best favicon for the site behind `url`.

    Args:
        http: Open HTTP client
        url: Any URL of the site, only its origin is used
        favicon_filter: Optional narrowing of the candidates, applied after
            sorting by size

    Returns:
        Largest matching favicon or None
    """
    try:
        origin = normalize_origin(url)
        if origin is None:
            return None

        response = await http.get(origin, timeout=PAGE_TIMEOUT_SECONDS)
        hrefs = extract_icon_hrefs(response.text)

        candidates = [urljoin(origin + "/", href) for href in hrefs]
        probed = await asyncio.gather(*(_probe(http, c) for c in candidates))
        favicons = [
            f for f in probed if f is not None and f.extension in ALLOWED_EXTENSIONS
        ]
        favicons.sort(key=lambda f: f.size, reverse=True)

        if favicon_filter is not None:
            favicons = favicon_filter(favicons)

        return favicons[0] if favicons else None
    except Exception as e:
        logger.debug(f"Favicon lookup failed for {url}: {e}")
        return None
