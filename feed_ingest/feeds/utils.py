"""
Shared normalization helpers for feed adapters.

Deterministic ids, HTML cleanup, image extraction and accessors that hide
the differences between feedparser entries of RSS, Atom and media feeds.
"""

import calendar
import hashlib
import html
import re
from typing import Any
from urllib.parse import urlparse

_TAG_PATTERN = re.compile(r"<[^>]+>")
_IMG_PATTERN = re.compile(r"""<img[^>]+\bsrc=["']([^"']+)["']""", re.IGNORECASE)


def md5_hex(value: str) -> str:
    """Hex MD5 digest of a string. Used for ids, not for security."""
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def generate_source_id(
    prefix: str,
    user_id: str,
    column_id: str,
    identifier: str,
) -> str:
    """Stable source id: `{prefix}-{userId}-{columnId}-{md5(identifier)}`."""
    return f"{prefix}-{user_id}-{column_id}-{md5_hex(identifier)}"


def generate_item_id(source_id: str, identifier: str) -> str:
    """Stable item id: `{sourceId}-{md5(identifier)}`."""
    return f"{source_id}-{md5_hex(identifier)}"


def unescape_html(text: str | None) -> str | None:
    """Decode HTML entities. None passes through."""
    if text is None:
        return None
    return html.unescape(text)


def strip_html_tags(text: str | None) -> str | None:
    """Remove markup tags, keeping the text between them."""
    if text is None:
        return None
    return _TAG_PATTERN.sub("", text)


def extract_image(markup: str | None) -> str | None:
    """
    Return the first `<img src>` in the markup if it is an https URL.

    Only the first image is inspected: a leading http image means the
    entry has no usable representative image.
    """
    if not markup:
        return None
    match = _IMG_PATTERN.search(markup)
    if match and match.group(1).startswith("https://"):
        return match.group(1)
    return None


def extract_images(markup: str | None) -> list[str]:
    """All `<img src>` URLs in the markup, upgraded from http to https."""
    if not markup:
        return []
    images = []
    for url in _IMG_PATTERN.findall(markup):
        if url.startswith("http://"):
            url = "https://" + url[len("http://"):]
        images.append(url)
    return images


def hostname(url: str) -> str:
    """
    Lower-cased hostname of an absolute URL.

    Raises:
        ValueError: If the URL has no host.
    """
    host = urlparse(url).hostname
    if not host:
        raise ValueError(f"URL has no host: {url!r}")
    return host.lower()


def file_extension(url: str, default: str = "png") -> str:
    """Extension of the last path segment of a URL, without query string."""
    path = urlparse(url).path
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return default
    extension = name.rsplit(".", 1)[-1].lower()
    return extension or default


# feedparser entry accessors


def entry_title(entry: Any) -> str | None:
    title = entry.get("title")
    return title if title else None


def entry_link(entry: Any) -> str | None:
    """First usable link of an entry."""
    link = entry.get("link")
    if link:
        return link
    for candidate in entry.get("links") or []:
        href = candidate.get("href")
        if href:
            return href
    return None


def entry_published(entry: Any) -> int | None:
    """Publication time in epoch seconds, falling back to the update time."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return calendar.timegm(parsed)
    return None


def entry_content(entry: Any) -> str | None:
    """Rich content of an entry (Atom content / content:encoded)."""
    for content in entry.get("content") or []:
        value = content.get("value")
        if value:
            return value
    return None


def entry_summary(entry: Any) -> str | None:
    summary = entry.get("summary")
    return summary if summary else None


def entry_description(entry: Any, strip_tags: bool = False) -> str | None:
    """
    Description preferring rich content over the summary.

    Args:
        entry: feedparser entry
        strip_tags: Remove markup so only text remains

    Returns:
        Unescaped description or None
    """
    value = entry_content(entry) or entry_summary(entry)
    if value is None:
        return None
    if strip_tags:
        value = strip_html_tags(value)
    return unescape_html(value)


def entry_author(entry: Any) -> str | None:
    detail = entry.get("author_detail")
    if detail and detail.get("name"):
        return detail["name"]
    author = entry.get("author")
    return author if author else None


def feed_link(feed: Any) -> str | None:
    """First link of the feed channel."""
    link = feed.feed.get("link")
    if link:
        return link
    for candidate in feed.feed.get("links") or []:
        href = candidate.get("href")
        if href:
            return href
    return None


def feed_image(feed: Any) -> str | None:
    image = feed.feed.get("image")
    if image:
        return image.get("href") or image.get("url")
    return None
