"""Fetching RSS feeds and storing their items as posts."""

from __future__ import annotations

import html
import urllib.error
import urllib.request
import uuid
import warnings
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from dateutil import parser as date_parser

from .database import DatabaseError, DuplicateError, Queries
from .models import Post

USER_AGENT = "gator"


@dataclass
class RSSItem:
    """One entry of a feed, as found in the document."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """The channel of an RSS document and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: object) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _direct_text(element: ET.Element) -> str:
    """Character data of an element itself, leaving out nested elements."""
    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts)


_ITEM_FIELDS = {"title": "title", "link": "link", "description": "description", "pubDate": "pub_date"}
_CHANNEL_FIELDS = {"title": "title", "link": "link", "description": "description"}


def _parse_item(element: ET.Element) -> RSSItem:
    item = RSSItem()
    for child in element:
        attribute = _ITEM_FIELDS.get(_local_name(child.tag))
        if attribute is not None:
            setattr(item, attribute, _direct_text(child))
    return item


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; channel title and description are HTML-unescaped."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid feed document: {exc}") from exc

    feed = RSSFeed()
    for channel in root:
        if _local_name(channel.tag) != "channel":
            continue
        for child in channel:
            name = _local_name(child.tag)
            if name == "item":
                feed.items.append(_parse_item(child))
            elif name in _CHANNEL_FIELDS:
                setattr(feed, _CHANNEL_FIELDS[name], _direct_text(child))

    # Only the channel's own text is unescaped; items are kept as parsed.
    feed.title = html.unescape(feed.title)
    feed.description = html.unescape(feed.description)
    return feed


def fetch_feed(url: str, timeout: float | None = None) -> RSSFeed:
    """Download the document at ``url`` and parse it as a feed."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT}, method="GET")
    try:
        if timeout is None:
            response = urllib.request.urlopen(request)
        else:
            response = urllib.request.urlopen(request, timeout=timeout)
        with response:
            data = response.read()
    except urllib.error.HTTPError as exc:
        # The body of an error response is parsed like any other.
        try:
            data = exc.read()
        finally:
            exc.close()
    return parse_feed(data)


def parse_publish_date(text: str) -> datetime | None:
    """Read a date in any common layout; times without a zone are taken as UTC."""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            parsed = date_parser.parse(text)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def scrape_feeds(db: Queries, fetch: Callable[[str], RSSFeed] = fetch_feed) -> list[Post]:
    """Fetch the feed due next and store its new items; return the posts created."""
    feed = db.get_next_feed_to_fetch()
    db.mark_feed_fetched(feed.id)
    document = fetch(feed.url)

    created: list[Post] = []
    for item in document.items:
        published = parse_publish_date(item.pub_date) or datetime.now(timezone.utc)
        now = datetime.now(timezone.utc)
        try:
            post = db.create_post(
                uuid.uuid4(),
                now,
                now,
                item.title,
                item.link,
                item.description,
                published,
                feed.id,
            )
        except DuplicateError:
            continue
        except DatabaseError as exc:
            print(item.title)
            print(exc)
            continue
        created.append(post)
    return created