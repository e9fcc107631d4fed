"""Fetching and parsing RSS documents."""

from __future__ import annotations

import html
import re
import urllib.request
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional

from gator.models import RSSFeed, RSSItem


def _text(parent: ET.Element, tag: str) -> str:
    element = parent.find(tag)
    if element is None:
        return ""
    return "".join([element.text or ""] + [child.tail or "" for child in element])


def parse_feed(data: bytes) -> RSSFeed:
    """Parse an RSS document, unescaping HTML entities in titles and descriptions."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid feed: {exc}") from exc
    channel = root.find("channel")
    if channel is None:
        return RSSFeed()
    items = [
        RSSItem(
            title=html.unescape(_text(item, "title")),
            link=_text(item, "link"),
            description=html.unescape(_text(item, "description")),
            pub_date=_text(item, "pubDate"),
        )
        for item in channel.findall("item")
    ]
    return RSSFeed(
        title=html.unescape(_text(channel, "title")),
        link=_text(channel, "link"),
        description=html.unescape(_text(channel, "description")),
        items=items,
    )


def fetch_feed(url: str, timeout: Optional[float] = None) -> RSSFeed:
    """Download and parse the feed at ``url``."""
    request = urllib.request.Request(url, headers={"User-Agent": "gator"})
    with urllib.request.urlopen(request, timeout=timeout) as response:
        data = response.read()
    return parse_feed(data)


_ZONE_NAME = re.compile(r"^(.*) ([A-Za-z]+)$")

_OFFSET_FORMATS = (
    "%a, %d %b %Y %H:%M:%S %z",
    "%d %b %y %H:%M %z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
)
_NAMED_ZONE_FORMATS = ("%a, %d %b %Y %H:%M:%S", "%d %b %y %H:%M")
_NAIVE_FORMATS = ("%Y-%m-%d %H:%M:%S",)


def parse_date(date_str: str) -> datetime:
    """Parse a date in one of the formats common in RSS feeds."""
    for fmt in _OFFSET_FORMATS:
        try:
            return datetime.strptime(date_str, fmt)
        except ValueError:
            pass
    named = _ZONE_NAME.match(date_str)
    if named:
        for fmt in _NAMED_ZONE_FORMATS:
            try:
                return datetime.strptime(named.group(1), fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                pass
    for fmt in _NAIVE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    raise ValueError(f"couldn't parse date: {date_str}")