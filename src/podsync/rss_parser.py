"""RSS feed parsing into the feed model."""

from __future__ import annotations

import logging

# Bandit: parsing handled via defusedxml safe APIs
import xml.etree.ElementTree as ET  # nosec B405
from typing import Optional

from defusedxml.ElementTree import fromstring as safe_fromstring, ParseError as DefusedXMLParseError
from defusedxml import DefusedXmlException

from .exceptions import FeedParseError
from .models import Enclosure, Feed, Item

logger = logging.getLogger(__name__)


def _child_text(parent: ET.Element, tag: str) -> str:
    el = parent.find(tag)
    if el is None:
        return ""
    return "".join(el.itertext()).strip()


def _parse_length(value: Optional[str]) -> int:
    if not value:
        return 0
    try:
        return max(0, int(value.strip()))
    except ValueError:
        logger.debug("Ignoring non-numeric enclosure length %r", value)
        return 0


def parse_enclosure(item: ET.Element) -> Enclosure:
    """Extract the enclosure attributes of an RSS item.

    Args:
        item: RSS item element

    Returns:
        Enclosure with empty values when the item has none
    """
    el = item.find("enclosure")
    if el is None:
        return Enclosure()
    return Enclosure(
        url=(el.attrib.get("url") or "").strip(),
        length=_parse_length(el.attrib.get("length")),
        type=(el.attrib.get("type") or "").strip(),
    )


def parse_item(item: ET.Element) -> Item:
    """Build an Item from an RSS ``<item>`` element."""
    return Item(
        title=_child_text(item, "title"),
        enclosure=parse_enclosure(item),
        pub_date=_child_text(item, "pubDate"),
    )


def parse_feed(xml_bytes: bytes) -> Feed:
    """Decode raw RSS bytes into a Feed.

    Items are returned in document order. A channel without items is valid.

    Args:
        xml_bytes: Raw RSS feed XML content

    Returns:
        Parsed Feed

    Raises:
        FeedParseError: If the content is not well-formed XML or not an RSS document
    """
    try:
        root = safe_fromstring(xml_bytes)
    except (DefusedXMLParseError, DefusedXmlException, LookupError, ValueError) as exc:
        raise FeedParseError(f"Response is not a valid podcast feed: {exc}") from exc

    if root.tag != "rss":
        raise FeedParseError(f"Response is not a valid podcast feed: unexpected root <{root.tag}>")

    channel = root.find("channel")
    if channel is None:
        raise FeedParseError("Response is not a valid podcast feed: missing <channel>")

    items = [parse_item(el) for el in channel.findall("item")]
    feed = Feed(
        title=_child_text(channel, "title"),
        description=_child_text(channel, "description"),
        items=items,
    )
    logger.debug("Parsed feed %r with %d item(s)", feed.title, len(items))
    return feed
