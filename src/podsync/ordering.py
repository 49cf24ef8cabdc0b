"""Chronological ordering of feed items.

Feeds are delivered either fully newest-first or fully oldest-first. Only
the first and last item are compared; the whole list is reversed when it
runs newest-first so that the canonical order is ascending (latest item
last). This is a two-point heuristic, not a sort: a shuffled feed keeps
whatever order the endpoints imply.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from .models import Feed, Item

logger = logging.getLogger(__name__)

# RFC-1123 with numeric zone, e.g. "Mon, 02 Jan 2006 15:04:05 -0700"
PUB_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S %z"


def parse_pub_date(raw: Optional[str]) -> Optional[datetime]:
    """Parse a ``pubDate`` string using the fixed RFC-1123 layout.

    Args:
        raw: Raw date string from the feed

    Returns:
        Timezone-aware datetime, or None if the string does not match
    """
    if not raw:
        return None
    try:
        return datetime.strptime(raw.strip(), PUB_DATE_FORMAT)
    except ValueError:
        return None


def needs_reversal(items: List[Item]) -> Optional[bool]:
    """Decide whether items run newest-first.

    Args:
        items: Items in their current order

    Returns:
        True if the first item is later than the last one, False if not,
        None when there is nothing to compare or an endpoint date is unparseable
    """
    if len(items) < 2:
        return None
    first = parse_pub_date(items[0].pub_date)
    last = parse_pub_date(items[-1].pub_date)
    if first is None or last is None:
        return None
    return first > last


def order_feed(feed: Feed) -> Feed:
    """Return a copy of ``feed`` with items in ascending chronological order.

    Unparseable endpoint dates keep the original order.

    Args:
        feed: Feed as parsed or read from a snapshot

    Returns:
        New Feed; the input is not modified
    """
    decision = needs_reversal(feed.items)
    items = list(feed.items)
    if decision is None and len(items) >= 2:
        logger.debug(
            "Could not compare publish dates of %r (%r vs %r); keeping feed order",
            feed.title,
            items[0].pub_date,
            items[-1].pub_date,
        )
    elif decision:
        items.reverse()
    return Feed(title=feed.title, description=feed.description, items=items)
