"""Episode lookup against the cached snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, TYPE_CHECKING

from .exceptions import EpisodeIndexError
from .models import Item
from .snapshot import SnapshotStore

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import Podcast

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedEpisode:
    """An episode selected by its 1-based number in the cached feed.

    Attributes:
        number: 1-based position in ascending order (1 is the oldest episode).
        title: Episode title.
        url: Enclosure URL.
        filename: Local filename derived from the URL.
        length: Declared enclosure length in bytes.
    """

    number: int
    title: str
    url: str
    filename: str
    length: int


def filename_from_url(url: str) -> str:
    """Return the final ``/``-delimited segment of ``url``, undecoded."""
    return url.split("/")[-1]


def resolve_episode(store: SnapshotStore, podcast: "Podcast", number: int) -> ResolvedEpisode:
    """Map a 1-based episode number to its enclosure.

    Args:
        store: Snapshot store to read from
        podcast: Podcast whose snapshot to use
        number: Episode number, 1 for the oldest cached item

    Returns:
        ResolvedEpisode for the item at position ``number - 1``

    Raises:
        EpisodeIndexError: If ``number`` is outside ``[1, item count]``
    """
    feed = store.read(podcast)
    count = len(feed.items)
    if number < 1 or number > count:
        raise EpisodeIndexError(number=number, count=count, podcast=podcast.name)

    item = feed.items[number - 1]
    url = item.enclosure.url
    return ResolvedEpisode(
        number=number,
        title=item.title,
        url=url,
        filename=filename_from_url(url),
        length=item.enclosure.length,
    )


def episode_filename(store: SnapshotStore, podcast: "Podcast", number: int) -> str:
    """Return the local filename episode ``number`` would be saved under."""
    return resolve_episode(store, podcast, number).filename


def list_episodes(store: SnapshotStore, podcast: "Podcast") -> List[Item]:
    """Return the cached items with their ``downloaded`` flag computed.

    Args:
        store: Snapshot store to read from
        podcast: Podcast whose snapshot to list

    Returns:
        Items in stored (ascending) order; empty when nothing is cached
    """
    feed = store.read(podcast)
    storage = Path(podcast.path)
    items = []
    for item in feed.items:
        filename = filename_from_url(item.enclosure.url)
        downloaded = bool(filename) and (storage / filename).exists()
        items.append(replace(item, downloaded=downloaded))
    logger.debug("Listed %d episode(s) for %s", len(items), podcast.name)
    return items
