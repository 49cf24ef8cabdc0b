"""New-episode detection between a fresh feed and its cached snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .models import Feed

DetectionOutcome = Literal["first_run", "empty_feed", "new_episodes", "unchanged"]


@dataclass(frozen=True)
class Detection:
    """Result of comparing a fresh feed against the cached one.

    Attributes:
        outcome: What the comparison found
        persist: Whether the fresh feed should replace the snapshot
        feed_title: Title of the fresh feed, used in the signal message
    """

    outcome: DetectionOutcome
    persist: bool
    feed_title: str = ""

    @property
    def has_new_episodes(self) -> bool:
        return self.outcome == "new_episodes"


def detect_new_episodes(fresh: Feed, cached: Feed) -> Detection:
    """Compare the latest item of both feeds.

    Both feeds must already be in ascending order. Only the title of the
    last item is compared, so several new episodes yield a single signal.
    An empty fresh feed is never persisted, even when nothing is cached yet.

    Args:
        fresh: Feed just fetched from the network
        cached: Feed read from the snapshot (empty on first run)

    Returns:
        Detection describing the signal to emit and whether to persist
    """
    if fresh.is_empty:
        return Detection(outcome="empty_feed", persist=False, feed_title=fresh.title)
    if cached.is_empty:
        return Detection(outcome="first_run", persist=True, feed_title=fresh.title)

    if fresh.latest.title != cached.latest.title:
        return Detection(outcome="new_episodes", persist=True, feed_title=fresh.title)
    return Detection(outcome="unchanged", persist=True, feed_title=fresh.title)
