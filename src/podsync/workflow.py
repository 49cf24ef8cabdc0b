"""Feed synchronization cycles for one or many podcasts.

One cycle fetches a podcast's feed, parses and orders it, compares it with
the cached snapshot, and persists it when appropriate:

    Idle -> Fetching -> Parsing -> Ordering -> Detecting
         -> Persisting -> Done | AbortedEmpty | AbortedError | Cancelled

A permit from the caller's throttle is held for the whole cycle, including
persistence, so at most ``workers`` cycles touch the network or the
filesystem at the same time.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import as_completed, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import ContextManager, List, Optional, Sequence

import requests

from . import downloader, rss_parser
from .config import Podcast
from .detector import Detection, detect_new_episodes
from .exceptions import FeedParseError, NetworkError, SnapshotError
from .ordering import order_feed
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """States of a single sync cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    PARSING = "parsing"
    ORDERING = "ordering"
    DETECTING = "detecting"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED_EMPTY = "aborted_empty"
    ABORTED_ERROR = "aborted_error"
    CANCELLED = "cancelled"


@dataclass
class SyncResult:
    """Outcome of one podcast's sync cycle.

    Attributes:
        podcast: Name of the podcast
        state: Final state of the cycle
        detection: Detector verdict, when the cycle got that far
        error: Error that aborted the cycle, if any
    """

    podcast: str
    state: SyncState = SyncState.IDLE
    detection: Optional[Detection] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.state in (SyncState.DONE, SyncState.ABORTED_EMPTY)

    @property
    def has_new_episodes(self) -> bool:
        return self.detection is not None and self.detection.has_new_episodes


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Per-request connection chatter from requests' transport layer
_NOISY_LOGGERS = ("urllib3",)


def apply_log_level(level: str, log_file: Optional[str] = None) -> None:
    """Configure the root logger for a podsync run.

    A console handler is installed when the root logger has none; existing
    handlers are switched to the new level. ``log_file`` adds a UTF-8 file
    handler at most once per path. Transport-level loggers stay at WARNING
    unless ``level`` is DEBUG.

    Args:
        level: Log level name, case-insensitive
        log_file: Optional log file path; parent directories are created

    Raises:
        ValueError: If log level is invalid
        OSError: If log file cannot be created or written to
    """
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    root_logger = logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT)
    root_logger.setLevel(numeric_level)

    if root_logger.handlers:
        for handler in root_logger.handlers:
            handler.setLevel(numeric_level)
    else:
        console = logging.StreamHandler()
        console.setLevel(numeric_level)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

    if log_file:
        target = os.path.abspath(log_file)
        already_logging = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == target
            for h in root_logger.handlers
        )
        if not already_logging:
            Path(target).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(target, mode="a", encoding="utf-8")
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logger.info("Logging to file: %s", target)

    noisy_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def _cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()


def sync_podcast(
    podcast: Podcast,
    session: requests.Session,
    store: SnapshotStore,
    throttle: ContextManager,
    *,
    timeout: int,
    cancel: Optional[threading.Event] = None,
) -> SyncResult:
    """Run one sync cycle for ``podcast``.

    Network and parse failures end the cycle in ``ABORTED_ERROR`` and leave
    the snapshot untouched. An empty fetch against a non-empty snapshot ends
    in ``ABORTED_EMPTY``. Cancellation is checked between phases and never
    writes a snapshot.

    Args:
        podcast: Podcast to sync
        session: HTTP session owned by this task
        store: Snapshot store
        throttle: Permit source (e.g. a ``threading.BoundedSemaphore``), held for the full cycle
        timeout: Request timeout in seconds
        cancel: Optional cancellation event

    Returns:
        SyncResult describing how the cycle ended

    Raises:
        SnapshotError: If the fresh feed cannot be persisted
    """
    result = SyncResult(podcast=podcast.name)

    with throttle:
        if _cancelled(cancel):
            result.state = SyncState.CANCELLED
            return result

        result.state = SyncState.FETCHING
        try:
            body = downloader.fetch_feed(
                session,
                podcast.feed,
                timeout,
                username=podcast.username,
                password=podcast.password,
            )
        except NetworkError as exc:
            logger.error("Could not fetch feed: %s due to: %s", podcast.name, exc)
            result.state = SyncState.ABORTED_ERROR
            result.error = exc
            return result

        if _cancelled(cancel):
            result.state = SyncState.CANCELLED
            return result

        result.state = SyncState.PARSING
        try:
            fresh = rss_parser.parse_feed(body)
        except FeedParseError as exc:
            logger.error("Feed for %s could not be parsed: %s", podcast.name, exc)
            result.state = SyncState.ABORTED_ERROR
            result.error = exc
            return result

        result.state = SyncState.ORDERING
        fresh = order_feed(fresh)
        cached = order_feed(store.read(podcast))

        result.state = SyncState.DETECTING
        detection = detect_new_episodes(fresh, cached)
        result.detection = detection

        if not detection.persist:
            logger.warning("%s feed returned no items; keeping cached snapshot", podcast.name)
            result.state = SyncState.ABORTED_EMPTY
            return result

        if detection.has_new_episodes:
            logger.info("New episodes available for %s", detection.feed_title or podcast.name)
        elif detection.outcome == "first_run":
            logger.info("Seeding cache for %s with %d item(s)", podcast.name, len(fresh.items))
        else:
            logger.debug("No new episodes for %s", podcast.name)

        if _cancelled(cancel):
            result.state = SyncState.CANCELLED
            return result

        result.state = SyncState.PERSISTING
        store.write(podcast, fresh)
        result.state = SyncState.DONE
        return result


def _run_sync_task(
    podcast: Podcast,
    store: SnapshotStore,
    throttle: ContextManager,
    timeout: int,
    user_agent: str,
    cancel: Optional[threading.Event],
) -> SyncResult:
    session = downloader.create_session(user_agent)
    try:
        return sync_podcast(podcast, session, store, throttle, timeout=timeout, cancel=cancel)
    finally:
        session.close()


def sync_all(
    podcasts: Sequence[Podcast],
    *,
    workers: int,
    timeout: int,
    user_agent: str,
    store: Optional[SnapshotStore] = None,
    cancel: Optional[threading.Event] = None,
) -> List[SyncResult]:
    """Sync every podcast concurrently and wait for all cycles to finish.

    Each task gets its own HTTP session. At most ``workers`` cycles run at
    once. A snapshot write failure or any unexpected error is logged and reported
    in that podcast's result; the other podcasts continue.

    Args:
        podcasts: Podcasts to sync; storage paths must be distinct
        workers: Maximum number of concurrent cycles
        timeout: Request timeout in seconds
        user_agent: User-Agent header for every request
        store: Snapshot store (a default one is created if omitted)
        cancel: Optional cancellation event shared by all tasks

    Returns:
        One SyncResult per podcast, in input order
    """
    if not podcasts:
        return []
    store = store or SnapshotStore()
    cancel = cancel or threading.Event()
    throttle = threading.BoundedSemaphore(workers)
    results: dict = {}

    with ThreadPoolExecutor(max_workers=min(workers, len(podcasts))) as executor:
        future_map = {
            executor.submit(
                _run_sync_task, podcast, store, throttle, timeout, user_agent, cancel
            ): podcast
            for podcast in podcasts
        }
        try:
            for future in as_completed(future_map):
                podcast = future_map[future]
                try:
                    results[podcast.name] = future.result()
                except SnapshotError as exc:
                    logger.error("Could not persist snapshot for %s: %s", podcast.name, exc)
                    results[podcast.name] = SyncResult(
                        podcast=podcast.name, state=SyncState.ABORTED_ERROR, error=exc
                    )
                except Exception as exc:
                    logger.exception("Sync of %s failed unexpectedly", podcast.name)
                    results[podcast.name] = SyncResult(
                        podcast=podcast.name, state=SyncState.ABORTED_ERROR, error=exc
                    )
        except KeyboardInterrupt:
            # Pending and running cycles stop at their next phase boundary
            cancel.set()
            raise

    return [results[podcast.name] for podcast in podcasts]
