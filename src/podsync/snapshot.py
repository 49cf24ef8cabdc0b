"""Per-podcast snapshot of the last successfully fetched feed.

Each podcast owns exactly one snapshot file inside its storage directory.
The file is a versioned JSON document, written to a temporary file next to
the target and renamed into place so a concurrent reader never observes a
half-written snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, TYPE_CHECKING

from .exceptions import SnapshotError
from .models import Feed

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import Podcast

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = ".cache"
SNAPSHOT_SCHEMA_VERSION = 1
STORAGE_DIR_MODE = 0o700


def serialize_feed(feed: Feed) -> bytes:
    """Encode a feed as a versioned, byte-stable snapshot document."""
    document: Dict[str, Any] = {
        "schema_version": SNAPSHOT_SCHEMA_VERSION,
        "feed": feed.to_dict(),
    }
    return json.dumps(document, sort_keys=True, ensure_ascii=False, indent=2).encode("utf-8")


def deserialize_feed(data: bytes) -> Feed:
    """Decode a snapshot document.

    Raises:
        ValueError: If the document is malformed or has an unsupported schema version
    """
    document = json.loads(data.decode("utf-8"))
    if not isinstance(document, dict):
        raise ValueError("snapshot must contain a JSON object")
    version = document.get("schema_version")
    if version != SNAPSHOT_SCHEMA_VERSION:
        raise ValueError(f"unsupported snapshot schema version: {version!r}")
    feed_data = document.get("feed")
    if not isinstance(feed_data, dict):
        raise ValueError("snapshot is missing the feed object")
    return Feed.from_dict(feed_data)


class SnapshotStore:
    """Reads and writes feed snapshots under each podcast's storage path.

    The store keeps no state of its own; one instance can be shared by
    concurrent sync tasks as long as their podcasts use distinct paths.
    """

    def __init__(self, cache_filename: str = SNAPSHOT_FILENAME) -> None:
        self.cache_filename = cache_filename

    def path_for(self, podcast: "Podcast") -> Path:
        return Path(podcast.path) / self.cache_filename

    def read(self, podcast: "Podcast") -> Feed:
        """Load the podcast's snapshot.

        Absence of a snapshot is the normal first-run state and yields an
        empty feed, as does any snapshot that cannot be read or decoded.

        Args:
            podcast: Podcast whose snapshot to load

        Returns:
            Cached Feed, or an empty Feed
        """
        path = self.path_for(podcast)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            logger.debug("No snapshot for %s at %s", podcast.name, path)
            return Feed()
        except OSError as exc:
            logger.warning("Could not read snapshot for %s at %s: %s", podcast.name, path, exc)
            return Feed()

        try:
            return deserialize_feed(data)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable snapshot for %s at %s: %s", podcast.name, path, exc)
            return Feed()

    def write(self, podcast: "Podcast", feed: Feed) -> Path:
        """Replace the podcast's snapshot with ``feed``.

        Args:
            podcast: Podcast whose snapshot to replace
            feed: Feed to persist (already ordered)

        Returns:
            Path of the written snapshot

        Raises:
            SnapshotError: If the storage directory or the snapshot cannot be written
        """
        path = self.path_for(podcast)
        try:
            path.parent.mkdir(mode=STORAGE_DIR_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            raise SnapshotError(
                f"Could not create storage directory {path.parent}: {exc}",
                podcast=podcast.name,
                path=str(path),
            ) from exc

        payload = serialize_feed(feed)
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f"{self.cache_filename}.", suffix=".tmp", dir=path.parent
            )
        except OSError as exc:
            raise SnapshotError(
                f"Could not create snapshot file in {path.parent}: {exc}",
                podcast=podcast.name,
                path=str(path),
            ) from exc
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, path)
        except OSError as exc:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
            raise SnapshotError(
                f"Could not write snapshot {path}: {exc}",
                podcast=podcast.name,
                path=str(path),
            ) from exc

        logger.debug("Wrote snapshot for %s (%d item(s)) to %s", podcast.name, len(feed.items), path)
        return path
