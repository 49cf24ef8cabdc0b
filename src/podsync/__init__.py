# This project is intended for personal, non-commercial use only.

"""podsync - Keep local copies of podcast feeds and download their episodes.

This package provides a small API for following podcasts:
- Sync RSS feeds and detect newly published episodes against a cached snapshot
- List cached episodes in chronological order (oldest first)
- Download a selected episode with progress reporting

Programmatic API Example:
    >>> import podsync
    >>>
    >>> cfg = podsync.Config.model_validate(podsync.load_config_file("config.yaml"))
    >>> results = podsync.sync_all(
    ...     cfg.podcasts, workers=cfg.workers, timeout=cfg.timeout, user_agent=cfg.user_agent
    ... )
    >>> [r.podcast for r in results if r.has_new_episodes]
    ['Example']

CLI Usage:
    $ podsync sync
    $ podsync list Example
    $ podsync download Example 3
"""

from __future__ import annotations

# Defined before submodule imports; config derives its default User-Agent from it
__version__ = "0.1.0"

from .config import Config, load_config_file, Podcast  # noqa: E402
from .downloader import create_session, download_episode, DownloadResult  # noqa: E402
from .episodes import episode_filename, list_episodes, resolve_episode  # noqa: E402
from .exceptions import (  # noqa: E402
    DownloadError,
    EpisodeIndexError,
    FeedParseError,
    NetworkError,
    PodsyncError,
    SnapshotError,
)
from .snapshot import SnapshotStore  # noqa: E402
from .workflow import sync_all, sync_podcast, SyncResult, SyncState  # noqa: E402

__all__ = [
    "Config",
    "Podcast",
    "load_config_file",
    "create_session",
    "download_episode",
    "DownloadResult",
    "episode_filename",
    "list_episodes",
    "resolve_episode",
    "DownloadError",
    "EpisodeIndexError",
    "FeedParseError",
    "NetworkError",
    "PodsyncError",
    "SnapshotError",
    "SnapshotStore",
    "sync_all",
    "sync_podcast",
    "SyncResult",
    "SyncState",
    "__version__",
]
