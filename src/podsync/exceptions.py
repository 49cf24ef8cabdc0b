"""Custom exceptions for podsync.

Exception Hierarchy:
    PodsyncError (base)
    ├── NetworkError - Transport failures (DNS, TLS, connection, timeout)
    ├── FeedParseError - Malformed feed content
    ├── SnapshotError - Snapshot write or directory creation failures
    ├── EpisodeIndexError - Episode number outside the cached feed
    └── DownloadError - Media stream or file write failures
"""

from typing import Optional


class PodsyncError(Exception):
    """Base exception for all podsync errors.

    Attributes:
        message: Human-readable error message
        podcast: Name of the podcast the error relates to, if known
    """

    def __init__(self, message: str, podcast: Optional[str] = None) -> None:
        self.message = message
        self.podcast = podcast
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.podcast:
            return f"[{self.podcast}] {self.message}"
        return self.message


class NetworkError(PodsyncError):
    """Raised when an HTTP request fails at the transport level.

    HTTP status codes are not interpreted; only failures to obtain a
    response at all (DNS, TLS, refused connection, timeout) end up here.
    """

    def __init__(
        self,
        message: str,
        podcast: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        self.url = url
        super().__init__(message, podcast=podcast)


class FeedParseError(PodsyncError):
    """Raised when feed bytes cannot be decoded into a feed."""


class SnapshotError(PodsyncError, OSError):
    """Raised when a snapshot cannot be written to disk."""

    def __init__(
        self,
        message: str,
        podcast: Optional[str] = None,
        path: Optional[str] = None,
    ) -> None:
        self.path = path
        PodsyncError.__init__(self, message, podcast=podcast)


class EpisodeIndexError(PodsyncError, IndexError):
    """Raised when an episode number is outside ``[1, item count]``.

    Example:
        >>> raise EpisodeIndexError(number=3, count=2, podcast="Example")
    """

    def __init__(self, number: int, count: int, podcast: Optional[str] = None) -> None:
        self.number = number
        self.count = count
        if count:
            message = f"Episode {number} out of range (1-{count})"
        else:
            message = f"Episode {number} out of range (no cached episodes, run sync first)"
        PodsyncError.__init__(self, message, podcast=podcast)


class DownloadError(PodsyncError):
    """Raised when streaming an enclosure to disk fails.

    The error is recoverable: the partial ``.part`` file (if any) stays on
    disk and callers decide whether to remove it.

    Attributes:
        partial_path: Path of the partially written file, if one was created
    """

    def __init__(
        self,
        message: str,
        podcast: Optional[str] = None,
        partial_path: Optional[str] = None,
    ) -> None:
        self.partial_path = partial_path
        super().__init__(message, podcast=podcast)
