"""Download progress reporting.

Transfers count their own bytes and forward each increment to a pluggable
reporter. The library stays silent by default; front ends install a factory
(the CLI uses tqdm) with :func:`set_progress_factory`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Optional, Protocol


class ProgressReporter(Protocol):
    """Sink receiving byte increments for one transfer."""

    def update(self, advance: int) -> None: ...


# Called with (total bytes or None, description)
ProgressFactory = Callable[[Optional[int], str], ContextManager[ProgressReporter]]


class _SilentReporter:
    def update(self, advance: int) -> None:  # pragma: no cover - trivial
        return None


@contextmanager
def _silent_progress(total: Optional[int], description: str) -> Iterator[ProgressReporter]:
    yield _SilentReporter()


_progress_factory: ProgressFactory = _silent_progress


def set_progress_factory(factory: Optional[ProgressFactory]) -> None:
    """Install the factory used for new transfers; ``None`` restores silence."""
    global _progress_factory
    _progress_factory = factory or _silent_progress


class Transfer:
    """Byte counter for a single download.

    Attributes:
        total: Declared size in bytes, or None when the feed did not give one
        transferred: Bytes seen so far
    """

    def __init__(self, reporter: ProgressReporter, total: Optional[int]) -> None:
        self._reporter = reporter
        self.total = total
        self.transferred = 0

    def advance(self, count: int) -> None:
        if count <= 0:
            return
        self.transferred += count
        self._reporter.update(count)

    def matches_total(self) -> bool:
        """True when no size was declared or exactly that many bytes arrived."""
        return self.total is None or self.transferred == self.total


@contextmanager
def track_transfer(total: Optional[int], filename: str) -> Iterator[Transfer]:
    """Open a reporter for downloading ``filename`` and yield its counter.

    A ``total`` of 0 is treated as unknown.
    """
    total = total or None
    with _progress_factory(total, f"Downloading {filename}") as reporter:
        yield Transfer(reporter, total)


__all__ = [
    "ProgressFactory",
    "ProgressReporter",
    "Transfer",
    "set_progress_factory",
    "track_transfer",
]
