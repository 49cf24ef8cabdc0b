"""Command-line interface for podsync."""

from __future__ import annotations

import argparse
import logging
from contextlib import contextmanager
from typing import Any, Callable, cast, Dict, Iterator, List, Optional, Sequence, TYPE_CHECKING

from pydantic import ValidationError

from . import __version__, config, downloader, episodes, progress, workflow
from .exceptions import PodsyncError
from .snapshot import SnapshotStore

if TYPE_CHECKING:  # pragma: no cover - typing only
    import tqdm

_LOGGER = logging.getLogger(__name__)

# Progress bar constants
TQDM_NCOLS = 80
TQDM_MIN_INTERVAL = 0.5
TQDM_MIN_ITERS = 1
BYTES_PER_KB = 1024

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class _TqdmProgress:
    """Simple adapter that exposes tqdm's update interface."""

    def __init__(self, bar: "tqdm.tqdm") -> None:
        self._bar = bar

    def update(self, advance: int) -> None:
        self._bar.update(advance)


@contextmanager
def _tqdm_progress(total: Optional[int], description: str) -> Iterator[_TqdmProgress]:
    """Create a tqdm progress context matching the shared progress API."""
    from tqdm import tqdm

    kwargs: Dict[str, Any] = {"desc": description}
    if total is None:
        # Unknown length: count bytes without a bar
        kwargs.update(
            total=None,
            unit="B",
            unit_scale=True,
            unit_divisor=BYTES_PER_KB,
            leave=False,
            miniters=TQDM_MIN_ITERS,
            mininterval=TQDM_MIN_INTERVAL,
            ncols=TQDM_NCOLS,
            dynamic_ncols=False,
        )
    else:
        kwargs.update(
            total=total,
            unit="B",
            unit_scale=True,
            unit_divisor=BYTES_PER_KB,
            leave=True,
        )

    with tqdm(**kwargs) as bar:
        yield _TqdmProgress(bar)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"episode numbers start at 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="podsync",
        description="Sync podcast feeds and download episodes.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to configuration file (JSON or YAML, default: {config.default_config_path()})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=config.VALID_LOG_LEVELS,
        help="Override the configured log level",
    )
    parser.add_argument("--version", action="version", version=f"podsync {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    sync_parser = subparsers.add_parser("sync", help="Fetch feeds and report new episodes")
    sync_parser.add_argument(
        "names", nargs="*", metavar="NAME", help="Podcasts to sync (default: all)"
    )

    list_parser = subparsers.add_parser("list", help="List cached episodes, oldest first")
    list_parser.add_argument("name", metavar="NAME", help="Podcast name")

    download_parser = subparsers.add_parser("download", help="Download one episode")
    download_parser.add_argument("name", metavar="NAME", help="Podcast name")
    download_parser.add_argument(
        "number", type=_positive_int, metavar="NUMBER", help="Episode number as shown by 'list'"
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    return build_parser().parse_args(argv)


def _load_config(args: argparse.Namespace) -> config.Config:
    """Load the configuration file and apply command-line overrides.

    Raises:
        ValueError: If the file cannot be loaded
        ValidationError: If its contents are invalid
    """
    path = args.config or str(config.default_config_path())
    data = config.load_config_file(path)
    if args.log_level:
        data["log_level"] = args.log_level
    # Pydantic's model_validate returns the correct type, but mypy needs help
    return cast(config.Config, config.Config.model_validate(data))


def _select_podcasts(cfg: config.Config, names: Sequence[str]) -> List[config.Podcast]:
    if not names:
        return list(cfg.podcasts)
    return [cfg.podcast(name) for name in names]


def _run_sync(cfg: config.Config, args: argparse.Namespace, log: logging.Logger) -> int:
    try:
        podcasts = _select_podcasts(cfg, args.names)
    except KeyError as exc:
        log.error(f"Unknown podcast: {exc.args[0]}")
        return EXIT_FAILURE
    if not podcasts:
        log.warning("No podcasts configured")
        return EXIT_OK

    results = workflow.sync_all(
        podcasts,
        workers=cfg.workers,
        timeout=cfg.timeout,
        user_agent=cfg.user_agent,
    )
    failed = [r for r in results if r.state == workflow.SyncState.ABORTED_ERROR]
    fresh = sum(1 for r in results if r.has_new_episodes)
    log.info(f"Synced {len(results) - len(failed)}/{len(results)} podcast(s), {fresh} with new episodes")
    for result in failed:
        log.error(f"  {result.podcast}: {result.error}")
    return EXIT_FAILURE if failed else EXIT_OK


def _run_list(cfg: config.Config, args: argparse.Namespace, log: logging.Logger) -> int:
    try:
        podcast = cfg.podcast(args.name)
    except KeyError:
        log.error(f"Unknown podcast: {args.name}")
        return EXIT_FAILURE

    items = episodes.list_episodes(SnapshotStore(), podcast)
    if not items:
        log.info(f"No cached episodes for {podcast.name}; run 'podsync sync' first")
        return EXIT_OK
    for number, item in enumerate(items, start=1):
        marker = "*" if item.downloaded else " "
        print(f"{number:>4} {marker} {item.title}  ({item.pub_date})")
    return EXIT_OK


def _run_download(cfg: config.Config, args: argparse.Namespace, log: logging.Logger) -> int:
    try:
        podcast = cfg.podcast(args.name)
    except KeyError:
        log.error(f"Unknown podcast: {args.name}")
        return EXIT_FAILURE

    session = downloader.create_session(cfg.user_agent)
    try:
        result = downloader.download_episode(
            session,
            SnapshotStore(),
            podcast,
            args.number,
            timeout=cfg.timeout,
            verify_length=cfg.verify_length,
        )
    except PodsyncError as exc:
        log.error(f"Download failed: {exc}")
        return EXIT_FAILURE
    finally:
        session.close()

    log.info(f"Saved {result.path}")
    return EXIT_OK


_COMMANDS: Dict[str, Callable[[config.Config, argparse.Namespace, logging.Logger], int]] = {
    "sync": _run_sync,
    "list": _run_list,
    "download": _run_download,
}


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    apply_log_level_fn: Optional[Callable[[str, Optional[str]], None]] = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Entry point for the CLI; returns an exit status code."""
    progress.set_progress_factory(_tqdm_progress)
    log = logger or _LOGGER
    if apply_log_level_fn is None:
        apply_log_level_fn = workflow.apply_log_level

    args = parse_args(argv)

    try:
        cfg = _load_config(args)
    except ValueError as exc:
        # pydantic's ValidationError is a ValueError too
        if isinstance(exc, ValidationError):
            log.error(f"Invalid configuration: {exc}")
        else:
            log.error(f"Error: {exc}")
        return EXIT_FAILURE

    try:
        apply_log_level_fn(cfg.log_level, cfg.log_file)
    except (ValueError, OSError) as exc:
        log.error(f"Could not configure logging: {exc}")
        return EXIT_FAILURE

    try:
        return _COMMANDS[args.command](cfg, args, log)
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return EXIT_INTERRUPTED


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
