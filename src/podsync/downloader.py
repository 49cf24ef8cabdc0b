"""HTTP session management, feed fetching and episode download for podsync."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, TYPE_CHECKING

import requests
from requests.adapters import HTTPAdapter
from requests.utils import requote_uri

from . import progress
from .episodes import resolve_episode
from .exceptions import DownloadError, NetworkError
from .snapshot import SnapshotStore

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import Podcast

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 256
FEED_CHUNK_SIZE = 1024 * 64
PARTIAL_SUFFIX = ".part"


@dataclass(frozen=True)
class DownloadResult:
    """Outcome of a completed episode download.

    Attributes:
        path: Final location of the media file
        bytes_written: Number of bytes streamed to disk
    """

    path: Path
    bytes_written: int


def normalize_url(url: str) -> str:
    """Normalize URLs while preserving already-encoded segments."""
    return requote_uri(url)


def create_session(user_agent: str) -> requests.Session:
    """Create an HTTP session for one sync or download task.

    Adapters are mounted without a retry policy: failed requests surface
    immediately and any retrying is left to the caller.

    Args:
        user_agent: Value of the User-Agent header

    Returns:
        Configured session; the caller is responsible for closing it
    """
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers["User-Agent"] = user_agent
    return session


def open_url(
    session: requests.Session,
    url: str,
    timeout: int,
    *,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> requests.Response:
    """Issue a streaming GET request.

    Basic Auth is attached only when both ``username`` and ``password`` are
    non-empty. The HTTP status is not interpreted; non-2xx responses are
    returned like any other and only logged.

    Args:
        session: Session to issue the request on
        url: URL to fetch
        timeout: Connect and read timeout in seconds
        username: Optional Basic Auth user name
        password: Optional Basic Auth password

    Returns:
        Open streaming response; close it when done

    Raises:
        NetworkError: If the request fails at the transport level
    """
    auth = (username, password) if username and password else None
    normalized_url = normalize_url(url)
    try:
        resp = session.get(normalized_url, auth=auth, timeout=timeout, stream=True)
    except requests.RequestException as exc:
        raise NetworkError(f"Could not fetch {url}: {exc}", url=url) from exc
    if not resp.ok:
        logger.warning("HTTP %s from %s; passing body through", resp.status_code, url)
    return resp


def fetch_feed(
    session: requests.Session,
    url: str,
    timeout: int,
    *,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> bytes:
    """Fetch a feed and return its raw body.

    Raises:
        NetworkError: If the request or reading the body fails
    """
    resp = open_url(session, url, timeout, username=username, password=password)
    try:
        parts = []
        for chunk in resp.iter_content(chunk_size=FEED_CHUNK_SIZE):
            if chunk:
                parts.append(chunk)
        body = b"".join(parts)
    except requests.RequestException as exc:
        raise NetworkError(f"Unable to read response from {url}: {exc}", url=url) from exc
    finally:
        resp.close()
    logger.debug("Fetched %d bytes from %s", len(body), url)
    return body


def write_stream(
    dest_dir: Path,
    chunks: Iterable[bytes],
    filename: str,
    length: int,
    *,
    cancel: Optional[threading.Event] = None,
    verify_length: bool = False,
    reserved_names: Iterable[str] = (),
) -> int:
    """Stream chunks into ``dest_dir/filename`` while reporting progress.

    Data is written to ``filename + ".part"`` and renamed over the final
    name only once the stream is exhausted, so an interrupted transfer
    never looks complete. On failure the part file is left in place.

    Args:
        dest_dir: Directory to write into (created if missing)
        chunks: Body chunks
        filename: Final filename
        length: Declared length, used as the progress total
        cancel: Optional event; when set the transfer stops
        verify_length: Fail when the byte count differs from a positive ``length``
        reserved_names: Filenames in ``dest_dir`` that a download must never replace

    Returns:
        Number of bytes written

    Raises:
        DownloadError: On an unusable filename, any write or stream failure,
            cancellation, or length mismatch
    """
    if not filename or filename in (".", ".."):
        raise DownloadError(f"Cannot derive a filename for the download from {filename!r}")
    if filename in reserved_names:
        raise DownloadError(f"Refusing to overwrite {filename} in {dest_dir}")

    final_path = Path(dest_dir) / filename
    part_path = final_path.with_name(final_path.name + PARTIAL_SUFFIX)
    try:
        os.makedirs(dest_dir, exist_ok=True)
        with (
            open(part_path, "wb") as f,
            progress.track_transfer(length, filename) as transfer,
        ):
            for chunk in chunks:
                if cancel is not None and cancel.is_set():
                    raise DownloadError("Download cancelled", partial_path=str(part_path))
                if not chunk:
                    continue
                f.write(chunk)
                transfer.advance(len(chunk))
    except (OSError, requests.RequestException) as exc:
        raise DownloadError(
            f"Could not download to {final_path}: {exc}", partial_path=str(part_path)
        ) from exc

    if verify_length and not transfer.matches_total():
        raise DownloadError(
            f"Downloaded {transfer.transferred} bytes but {length} were declared",
            partial_path=str(part_path),
        )

    try:
        os.replace(part_path, final_path)
    except OSError as exc:
        raise DownloadError(
            f"Could not move {part_path} into place: {exc}", partial_path=str(part_path)
        ) from exc
    return transfer.transferred


def download_episode(
    session: requests.Session,
    store: SnapshotStore,
    podcast: "Podcast",
    number: int,
    *,
    timeout: int,
    cancel: Optional[threading.Event] = None,
    verify_length: bool = False,
) -> DownloadResult:
    """Download episode ``number`` of the podcast's cached feed.

    Args:
        session: Session to download with
        store: Snapshot store holding the cached feed
        podcast: Podcast to download from; its credentials are reused
        number: 1-based episode number in ascending order
        timeout: Connect and read timeout in seconds
        cancel: Optional cancellation event
        verify_length: Fail when the size differs from the declared length

    Returns:
        DownloadResult with the final path and byte count

    Raises:
        EpisodeIndexError: If ``number`` is out of range
        NetworkError: If the enclosure cannot be requested
        DownloadError: If streaming to disk fails
    """
    episode = resolve_episode(store, podcast, number)
    dest = Path(podcast.path) / episode.filename
    logger.info("Downloading %s to %s", episode.title or episode.url, dest)

    try:
        resp = open_url(
            session,
            episode.url,
            timeout,
            username=podcast.username,
            password=podcast.password,
        )
    except NetworkError as exc:
        raise NetworkError(exc.message, podcast=podcast.name, url=exc.url) from exc

    try:
        written = write_stream(
            Path(podcast.path),
            resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE),
            episode.filename,
            episode.length,
            cancel=cancel,
            verify_length=verify_length,
            reserved_names=(store.cache_filename,),
        )
    except DownloadError as exc:
        raise DownloadError(
            exc.message, podcast=podcast.name, partial_path=exc.partial_path
        ) from exc
    finally:
        resp.close()

    logger.info("Finished downloading %s (%d bytes)", dest, written)
    return DownloadResult(path=dest, bytes_written=written)
