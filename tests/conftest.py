"""Shared fixtures and test utilities for podsync tests.

This module contains:
- Test constants
- Helper functions for creating test objects
- Mock classes and fixtures
- Shared test utilities

All test files can import from this module using pytest's conftest.py mechanism.
"""

import os

os.environ["TERM"] = "dumb"  # Keep tqdm output plain

import unittest.mock
from xml.sax.saxutils import escape

import pytest

from podsync import config, models, progress

# Test constants
TEST_BASE_URL = "https://example.com"
TEST_FEED_URL = "https://example.com/feed.xml"
TEST_PODCAST_NAME = "Example"
TEST_FEED_TITLE = "Test Feed"
TEST_FEED_DESCRIPTION = "A feed used in tests"
TEST_MEDIA_TYPE_MP3 = "audio/mpeg"
TEST_USER_AGENT = "podsync-tests/1.0"

# Descending (newest-first) publish dates
TEST_PUB_DATE_NEWEST = "Wed, 03 Jan 2024 10:00:00 +0000"
TEST_PUB_DATE_MIDDLE = "Tue, 02 Jan 2024 10:00:00 +0000"
TEST_PUB_DATE_OLDEST = "Mon, 01 Jan 2024 10:00:00 +0000"


# Test helper functions
def create_test_podcast(path, **overrides):
    """Create test Podcast object with defaults.

    Args:
        path: Storage directory for the podcast
        **overrides: Fields to override from defaults

    Returns:
        config.Podcast object with test defaults
    """
    defaults = {
        "name": TEST_PODCAST_NAME,
        "feed": TEST_FEED_URL,
        "path": str(path),
    }
    defaults.update(overrides)
    return config.Podcast(**defaults)


def create_test_config(podcasts=None, **overrides):
    """Create test Config object with defaults.

    Args:
        podcasts: Podcasts to include (default: none)
        **overrides: Fields to override from defaults

    Returns:
        config.Config object with test defaults
    """
    defaults = {
        "podcasts": list(podcasts or []),
        "timeout": 5,
        "workers": 2,
        "user_agent": TEST_USER_AGENT,
        "log_level": "INFO",
    }
    defaults.update(overrides)
    return config.Config(**defaults)


def create_test_item(title, pub_date="", url=None, length=0, media_type=TEST_MEDIA_TYPE_MP3):
    """Create test Item with an enclosure derived from the title if no URL is given."""
    if url is None:
        url = f"{TEST_BASE_URL}/{title.lower().replace(' ', '')}.mp3"
    return models.Item(
        title=title,
        pub_date=pub_date,
        enclosure=models.Enclosure(url=url, length=length, type=media_type),
    )


def create_test_feed(items=None, **overrides):
    """Create test Feed object with defaults.

    Args:
        items: Feed items (default: none)
        **overrides: Fields to override from defaults

    Returns:
        models.Feed object with test defaults
    """
    defaults = {
        "title": TEST_FEED_TITLE,
        "description": TEST_FEED_DESCRIPTION,
        "items": list(items or []),
    }
    defaults.update(overrides)
    return models.Feed(**defaults)


def build_rss_xml(title=TEST_FEED_TITLE, items=None, description=TEST_FEED_DESCRIPTION):
    """Build RSS XML with the given items.

    Args:
        title: Feed title
        items: List of item dictionaries with ``title``, ``pub_date``, ``url``,
            ``length`` and ``type`` keys (all optional)
        description: Channel description

    Returns:
        RSS XML string
    """
    items_xml = ""
    for item in items or []:
        parts = []
        if "title" in item:
            parts.append(f"      <title>{escape(item['title'])}</title>")
        if "pub_date" in item:
            parts.append(f"      <pubDate>{item['pub_date']}</pubDate>")
        if "url" in item:
            length = item.get("length", 0)
            media_type = item.get("type", TEST_MEDIA_TYPE_MP3)
            parts.append(
                f'      <enclosure url="{escape(item["url"])}" length="{length}" '
                f'type="{media_type}" />'
            )
        items_xml += "    <item>\n" + "\n".join(parts) + "\n    </item>\n"

    return f"""<?xml version='1.0' encoding='UTF-8'?>
<rss version="2.0">
  <channel>
    <title>{escape(title)}</title>
    <description>{escape(description)}</description>
{items_xml}  </channel>
</rss>""".strip()


def build_newest_first_rss_xml(title=TEST_FEED_TITLE):
    """Build RSS XML with three items delivered newest-first (C, B, A)."""
    return build_rss_xml(
        title=title,
        items=[
            {"title": "C", "pub_date": TEST_PUB_DATE_NEWEST, "url": f"{TEST_BASE_URL}/c.mp3"},
            {"title": "B", "pub_date": TEST_PUB_DATE_MIDDLE, "url": f"{TEST_BASE_URL}/b.mp3"},
            {"title": "A", "pub_date": TEST_PUB_DATE_OLDEST, "url": f"{TEST_BASE_URL}/a.mp3"},
        ],
    )


def create_rss_response(rss_xml, url=TEST_FEED_URL):
    """Create MockHTTPResponse for RSS feed.

    Args:
        rss_xml: RSS XML string
        url: Feed URL

    Returns:
        MockHTTPResponse object
    """
    return MockHTTPResponse(
        content=rss_xml.encode("utf-8"),
        url=url,
        headers={"Content-Type": "application/rss+xml"},
    )


def create_media_response(media_bytes, url, content_type=TEST_MEDIA_TYPE_MP3, chunk_size=None):
    """Create MockHTTPResponse for media file.

    Args:
        media_bytes: Media file bytes
        url: Media URL
        content_type: Content type header
        chunk_size: Split the body into chunks of this size (default: one chunk)

    Returns:
        MockHTTPResponse object
    """
    if chunk_size:
        chunks = [media_bytes[i : i + chunk_size] for i in range(0, len(media_bytes), chunk_size)]
    else:
        chunks = [media_bytes]
    return MockHTTPResponse(
        url=url,
        headers={"Content-Type": content_type, "Content-Length": str(len(media_bytes))},
        chunks=chunks,
    )


def create_mock_session(*responses):
    """Create a mock requests.Session whose ``get`` returns ``responses`` in order."""
    session = unittest.mock.MagicMock()
    session.get.side_effect = list(responses)
    return session


class MockHTTPResponse:
    """Simple mock for HTTP responses used in tests."""

    def __init__(self, *, content=b"", url="", headers=None, chunks=None, status_code=200):
        self.content = content
        self.url = url
        self.headers = headers or {}
        self.status_code = status_code
        self.closed = False
        self._chunks = chunks if chunks is not None else [content]

    @property
    def ok(self):
        return self.status_code < 400

    def raise_for_status(self):
        return None

    def iter_content(self, chunk_size=1):
        for chunk in self._chunks:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk

    def close(self):
        self.closed = True


class CountingSemaphore:
    """Context-manager throttle that records acquisitions and releases."""

    def __init__(self):
        self.acquired = 0
        self.released = 0

    @property
    def held(self):
        return self.acquired - self.released

    def __enter__(self):
        self.acquired += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.released += 1
        return False


@pytest.fixture(autouse=True)
def _reset_progress_factory():
    """Keep the global progress factory from leaking between tests."""
    yield
    progress.set_progress_factory(None)
