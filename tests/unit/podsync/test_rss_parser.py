#!/usr/bin/env python3
"""Tests for RSS parsing functionality."""

import sys
import unittest

# Bandit: tests construct safe XML elements
import xml.etree.ElementTree as ET  # nosec B405
from pathlib import Path

from podsync import rss_parser
from podsync.exceptions import FeedParseError, PodsyncError

# Add tests directory to path for conftest import
tests_dir = Path(__file__).parents[2]
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from conftest import (  # noqa: E402
    build_newest_first_rss_xml,
    build_rss_xml,
    TEST_BASE_URL,
    TEST_FEED_DESCRIPTION,
    TEST_FEED_TITLE,
    TEST_MEDIA_TYPE_MP3,
    TEST_PUB_DATE_NEWEST,
)


class TestParseFeed(unittest.TestCase):
    """Tests for parse_feed function."""

    def test_parse_channel_and_items(self):
        xml = build_newest_first_rss_xml()
        feed = rss_parser.parse_feed(xml.encode("utf-8"))

        self.assertEqual(feed.title, TEST_FEED_TITLE)
        self.assertEqual(feed.description, TEST_FEED_DESCRIPTION)
        self.assertEqual([item.title for item in feed.items], ["C", "B", "A"])

    def test_items_keep_document_order(self):
        """Parsing never reorders; ordering is a separate step."""
        xml = build_rss_xml(items=[{"title": "Z"}, {"title": "A"}, {"title": "M"}])
        feed = rss_parser.parse_feed(xml.encode("utf-8"))
        self.assertEqual([item.title for item in feed.items], ["Z", "A", "M"])

    def test_enclosure_attributes(self):
        xml = build_rss_xml(
            items=[
                {
                    "title": "Ep",
                    "pub_date": TEST_PUB_DATE_NEWEST,
                    "url": f"{TEST_BASE_URL}/ep.mp3",
                    "length": 12345,
                }
            ]
        )
        item = rss_parser.parse_feed(xml.encode("utf-8")).items[0]

        self.assertEqual(item.enclosure.url, f"{TEST_BASE_URL}/ep.mp3")
        self.assertEqual(item.enclosure.length, 12345)
        self.assertEqual(item.enclosure.type, TEST_MEDIA_TYPE_MP3)
        self.assertEqual(item.pub_date, TEST_PUB_DATE_NEWEST)

    def test_channel_without_items_is_valid(self):
        feed = rss_parser.parse_feed(build_rss_xml(items=[]).encode("utf-8"))
        self.assertEqual(feed.title, TEST_FEED_TITLE)
        self.assertTrue(feed.is_empty)

    def test_missing_children_yield_empty_strings(self):
        xml = b"<rss><channel><item></item></channel></rss>"
        feed = rss_parser.parse_feed(xml)

        self.assertEqual(feed.title, "")
        self.assertEqual(feed.description, "")
        self.assertEqual(len(feed.items), 1)
        item = feed.items[0]
        self.assertEqual(item.title, "")
        self.assertEqual(item.pub_date, "")
        self.assertEqual(item.enclosure.url, "")
        self.assertEqual(item.enclosure.length, 0)
        self.assertEqual(item.enclosure.type, "")

    def test_text_is_stripped(self):
        xml = b"""<rss><channel>
            <title>
                Padded Title
            </title>
            <item><title>  Ep 1  </title><pubDate>
              Mon, 01 Jan 2024 10:00:00 +0000
            </pubDate></item>
        </channel></rss>"""
        feed = rss_parser.parse_feed(xml)
        self.assertEqual(feed.title, "Padded Title")
        self.assertEqual(feed.items[0].title, "Ep 1")
        self.assertEqual(feed.items[0].pub_date, "Mon, 01 Jan 2024 10:00:00 +0000")

    def test_malformed_xml_raises(self):
        with self.assertRaises(FeedParseError):
            rss_parser.parse_feed(b"<rss><channel><title>broken")

    def test_html_error_page_raises(self):
        with self.assertRaises(FeedParseError):
            rss_parser.parse_feed(b"<html><body>502 Bad Gateway</body></html>")

    def test_empty_body_raises(self):
        with self.assertRaises(FeedParseError):
            rss_parser.parse_feed(b"")

    def test_missing_channel_raises(self):
        with self.assertRaises(FeedParseError):
            rss_parser.parse_feed(b"<rss version='2.0'></rss>")

    def test_parse_error_is_podsync_error(self):
        with self.assertRaises(PodsyncError):
            rss_parser.parse_feed(b"not xml at all")

    def test_unknown_encoding_raises(self):
        with self.assertRaises(FeedParseError):
            rss_parser.parse_feed(
                b'<?xml version="1.0" encoding="bogus"?><rss><channel/></rss>'
            )

    def test_entity_expansion_is_rejected(self):
        xml = b"""<?xml version="1.0"?>
<!DOCTYPE rss [<!ENTITY boom "boom">]>
<rss><channel><title>&boom;</title></channel></rss>"""
        with self.assertRaises(FeedParseError):
            rss_parser.parse_feed(xml)


class TestParseEnclosure(unittest.TestCase):
    """Tests for parse_enclosure function."""

    def test_item_without_enclosure(self):
        item = ET.Element("item")
        enclosure = rss_parser.parse_enclosure(item)
        self.assertEqual(enclosure.url, "")
        self.assertEqual(enclosure.length, 0)

    def test_non_numeric_length_is_zero(self):
        item = ET.Element("item")
        ET.SubElement(item, "enclosure", url="https://example.com/a.mp3", length="unknown")
        self.assertEqual(rss_parser.parse_enclosure(item).length, 0)

    def test_negative_length_is_zero(self):
        item = ET.Element("item")
        ET.SubElement(item, "enclosure", url="https://example.com/a.mp3", length="-5")
        self.assertEqual(rss_parser.parse_enclosure(item).length, 0)


class TestParseItem(unittest.TestCase):
    """Tests for parse_item function."""

    def test_parse_item(self):
        item = ET.Element("item")
        ET.SubElement(item, "title").text = "Episode 1"
        ET.SubElement(item, "pubDate").text = "Mon, 01 Jan 2024 10:00:00 +0000"
        ET.SubElement(
            item, "enclosure", url="https://example.com/1.mp3", length="10", type="audio/mpeg"
        )

        parsed = rss_parser.parse_item(item)

        self.assertEqual(parsed.title, "Episode 1")
        self.assertEqual(parsed.enclosure.url, "https://example.com/1.mp3")
        self.assertEqual(parsed.enclosure.length, 10)
        self.assertEqual(parsed.published.year, 2024)
        self.assertFalse(parsed.downloaded)


if __name__ == "__main__":
    unittest.main()
