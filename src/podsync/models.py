from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class Enclosure:
    """Media attachment referenced by a feed item.

    Attributes:
        url: Media URL as published in the feed.
        length: Declared size in bytes (0 when the feed omits it or it is not numeric).
        type: MIME type of the media (e.g., "audio/mpeg").
    """

    url: str = ""
    length: int = 0
    type: str = ""


@dataclass
class Item:
    """A single episode entry of a feed.

    ``pub_date`` is kept verbatim as published. The parsed timestamp is
    derived on access and the ``downloaded`` flag is computed at listing
    time; neither is ever persisted.

    Attributes:
        title: Episode title.
        enclosure: Media attachment of the episode.
        pub_date: Raw ``pubDate`` string (RFC-1123 with numeric offset).
        downloaded: Whether the enclosure file exists locally (transient).

    Example:
        >>> item = Item(
        ...     title="Ep1",
        ...     enclosure=Enclosure(url="https://example.com/ep1.mp3", length=1000),
        ...     pub_date="Mon, 01 Jan 2024 10:00:00 +0000",
        ... )
        >>> item.published.year
        2024
    """

    title: str = ""
    enclosure: Enclosure = field(default_factory=Enclosure)
    pub_date: str = ""
    downloaded: bool = field(default=False, compare=False)

    @property
    def published(self) -> Optional[datetime]:
        """Parsed publish date, or None when ``pub_date`` does not match the layout."""
        from .ordering import parse_pub_date

        return parse_pub_date(self.pub_date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "pub_date": self.pub_date,
            "enclosure": {
                "url": self.enclosure.url,
                "length": self.enclosure.length,
                "type": self.enclosure.type,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        enclosure = data.get("enclosure") or {}
        return cls(
            title=str(data.get("title", "")),
            pub_date=str(data.get("pub_date", "")),
            enclosure=Enclosure(
                url=str(enclosure.get("url", "")),
                length=int(enclosure.get("length", 0) or 0),
                type=str(enclosure.get("type", "")),
            ),
        )


@dataclass
class Feed:
    """One point-in-time view of a show's episode list.

    Attributes:
        title: Channel title.
        description: Channel description.
        items: Episode entries, in whatever order the producer left them.
    """

    title: str = ""
    description: str = ""
    items: List[Item] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def latest(self) -> Optional[Item]:
        """Item in the last position (the most recent one once ordered ascending)."""
        return self.items[-1] if self.items else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feed":
        return cls(
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            items=[Item.from_dict(item) for item in data.get("items", [])],
        )
