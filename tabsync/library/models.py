# Tablet Sync Library Models
# Items and attachments of the managed library

import secrets
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Optional

KEY_ALPHABET = "23456789ABCDEFGHIJKLMNPQRSTUVWXYZ"
KEY_LENGTH = 8

ATTACHMENT = "attachment"


class LinkMode(str, Enum):
    """How an attachment refers to its content."""

    IMPORTED_FILE = "imported_file"  # stored under the library storage directory
    LINKED_FILE = "linked_file"  # absolute path anywhere on disk
    LINKED_URL = "linked_url"  # web link, no file


def generate_key() -> str:
    """Generate a random item key."""
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_LENGTH))


@dataclass
class Item:
    """
    A library item.

    Regular items (articles, books) carry bibliographic metadata; attachments
    are children of a regular item and point to a file. Both carry tags and
    a free-text ``sync_data`` blob.
    """

    key: str
    item_type: str = ATTACHMENT
    parent_key: Optional[str] = None
    title: str = ""
    creators: list[str] = field(default_factory=list)
    date: str = ""
    publication_title: str = ""
    content_type: Optional[str] = None
    link_mode: Optional[LinkMode] = None
    path: Optional[str] = None
    tags: set[str] = field(default_factory=set)
    sync_data: Optional[str] = None

    @property
    def is_attachment(self) -> bool:
        """Check if item is an attachment."""
        return self.item_type == ATTACHMENT

    @property
    def is_top_level(self) -> bool:
        """Check if item has no parent."""
        return self.parent_key is None

    @property
    def filename(self) -> str:
        """Attachment filename, or the title for other items."""
        if self.path:
            return Path(self.path).name
        return self.title or self.key

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def add_tag(self, tag: str) -> bool:
        """Add a tag. Returns True if it was not there before."""
        if tag in self.tags:
            return False
        self.tags.add(tag)
        return True

    def remove_tag(self, tag: str) -> bool:
        """Remove a tag. Returns True if it was there."""
        if tag not in self.tags:
            return False
        self.tags.discard(tag)
        return True

    def restore_from(self, other: "Item") -> None:
        """Overwrite all fields with those of ``other`` in place."""
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data: dict[str, Any] = {
            "item_type": self.item_type,
            "parent_key": self.parent_key,
            "title": self.title,
            "creators": list(self.creators),
            "date": self.date,
            "publication_title": self.publication_title,
            "content_type": self.content_type,
            "link_mode": self.link_mode.value if self.link_mode else None,
            "path": self.path,
            "tags": sorted(self.tags),
            "sync_data": self.sync_data,
        }
        return {k: v for k, v in data.items() if v not in (None, "", [])}

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "Item":
        """Create from dictionary."""
        link_mode = data.get("link_mode")
        return cls(
            key=key,
            item_type=data.get("item_type", ATTACHMENT),
            parent_key=data.get("parent_key"),
            title=data.get("title", ""),
            creators=list(data.get("creators") or []),
            date=str(data.get("date") or ""),
            publication_title=data.get("publication_title", ""),
            content_type=data.get("content_type"),
            link_mode=LinkMode(link_mode) if link_mode else None,
            path=data.get("path"),
            tags=set(data.get("tags") or []),
            sync_data=data.get("sync_data"),
        )
