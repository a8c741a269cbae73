# Tablet Sync Library Store
# YAML-backed item store with transactional batch saves

import asyncio
import copy
import logging
import mimetypes
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import yaml

from tabsync.config.schema import LibraryConfig
from tabsync.library.models import ATTACHMENT, Item, LinkMode, generate_key
from tabsync.utils.paths import FileSystem, get_relative_path

logger = logging.getLogger(__name__)

LIBRARY_VERSION = "1.0"


class LibraryStore:
    """
    The managed library: items, attachments, tags and per-item metadata.

    Items live in memory and are persisted to a YAML file. Outside a
    transaction every :meth:`save` writes the file; inside
    :meth:`transaction` writes are deferred to a single commit and all item
    changes are rolled back if the block raises.
    """

    def __init__(self, path: Optional[Path], storage_dir: Path):
        """
        Initialize library store.

        Args:
            path: Library file. ``None`` keeps the library in memory only.
            storage_dir: Directory for imported attachment files.
        """
        self.path = path
        self.storage_dir = Path(storage_dir)
        self._items: dict[str, Item] = {}
        self._depth = 0
        self._dirty = False
        self._write_lock = asyncio.Lock()

    @classmethod
    def open(cls, config: LibraryConfig) -> "LibraryStore":
        """Open the library described by the configuration."""
        store = cls(Path(config.path), Path(config.storage_dir))
        store.load()
        return store

    def load(self) -> None:
        """Load items from the library file."""
        self._items = {}
        if self.path is None or not self.path.exists():
            return

        with open(self.path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        for key, item_data in (data.get("items") or {}).items():
            self._items[key] = Item.from_dict(key, item_data or {})

    def to_dict(self) -> dict:
        """Convert library to dictionary for serialization."""
        return {
            "version": LIBRARY_VERSION,
            "items": {key: item.to_dict() for key, item in sorted(self._items.items())},
        }

    # ==================== Persistence ====================

    async def save(self) -> None:
        """Persist the library, or mark it dirty inside a transaction."""
        if self._depth > 0:
            self._dirty = True
            return
        await self._write()

    async def _write(self) -> None:
        if self.path is None:
            return

        text = yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True)

        async with self._write_lock:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            temp_path = self.path.with_name(f".{self.path.name}.{os.getpid()}.tmp")
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(text)
            # Atomic rename
            await aiofiles.os.replace(temp_path, self.path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["LibraryStore"]:
        """
        Apply every change made inside the block atomically.

        Nested transactions join the outermost one.
        """
        if self._depth > 0:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = {key: copy.deepcopy(item) for key, item in self._items.items()}
        self._depth = 1
        self._dirty = False
        try:
            yield self
        except BaseException:
            self._rollback(snapshot)
            raise
        finally:
            self._depth = 0

        # Commit only what was saved inside the block
        if self._dirty:
            await self._write()
        self._dirty = False

    def _rollback(self, snapshot: dict[str, Item]) -> None:
        logger.debug("Rolling back library transaction")
        for key in list(self._items):
            if key not in snapshot:
                del self._items[key]
        for key, saved in snapshot.items():
            current = self._items.get(key)
            if current is None:
                self._items[key] = saved
            else:
                current.restore_from(saved)
        self._dirty = False

    # ==================== Items ====================

    def get(self, key: str) -> Optional[Item]:
        """Get an item by key."""
        return self._items.get(key)

    def items(self) -> list[Item]:
        """All items."""
        return list(self._items.values())

    def add(self, item: Item) -> Item:
        """Add an item to the library."""
        if item.key in self._items:
            raise KeyError(f"Item '{item.key}' already exists")
        self._items[item.key] = item
        return item

    def new_key(self) -> str:
        """Generate a key not used by any item."""
        while True:
            key = generate_key()
            if key not in self._items:
                return key

    def parent_of(self, item: Item) -> Optional[Item]:
        """Get the parent of a child item."""
        if item.parent_key is None:
            return None
        return self._items.get(item.parent_key)

    def children_of(self, item: Item) -> list[Item]:
        """Get child items in key order."""
        return sorted(
            (child for child in self._items.values() if child.parent_key == item.key),
            key=lambda child: child.key,
        )

    def search_by_tag(self, tag: str) -> list[Item]:
        """All items carrying a tag."""
        return [item for item in self._items.values() if item.has_tag(tag)]

    # ==================== Attachment files ====================

    def file_path(self, item: Item) -> Optional[Path]:
        """
        Resolve the content path of an attachment.

        Returns:
            Absolute path, or None for non-file items.
        """
        if not item.is_attachment or not item.path:
            return None
        if item.link_mode == LinkMode.IMPORTED_FILE:
            return self.storage_dir / item.key / item.path
        if item.link_mode == LinkMode.LINKED_FILE:
            return Path(item.path)
        return None

    def storage_path_for(self, item: Item, filename: str) -> Path:
        """Library-owned location for an attachment file."""
        return self.storage_dir / item.key / filename

    def relink(self, item: Item, new_path: Path) -> None:
        """
        Point an attachment at a new file.

        Files inside the item's storage directory become imported files,
        anything else a linked file.
        """
        new_path = Path(new_path)
        relative = get_relative_path(new_path, self.storage_dir / item.key)
        if relative is not None and len(relative.parts) == 1:
            item.link_mode = LinkMode.IMPORTED_FILE
            item.path = relative.name
        else:
            item.link_mode = LinkMode.LINKED_FILE
            item.path = str(new_path)

    # ==================== Metadata blob ====================

    def get_metadata(self, item: Item) -> Optional[str]:
        return item.sync_data

    def set_metadata(self, item: Item, blob: Optional[str]) -> None:
        item.sync_data = blob

    # ==================== Import ====================

    async def import_file(
        self,
        source: Path,
        *,
        title: str = "",
        creators: Optional[list[str]] = None,
        date: str = "",
        publication_title: str = "",
        item_type: str = "document",
        link: bool = False,
        fs: Optional[FileSystem] = None,
    ) -> tuple[Item, Item]:
        """
        Add a file to the library under a new parent item.

        Args:
            source: File to import.
            title: Parent title (defaults to the file stem).
            creators: Author last names.
            date: Publication date; only the year is used for naming.
            publication_title: Journal or container title.
            item_type: Parent item type.
            link: Link to the file in place instead of copying it into storage.
            fs: Filesystem adapter.

        Returns:
            Tuple of (parent, attachment).

        Raises:
            FileNotFoundError: If the source file doesn't exist.
        """
        fs = fs or FileSystem()
        source = Path(source)
        if not await fs.exists(source):
            raise FileNotFoundError(f"File not found: {source}")

        parent = Item(
            key=self.new_key(),
            item_type=item_type,
            title=title or source.stem,
            creators=list(creators or []),
            date=date,
            publication_title=publication_title,
        )
        attachment = Item(
            key=self.new_key(),
            item_type=ATTACHMENT,
            parent_key=parent.key,
            title=source.name,
            content_type=mimetypes.guess_type(source.name)[0],
        )

        if link:
            attachment.link_mode = LinkMode.LINKED_FILE
            attachment.path = str(source.resolve())
        else:
            stored = await fs.copy_file(source, self.storage_path_for(attachment, source.name))
            attachment.link_mode = LinkMode.IMPORTED_FILE
            attachment.path = stored.name

        async with self.transaction():
            self.add(parent)
            self.add(attachment)
            await self.save()

        logger.debug("Imported %s as %s/%s", source, parent.key, attachment.key)
        return parent, attachment
