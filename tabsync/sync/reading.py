# Tablet Sync Reading List
# Reading list membership kept as a marker tag on top-level items

import logging
from collections.abc import Iterable
from typing import Optional

from tabsync.library.models import Item
from tabsync.library.store import LibraryStore

logger = logging.getLogger(__name__)


class ReadingList:
    """
    The reading list.

    Membership belongs to top-level items; an attachment stands for its
    parent. It is independent of sync state.
    """

    def __init__(self, library: LibraryStore, tag: str):
        self.library = library
        self.tag = tag

    def _target(self, item: Item) -> Optional[Item]:
        if item.is_attachment and not item.is_top_level:
            return self.library.parent_of(item)
        return item

    def contains(self, item: Item) -> bool:
        """Check if an item (or an attachment's parent) is on the list."""
        target = self._target(item)
        return target is not None and target.has_tag(self.tag)

    async def add(self, items: Iterable[Item]) -> int:
        """
        Add items to the reading list.

        Returns:
            Number of items newly added.
        """
        added = 0
        async with self.library.transaction():
            for item in items:
                target = self._target(item)
                if target is not None and target.add_tag(self.tag):
                    added += 1
            await self.library.save()
        logger.debug("Added %d item(s) to reading list", added)
        return added

    async def remove(self, items: Iterable[Item]) -> int:
        """
        Remove items from the reading list.

        Returns:
            Number of items removed.
        """
        removed = 0
        async with self.library.transaction():
            for item in items:
                target = self._target(item)
                if target is not None and target.remove_tag(self.tag):
                    removed += 1
            await self.library.save()
        logger.debug("Removed %d item(s) from reading list", removed)
        return removed

    async def toggle(self, item: Item) -> bool:
        """
        Toggle membership.

        Returns:
            True if the item is on the list afterwards.
        """
        if self.contains(item):
            await self.remove([item])
            return False
        await self.add([item])
        return True

    def items(self) -> list[Item]:
        """All items on the reading list."""
        return sorted(self.library.search_by_tag(self.tag), key=lambda item: item.key)

    def count(self) -> int:
        return len(self.items())
