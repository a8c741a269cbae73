# Tablet Sync Status
# Display status derived from marker tags

from collections.abc import Collection
from enum import Enum

from tabsync.config.schema import TagConfig


class ItemStatus(str, Enum):
    """Status shown next to an item."""

    NONE = ""
    ON_TABLET = "on-tablet"
    MODIFIED = "modified"
    READING = "reading"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ItemStatus.NONE: "",
    ItemStatus.ON_TABLET: "On Tablet",
    ItemStatus.MODIFIED: "Modified",
    ItemStatus.READING: "Reading",
}


def item_status(tags: Collection[str], markers: TagConfig) -> ItemStatus:
    """
    Status of an item from its tags alone.

    Priority: modified > on-tablet > reading > none. No I/O, so it is
    cheap enough to call for every visible row.
    """
    if markers.modified in tags:
        return ItemStatus.MODIFIED
    if markers.on_tablet in tags:
        return ItemStatus.ON_TABLET
    if markers.reading_list in tags:
        return ItemStatus.READING
    return ItemStatus.NONE
