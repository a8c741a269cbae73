# Tablet Sync Library Module
# The managed library the sync engine works against

from tabsync.library.models import ATTACHMENT, Item, LinkMode, generate_key
from tabsync.library.store import LibraryStore

__all__ = [
    "ATTACHMENT",
    "Item",
    "LinkMode",
    "LibraryStore",
    "generate_key",
]
