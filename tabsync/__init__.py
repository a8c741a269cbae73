"""Tablet Sync - PDF exchange between a reference library and a tablet folder.

Sends library PDFs to an external folder (a tablet mount or a synced cloud
folder), detects when they were annotated there, and brings them back.
"""

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "SyncEngine",
    "SyncState",
    "SyncRecord",
    "Resolution",
    "LibraryStore",
    "Item",
    "TabSyncConfig",
    "load_config",
]


def __getattr__(name: str):
    """Lazy import to avoid loading dependencies during setup."""
    if name in ("SyncEngine", "Resolution"):
        from tabsync.sync import engine

        return getattr(engine, name)
    if name in ("SyncState", "SyncRecord"):
        from tabsync.sync import state

        return getattr(state, name)
    if name == "LibraryStore":
        from tabsync.library.store import LibraryStore

        return LibraryStore
    if name == "Item":
        from tabsync.library.models import Item

        return Item
    if name in ("TabSyncConfig", "load_config"):
        from tabsync import config

        return getattr(config, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
