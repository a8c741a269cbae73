# Tablet Sync Utilities Module
# Async filesystem adapter and path helpers

from tabsync.utils.paths import (
    MAX_RENAME_COUNTER,
    FileSystem,
    expand_path,
    get_relative_path,
    numbered_path,
)

__all__ = [
    "FileSystem",
    "MAX_RENAME_COUNTER",
    "expand_path",
    "get_relative_path",
    "numbered_path",
]
