# Tablet Sync State
# Sync records, their persistence, and the marker tags that encode state

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from tabsync.config.schema import SyncMode, TagConfig
from tabsync.errors import MetadataCorruptError
from tabsync.library.models import Item
from tabsync.library.store import LibraryStore
from tabsync.utils.paths import get_relative_path

logger = logging.getLogger(__name__)

BASE_FOLDER = "[BaseFolder]"

_LEGACY_MODES = {1: SyncMode.COPY, 2: SyncMode.MOVE}


class SyncState(str, Enum):
    """Where a managed file stands relative to external storage."""

    UNTRACKED = "untracked"
    ON_EXTERNAL = "on_external"
    ON_EXTERNAL_MODIFIED = "on_external_modified"

    @property
    def is_tracked(self) -> bool:
        return self is not SyncState.UNTRACKED


@dataclass
class SyncRecord:
    """
    Last known sync point of one managed file.

    ``external_location`` is stored relative to the ``[BaseFolder]``
    placeholder so that moving the external root keeps records valid.
    """

    external_location: str
    last_modified: int
    mode: SyncMode
    project_group: Optional[str] = None

    @classmethod
    def for_path(
        cls,
        path: Path,
        root: Path,
        *,
        last_modified: int,
        mode: SyncMode,
        project_group: Optional[str] = None,
    ) -> "SyncRecord":
        """Create a record for a file written below the external root."""
        relative = get_relative_path(Path(path), Path(root))
        if relative is None:
            location = str(path)
        else:
            location = f"{BASE_FOLDER}/{relative.as_posix()}"
        return cls(
            external_location=location,
            last_modified=last_modified,
            mode=mode,
            project_group=project_group or None,
        )

    def resolve(self, root: str | Path) -> Optional[Path]:
        """
        Absolute external path under the given root.

        Returns None when the record has no location or the placeholder
        cannot be resolved because the root is unset.
        """
        location = self.external_location
        if not location:
            return None
        if not location.startswith(BASE_FOLDER):
            return Path(location)
        if not root:
            return None
        relative = location[len(BASE_FOLDER) :].replace("\\", "/").lstrip("/")
        return Path(root).joinpath(*PurePosixPath(relative).parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted blob layout."""
        return {
            "externalLocation": self.external_location,
            "lastModified": self.last_modified,
            "mode": self.mode.value,
            "projectGroup": self.project_group,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SyncRecord":
        """
        Create from a persisted blob.

        Unknown fields are ignored and missing ones defaulted. Keys written by
        older versions (``location``, ``lastmod``, ``projectFolder``, numeric
        modes) are understood.

        Raises:
            MetadataCorruptError: If the data is not a record.
        """
        if not isinstance(data, dict):
            raise MetadataCorruptError(f"Expected an object, got {type(data).__name__}")

        location = data.get("externalLocation", data.get("location")) or ""
        raw_mtime = data.get("lastModified", data.get("lastmod")) or 0
        raw_mode = data.get("mode", SyncMode.COPY.value)
        group = data.get("projectGroup", data.get("projectFolder")) or None

        if not isinstance(location, str):
            raise MetadataCorruptError("externalLocation is not a string")
        try:
            last_modified = int(raw_mtime)
        except (TypeError, ValueError) as e:
            raise MetadataCorruptError(f"Invalid lastModified: {raw_mtime!r}") from e
        if isinstance(raw_mode, int) and raw_mode in _LEGACY_MODES:
            mode = _LEGACY_MODES[raw_mode]
        else:
            try:
                mode = SyncMode(raw_mode)
            except ValueError as e:
                raise MetadataCorruptError(f"Invalid mode: {raw_mode!r}") from e

        return cls(
            external_location=location,
            last_modified=last_modified,
            mode=mode,
            project_group=str(group) if group else None,
        )


class MetadataStore:
    """
    Persists one SyncRecord per managed file in the item's metadata blob.

    Reads never raise: a blob that cannot be parsed is logged and treated
    as absent.
    """

    def __init__(self, library: LibraryStore, root: Callable[[], str]):
        """
        Initialize metadata store.

        Args:
            library: Host library holding the blobs.
            root: Returns the currently configured external root.
        """
        self.library = library
        self._root = root

    def get(self, item: Item) -> Optional[SyncRecord]:
        """Load the record for an item, or None."""
        blob = self.library.get_metadata(item)
        if not blob:
            return None
        try:
            return SyncRecord.from_dict(json.loads(blob))
        except (ValueError, MetadataCorruptError) as e:
            logger.warning("MetadataCorrupt: ignoring sync record of %s: %s", item.key, e)
            return None

    def set(self, item: Item, record: SyncRecord) -> None:
        """Store a record, replacing any previous one."""
        self.library.set_metadata(item, json.dumps(record.to_dict(), sort_keys=True))

    def clear(self, item: Item) -> None:
        """Remove the record. Clearing an absent record is a no-op."""
        if self.library.get_metadata(item) is not None:
            self.library.set_metadata(item, None)

    def external_path(self, record: SyncRecord) -> Optional[Path]:
        """Resolve a record's location against the current root."""
        return record.resolve(self._root())


class StateMarkers:
    """
    Translates SyncState to and from marker tags in the library.

    The attachment carries exactly the marker of its state. Its parent
    carries a marker while any of its attachments does, so tracked papers
    can be found from the top level.
    """

    def __init__(self, library: LibraryStore, tags: TagConfig):
        self.library = library
        self.tags = tags

    def read(self, item: Item) -> SyncState:
        """Current state of an item."""
        if item.has_tag(self.tags.modified):
            return SyncState.ON_EXTERNAL_MODIFIED
        if item.has_tag(self.tags.on_tablet):
            return SyncState.ON_EXTERNAL
        return SyncState.UNTRACKED

    def is_tracked(self, item: Item) -> bool:
        return self.read(item).is_tracked

    def write(self, item: Item, state: SyncState) -> bool:
        """
        Set an item's state.

        Returns:
            True if any marker changed.
        """
        if state is SyncState.UNTRACKED:
            changed = item.remove_tag(self.tags.on_tablet)
            changed = item.remove_tag(self.tags.modified) or changed
            parent = self.library.parent_of(item)
            if parent is not None:
                for tag in (self.tags.on_tablet, self.tags.modified):
                    if not self._sibling_has(parent, item, tag):
                        changed = parent.remove_tag(tag) or changed
            return changed

        tag = self.tags.on_tablet if state is SyncState.ON_EXTERNAL else self.tags.modified
        other = self.tags.modified if state is SyncState.ON_EXTERNAL else self.tags.on_tablet

        changed = item.add_tag(tag)
        changed = item.remove_tag(other) or changed

        parent = self.library.parent_of(item)
        if parent is not None:
            changed = parent.add_tag(tag) or changed
            if not self._sibling_has(parent, item, other):
                changed = parent.remove_tag(other) or changed
        return changed

    def _sibling_has(self, parent: Item, item: Item, tag: str) -> bool:
        return any(child.key != item.key and child.has_tag(tag) for child in self.library.children_of(parent))

    def tracked_items(self) -> list[Item]:
        """Every tracked child attachment, found by marker search."""
        found: dict[str, Item] = {}
        for tag in (self.tags.on_tablet, self.tags.modified):
            for item in self.library.search_by_tag(tag):
                if item.is_attachment and not item.is_top_level:
                    found[item.key] = item
        return [found[key] for key in sorted(found)]
