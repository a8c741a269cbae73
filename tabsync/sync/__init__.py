# Tablet Sync Sync Module
# Sync engine, batch execution, sync state and status

from tabsync.sync.batch import BatchFailure, BatchResult, BatchSuccess, run_in_batches
from tabsync.sync.engine import (
    CheckResult,
    ConflictInfo,
    Resolution,
    SyncEngine,
    Validation,
)
from tabsync.sync.naming import render_filename, render_subfolder
from tabsync.sync.reading import ReadingList
from tabsync.sync.state import BASE_FOLDER, MetadataStore, StateMarkers, SyncRecord, SyncState
from tabsync.sync.status import ItemStatus, item_status

__all__ = [
    # Batch
    "run_in_batches",
    "BatchResult",
    "BatchSuccess",
    "BatchFailure",
    # State
    "BASE_FOLDER",
    "SyncState",
    "SyncRecord",
    "MetadataStore",
    "StateMarkers",
    # Status
    "ItemStatus",
    "item_status",
    # Naming
    "render_filename",
    "render_subfolder",
    # Reading list
    "ReadingList",
    # Engine
    "SyncEngine",
    "Validation",
    "CheckResult",
    "ConflictInfo",
    "Resolution",
]
