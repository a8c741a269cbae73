# Tablet Sync Engine
# Send, retrieve and modification checks between the library and the external folder

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Optional, Union

from tabsync.config.schema import SyncMode, TabSyncConfig
from tabsync.errors import (
    ConflictUnresolvedError,
    ErrorKind,
    ExternalMissingError,
    ExternalRootNotSetError,
    FileError,
    SourceMissingError,
    SyncSummary,
    TooManyCollisionsError,
)
from tabsync.library.models import Item, LinkMode
from tabsync.library.store import LibraryStore
from tabsync.sync.batch import BatchResult, ProgressCallback, run_in_batches
from tabsync.sync.naming import render_filename, render_subfolder
from tabsync.sync.reading import ReadingList
from tabsync.sync.state import MetadataStore, StateMarkers, SyncRecord, SyncState
from tabsync.sync.status import ItemStatus, item_status
from tabsync.utils.paths import FileSystem

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = ("application/pdf",)

REASON_NOT_ATTACHMENT = "not an attachment"
REASON_LINKED_URL = "linked URL"
REASON_UNSUPPORTED_TYPE = "unsupported type"
REASON_ALREADY_TRACKED = "already tracked"
REASON_NOT_TRACKED = "not tracked"

CLEANUP_NO_RECORD = "no record"
CLEANUP_EXTERNAL_MISSING = "external file missing"


class Resolution(str, Enum):
    """Answer to a conflict."""

    USE_EXTERNAL = "use_external"
    USE_INTERNAL = "use_internal"
    SKIP = "skip"


@dataclass
class ConflictInfo:
    """Both copies of a file changed since the last sync."""

    item: Item
    filename: str
    external_path: Path
    internal_path: Optional[Path]
    external_mtime: int
    internal_mtime: int
    last_modified: int


ConflictResolver = Callable[[ConflictInfo], Union[Resolution, str, Awaitable[Union[Resolution, str]]]]
AnnotationExtractor = Callable[[list[Item]], Any]


@dataclass
class Validation:
    """Items split into those an operation accepts and those it rejects."""

    valid: list[Item] = field(default_factory=list)
    invalid: list[tuple[Item, str]] = field(default_factory=list)

    @property
    def first_reason(self) -> Optional[str]:
        return self.invalid[0][1] if self.invalid else None


@dataclass
class CheckResult:
    """Outcome of a modification check."""

    checked: int = 0
    newly_modified: int = 0
    transitions: int = 0
    errors: list[FileError] = field(default_factory=list)


@dataclass
class _Planned:
    item: Item
    source: Path
    dest: Path

    @property
    def filename(self) -> str:
        return self.item.filename


@dataclass
class _Sent:
    item: Item
    path: Path
    mtime: int


@dataclass
class _Gathered:
    item: Item
    record: Optional[SyncRecord] = None
    external_path: Optional[Path] = None
    internal_path: Optional[Path] = None
    external_mtime: int = 0
    internal_mtime: int = 0
    external_modified: bool = False
    internal_modified: bool = False
    cleanup: Optional[str] = None
    use_external: Optional[bool] = None

    @property
    def has_conflict(self) -> bool:
        # A moved file has a single copy, so it cannot conflict
        return (
            self.record is not None
            and self.record.mode is SyncMode.COPY
            and self.external_modified
            and self.internal_modified
        )


@dataclass
class _Applied:
    item: Item
    external_path: Path
    remove_external: bool
    changed: bool


class SyncEngine:
    """
    Synchronizes PDF attachments between the library and an external folder.

    File operations for a batch run concurrently through the batch
    executor; sync records and state markers are written afterwards, one
    item at a time, inside a single library transaction.
    """

    def __init__(
        self,
        config: TabSyncConfig,
        library: LibraryStore,
        *,
        fs: Optional[FileSystem] = None,
        extractor: Optional[AnnotationExtractor] = None,
    ):
        """
        Initialize sync engine.

        Args:
            config: Tablet Sync configuration.
            library: Library holding the managed files.
            fs: Filesystem adapter (creates new one if not provided).
            extractor: Receives retrieved files for annotation import.
        """
        self.config = config
        self.library = library
        self.fs = fs or FileSystem()
        self.extractor = extractor
        self.markers = StateMarkers(library, config.tags)
        self.metadata = MetadataStore(library, lambda: self.config.sync.external_root)
        self.reading_list = ReadingList(library, config.tags.reading_list)

    @property
    def external_root(self) -> str:
        return self.config.sync.external_root

    # ==================== State ====================

    def state_of(self, item: Item) -> SyncState:
        return self.markers.read(item)

    def record_of(self, item: Item) -> Optional[SyncRecord]:
        return self.metadata.get(item)

    def status_of(self, item: Item) -> ItemStatus:
        """Display status, counting an attachment's parent for the reading list."""
        tags = set(item.tags)
        if self.reading_list.contains(item):
            tags.add(self.config.tags.reading_list)
        return item_status(tags, self.config.tags)

    def tracked_items(self) -> list[Item]:
        """All files currently on external storage."""
        return self.markers.tracked_items()

    # ==================== Validation ====================

    def expand_selection(self, items: Iterable[Item]) -> list[Item]:
        """
        Turn a selection into file attachments.

        Regular items stand for their child attachments; web links are
        dropped because they have no file.
        """
        selected: dict[str, Item] = {}
        for item in items:
            if item.is_attachment:
                candidates = [item] if not item.is_top_level else []
            else:
                candidates = [child for child in self.library.children_of(item) if child.is_attachment]
            for candidate in candidates:
                if candidate.link_mode != LinkMode.LINKED_URL:
                    selected.setdefault(candidate.key, candidate)
        return list(selected.values())

    def validate_for_send(self, items: Iterable[Item]) -> Validation:
        """Accept untracked PDF child attachments."""
        result = Validation()
        for item in items:
            if not item.is_attachment or item.is_top_level:
                result.invalid.append((item, REASON_NOT_ATTACHMENT))
            elif item.link_mode == LinkMode.LINKED_URL:
                result.invalid.append((item, REASON_LINKED_URL))
            elif item.content_type not in ALLOWED_CONTENT_TYPES:
                result.invalid.append((item, REASON_UNSUPPORTED_TYPE))
            elif self.markers.is_tracked(item):
                result.invalid.append((item, REASON_ALREADY_TRACKED))
            else:
                result.valid.append(item)
        return result

    def validate_for_get(self, items: Iterable[Item]) -> Validation:
        """Accept tracked files."""
        result = Validation()
        for item in items:
            if self.markers.is_tracked(item):
                result.valid.append(item)
            else:
                result.invalid.append((item, REASON_NOT_TRACKED))
        return result

    def needs_batch_confirmation(self, count: int) -> bool:
        return self.config.confirm.batch and count >= self.config.confirm.threshold

    # ==================== Send ====================

    async def send(
        self,
        items: Sequence[Item],
        project_group: Optional[str] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SyncSummary:
        """
        Send files to the external folder.

        Args:
            items: Validated attachments.
            project_group: Project folder label or subfolder path.
            on_progress: Progress callback ``(completed, total)``.

        Returns:
            SyncSummary with the number sent and per-file errors.

        Raises:
            ExternalRootNotSetError: If no external root is configured.
        """
        settings = self.config.sync.model_copy()
        if not settings.external_root:
            raise ExternalRootNotSetError("Please set sync.external_root in the configuration")

        root = Path(settings.external_root)
        group = self.config.resolve_project_group(project_group)
        summary = SyncSummary(operation="Sent")

        candidates = [item for item in items if item.is_attachment and not item.is_top_level]
        if not candidates:
            return summary

        async def plan_one(item: Item) -> _Planned:
            source = self.library.file_path(item)
            if source is None or not await self.fs.exists(source):
                raise SourceMissingError(f"Source file not found: {source}", filename=item.filename)

            parent = self.library.parent_of(item)
            filename = source.name
            if settings.rename and parent is not None:
                filename = render_filename(parent, filename, settings.rename_template)

            target_dir = root
            if group:
                # Keep project folders below the root
                parts = [part for part in PurePosixPath(group).parts if part not in ("/", ".", "..")]
                target_dir = target_dir.joinpath(*parts)
            if settings.subfolder and parent is not None:
                subfolder = render_subfolder(parent, settings.subfolder_template)
                if subfolder:
                    target_dir = target_dir.joinpath(*PurePosixPath(subfolder).parts)

            return _Planned(item=item, source=source, dest=target_dir / filename)

        async def transfer(plan: _Planned) -> _Sent:
            try:
                if settings.mode is SyncMode.COPY:
                    # The copy keeps its write time, never a rounded-down source mtime
                    await self.fs.copy_file(plan.source, plan.dest, overwrite=True, preserve_metadata=False)
                else:
                    await self.fs.move_file(plan.source, plan.dest, overwrite=True)
                    self.library.relink(plan.item, plan.dest)
            finally:
                self.fs.release(plan.dest)

            mtime = await self.fs.mtime_ms(plan.dest)
            if settings.mode is SyncMode.COPY:
                mtime = max(mtime, await self.fs.mtime_ms(plan.source))
            logger.debug("Sent %s -> %s", plan.filename, plan.dest)
            return _Sent(item=plan.item, path=plan.dest, mtime=mtime)

        planned = await run_in_batches(candidates, plan_one, concurrency=settings.concurrency)
        summary.errors.extend(self._batch_errors(planned))

        # Names are reserved in input order so collision suffixes are stable
        reserved: list[_Planned] = []
        for plan in planned.values:
            try:
                plan.dest = await self.fs.unique_path(plan.dest)
            except TooManyCollisionsError as e:
                logger.warning("%s: %s", e.kind.value, e)
                summary.errors.append(FileError.from_exception(plan.filename, e))
                continue
            reserved.append(plan)

        batch = await run_in_batches(
            reserved, transfer, concurrency=settings.concurrency, on_progress=on_progress
        )
        summary.errors.extend(self._batch_errors(batch))

        async with self.library.transaction():
            for sent in batch.values:
                record = SyncRecord.for_path(
                    sent.path,
                    root,
                    last_modified=sent.mtime,
                    mode=settings.mode,
                    project_group=group,
                )
                self.metadata.set(sent.item, record)
                self.markers.write(sent.item, SyncState.ON_EXTERNAL)
                summary.succeeded += 1
            await self.library.save()

        logger.info(summary.message(self.config.output.error_display_limit))
        return summary

    # ==================== Retrieve ====================

    async def retrieve(
        self,
        items: Sequence[Item],
        resolver: Optional[ConflictResolver] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
        extract: bool = True,
    ) -> SyncSummary:
        """
        Bring files back from the external folder.

        Gathers state for every file, asks ``resolver`` about each conflict
        in turn, copies or moves files back, then clears tracking for the
        whole batch in one transaction. Files whose external copy is gone
        are untracked without being reported as errors.

        Args:
            items: Tracked attachments.
            resolver: Decides conflicts; without one conflicts are skipped.
            on_progress: Progress of the file transfers ``(completed, total)``.
            extract: Forward retrieved files to the annotation extractor.

        Returns:
            SyncSummary with the number retrieved and per-file errors.
        """
        settings = self.config.sync.model_copy()
        summary = SyncSummary(operation="Retrieved")

        tracked = [item for item in items if self.markers.is_tracked(item)]
        if not tracked:
            return summary

        # Gather (read-only)
        gathered = await run_in_batches(tracked, self._gather, concurrency=settings.concurrency)
        summary.errors.extend(self._batch_errors(gathered))

        to_apply: list[_Gathered] = []
        to_cleanup: list[_Gathered] = []
        conflicts: list[_Gathered] = []
        for info in gathered.values:
            if info.cleanup is not None:
                to_cleanup.append(info)
            elif info.has_conflict:
                conflicts.append(info)
            else:
                to_apply.append(info)

        # Conflicts, strictly one at a time
        for info in conflicts:
            try:
                resolution = await self._resolve(info, resolver)
            except Exception as e:
                logger.warning("Conflict resolution failed for %s", info.item.filename, exc_info=e)
                summary.errors.append(FileError.from_exception(info.item.filename, e))
                continue
            if resolution is Resolution.SKIP:
                logger.info("Conflict skipped: %s", info.item.filename)
                summary.skipped += 1
                skipped = ConflictUnresolvedError(
                    "Both copies changed; conflict skipped", filename=info.item.filename
                )
                summary.errors.append(FileError.from_exception(info.item.filename, skipped))
                continue
            info.use_external = resolution is Resolution.USE_EXTERNAL
            to_apply.append(info)

        # File I/O
        applied = await run_in_batches(
            to_apply, self._apply, concurrency=settings.concurrency, on_progress=on_progress
        )
        summary.errors.extend(self._batch_errors(applied))

        # Remove redundant external copies and the folders they leave empty
        root = Path(settings.external_root) if settings.external_root else None
        for result in applied.values:
            if result.remove_external:
                await self.fs.remove_file(result.external_path)
            if root is not None:
                await self.fs.remove_empty_dirs(result.external_path.parent, root)

        # Metadata, atomically
        async with self.library.transaction():
            for result in applied.values:
                self._untrack(result.item)
                summary.succeeded += 1
            for info in to_cleanup:
                logger.info("%s: %s, clearing tracking", info.item.filename, info.cleanup)
                self._untrack(info.item)
            await self.library.save()

        logger.info(summary.message(self.config.output.error_display_limit))

        to_extract = [result.item for result in applied.values if result.changed]
        if extract and settings.extract_on_sync and self.extractor is not None and to_extract:
            await self._extract(to_extract)

        return summary

    async def _gather(self, item: Item) -> _Gathered:
        record = self.metadata.get(item)
        if record is None:
            return _Gathered(item=item, cleanup=CLEANUP_NO_RECORD)

        external = await self._locate_external(item, record)
        if external is None:
            return _Gathered(item=item, record=record, cleanup=CLEANUP_EXTERNAL_MISSING)

        info = _Gathered(item=item, record=record, external_path=external)
        info.external_mtime = await self.fs.mtime_ms(external)
        info.external_modified = info.external_mtime > record.last_modified

        if record.mode is SyncMode.COPY:
            info.internal_path = self.library.file_path(item)
            info.internal_mtime = await self.fs.mtime_ms(info.internal_path)
            info.internal_modified = info.internal_mtime > record.last_modified

        return info

    async def _locate_external(self, item: Item, record: SyncRecord) -> Optional[Path]:
        """Find the external file, or None if it is gone."""
        path = self.metadata.external_path(record)
        if path is not None and await self.fs.exists(path):
            return path
        if record.mode is SyncMode.MOVE:
            # The library links to the moved file directly
            linked = self.library.file_path(item)
            if linked is not None and await self.fs.exists(linked):
                return linked
        return None

    async def _resolve(self, info: _Gathered, resolver: Optional[ConflictResolver]) -> Resolution:
        if resolver is None:
            return Resolution.SKIP

        conflict = ConflictInfo(
            item=info.item,
            filename=info.item.filename,
            external_path=info.external_path,
            internal_path=info.internal_path,
            external_mtime=info.external_mtime,
            internal_mtime=info.internal_mtime,
            last_modified=info.record.last_modified,
        )
        answer = resolver(conflict)
        if inspect.isawaitable(answer):
            answer = await answer
        return Resolution(answer)

    async def _apply(self, info: _Gathered) -> _Applied:
        item = info.item
        copy_mode = info.record.mode is SyncMode.COPY
        use_external = True
        if copy_mode:
            use_external = info.external_modified if info.use_external is None else info.use_external

        if use_external and not await self.fs.exists(info.external_path):
            raise ExternalMissingError(f"External file disappeared: {info.external_path}", filename=item.filename)

        if copy_mode:
            if use_external:
                if info.internal_path is None:
                    raise SourceMissingError("Attachment has no file to restore into", filename=item.filename)
                await self.fs.copy_file(info.external_path, info.internal_path, overwrite=True)
                logger.debug("Copied back %s -> %s", info.external_path, info.internal_path)
            return _Applied(item=item, external_path=info.external_path, remove_external=True, changed=use_external)

        dest = self.library.storage_path_for(item, info.external_path.name)
        final = await self.fs.move_file(info.external_path, dest)
        self.library.relink(item, final)
        logger.debug("Moved back %s -> %s", info.external_path, final)
        return _Applied(item=item, external_path=info.external_path, remove_external=False, changed=True)

    def _untrack(self, item: Item) -> None:
        self.metadata.clear(item)
        self.markers.write(item, SyncState.UNTRACKED)

    async def _extract(self, items: list[Item]) -> None:
        try:
            result = self.extractor(items)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Annotation extraction failed for %d file(s)", len(items))

    # ==================== Modifications ====================

    async def is_modified(self, item: Item) -> bool:
        """Check if the external copy changed since the last sync."""
        if not self.markers.is_tracked(item):
            return False
        record = self.metadata.get(item)
        if record is None:
            return False
        path = await self._locate_external(item, record)
        if path is None:
            return False
        return await self.fs.mtime_ms(path) > record.last_modified

    async def check_modifications(self, items: Optional[Iterable[Item]] = None) -> CheckResult:
        """
        Update modified markers from the external files.

        Args:
            items: Files to check; every tracked file if None.

        Returns:
            CheckResult; ``newly_modified`` counts files that became modified.
        """
        if items is None:
            targets = self.tracked_items()
        else:
            targets = [item for item in items if self.markers.is_tracked(item)]

        result = CheckResult(checked=len(targets))
        if not targets:
            return result

        async def check(item: Item) -> tuple[Item, bool]:
            return item, await self.is_modified(item)

        batch = await run_in_batches(targets, check, concurrency=self.config.sync.concurrency)
        result.errors.extend(self._batch_errors(batch))

        async with self.library.transaction():
            for item, modified in batch.values:
                desired = SyncState.ON_EXTERNAL_MODIFIED if modified else SyncState.ON_EXTERNAL
                if self.markers.read(item) is desired:
                    continue
                self.markers.write(item, desired)
                result.transitions += 1
                if modified:
                    result.newly_modified += 1
            if result.transitions:
                await self.library.save()

        if result.newly_modified:
            logger.info("Found %d modified file(s)", result.newly_modified)
        return result

    async def sync_modified(
        self,
        resolver: Optional[ConflictResolver] = None,
        *,
        confirm: Optional[Callable[[int], bool]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[SyncSummary]:
        """
        Retrieve every tracked file whose external copy changed.

        Args:
            resolver: Decides conflicts.
            confirm: Called with the number of modified files; False cancels.
            on_progress: Progress callback for the retrieve.

        Returns:
            SyncSummary, or None if nothing was modified or the user declined.
        """
        tracked = self.tracked_items()

        async def check(item: Item) -> tuple[Item, bool]:
            return item, await self.is_modified(item)

        batch = await run_in_batches(tracked, check, concurrency=self.config.sync.concurrency)
        modified = [item for item, is_modified in batch.values if is_modified]

        if not modified:
            return None
        if confirm is not None and not confirm(len(modified)):
            return None

        return await self.retrieve(modified, resolver, on_progress=on_progress)

    # ==================== Helpers ====================

    def _batch_errors(self, batch: BatchResult) -> list[FileError]:
        errors = []
        for failure in batch.errors:
            error = FileError.from_exception(failure.item.filename, failure.error)
            if error.kind is ErrorKind.UNKNOWN:
                logger.warning("%s failed", failure.item.filename, exc_info=failure.error)
            else:
                logger.warning("%s: %s", error.kind.value, error.message)
            errors.append(error)
        return errors
