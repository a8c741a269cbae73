# Tablet Sync Path Utilities
# Async filesystem primitives with collision-safe naming

import logging
import os
import shutil
from pathlib import Path

import aiofiles.os
from aiofiles.ospath import wrap

from tabsync.errors import TooManyCollisionsError

logger = logging.getLogger(__name__)

MAX_RENAME_COUNTER = 999

_copy2 = wrap(shutil.copy2)
_copyfile = wrap(shutil.copyfile)
_move = wrap(shutil.move)
_rmtree = wrap(shutil.rmtree)


def expand_path(path: str | Path) -> Path:
    """
    Expand ~ and environment variables in path.

    Args:
        path: Path string or Path object.

    Returns:
        Expanded Path object.
    """
    path_str = str(path)
    # Expand ~ first, then environment variables
    path_str = os.path.expanduser(path_str)
    path_str = os.path.expandvars(path_str)
    return Path(path_str).resolve()


def get_relative_path(path: Path, base: Path) -> Path | None:
    """
    Get path relative to base, or None if not relative.

    Args:
        path: Path to make relative.
        base: Base path.

    Returns:
        Relative path or None if not relative.
    """
    try:
        return path.relative_to(base)
    except ValueError:
        return None


def numbered_path(path: Path, counter: int) -> Path:
    """Return ``name_<counter>.ext`` next to ``path``."""
    return path.with_name(f"{path.stem}_{counter}{path.suffix}")


class FileSystem:
    """
    Async filesystem adapter.

    Every operation is a suspension point; blocking calls run in the
    default executor through aiofiles. Destination names handed out by
    :meth:`unique_path` stay reserved until the copy or move that asked for
    them finishes, or until :meth:`release`, so concurrent operations in one
    batch window never pick the same free name.
    """

    def __init__(self, max_rename_counter: int = MAX_RENAME_COUNTER):
        self.max_rename_counter = max_rename_counter
        self._reserved: set[Path] = set()

    async def exists(self, path: Path | None) -> bool:
        """Check whether a path exists."""
        if path is None:
            return False
        return await aiofiles.os.path.exists(path)

    async def mtime_ms(self, path: Path | None) -> int:
        """
        Get modification time in milliseconds since the epoch.

        Returns 0 when the path is missing or unreadable.
        """
        if path is None:
            return 0
        try:
            stat = await aiofiles.os.stat(path)
        except OSError:
            return 0
        return stat.st_mtime_ns // 1_000_000

    async def ensure_dir(self, path: Path) -> Path:
        """Create a directory and its parents if needed."""
        await aiofiles.os.makedirs(path, exist_ok=True)
        return path

    async def list_dir(self, path: Path) -> list[str]:
        """List directory entry names, empty if the directory is missing."""
        try:
            return await aiofiles.os.listdir(path)
        except FileNotFoundError:
            return []

    async def unique_path(self, dest: Path) -> Path:
        """
        Find a free destination path and reserve it.

        ``paper.pdf`` becomes ``paper_2.pdf``, ``paper_3.pdf`` and so on.

        Raises:
            TooManyCollisionsError: If every numbered name up to the cap is taken.
        """
        candidate = dest
        counter = 2
        while True:
            taken = await aiofiles.os.path.exists(candidate)
            # Re-check the reservation after the suspension point above
            if not taken and candidate not in self._reserved:
                self._reserved.add(candidate)
                return candidate
            if counter > self.max_rename_counter:
                raise TooManyCollisionsError(f"Too many files named like {dest.name}", filename=dest.name)
            candidate = numbered_path(dest, counter)
            counter += 1

    def release(self, path: Path) -> None:
        """Drop a reservation made by :meth:`unique_path`."""
        self._reserved.discard(path)

    async def copy_file(
        self,
        source: Path,
        dest: Path,
        *,
        overwrite: bool = False,
        preserve_metadata: bool = True,
    ) -> Path:
        """
        Copy a file.

        Args:
            source: File to copy.
            dest: Requested destination.
            overwrite: Replace an existing destination instead of renaming.
            preserve_metadata: Carry the source's mtime over. When False the
                copy gets the time it was written.

        Returns:
            The path actually written.
        """
        copy = _copy2 if preserve_metadata else _copyfile
        await self.ensure_dir(dest.parent)

        if overwrite:
            await copy(source, dest)
            return dest

        final = await self.unique_path(dest)
        try:
            await copy(source, final)
        finally:
            self.release(final)
        return final

    async def move_file(self, source: Path, dest: Path, *, overwrite: bool = False) -> Path:
        """
        Move a file, renaming on collision unless ``overwrite`` is set.

        Returns:
            The path actually written.
        """
        await self.ensure_dir(dest.parent)

        if overwrite:
            await _move(source, dest)
            return dest

        final = await self.unique_path(dest)
        try:
            await _move(source, final)
        finally:
            self.release(final)
        return final

    async def remove_file(self, path: Path) -> bool:
        """
        Remove a file. Failures are logged and swallowed.

        Returns:
            True if the file was removed.
        """
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Failed to remove file %s: %s", path, e)
            return False
        return True

    async def remove_empty_dirs(self, directory: Path, base: Path) -> int:
        """
        Remove ``directory`` and its ancestors while they hold no visible entries.

        Stops at ``base`` (never removed) and at anything outside it. Hidden
        files such as ``.DS_Store`` do not keep a directory alive.

        Returns:
            Number of directories removed.
        """
        removed = 0
        base = Path(base)
        current = Path(directory)

        while current != base and get_relative_path(current, base) is not None:
            try:
                entries = await aiofiles.os.listdir(current)
            except FileNotFoundError:
                current = current.parent
                continue
            except OSError as e:
                logger.warning("Cannot list %s: %s", current, e)
                break

            if any(not name.startswith(".") for name in entries):
                break

            try:
                await _rmtree(current)
            except OSError as e:
                logger.warning("Failed to remove directory %s: %s", current, e)
                break
            removed += 1
            current = current.parent

        return removed
