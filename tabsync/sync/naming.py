# Tablet Sync Naming
# Destination filenames and subfolders rendered from parent metadata

import re
from pathlib import Path, PurePosixPath
from typing import Optional

from tabsync.library.models import Item

TITLE_TRUNCATE_LENGTH = 50

_UNSAFE_FILENAME = re.compile(r'[/\\?*:|"<>]')
_UNSAFE_SUBFOLDER = re.compile(r'[?*:|"<>]')
_WHITESPACE = re.compile(r"\s+")


def author_of(item: Optional[Item]) -> str:
    """First creator's last name."""
    if item is not None and item.creators and item.creators[0]:
        return item.creators[0]
    return "Unknown"


def year_of(item: Optional[Item]) -> str:
    if item is not None and item.date:
        return item.date[:4]
    return "NoYear"


def title_of(item: Optional[Item]) -> str:
    """Title truncated to a fixed length."""
    title = item.title if item is not None and item.title else "Untitled"
    return title[:TITLE_TRUNCATE_LENGTH]


def journal_of(item: Optional[Item]) -> str:
    if item is not None and item.publication_title:
        return item.publication_title
    return "NoJournal"


def _substitute(template: str, item: Optional[Item]) -> str:
    values = {
        "%a": author_of(item),
        "%y": year_of(item),
        "%t": title_of(item),
        "%j": journal_of(item),
    }
    return re.sub(r"%[aytj]", lambda m: values[m.group(0)], template)


def render_filename(parent: Optional[Item], original_filename: str, template: str = "%a_%y_%t") -> str:
    """
    Render a destination filename.

    Example: ``Doe_2020_Deep_Sleep.pdf`` for template ``%a_%y_%t``.

    Args:
        parent: Item whose metadata fills the template.
        original_filename: Current filename, source of the extension.
        template: Wildcards %a author, %y year, %t title, %j journal.

    Returns:
        Filesystem-safe filename keeping the original extension.
    """
    name = _substitute(template, parent)
    name = _UNSAFE_FILENAME.sub("", name)
    name = _WHITESPACE.sub("_", name.strip())
    if not name:
        name = Path(original_filename).stem or "file"

    suffix = Path(original_filename).suffix.lower()
    return f"{name}{suffix}"


def render_subfolder(parent: Optional[Item], template: str) -> str:
    """
    Render a subfolder path such as ``Doe/2020``.

    ``/`` separates levels; empty, ``.`` and ``..`` components are dropped
    so the result always stays below the folder it is joined to.
    """
    if not template:
        return ""
    rendered = _UNSAFE_SUBFOLDER.sub("", _substitute(template, parent))
    rendered = rendered.replace("\\", "/")
    parts = [part.strip() for part in rendered.split("/")]
    parts = [part for part in parts if part and part not in (".", "..")]
    return PurePosixPath(*parts).as_posix() if parts else ""
