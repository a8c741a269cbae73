# Tablet Sync Errors
# Error kinds, exceptions, and per-file error records

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

DEFAULT_ERROR_DISPLAY_LIMIT = 5


class ErrorKind(str, Enum):
    """Kinds of per-file failures reported in a pass summary."""

    SOURCE_MISSING = "SourceMissing"
    EXTERNAL_MISSING = "ExternalMissing"
    TOO_MANY_COLLISIONS = "TooManyCollisions"
    METADATA_CORRUPT = "MetadataCorrupt"
    CONFLICT_UNRESOLVED = "ConflictUnresolved"
    UNKNOWN = "Unknown"


class TabSyncError(Exception):
    """Base class for Tablet Sync errors."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str = "", *, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


class SourceMissingError(TabSyncError):
    """The library file disappeared before it could be sent."""

    kind = ErrorKind.SOURCE_MISSING


class ExternalMissingError(TabSyncError):
    """The external copy disappeared before it could be retrieved."""

    kind = ErrorKind.EXTERNAL_MISSING


class TooManyCollisionsError(TabSyncError):
    """No free ``name_N`` destination was found."""

    kind = ErrorKind.TOO_MANY_COLLISIONS


class MetadataCorruptError(TabSyncError):
    """A persisted sync record could not be parsed."""

    kind = ErrorKind.METADATA_CORRUPT


class ConflictUnresolvedError(TabSyncError):
    """Both copies changed and the conflict was skipped."""

    kind = ErrorKind.CONFLICT_UNRESOLVED


class ExternalRootNotSetError(TabSyncError):
    """The external root is not configured."""


@dataclass
class FileError:
    """A single file's failure within a batch."""

    filename: str
    kind: ErrorKind
    message: str = ""

    @classmethod
    def from_exception(cls, filename: str, error: BaseException) -> "FileError":
        """Wrap an exception, keeping its kind when it is one of ours."""
        if isinstance(error, TabSyncError):
            return cls(filename=error.filename or filename, kind=error.kind, message=str(error))
        return cls(filename=filename, kind=ErrorKind.UNKNOWN, message=f"{type(error).__name__}: {error}")


@dataclass
class SyncSummary:
    """End-of-pass summary handed to the user interface."""

    operation: str
    succeeded: int = 0
    errors: list[FileError] = field(default_factory=list)
    skipped: int = 0

    @property
    def has_errors(self) -> bool:
        """Check if any file failed."""
        return len(self.errors) > 0

    def errors_of_kind(self, kind: ErrorKind) -> list[FileError]:
        """Get errors of a given kind."""
        return [error for error in self.errors if error.kind == kind]

    def format_error_summary(self, limit: int = DEFAULT_ERROR_DISPLAY_LIMIT) -> str:
        """
        Format errors as one line with a capped list of filenames.

        Example: ``(7 error(s): a.pdf, b.pdf, c.pdf, d.pdf, e.pdf...)``
        """
        if not self.errors:
            return ""

        names = [error.filename for error in self.errors[:limit]]
        message = f"({len(self.errors)} error(s): {', '.join(names)}"
        if len(self.errors) > limit:
            message += "..."
        return message + ")"

    def message(self, limit: int = DEFAULT_ERROR_DISPLAY_LIMIT) -> str:
        """Single-line message naming successes and failures."""
        text = f"{self.operation} {self.succeeded} file(s)"
        if self.errors:
            text += " " + self.format_error_summary(limit)
        return text
