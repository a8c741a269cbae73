# Tablet Sync Configuration Schema
# Pydantic models for YAML configuration validation

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class SyncMode(str, Enum):
    """Where the canonical file lives while it is on external storage."""

    COPY = "copy"
    MOVE = "move"


class LibraryConfig(BaseModel):
    """Location of the managed library."""

    path: str = Field(default="~/.local/share/tabsync/library.yaml", description="Library database file")
    storage_dir: str = Field(
        default="~/.local/share/tabsync/storage",
        description="Directory holding library-owned attachment files",
    )

    @field_validator("path", "storage_dir")
    @classmethod
    def expand_paths(cls, v: str) -> str:
        """Expand ~ in paths."""
        return str(Path(v).expanduser())


class SyncSettings(BaseModel):
    """Send/retrieve behaviour."""

    external_root: str = Field(default="", description="External folder files are sent to (tablet, cloud folder)")
    mode: SyncMode = Field(default=SyncMode.COPY, description="copy keeps the library file, move relinks it")
    rename: bool = Field(default=True, description="Rename files from parent metadata on send")
    rename_template: str = Field(
        default="%a_%y_%t", description="Filename template: %a author, %y year, %t title, %j journal"
    )
    subfolder: bool = Field(default=False, description="Place files into rendered subfolders")
    subfolder_template: str = Field(default="%a/%y", description="Subfolder template: %a author, %y year, %j journal")
    extract_on_sync: bool = Field(default=True, description="Forward retrieved files to annotation extraction")
    concurrency: int = Field(default=3, ge=1, description="Concurrent file operations per batch window")

    @field_validator("external_root")
    @classmethod
    def expand_root(cls, v: str) -> str:
        """Expand ~ in the external root, leaving an unset root empty."""
        if not v:
            return ""
        return str(Path(v).expanduser())

    @field_validator("mode", mode="before")
    @classmethod
    def accept_numeric_mode(cls, v):
        """Accept the numeric modes written by older versions (1 copy, 2 move)."""
        if v == 1 or v == "1":
            return SyncMode.COPY
        if v == 2 or v == "2":
            return SyncMode.MOVE
        return v


class ConfirmConfig(BaseModel):
    """Batch confirmation before large send/get operations."""

    batch: bool = Field(default=True, description="Ask before processing large batches")
    threshold: int = Field(default=5, ge=1, description="Batch size that triggers confirmation")


class TagConfig(BaseModel):
    """Marker tags used to encode state in the library."""

    on_tablet: str = Field(default="_tablet", description="Marker for files on external storage")
    modified: str = Field(default="_tablet_modified", description="Marker for externally modified files")
    reading_list: str = Field(default="_reading_list", description="Marker for reading list membership")


class ProjectFolder(BaseModel):
    """A named subfolder of the external root."""

    label: str = Field(description="Project name shown to the user")
    path: str = Field(description="Subfolder path relative to the external root")


class OutputConfig(BaseModel):
    """Output and logging configuration."""

    verbose: bool = Field(default=False, description="Enable verbose output")
    colored: bool = Field(default=True, description="Enable colored output")
    log_file: str | None = Field(default=None, description="Path to log file")
    notification_duration: int = Field(default=4000, ge=0, description="How long summaries stay visible (ms)")
    error_display_limit: int = Field(default=5, ge=1, description="Failing filenames listed in a summary")

    @field_validator("log_file")
    @classmethod
    def expand_optional_paths(cls, v: str | None) -> str | None:
        """Expand ~ in optional paths."""
        if v is None:
            return None
        return str(Path(v).expanduser())


class TabSyncConfig(BaseModel):
    """Root configuration model for Tablet Sync."""

    library: LibraryConfig = Field(default_factory=LibraryConfig, description="Library settings")
    sync: SyncSettings = Field(default_factory=SyncSettings, description="Sync settings")
    confirm: ConfirmConfig = Field(default_factory=ConfirmConfig, description="Confirmation settings")
    tags: TagConfig = Field(default_factory=TagConfig, description="Marker tags")
    project_folders: list[ProjectFolder] = Field(default_factory=list, description="Named project folders")
    output: OutputConfig = Field(default_factory=OutputConfig, description="Output settings")

    def get_project_folder(self, label: str) -> ProjectFolder | None:
        """Get a project folder by label."""
        for folder in self.project_folders:
            if folder.label == label:
                return folder
        return None

    def resolve_project_group(self, name: str | None) -> str | None:
        """
        Resolve a project label or raw subfolder path.

        Args:
            name: Project folder label, subfolder path, or None.

        Returns:
            Subfolder path relative to the external root, or None.
        """
        if not name:
            return None
        folder = self.get_project_folder(name)
        if folder is not None:
            return folder.path.strip("/") or None
        return name.strip("/") or None
