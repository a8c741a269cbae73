# Tablet Sync Test Fixtures
# Pytest fixtures for Tablet Sync tests

import os
import tempfile
import time
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Optional

import pytest
import yaml

from tabsync.config.schema import LibraryConfig, OutputConfig, SyncSettings, TabSyncConfig
from tabsync.library.models import ATTACHMENT, Item, LinkMode
from tabsync.library.store import LibraryStore
from tabsync.sync.engine import SyncEngine

PDF_CONTENT = b"%PDF-1.4\n% test document\n"


def touch_later(path: Path, seconds: int = 100) -> None:
    """Push a file's modification time into the future."""
    t = time.time() + seconds
    os.utime(path, (t, t))


def modify(path: Path, content: bytes, seconds: int = 100) -> None:
    """Rewrite a file and make sure it reads as modified."""
    path.write_bytes(content)
    touch_later(path, seconds)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def external_root(temp_dir: Path) -> Path:
    """Create the external folder (the tablet)."""
    root = temp_dir / "tablet"
    root.mkdir()
    return root


@pytest.fixture
def config(temp_dir: Path, external_root: Path) -> TabSyncConfig:
    """Create a configuration pointing into the temporary directory."""
    return TabSyncConfig(
        library=LibraryConfig(
            path=str(temp_dir / "library.yaml"),
            storage_dir=str(temp_dir / "storage"),
        ),
        sync=SyncSettings(external_root=str(external_root)),
        output=OutputConfig(colored=False),
    )


@pytest.fixture
def library(config: TabSyncConfig) -> LibraryStore:
    """Create an empty library store."""
    return LibraryStore(Path(config.library.path), Path(config.library.storage_dir))


@pytest.fixture
def add_paper(library: LibraryStore) -> Callable[..., tuple[Item, Item]]:
    """Factory adding a parent item with one PDF attachment."""
    counter = {"n": 0}

    def _add(
        title: str = "Deep Sleep",
        creators: Optional[list[str]] = None,
        date: str = "2020-05-01",
        filename: str = "paper.pdf",
        content: bytes = PDF_CONTENT,
        content_type: str = "application/pdf",
        create_file: bool = True,
    ) -> tuple[Item, Item]:
        counter["n"] += 1
        n = counter["n"]
        parent = Item(
            key=f"PARENT{n:02d}",
            item_type="journalArticle",
            title=title,
            creators=["Doe"] if creators is None else creators,
            date=date,
            publication_title="Journal of Tests",
        )
        attachment = Item(
            key=f"ATTACH{n:02d}",
            item_type=ATTACHMENT,
            parent_key=parent.key,
            title=filename,
            content_type=content_type,
            link_mode=LinkMode.IMPORTED_FILE,
            path=filename,
        )
        library.add(parent)
        library.add(attachment)

        if create_file:
            file_path = library.file_path(attachment)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        return parent, attachment

    return _add


@pytest.fixture
def engine(config: TabSyncConfig, library: LibraryStore) -> SyncEngine:
    """Create a sync engine over the test library."""
    return SyncEngine(config, library)


@pytest.fixture
def config_file(temp_dir: Path, external_root: Path) -> Path:
    """Create a configuration file."""
    data = {
        "library": {
            "path": str(temp_dir / "library.yaml"),
            "storage_dir": str(temp_dir / "storage"),
        },
        "sync": {"external_root": str(external_root)},
        "confirm": {"batch": True, "threshold": 5},
        "project_folders": [{"label": "Thesis", "path": "projects/thesis"}],
        "output": {"verbose": False, "colored": False},
    }
    config_path = temp_dir / "config.yaml"
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False)
    return config_path
