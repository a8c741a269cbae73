# Tests for tabsync.library
# Items, YAML persistence and transactions

from pathlib import Path

import pytest
import yaml

from tabsync.library.models import ATTACHMENT, Item, LinkMode, generate_key
from tabsync.library.store import LibraryStore


class TestItem:
    """Tests for Item model."""

    def test_generate_key(self):
        key = generate_key()
        assert len(key) == 8
        assert "0" not in key and "O" not in key

    def test_kinds(self):
        parent = Item(key="PARENT01", item_type="book")
        child = Item(key="ATTACH01", parent_key="PARENT01")
        assert not parent.is_attachment
        assert parent.is_top_level
        assert child.is_attachment
        assert not child.is_top_level

    def test_tags(self):
        item = Item(key="ATTACH01")
        assert item.add_tag("x")
        assert not item.add_tag("x")
        assert item.remove_tag("x")
        assert not item.remove_tag("x")

    def test_filename(self):
        assert Item(key="A", path="/x/y/paper.pdf").filename == "paper.pdf"
        assert Item(key="A", title="Notes").filename == "Notes"

    def test_dict_round_trip(self):
        item = Item(
            key="ATTACH01",
            parent_key="PARENT01",
            content_type="application/pdf",
            link_mode=LinkMode.IMPORTED_FILE,
            path="paper.pdf",
            tags={"b", "a"},
        )
        data = item.to_dict()
        assert data["tags"] == ["a", "b"]
        assert "sync_data" not in data
        assert Item.from_dict("ATTACH01", data) == item


class TestLibraryStore:
    """Tests for LibraryStore."""

    def test_add_duplicate(self, library):
        library.add(Item(key="ATTACH01"))
        with pytest.raises(KeyError):
            library.add(Item(key="ATTACH01"))

    def test_parent_and_children(self, library):
        parent = library.add(Item(key="PARENT01", item_type="book"))
        second = library.add(Item(key="ATTACH02", parent_key=parent.key))
        first = library.add(Item(key="ATTACH01", parent_key=parent.key))

        assert library.parent_of(first) is parent
        assert library.parent_of(parent) is None
        assert library.children_of(parent) == [first, second]

    def test_file_path(self, library, temp_dir):
        imported = Item(key="ATTACH01", link_mode=LinkMode.IMPORTED_FILE, path="a.pdf")
        linked = Item(key="ATTACH02", link_mode=LinkMode.LINKED_FILE, path=str(temp_dir / "b.pdf"))
        url = Item(key="ATTACH03", link_mode=LinkMode.LINKED_URL, path="https://example.org")

        assert library.file_path(imported) == library.storage_dir / "ATTACH01" / "a.pdf"
        assert library.file_path(linked) == temp_dir / "b.pdf"
        assert library.file_path(url) is None

    def test_relink(self, library, temp_dir):
        item = Item(key="ATTACH01", link_mode=LinkMode.IMPORTED_FILE, path="a.pdf")

        library.relink(item, temp_dir / "tablet" / "a.pdf")
        assert item.link_mode is LinkMode.LINKED_FILE
        assert item.path == str(temp_dir / "tablet" / "a.pdf")

        library.relink(item, library.storage_dir / "ATTACH01" / "b.pdf")
        assert item.link_mode is LinkMode.IMPORTED_FILE
        assert item.path == "b.pdf"

    @pytest.mark.asyncio
    async def test_save_and_load(self, library):
        library.add(Item(key="PARENT01", item_type="book", title="Sleep", creators=["Doe"]))
        library.add(Item(key="ATTACH01", parent_key="PARENT01", tags={"_tablet"}))
        await library.save()

        with open(library.path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        assert data["version"] == "1.0"
        assert set(data["items"]) == {"PARENT01", "ATTACH01"}

        reloaded = LibraryStore(library.path, library.storage_dir)
        reloaded.load()
        assert reloaded.get("ATTACH01").tags == {"_tablet"}
        assert reloaded.get("PARENT01").creators == ["Doe"]

    def test_load_missing_file(self, temp_dir):
        store = LibraryStore(temp_dir / "missing.yaml", temp_dir / "storage")
        store.load()
        assert store.items() == []

    @pytest.mark.asyncio
    async def test_in_memory_save(self, temp_dir):
        store = LibraryStore(None, temp_dir / "storage")
        store.add(Item(key="ATTACH01"))
        await store.save()
        assert store.get("ATTACH01") is not None


class TestTransaction:
    """Tests for library transactions."""

    @pytest.mark.asyncio
    async def test_commit_writes_once(self, library, monkeypatch):
        writes = []
        original_write = library._write

        async def counting_write():
            writes.append(1)
            await original_write()

        monkeypatch.setattr(library, "_write", counting_write)

        async with library.transaction():
            library.add(Item(key="ATTACH01"))
            await library.save()
            library.add(Item(key="ATTACH02"))
            await library.save()

        assert writes == [1]
        assert library.path.exists()

    @pytest.mark.asyncio
    async def test_no_write_without_save(self, library):
        async with library.transaction():
            library.add(Item(key="ATTACH01"))

        assert not library.path.exists()

    @pytest.mark.asyncio
    async def test_rollback(self, library):
        item = library.add(Item(key="ATTACH01", tags={"keep"}))

        with pytest.raises(RuntimeError):
            async with library.transaction():
                item.add_tag("_tablet")
                item.sync_data = "{}"
                library.add(Item(key="ATTACH02"))
                await library.save()
                raise RuntimeError("boom")

        assert library.get("ATTACH02") is None
        assert library.get("ATTACH01") is item
        assert item.tags == {"keep"}
        assert item.sync_data is None
        assert not library.path.exists()

    @pytest.mark.asyncio
    async def test_nested_joins_outer(self, library):
        with pytest.raises(ValueError):
            async with library.transaction():
                library.add(Item(key="ATTACH01"))
                async with library.transaction():
                    library.add(Item(key="ATTACH02"))
                raise ValueError("outer fails")

        assert library.items() == []


class TestImportFile:
    """Tests for importing files."""

    @pytest.mark.asyncio
    async def test_import_copies_into_storage(self, library, temp_dir):
        source = temp_dir / "Sleep Study.pdf"
        source.write_bytes(b"%PDF")

        parent, attachment = await library.import_file(source, creators=["Doe"], date="2020")

        assert parent.title == "Sleep Study"
        assert attachment.item_type == ATTACHMENT
        assert attachment.parent_key == parent.key
        assert attachment.content_type == "application/pdf"
        assert attachment.link_mode is LinkMode.IMPORTED_FILE
        assert library.file_path(attachment).read_bytes() == b"%PDF"
        assert source.exists()
        assert library.path.exists()

    @pytest.mark.asyncio
    async def test_import_linked(self, library, temp_dir):
        source = temp_dir / "paper.pdf"
        source.write_bytes(b"%PDF")

        _, attachment = await library.import_file(source, link=True)

        assert attachment.link_mode is LinkMode.LINKED_FILE
        assert library.file_path(attachment) == source.resolve()

    @pytest.mark.asyncio
    async def test_import_missing(self, library, temp_dir):
        with pytest.raises(FileNotFoundError):
            await library.import_file(temp_dir / "missing.pdf")
