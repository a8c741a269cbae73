# Tests for tabsync.sync.reading
# Reading list membership

import pytest

from tabsync.sync.reading import ReadingList


class TestReadingList:
    """Tests for ReadingList."""

    @pytest.fixture
    def reading(self, library):
        return ReadingList(library, "_reading_list")

    @pytest.mark.asyncio
    async def test_add_maps_attachment_to_parent(self, reading, add_paper):
        parent, pdf = add_paper()

        added = await reading.add([pdf])

        assert added == 1
        assert parent.has_tag("_reading_list")
        assert not pdf.has_tag("_reading_list")
        assert reading.contains(pdf)
        assert reading.contains(parent)

    @pytest.mark.asyncio
    async def test_add_counts_new_only(self, reading, add_paper):
        parent, pdf = add_paper()
        assert await reading.add([parent, pdf]) == 1
        assert await reading.add([parent]) == 0

    @pytest.mark.asyncio
    async def test_remove(self, reading, add_paper):
        parent, _ = add_paper()
        await reading.add([parent])

        assert await reading.remove([parent]) == 1
        assert not reading.contains(parent)

    @pytest.mark.asyncio
    async def test_toggle(self, reading, add_paper):
        parent, _ = add_paper()
        assert await reading.toggle(parent) is True
        assert await reading.toggle(parent) is False

    @pytest.mark.asyncio
    async def test_items_and_count(self, reading, add_paper):
        first, _ = add_paper(title="First")
        second, _ = add_paper(title="Second")
        add_paper(title="Third")
        await reading.add([second, first])

        assert reading.items() == [first, second]
        assert reading.count() == 2

    @pytest.mark.asyncio
    async def test_persisted(self, reading, add_paper, library):
        parent, _ = add_paper()
        await reading.add([parent])

        reloaded = type(library)(library.path, library.storage_dir)
        reloaded.load()
        assert reloaded.get(parent.key).has_tag("_reading_list")
