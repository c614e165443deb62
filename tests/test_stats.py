"""Tests for dataset statistics."""

from school_archive.archive.stats import UPLOADED_FILES_KEY, collect_stats, count_rows
from school_archive.archive.tables import SCHOOL_SCHEMA

from conftest import ASSET_FILES


class TestCollectStats:
    async def test_counts_every_collection(self, source_store, source_assets, dataset):
        stats = await collect_stats(source_store, source_assets)
        assert list(stats) == SCHOOL_SCHEMA.names + [UPLOADED_FILES_KEY]
        for name in SCHOOL_SCHEMA.names:
            assert stats[name] == len(dataset[name])
        assert stats["uploadedFiles"] == len(ASSET_FILES)

    async def test_empty(self, empty_store, empty_assets):
        stats = await collect_stats(empty_store, empty_assets)
        assert set(stats.values()) == {0}

    async def test_uncountable_table(self, source_store, source_assets):
        """A table that cannot be queried is reported as -1, the rest still count."""
        source_store.fail_select.add("attempts")
        stats = await collect_stats(source_store, source_assets)
        assert stats["attempts"] == -1
        assert stats["users"] == 4

    async def test_count_rows(self, source_store):
        assert await count_rows(source_store, "courses") == 1
