"""Tests for the archive builder.

Verifies that:
- Every collection is written as data/<table>.json
- Referenced local assets are packaged once each, under assets/<kind>s/
- Unfetchable assets are left out of the manifest without failing the export
- A table that cannot be read aborts the export with ArchiveBuildError
- Progress is non-decreasing and ends at exactly 100
- The manifest is the last member written
"""

import io
import json
import zipfile
from datetime import datetime, timezone

import pytest

from school_archive.archive.builder import (
    ArchiveBuildError,
    build_archive,
    collect_asset_references,
    export_archive,
)
from school_archive.archive.models import FORMAT_VERSION
from school_archive.archive.tables import SCHOOL_SCHEMA

from conftest import MemoryAssetStore, MemoryStore


def _open(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


def _key(row: dict) -> str:
    return json.dumps(row, sort_keys=True)


class TestCollectAssetReferences:
    """Verify reference collection across content-bearing tables."""

    def test_deduplicated_in_table_order(self, dataset):
        refs = collect_asset_references(dataset)
        assert [r.path for r in refs] == [
            "/uploads/cell.png",
            "/uploads/mitosis.mp4",
            "/uploads/worksheet.pdf",
            "/uploads/diagram.png",
            "/uploads/quiz.png",
        ]

    def test_undecodable_content_is_skipped(self, dataset):
        """A lesson with broken content_json contributes nothing; others still count."""
        dataset["lessons"][0]["content_json"] = "{broken"
        refs = collect_asset_references(dataset)
        assert [r.path for r in refs] == ["/uploads/quiz.png"]


class TestBuildArchive:
    """Verify archive contents."""

    async def test_data_files_for_every_collection(self, source_store, source_assets, dataset):
        data = await build_archive(source_store, source_assets)
        with _open(data) as zf:
            for name in SCHOOL_SCHEMA.names:
                rows = json.loads(zf.read(f"data/{name}.json"))
                assert sorted(rows, key=_key) == sorted(dataset[name], key=_key)

    async def test_empty_collections_are_written(self, empty_store, empty_assets):
        """An empty store still produces one (empty) data file per collection."""
        data = await build_archive(empty_store, empty_assets)
        with _open(data) as zf:
            assert json.loads(zf.read("data/attempts.json")) == []
            manifest = json.loads(zf.read("manifest.json"))
        assert manifest["totalAssets"] == 0
        assert manifest["assets"] == []

    async def test_assets_packaged_once_by_kind(self, source_store, source_assets):
        data = await build_archive(source_store, source_assets)
        with _open(data) as zf:
            names = zf.namelist()
            assert names.count("assets/images/cell.png") == 1
            assert zf.read("assets/videos/mitosis.mp4") == b"mp4-mitosis"
            assert zf.read("assets/documents/worksheet.pdf") == b"pdf-wks"
            assert "assets/images/diagram.png" in names
            assert "assets/images/quiz.png" in names
            assert not any("youtube" in n or "reading.pdf" in n for n in names)

    async def test_loosely_typed_blocks_still_package_their_files(self):
        """Every /uploads/ URL left in data/lessons.json has its file in the archive."""
        content = {"blocks": [
            {"type": "image", "url": "/uploads/a.png", "alt": None},
            {"type": "documents", "documents": [{"url": "/uploads/x.pdf", "size": 1024.5}]},
            {"type": "video", "id": {"bad": "id"}, "url": "/uploads/v.mp4"},
        ]}
        store = MemoryStore({"lessons": [
            {"id": "l-1", "title": "Loose", "content_json": json.dumps(content)},
        ]})
        assets = MemoryAssetStore({
            "/uploads/a.png": b"a",
            "/uploads/x.pdf": b"pdf",
            "/uploads/v.mp4": b"mp4",
        })
        data = await build_archive(store, assets)
        with _open(data) as zf:
            manifest = json.loads(zf.read("manifest.json"))
            assert zf.read("assets/documents/x.pdf") == b"pdf"
            assert zf.read("assets/images/a.png") == b"a"
            assert zf.read("assets/videos/v.mp4") == b"mp4"
        assert sorted(a["path"] for a in manifest["assets"]) == [
            "/uploads/a.png",
            "/uploads/v.mp4",
            "/uploads/x.pdf",
        ]

    async def test_manifest(self, source_store, source_assets):
        export_date = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        data = await build_archive(source_store, source_assets, export_date=export_date)
        with _open(data) as zf:
            manifest = json.loads(zf.read("manifest.json"))
        assert manifest["exportDate"] == "2024-05-01T10:00:00+00:00"
        assert manifest["formatVersion"] == FORMAT_VERSION
        assert manifest["totalAssets"] == 5
        assert manifest["totalSize"] == sum(a["size"] for a in manifest["assets"])
        assert {"path": "/uploads/cell.png", "kind": "image", "size": 8} in manifest["assets"]

    async def test_manifest_written_last(self, source_store, source_assets):
        data = await build_archive(source_store, source_assets)
        with _open(data) as zf:
            names = zf.namelist()
        assert names[-1] == "manifest.json"
        assert "README.md" in names

    async def test_readme_summarises_counts(self, source_store, source_assets):
        data = await build_archive(source_store, source_assets)
        with _open(data) as zf:
            readme = zf.read("README.md").decode()
        assert "- users: 4 records" in readme
        assert "- assets: 5 files" in readme

    async def test_unfetchable_assets_are_omitted(self, source_store, source_assets):
        """Missing or unreadable assets are skipped; the export still succeeds."""
        del source_assets.files["/uploads/diagram.png"]
        source_assets.fail_read.add("/uploads/quiz.png")
        data = await build_archive(source_store, source_assets)
        with _open(data) as zf:
            manifest = json.loads(zf.read("manifest.json"))
            names = zf.namelist()
        paths = [a["path"] for a in manifest["assets"]]
        assert "/uploads/diagram.png" not in paths
        assert "/uploads/quiz.png" not in paths
        assert manifest["totalAssets"] == 3
        assert "assets/images/diagram.png" not in names

    async def test_unreadable_table_aborts(self, source_store, source_assets):
        source_store.fail_select.add("topics")
        with pytest.raises(ArchiveBuildError, match="topics") as exc_info:
            await build_archive(source_store, source_assets)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    async def test_progress_monotonic_and_complete(self, source_store, source_assets):
        seen: list[int] = []
        await build_archive(source_store, source_assets, on_progress=seen.append)
        assert seen == sorted(seen)
        assert seen[0] >= 0
        assert seen[-1] == 100
        assert seen.count(100) == 1

    async def test_progress_with_no_assets(self, empty_store, empty_assets):
        seen: list[int] = []
        await build_archive(empty_store, empty_assets, on_progress=seen.append)
        assert seen == sorted(seen)
        assert seen[-1] == 100

    async def test_reads_tables_in_schema_order(self, source_assets):
        store = MemoryStore()
        read: list[str] = []
        original = store.select

        async def _select(table, columns, filters=None, order_by=None):
            read.append(table)
            return await original(table, columns, filters, order_by)

        store.select = _select
        await build_archive(store, source_assets)
        assert read == SCHOOL_SCHEMA.names


class TestExportArchive:
    """Verify writing the archive to disk."""

    async def test_explicit_path(self, source_store, source_assets, tmp_path):
        target = tmp_path / "nested" / "out.zip"
        path = await export_archive(source_store, source_assets, output_path=str(target))
        assert path == str(target)
        assert zipfile.is_zipfile(target)

    async def test_default_path(self, source_store, source_assets, tmp_path):
        path = await export_archive(source_store, source_assets, output_dir=tmp_path / "backups")
        assert path.startswith(str(tmp_path / "backups" / "school-archive-export-"))
        assert path.endswith(".zip")
        assert zipfile.is_zipfile(path)
