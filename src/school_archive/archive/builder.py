"""Archive Builder: export the whole dataset and its assets to one ZIP.

Every table in the ``ArchiveSchema`` is read in full.  Content documents
of lessons and assessments are walked for local asset references, which
are deduplicated by path and fetched concurrently.  A table that cannot
be read aborts the export; an asset that cannot be fetched is logged and
left out of the manifest.

Usage:
    from school_archive.archive.builder import build_archive, export_archive

    data = await build_archive(adapter, assets, on_progress=print)
    path = await export_archive(adapter, assets, output_path="backup.zip")
"""

import asyncio
import io
import json
import logging
import zipfile
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from school_archive.adapters.base import DatabaseClient
from school_archive.archive.models import (
    FORMAT_VERSION,
    MANIFEST_NAME,
    README_NAME,
    ArchiveSchema,
    Manifest,
    ManifestAsset,
    asset_member,
    data_member,
)
from school_archive.archive.tables import SCHOOL_SCHEMA
from school_archive.assets.store import AssetStore
from school_archive.content.blocks import ContentDocumentError
from school_archive.content.extractor import AssetReference, iter_asset_references

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

# Progress bands: read tables, fetch assets, write package.
_READ_END = 40
_FETCH_START = 45
_FETCH_END = 85
_DONE = 100


class ArchiveBuildError(Exception):
    """Raised when the export cannot produce a complete archive."""


class _Progress:
    """Forward percentages to a callback, never moving backwards."""

    def __init__(self, callback: ProgressCallback | None) -> None:
        self._callback = callback
        self._last = -1

    def __call__(self, percent: float) -> None:
        value = max(0, min(_DONE, int(percent)))
        if self._callback is None or value <= self._last:
            return
        self._last = value
        self._callback(value)


async def _read_tables(
    adapter: DatabaseClient,
    schema: ArchiveSchema,
    progress: _Progress,
) -> dict[str, list[dict]]:
    tables: dict[str, list[dict]] = {}
    total = len(schema.tables)
    for i, table_def in enumerate(schema.tables, 1):
        try:
            tables[table_def.name] = await adapter.select(
                table_def.name, "*", order_by=table_def.pk
            )
        except Exception as e:
            logger.error(f"Export aborted: cannot read {table_def.name}: {e}")
            raise ArchiveBuildError(f"Failed to read {table_def.name}: {e}") from e
        progress(_READ_END * i / total)
    return tables


def collect_asset_references(
    tables: dict[str, list[dict]],
    schema: ArchiveSchema = SCHOOL_SCHEMA,
) -> list[AssetReference]:
    """Extract asset references from every content-bearing record.

    Deduplicated by path, first occurrence wins, in table then record order.
    A record whose content cannot be decoded contributes nothing and is logged.
    """
    unique: dict[str, AssetReference] = {}
    for table_def in schema.tables:
        if table_def.content_field is None:
            continue
        for row in tables.get(table_def.name, []):
            try:
                refs = list(iter_asset_references(row.get(table_def.content_field)))
            except ContentDocumentError as e:
                label = row.get(table_def.label_field) if table_def.label_field else None
                logger.warning(
                    f"Skipping assets of {table_def.name} '{label or row.get(table_def.pk)}': {e}"
                )
                continue
            for ref in refs:
                unique.setdefault(ref.path, ref)
    return list(unique.values())


async def _fetch_assets(
    assets: AssetStore,
    refs: list[AssetReference],
    max_concurrency: int,
    progress: _Progress,
) -> list[tuple[AssetReference, bytes]]:
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    done = 0

    async def fetch(ref: AssetReference) -> tuple[AssetReference, bytes] | None:
        nonlocal done
        async with semaphore:
            try:
                asset_member(ref.path, ref.kind)
                data = await assets.read(ref.path)
            except Exception as e:
                logger.warning(f"Asset {ref.path} not packaged: {e}")
                data = None
        done += 1
        progress(_FETCH_START + (_FETCH_END - _FETCH_START) * done / len(refs))
        return (ref, data) if data is not None else None

    results = await asyncio.gather(*(fetch(ref) for ref in refs))
    return [r for r in results if r is not None]


def _readme(manifest: Manifest, counts: dict[str, int]) -> str:
    lines = [
        "# School Archive Export",
        "",
        f"Export Date: {manifest.export_date}",
        f"Format Version: {manifest.format_version}",
        "",
        "## Contents",
        "",
    ]
    lines += [f"- {name}: {count} records" for name, count in counts.items()]
    lines += [
        "",
        f"- assets: {manifest.total_assets} files "
        f"({manifest.total_size / 1024 / 1024:.2f} MB)",
        "",
        "`data/` holds one JSON file per table, `assets/` the uploaded images,",
        "videos and documents, and `manifest.json` indexes the packaged assets.",
        "",
        "Restoring with 'clear existing data' REPLACES the target system's content.",
        "",
    ]
    return "\n".join(lines)


def _package(
    tables: dict[str, list[dict]],
    fetched: list[tuple[AssetReference, bytes]],
    export_date: datetime,
    progress: _Progress,
) -> bytes:
    manifest = Manifest(
        export_date=export_date.isoformat(),
        format_version=FORMAT_VERSION,
        total_assets=len(fetched),
        total_size=sum(len(data) for _, data in fetched),
        assets=[
            ManifestAsset(path=ref.path, kind=ref.kind, size=len(data))
            for ref, data in fetched
        ],
    )
    steps = len(tables) + len(fetched) + 2
    written = 0

    def step() -> None:
        nonlocal written
        written += 1
        progress(_FETCH_END + (_DONE - 1 - _FETCH_END) * written / steps)

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, rows in tables.items():
            zf.writestr(data_member(name), json.dumps(rows, indent=2, default=str))
            step()
        for ref, data in fetched:
            zf.writestr(asset_member(ref.path, ref.kind), data)
            step()
        counts = {name: len(rows) for name, rows in tables.items()}
        zf.writestr(README_NAME, _readme(manifest, counts))
        step()
        # Manifest last: it lists only assets that made it into the package.
        zf.writestr(
            MANIFEST_NAME,
            json.dumps(manifest.model_dump(by_alias=True), indent=2),
        )
        step()
    return buf.getvalue()


async def build_archive(
    adapter: DatabaseClient,
    assets: AssetStore,
    on_progress: ProgressCallback | None = None,
    *,
    schema: ArchiveSchema = SCHOOL_SCHEMA,
    max_concurrency: int = 8,
    export_date: datetime | None = None,
) -> bytes:
    """Export every table and referenced asset as ZIP bytes.

    Args:
        adapter: Persistence store.
        assets: Asset store the content documents point into.
        on_progress: Optional callback receiving non-decreasing integer
            percentages; the last call is always ``100``.
        schema: Tables to export, in dependency order.
        max_concurrency: Maximum simultaneous asset fetches.
        export_date: Timestamp recorded in the manifest (default: now, UTC).

    Returns:
        The archive as bytes.

    Raises:
        ArchiveBuildError: If any table cannot be read.  No partial
            archive is produced.
    """
    progress = _Progress(on_progress)
    progress(0)
    export_date = export_date or datetime.now(timezone.utc)
    logger.info(f"Starting archive export of {len(schema.tables)} tables")

    tables = await _read_tables(adapter, schema, progress)

    refs = collect_asset_references(tables, schema)
    logger.info(f"Found {len(refs)} unique asset references")
    progress(_FETCH_START)

    fetched = await _fetch_assets(assets, refs, max_concurrency, progress)
    if len(fetched) < len(refs):
        logger.warning(f"{len(refs) - len(fetched)} of {len(refs)} assets could not be fetched")
    progress(_FETCH_END)

    data = _package(tables, fetched, export_date, progress)
    progress(_DONE)
    logger.info(f"Archive export complete: {len(data)} bytes, {len(fetched)} assets")
    return data


async def export_archive(
    adapter: DatabaseClient,
    assets: AssetStore,
    output_path: str | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    output_dir: str | Path = "backups",
    **kwargs: Any,
) -> str:
    """Build an archive and write it to disk.

    When ``output_path`` is ``None``, generates a timestamped path under
    ``output_dir`` (relative paths resolve against the working directory).
    Extra keyword arguments are passed to ``build_archive``.

    Returns:
        Path of the written archive.
    """
    if output_path is None:
        timestamp = datetime.now().strftime("%Y-%m-%d-%H%M")
        output_path = str(Path(output_dir) / f"school-archive-export-{timestamp}.zip")

    data = await build_archive(adapter, assets, on_progress, **kwargs)

    output_path_obj = Path(output_path)
    output_path_obj.parent.mkdir(parents=True, exist_ok=True)
    output_path_obj.write_bytes(data)
    logger.info(f"Archive written to {output_path}")
    return output_path
