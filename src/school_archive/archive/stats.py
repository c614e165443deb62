"""Row counts per collection plus the number of uploaded files."""

import logging

from school_archive.adapters.base import DatabaseClient
from school_archive.archive.models import ArchiveSchema
from school_archive.archive.tables import SCHOOL_SCHEMA
from school_archive.assets.store import AssetStore

logger = logging.getLogger(__name__)

UPLOADED_FILES_KEY = "uploadedFiles"


async def count_rows(adapter: DatabaseClient, table: str) -> int:
    rows = await adapter.select(table, "count(*) as cnt")
    return int(rows[0]["cnt"]) if rows else 0


async def collect_stats(
    adapter: DatabaseClient,
    assets: AssetStore,
    schema: ArchiveSchema = SCHOOL_SCHEMA,
) -> dict[str, int]:
    """Count every collection and the files in the asset store.

    Returns:
        ``{table_name: row_count, ..., "uploadedFiles": n}`` in schema order.
        Tables that cannot be counted are reported as ``-1``.
    """
    stats: dict[str, int] = {}
    for table_def in schema.tables:
        try:
            stats[table_def.name] = await count_rows(adapter, table_def.name)
        except Exception as e:
            logger.warning(f"Could not count {table_def.name}: {e}")
            stats[table_def.name] = -1
    stats[UPLOADED_FILES_KEY] = len(await assets.list_paths())
    return stats
