"""Archive Restorer: rebuild a live dataset from an exported archive.

The archive is validated first; an unreadable archive, a missing
manifest, or an unsupported format version returns a failed result
before anything is written.  After that nothing is raised to the
caller: every table in scope is restored in dependency order, and a
record that cannot be inserted becomes one entry in the result's error
list while the rest of the import carries on.

Identifier handling follows each ``TableDef``:

- ``match_fields``: a destination row with the same natural key absorbs
  the record (its id is mapped onto the existing row, nothing written).
- ``upsert``: the row is updated in place when its key exists.
- otherwise a primary key already taken in the destination is replaced
  by a fresh id, and later references to the old id are rewritten.

Required references must resolve to a row present in the destination
(imported in this run or already there) or the record is skipped with
an error.  Optional references that do not resolve are set to null.

Usage:
    from school_archive.archive.restorer import restore_archive
    from school_archive.archive.scope import ScopePolicy

    result = await restore_archive(
        adapter, assets, "backups/export.zip",
        ScopePolicy(clear_existing=True, import_progress=False),
    )
    if not result.success:
        for error in result.errors:
            print(error)
"""

import asyncio
import io
import json
import logging
import zipfile
from pathlib import Path
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from school_archive.adapters.base import DatabaseClient
from school_archive.archive.models import (
    DATA_DIR,
    MANIFEST_NAME,
    SUPPORTED_FORMAT_VERSIONS,
    ArchiveSchema,
    Manifest,
    ManifestAsset,
    TableDef,
    asset_member,
    data_member,
)
from school_archive.archive.scope import ScopePolicy
from school_archive.archive.tables import SCHOOL_SCHEMA
from school_archive.assets.store import AssetStore

logger = logging.getLogger(__name__)

ASSETS_COUNT_KEY = "assets"

Outcome = Literal["inserted", "updated", "matched"]


class RestoreResult(BaseModel):
    """Outcome of a restore.

    ``imported_counts`` has an entry for every category attempted, even
    when the restore reports errors.  Serialized with camelCase keys
    (``importedCounts``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = False
    message: str = ""
    imported_counts: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


class _SkipRecord(Exception):
    """A record that cannot be restored as-is (bad shape or dangling reference)."""


class _DataFileError(Exception):
    """A data file that exists but cannot be read as a list of records."""


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


def _open_archive(archive: bytes | str | Path) -> zipfile.ZipFile:
    if isinstance(archive, (bytes, bytearray)):
        return zipfile.ZipFile(io.BytesIO(archive))
    return zipfile.ZipFile(archive)


def _inspect(
    zf: zipfile.ZipFile,
    schema: ArchiveSchema,
) -> tuple[Manifest | None, list[str], list[str]]:
    """Check an open archive against the layout contract.

    Returns:
        ``(manifest, errors, warnings)``.  Any error makes the archive
        unusable; warnings are informational.
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        raw = zf.read(MANIFEST_NAME)
    except KeyError:
        errors.append(f"Missing {MANIFEST_NAME}")
        return None, errors, warnings

    try:
        manifest = Manifest.model_validate(json.loads(raw.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        errors.append(f"Invalid {MANIFEST_NAME}: {e}")
        return None, errors, warnings
    except ValidationError as e:
        errors.append(f"Invalid {MANIFEST_NAME}: {e.error_count()} field errors")
        return None, errors, warnings

    if manifest.format_version not in SUPPORTED_FORMAT_VERSIONS:
        supported = ", ".join(sorted(SUPPORTED_FORMAT_VERSIONS))
        errors.append(
            f"Unsupported format version '{manifest.format_version}' "
            f"(supported: {supported})"
        )
        return manifest, errors, warnings

    members = set(zf.namelist())
    for name in schema.names:
        if data_member(name) not in members:
            warnings.append(f"Missing data file: {data_member(name)}")
    known = {data_member(name) for name in schema.names}
    for member in sorted(members):
        if member.startswith(f"{DATA_DIR}/") and member not in known:
            warnings.append(f"Unrecognized data file ignored: {member}")

    for entry in manifest.assets:
        try:
            member = asset_member(entry.path, entry.kind)
        except ValueError as e:
            warnings.append(f"Asset {entry.path}: {e}")
            continue
        if member not in members:
            warnings.append(f"Asset {entry.path} declared but {member} is missing")

    return manifest, errors, warnings


def validate_archive(
    archive: bytes | str | Path,
    schema: ArchiveSchema = SCHOOL_SCHEMA,
) -> dict:
    """Validate an archive's layout, manifest and format version.

    This function is **sync** -- it only reads the archive.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        and ``warnings`` (list[str]).

    Example:
        report = validate_archive("backups/export.zip")
        if not report["valid"]:
            raise ValueError("; ".join(report["errors"]))
    """
    try:
        with _open_archive(archive) as zf:
            _, errors, warnings = _inspect(zf, schema)
    except FileNotFoundError:
        return {"valid": False, "errors": [f"Archive not found: {archive}"], "warnings": []}
    except (zipfile.BadZipFile, OSError) as e:
        return {"valid": False, "errors": [f"Not a ZIP archive: {e}"], "warnings": []}
    return {"valid": not errors, "errors": errors, "warnings": warnings}


def _read_data_file(zf: zipfile.ZipFile, table_name: str) -> list:
    try:
        raw = zf.read(data_member(table_name))
    except KeyError:
        return []
    try:
        rows = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise _DataFileError(f"{data_member(table_name)} is not valid JSON: {e}") from e
    if not isinstance(rows, list):
        raise _DataFileError(f"{data_member(table_name)} must contain a list of records")
    return rows


# ------------------------------------------------------------------
# Record restoration
# ------------------------------------------------------------------


class _IdMap:
    """Tracks archive id -> destination id per table, plus known-present ids."""

    def __init__(self, adapter: DatabaseClient, schema: ArchiveSchema) -> None:
        self._adapter = adapter
        self._schema = schema
        self._maps: dict[str, dict[Any, Any]] = {name: {} for name in schema.names}
        self._present: dict[str, set] = {name: set() for name in schema.names}

    def record(self, table: str, old_id: Any, new_id: Any) -> None:
        self._maps[table][old_id] = new_id
        self._present[table].add(new_id)

    async def exists(self, table: str, value: Any) -> bool:
        if value in self._present[table]:
            return True
        pk = self._schema.table(table).pk
        rows = await self._adapter.select(table, pk, filters={pk: value})
        if rows:
            self._present[table].add(value)
            return True
        return False

    async def resolve(self, table: str, old_id: Any) -> Any | None:
        """Return the destination id for an archive id, or ``None`` if absent."""
        if old_id in self._maps[table]:
            return self._maps[table][old_id]
        if await self.exists(table, old_id):
            return old_id
        return None


def _describe(table_def: TableDef, row: Any, index: int) -> str:
    """Best-effort human identifier for a record in error messages."""
    if not isinstance(row, dict):
        return f"#{index + 1}"
    for field in (table_def.label_field, table_def.pk):
        if field and row.get(field) not in (None, ""):
            return f"'{row[field]}'"
    if table_def.required_refs:
        return "(" + ", ".join(
            f"{ref.field}={row.get(ref.field)!r}" for ref in table_def.required_refs
        ) + ")"
    return f"#{index + 1}"


async def _restore_record(
    adapter: DatabaseClient,
    table_def: TableDef,
    row: Any,
    ids: _IdMap,
) -> Outcome:
    if not isinstance(row, dict):
        raise _SkipRecord(f"record is a {type(row).__name__}, not an object")
    record = dict(row)
    name = table_def.name
    pk = table_def.pk
    old_pk = record.get(pk) if pk else None
    if pk and old_pk in (None, ""):
        raise _SkipRecord(f"missing '{pk}'")

    for ref in table_def.required_refs:
        target = ref.target_table(record)
        if target is None:
            raise _SkipRecord(
                f"unknown {ref.type_field} {record.get(ref.type_field)!r} for {ref.field}"
            )
        old_ref = record.get(ref.field)
        if old_ref in (None, ""):
            raise _SkipRecord(f"{ref.field} is empty")
        new_ref = await ids.resolve(target, old_ref)
        if new_ref is None:
            raise _SkipRecord(f"{ref.field} {old_ref!r} references a missing {target} record")
        record[ref.field] = new_ref

    for ref in table_def.optional_refs:
        target = ref.target_table(record)
        old_ref = record.get(ref.field)
        if old_ref in (None, ""):
            continue
        new_ref = await ids.resolve(target, old_ref) if target else None
        if new_ref is None:
            logger.debug(f"{name}.{ref.field} {old_ref!r} not found, set to null")
        record[ref.field] = new_ref

    if table_def.upsert:
        existing = await adapter.select(name, pk, filters={pk: old_pk})
        if existing:
            data = {k: v for k, v in record.items() if k != pk}
            await adapter.update(name, data=data, filters={pk: old_pk})
            ids.record(name, old_pk, old_pk)
            return "updated"
        await adapter.insert(name, data=record)
        ids.record(name, old_pk, old_pk)
        return "inserted"

    for field in table_def.match_fields:
        value = record.get(field)
        if value in (None, ""):
            continue
        existing = await adapter.select(name, pk, filters={field: value})
        if existing:
            ids.record(name, old_pk, existing[0][pk])
            return "matched"

    if pk is None:
        await adapter.insert(name, data=record)
        return "inserted"

    if await ids.exists(name, old_pk):
        record[pk] = str(uuid4())
        logger.info(f"{name} id {old_pk!r} already taken, remapped to {record[pk]!r}")
    inserted = await adapter.insert(name, data=record)
    ids.record(name, old_pk, inserted.get(pk, record[pk]))
    return "inserted"


async def _restore_table(
    adapter: DatabaseClient,
    table_def: TableDef,
    rows: list,
    ids: _IdMap,
    result: RestoreResult,
) -> None:
    name = table_def.name
    imported = matched = 0
    for index, row in enumerate(rows):
        try:
            outcome = await _restore_record(adapter, table_def, row, ids)
        except _SkipRecord as e:
            message = f"Skipped {name} {_describe(table_def, row, index)}: {e}"
            logger.warning(message)
            result.errors.append(message)
            continue
        except Exception as e:
            message = f"Failed to import {name} {_describe(table_def, row, index)}: {e}"
            logger.warning(message)
            result.errors.append(message)
            continue
        if outcome == "matched":
            matched += 1
        else:
            imported += 1
    result.imported_counts[name] = imported
    suffix = f" ({matched} matched existing records)" if matched else ""
    logger.info(f"Imported {imported} of {len(rows)} {name}{suffix}")


# ------------------------------------------------------------------
# Clearing and assets
# ------------------------------------------------------------------


async def _clear_users(
    adapter: DatabaseClient,
    keep_user_id: str | None,
) -> None:
    """Delete every user except one admin, so the acting admin keeps access."""
    users = await adapter.select("users", "id, role", order_by="created_at")
    ids = [u["id"] for u in users]
    if keep_user_id not in ids:
        admins = [u["id"] for u in users if u.get("role") == "admin"]
        keep_user_id = admins[0] if admins else None
    for user_id in ids:
        if user_id != keep_user_id:
            await adapter.delete("users", {"id": user_id})
    logger.info(f"Cleared users, kept {keep_user_id!r}")


async def _clear_destination(
    adapter: DatabaseClient,
    schema: ArchiveSchema,
    policy: ScopePolicy,
    keep_user_id: str | None,
    result: RestoreResult,
) -> None:
    # Children first, so foreign keys never point at a deleted row.
    for table_def in reversed(schema.tables):
        try:
            if table_def.scope == "users":
                if policy.import_users:
                    await _clear_users(adapter, keep_user_id)
                continue
            await adapter.delete(table_def.name)
        except Exception as e:
            message = f"Failed to clear {table_def.name}: {e}"
            logger.warning(message)
            result.errors.append(message)


async def _restore_assets(
    zf: zipfile.ZipFile,
    entries: list[ManifestAsset],
    assets: AssetStore,
    max_concurrency: int,
    result: RestoreResult,
) -> int:
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def copy(entry: ManifestAsset) -> str | None:
        async with semaphore:
            try:
                member = asset_member(entry.path, entry.kind)
                data = zf.read(member)
                await assets.write(entry.path, data)
            except KeyError:
                return f"Failed to import asset {entry.path}: not present in archive"
            except Exception as e:
                return f"Failed to import asset {entry.path}: {e}"
        return None

    outcomes = await asyncio.gather(*(copy(entry) for entry in entries))
    copied = 0
    for outcome in outcomes:
        if outcome is None:
            copied += 1
        else:
            logger.warning(outcome)
            result.errors.append(outcome)
    logger.info(f"Imported {copied} of {len(entries)} assets")
    return copied


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


def _rejected(schema: ArchiveSchema, errors: list[str]) -> RestoreResult:
    return RestoreResult(
        success=False,
        message=f"Invalid archive: {'; '.join(errors)}",
        imported_counts={name: 0 for name in schema.names},
        errors=errors,
    )


async def restore_archive(
    adapter: DatabaseClient,
    assets: AssetStore,
    archive: bytes | str | Path,
    policy: ScopePolicy | None = None,
    *,
    schema: ArchiveSchema = SCHOOL_SCHEMA,
    keep_user_id: str | None = None,
    max_concurrency: int = 8,
) -> RestoreResult:
    """Restore an archive into the live store and asset store.

    Callers must not run two restores against the same destination at
    once.

    Args:
        adapter: Destination persistence store.
        assets: Destination asset store.
        archive: Archive bytes or a path to the ZIP file.
        policy: Scope toggles (default: import everything, keep existing data).
        schema: Tables in dependency order.
        keep_user_id: Admin to retain when users are cleared (default: the
            oldest admin).
        max_concurrency: Maximum simultaneous asset writes.

    Returns:
        ``RestoreResult``.  ``success`` is true only when no error was
        recorded.  An invalid archive yields ``success=False``, all counts
        zero, and no writes.
    """
    policy = policy or ScopePolicy()

    try:
        zf = _open_archive(archive)
    except (zipfile.BadZipFile, OSError) as e:
        logger.error(f"Restore rejected: not a ZIP archive: {e}")
        return _rejected(schema, [f"Not a ZIP archive: {e}"])

    with zf:
        manifest, errors, warnings = _inspect(zf, schema)
        if errors:
            logger.error(f"Restore rejected: {'; '.join(errors)}")
            return _rejected(schema, errors)
        for warning in warnings:
            logger.warning(warning)

        logger.info(
            f"Restoring archive exported {manifest.export_date} with options "
            f"{policy.model_dump(by_alias=True)}"
        )
        result = RestoreResult()

        if policy.clear_existing:
            await _clear_destination(adapter, schema, policy, keep_user_id, result)

        ids = _IdMap(adapter, schema)
        for table_def in schema.tables:
            if not policy.includes(table_def):
                continue
            result.imported_counts[table_def.name] = 0
            try:
                rows = _read_data_file(zf, table_def.name)
            except _DataFileError as e:
                logger.warning(str(e))
                result.errors.append(str(e))
                continue
            await _restore_table(adapter, table_def, rows, ids, result)

        if policy.import_assets:
            result.imported_counts[ASSETS_COUNT_KEY] = await _restore_assets(
                zf, manifest.assets, assets, max_concurrency, result
            )

    result.success = not result.errors
    if result.success:
        result.message = "Import completed successfully"
        logger.info(result.message)
    else:
        result.message = f"Import completed with {len(result.errors)} errors"
        logger.warning(result.message)
    return result
