"""Archive schema, builder, restorer and statistics."""

from school_archive.archive.builder import (
    ArchiveBuildError,
    build_archive,
    collect_asset_references,
    export_archive,
)
from school_archive.archive.models import (
    FORMAT_VERSION,
    ArchiveSchema,
    ForeignKey,
    Manifest,
    ManifestAsset,
    TableDef,
)
from school_archive.archive.restorer import RestoreResult, restore_archive, validate_archive
from school_archive.archive.scope import ScopePolicy
from school_archive.archive.stats import collect_stats
from school_archive.archive.tables import SCHOOL_SCHEMA

__all__ = [
    "FORMAT_VERSION",
    "SCHOOL_SCHEMA",
    "ArchiveBuildError",
    "ArchiveSchema",
    "ForeignKey",
    "Manifest",
    "ManifestAsset",
    "RestoreResult",
    "ScopePolicy",
    "TableDef",
    "build_archive",
    "collect_asset_references",
    "collect_stats",
    "export_archive",
    "restore_archive",
    "validate_archive",
]
