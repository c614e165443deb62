"""school-archive: backup, restore and reset for a school learning-management store.

Exports the whole dataset and the uploaded files its lessons and
assessments reference into one ZIP archive, restores such an archive
into a live store with identifier remapping and per-record error
isolation, and performs the double-gated destructive reset.

Usage:
    from school_archive import build_archive, restore_archive, ScopePolicy
    from school_archive import get_adapter, get_asset_store
"""

__version__ = "0.1.0"

# Adapters
from school_archive.adapters.base import DatabaseClient
from school_archive.adapters.postgres import AsyncPostgresAdapter

# Assets
from school_archive.assets.store import AssetStore, LocalAssetStore

# Content
from school_archive.content.extractor import AssetReference, iter_asset_references

# Archive
from school_archive.archive.builder import ArchiveBuildError, build_archive, export_archive
from school_archive.archive.models import ArchiveSchema, ForeignKey, TableDef
from school_archive.archive.restorer import RestoreResult, restore_archive, validate_archive
from school_archive.archive.scope import ScopePolicy
from school_archive.archive.stats import collect_stats
from school_archive.archive.tables import SCHOOL_SCHEMA

# Store
from school_archive.store.reset import RESET_CONFIRMATION_PHRASE, ResetResult, reset_database

# Config
from school_archive.config.loader import load_config
from school_archive.config.models import ArchiveConfig, StoreProfile

# Factory
from school_archive.factory import (
    ProfileNotFoundError,
    get_adapter,
    get_asset_store,
    resolve_url,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    # Assets
    "AssetStore",
    "LocalAssetStore",
    # Content
    "AssetReference",
    "iter_asset_references",
    # Archive
    "ArchiveBuildError",
    "ArchiveSchema",
    "ForeignKey",
    "TableDef",
    "SCHOOL_SCHEMA",
    "ScopePolicy",
    "RestoreResult",
    "build_archive",
    "export_archive",
    "restore_archive",
    "validate_archive",
    "collect_stats",
    # Store
    "RESET_CONFIRMATION_PHRASE",
    "ResetResult",
    "reset_database",
    # Config
    "load_config",
    "ArchiveConfig",
    "StoreProfile",
    # Factory
    "get_adapter",
    "get_asset_store",
    "ProfileNotFoundError",
    "resolve_url",
]
