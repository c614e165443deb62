"""Baseline schema, default seed and destructive reset."""

from school_archive.store.baseline import (
    create_baseline_schema,
    create_statements,
    drop_statements,
)
from school_archive.store.reset import RESET_CONFIRMATION_PHRASE, ResetResult, reset_database
from school_archive.store.seed import hash_password, seed_default_admin, verify_password

__all__ = [
    "RESET_CONFIRMATION_PHRASE",
    "ResetResult",
    "create_baseline_schema",
    "create_statements",
    "drop_statements",
    "hash_password",
    "reset_database",
    "seed_default_admin",
    "verify_password",
]
