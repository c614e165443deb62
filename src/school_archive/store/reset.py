"""Destructive reset: wipe every collection and reseed the default admin.

Gated twice: the caller must type the exact confirmation phrase and
supply the current admin's password.  Either gate failing returns a
failed ``ResetResult`` before anything is touched.  Once both pass, the
drop, recreate and seed statements run in a single transaction, so the
store ends up either freshly seeded or exactly as it was.

Usage:
    from school_archive.store.reset import RESET_CONFIRMATION_PHRASE, reset_database

    result = await reset_database(adapter, RESET_CONFIRMATION_PHRASE, "s3cret")
    print(result.message)
"""

import logging

from pydantic import BaseModel

from school_archive.adapters.base import DatabaseClient
from school_archive.archive.models import ArchiveSchema
from school_archive.archive.tables import SCHOOL_SCHEMA
from school_archive.store.baseline import create_statements, drop_statements
from school_archive.store.seed import seed_statements, verify_password

logger = logging.getLogger(__name__)

RESET_CONFIRMATION_PHRASE = "RESET_DATABASE_CONFIRM"


class ResetResult(BaseModel):
    """Outcome of a reset attempt."""

    success: bool
    message: str


async def _admin_password_hash(
    adapter: DatabaseClient,
    admin_id: str | None,
) -> str | None:
    filters = {"role": "admin"}
    if admin_id is not None:
        filters["id"] = admin_id
    admins = await adapter.select(
        "users", "id, password_hash", filters=filters, order_by="created_at"
    )
    return admins[0]["password_hash"] if admins else None


async def reset_database(
    adapter: DatabaseClient,
    confirmation_phrase: str,
    admin_credential: str,
    *,
    admin_id: str | None = None,
    schema: ArchiveSchema = SCHOOL_SCHEMA,
) -> ResetResult:
    """Drop every table, recreate the baseline schema and seed the default admin.

    Args:
        adapter: Store to reset.
        confirmation_phrase: Must equal ``RESET_CONFIRMATION_PHRASE`` exactly.
        admin_credential: Plain-text password of the acting admin.
        admin_id: Acting admin's id (default: the oldest admin).
        schema: Tables to drop and recreate.

    Returns:
        ``ResetResult``.  ``success`` is False when a gate fails or the
        transaction is rolled back.
    """
    if confirmation_phrase != RESET_CONFIRMATION_PHRASE:
        logger.warning("Reset rejected: confirmation phrase mismatch")
        return ResetResult(
            success=False,
            message=f"Confirmation phrase must be exactly '{RESET_CONFIRMATION_PHRASE}'",
        )

    try:
        password_hash = await _admin_password_hash(adapter, admin_id)
    except Exception as e:
        logger.exception("Reset aborted: could not look up the admin account")
        return ResetResult(success=False, message=f"Reset failed: {e}")
    if not verify_password(admin_credential, password_hash):
        logger.warning("Reset rejected: admin credential verification failed")
        return ResetResult(success=False, message="Invalid admin password")

    statements = drop_statements(schema) + create_statements(schema) + seed_statements()
    try:
        await adapter.execute_script(statements)
    except Exception as e:
        logger.exception("Reset failed, changes rolled back")
        return ResetResult(success=False, message=f"Reset failed: {e}")

    logger.info(f"Reset complete: {len(schema.tables)} tables recreated, default admin seeded")
    return ResetResult(
        success=True,
        message="Database reset complete. Log in as 'admin' and change the default password.",
    )
