"""Default administrator seeded into a fresh dataset, and password hashing."""

import logging
from uuid import uuid4

import bcrypt

from school_archive.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_PASSWORD = "Admin123!"

BCRYPT_ROUNDS = 10


def hash_password(password: str) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check ``password`` against a bcrypt hash.  Malformed hashes never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def default_admin_row() -> dict:
    """Row for the default administrator, who must change the password on first login."""
    return {
        "id": str(uuid4()),
        "username": DEFAULT_ADMIN_USERNAME,
        "email": DEFAULT_ADMIN_EMAIL,
        "password_hash": hash_password(DEFAULT_ADMIN_PASSWORD),
        "role": "admin",
        "first_name": "Admin",
        "last_name": "User",
        "must_change_password": 1,
    }


def seed_statements() -> list[tuple[str, dict | None]]:
    """Insert statement for the default administrator, for use inside a script."""
    row = default_admin_row()
    columns = ", ".join(row)
    placeholders = ", ".join(f":{key}" for key in row)
    return [(f"INSERT INTO users ({columns}) VALUES ({placeholders})", row)]


async def seed_default_admin(adapter: DatabaseClient) -> bool:
    """Insert the default administrator unless one with that username or email exists.

    Returns:
        True if a row was inserted.
    """
    for field, value in (("username", DEFAULT_ADMIN_USERNAME), ("email", DEFAULT_ADMIN_EMAIL)):
        if await adapter.select("users", "id", filters={field: value}):
            logger.info("Default admin already exists")
            return False
    await adapter.insert("users", data=default_admin_row())
    logger.info(f"Seeded default admin '{DEFAULT_ADMIN_USERNAME}'")
    return True
