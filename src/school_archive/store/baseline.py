"""Baseline schema of the school dataset.

One ``CREATE TABLE`` body per collection in ``SCHOOL_SCHEMA``.  Timestamps
are stored as text so archived values restore verbatim.  Author columns
(``created_by``, ``assigned_by``) are nullable because deleting a user
clears them.

Usage:
    from school_archive.store.baseline import create_statements, drop_statements

    await adapter.execute_script(drop_statements() + create_statements())
"""

import logging

from school_archive.adapters.base import DatabaseClient
from school_archive.archive.models import ArchiveSchema
from school_archive.archive.tables import SCHOOL_SCHEMA

logger = logging.getLogger(__name__)

_NOW = "DEFAULT ((now() AT TIME ZONE 'utc')::text)"

TABLE_DDL: dict[str, str] = {
    "settings": f"""
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TEXT NOT NULL {_NOW}
    """,
    "users": f"""
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE,
        username TEXT UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('admin', 'teacher', 'student')),
        first_name TEXT,
        last_name TEXT,
        must_change_password INTEGER DEFAULT 0,
        created_at TEXT NOT NULL {_NOW},
        archived INTEGER DEFAULT 0,
        archived_at TEXT
    """,
    "classes": f"""
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        teacher_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TEXT NOT NULL {_NOW},
        archived INTEGER DEFAULT 0,
        archived_at TEXT,
        auto_archive_date TEXT
    """,
    "class_students": """
        class_id TEXT NOT NULL REFERENCES classes(id) ON DELETE CASCADE,
        student_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        PRIMARY KEY (class_id, student_id)
    """,
    "courses": f"""
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        created_at TEXT NOT NULL {_NOW}
    """,
    "topics": """
        id TEXT PRIMARY KEY,
        course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        description TEXT,
        position INTEGER NOT NULL DEFAULT 0
    """,
    "lessons": f"""
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        content_json TEXT NOT NULL,
        created_by TEXT REFERENCES users(id) ON DELETE SET NULL,
        created_at TEXT NOT NULL {_NOW}
    """,
    "topic_lessons": """
        topic_id TEXT NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
        lesson_id TEXT NOT NULL REFERENCES lessons(id) ON DELETE CASCADE,
        position INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (topic_id, lesson_id)
    """,
    "assessments": f"""
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        content_json TEXT NOT NULL,
        created_by TEXT REFERENCES users(id) ON DELETE SET NULL,
        created_at TEXT NOT NULL {_NOW}
    """,
    "assignments": f"""
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('lesson', 'assessment')),
        ref_id TEXT NOT NULL,
        assigned_by TEXT REFERENCES users(id) ON DELETE SET NULL,
        due_at TEXT,
        max_attempts INTEGER,
        created_at TEXT NOT NULL {_NOW}
    """,
    "assignment_targets": """
        assignment_id TEXT NOT NULL REFERENCES assignments(id) ON DELETE CASCADE,
        target_type TEXT NOT NULL CHECK (target_type IN ('class', 'student')),
        target_id TEXT NOT NULL,
        PRIMARY KEY (assignment_id, target_type, target_id)
    """,
    "course_assignments": f"""
        id TEXT PRIMARY KEY,
        course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
        target_type TEXT NOT NULL CHECK (target_type IN ('student', 'class')),
        target_id TEXT NOT NULL,
        assigned_by TEXT REFERENCES users(id) ON DELETE SET NULL,
        assigned_at TEXT NOT NULL {_NOW}
    """,
    "topic_assignments": f"""
        id TEXT PRIMARY KEY,
        topic_id TEXT NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
        target_type TEXT NOT NULL CHECK (target_type IN ('student', 'class')),
        target_id TEXT NOT NULL,
        assigned_by TEXT REFERENCES users(id) ON DELETE SET NULL,
        assigned_at TEXT NOT NULL {_NOW}
    """,
    "attempts": """
        id TEXT PRIMARY KEY,
        assignment_id TEXT NOT NULL REFERENCES assignments(id) ON DELETE CASCADE,
        student_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        score DOUBLE PRECISION,
        max_score DOUBLE PRECISION,
        submitted_at TEXT,
        data_json TEXT
    """,
    "assignment_progress": f"""
        id TEXT PRIMARY KEY,
        assignment_id TEXT NOT NULL REFERENCES assignments(id) ON DELETE CASCADE,
        student_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        data_json TEXT,
        created_at TEXT NOT NULL {_NOW},
        updated_at TEXT NOT NULL {_NOW},
        UNIQUE (assignment_id, student_id)
    """,
    "assignment_access": f"""
        id TEXT PRIMARY KEY,
        assignment_id TEXT NOT NULL REFERENCES assignments(id) ON DELETE CASCADE,
        student_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        accessed_at TEXT NOT NULL {_NOW},
        UNIQUE (assignment_id, student_id)
    """,
}


def create_statements(
    schema: ArchiveSchema = SCHOOL_SCHEMA,
) -> list[tuple[str, dict | None]]:
    """``CREATE TABLE IF NOT EXISTS`` statements, parents first."""
    statements = []
    for table_def in schema.tables:
        body = TABLE_DDL.get(table_def.name)
        if body is None:
            raise KeyError(f"No baseline definition for table '{table_def.name}'")
        statements.append((f"CREATE TABLE IF NOT EXISTS {table_def.name} ({body.rstrip()}\n)", None))
    return statements


def drop_statements(
    schema: ArchiveSchema = SCHOOL_SCHEMA,
) -> list[tuple[str, dict | None]]:
    """``DROP TABLE`` statements, children first."""
    return [
        (f"DROP TABLE IF EXISTS {table_def.name} CASCADE", None)
        for table_def in reversed(schema.tables)
    ]


async def create_baseline_schema(
    adapter: DatabaseClient,
    schema: ArchiveSchema = SCHOOL_SCHEMA,
) -> None:
    """Create any missing tables of the baseline schema in one transaction."""
    await adapter.execute_script(create_statements(schema))
    logger.info(f"Baseline schema ensured ({len(schema.tables)} tables)")
