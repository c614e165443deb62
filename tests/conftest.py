"""Shared fakes: an in-memory store and asset store, plus a small school dataset."""

import copy
import json

import pytest

from school_archive.archive.tables import SCHOOL_SCHEMA
from school_archive.assets.store import relative_asset_name


class MemoryStore:
    """In-memory ``DatabaseClient`` with primary-key and username/email uniqueness.

    ``fail_select`` names tables whose reads raise; ``fail_insert`` maps a
    table to ids whose inserts raise, emulating constraint violations.
    """

    def __init__(self, data: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = {name: [] for name in SCHOOL_SCHEMA.names}
        self.pks = {t.name: t.pk for t in SCHOOL_SCHEMA.tables}
        self.scripts: list[list[tuple[str, dict | None]]] = []
        self.fail_select: set[str] = set()
        self.fail_insert: dict[str, set] = {}
        self.fail_script = False
        self.closed = False
        for name, rows in (data or {}).items():
            self.tables[name] = copy.deepcopy(rows)

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def ids(self, table: str) -> set:
        return {row[self.pks[table]] for row in self.rows(table)}

    @staticmethod
    def _matches(row: dict, filters: dict | None) -> bool:
        return all(row.get(k) == v for k, v in (filters or {}).items())

    async def select(self, table, columns, filters=None, order_by=None):
        if table in self.fail_select:
            raise ConnectionError(f"relation {table} is unavailable")
        rows = [r for r in self.rows(table) if self._matches(r, filters)]
        if columns.strip().lower() == "count(*) as cnt":
            return [{"cnt": len(rows)}]
        if order_by:
            rows = sorted(rows, key=lambda r: (r.get(order_by) is None, str(r.get(order_by))))
        if columns.strip() == "*":
            return [dict(r) for r in rows]
        names = [c.strip() for c in columns.split(",")]
        return [{n: r.get(n) for n in names} for r in rows]

    async def insert(self, table, data):
        row = dict(data)
        pk = self.pks.get(table)
        if row.get(pk) in self.fail_insert.get(table, set()):
            raise ValueError(f"violates check constraint on {table}")
        if pk and row.get(pk) in self.ids(table):
            raise ValueError(f"duplicate key value violates unique constraint {table}_pkey")
        if table == "users":
            for field in ("username", "email"):
                if row.get(field) and any(u.get(field) == row[field] for u in self.rows(table)):
                    raise ValueError(f"duplicate key value violates unique constraint users_{field}_key")
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    async def update(self, table, data, filters):
        matched = [r for r in self.rows(table) if self._matches(r, filters)]
        if not matched:
            raise ValueError(f"No rows matched filters: {filters}")
        for row in matched:
            row.update(data)
        return dict(matched[0])

    async def delete(self, table, filters=None):
        self.tables[table] = [r for r in self.rows(table) if not self._matches(r, filters)]

    async def execute(self, sql, params=None):
        await self.execute_script([(sql, params)])

    async def execute_script(self, statements):
        if self.fail_script:
            raise RuntimeError("transaction aborted")
        self.scripts.append(list(statements))
        for sql, params in statements:
            if sql.startswith("DROP TABLE"):
                self.tables[sql.split()[4]] = []
            elif sql.startswith("INSERT INTO users") and params:
                self.tables["users"].append(dict(params))

    async def close(self):
        self.closed = True


class MemoryAssetStore:
    """Dict-backed ``AssetStore``.  Paths in ``fail_read`` raise on read."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.fail_read: set[str] = set()

    async def read(self, path):
        relative_asset_name(path)
        if path in self.fail_read:
            raise PermissionError(f"permission denied: {path}")
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def write(self, path, data):
        relative_asset_name(path)
        self.files[path] = bytes(data)

    async def exists(self, path):
        return path in self.files

    async def list_paths(self):
        return sorted(self.files)


# ------------------------------------------------------------------
# Sample dataset
# ------------------------------------------------------------------


LESSON_CONTENT = {
    "blocks": [
        {"id": "b1", "type": "heading", "level": 1, "content": "Cell structure"},
        {"id": "b2", "type": "image", "url": "/uploads/cell.png", "alt": "A cell"},
        {"id": "b3", "type": "video", "url": "/uploads/mitosis.mp4"},
        {"id": "b4", "type": "video", "url": "https://www.youtube.com/watch?v=abc"},
        {
            "id": "b5",
            "type": "documents",
            "title": "Handouts",
            "documents": [
                {"id": "d1", "name": "Worksheet", "url": "/uploads/worksheet.pdf", "size": 7},
                {"id": "d2", "name": "Reading", "url": "https://example.org/reading.pdf"},
            ],
        },
        {
            "id": "b6",
            "type": "columns",
            "columns": [
                {"id": "c1", "width": 50, "blocks": [
                    {"id": "b7", "type": "image", "url": "/uploads/cell.png"},
                ]},
                {"id": "c2", "width": 50, "blocks": [
                    {"id": "b8", "type": "image", "url": "/uploads/diagram.png"},
                ]},
            ],
        },
    ]
}

ASSESSMENT_CONTENT = {
    "blocks": [
        {
            "id": "q1",
            "type": "quiz",
            "question": "Which organelle makes energy?",
            "options": ["Nucleus", "Mitochondria"],
            "answerIndex": 1,
        },
        {"id": "q2", "type": "image", "url": "/uploads/quiz.png"},
        {"id": "q3", "type": "shortanswer", "question": "Name a cell part", "answer": "wall"},
    ]
}

ASSET_FILES = {
    "/uploads/cell.png": b"png-cell",
    "/uploads/mitosis.mp4": b"mp4-mitosis",
    "/uploads/worksheet.pdf": b"pdf-wks",
    "/uploads/diagram.png": b"png-diagram",
    "/uploads/quiz.png": b"png-quiz",
}


def school_dataset() -> dict[str, list[dict]]:
    """One class, one course with a topic, a lesson, an assessment and progress."""
    return {
        "settings": [{"key": "school_name", "value": "Hillside", "updated_at": "2024-01-01"}],
        "users": [
            {"id": "u-admin", "username": "admin", "email": "admin@hillside.test",
             "password_hash": "$2b$10$adminhash", "role": "admin", "created_at": "2024-01-01"},
            {"id": "u-teacher", "username": "mrsmith", "email": "smith@hillside.test",
             "password_hash": "$2b$10$teacherhash", "role": "teacher", "created_at": "2024-01-02"},
            {"id": "u-stu1", "username": "amy", "email": "amy@hillside.test",
             "password_hash": "$2b$10$amyhash", "role": "student", "created_at": "2024-01-03"},
            {"id": "u-stu2", "username": "ben", "email": "ben@hillside.test",
             "password_hash": "$2b$10$benhash", "role": "student", "created_at": "2024-01-04"},
        ],
        "classes": [{"id": "c-1", "name": "7B", "teacher_id": "u-teacher"}],
        "class_students": [
            {"class_id": "c-1", "student_id": "u-stu1"},
            {"class_id": "c-1", "student_id": "u-stu2"},
        ],
        "courses": [{"id": "co-1", "title": "Biology"}],
        "topics": [{"id": "t-1", "course_id": "co-1", "title": "Cells", "position": 0}],
        "lessons": [
            {"id": "l-1", "title": "Cell structure", "content_json": json.dumps(LESSON_CONTENT),
             "created_by": "u-teacher"},
        ],
        "topic_lessons": [{"topic_id": "t-1", "lesson_id": "l-1", "position": 0}],
        "assessments": [
            {"id": "a-1", "title": "Cells quiz", "content_json": json.dumps(ASSESSMENT_CONTENT),
             "created_by": "u-teacher"},
        ],
        "assignments": [
            {"id": "as-1", "title": "Read: cells", "type": "lesson", "ref_id": "l-1",
             "assigned_by": "u-teacher"},
            {"id": "as-2", "title": "Cells quiz", "type": "assessment", "ref_id": "a-1",
             "assigned_by": "u-teacher"},
        ],
        "assignment_targets": [
            {"assignment_id": "as-1", "target_type": "class", "target_id": "c-1"},
            {"assignment_id": "as-2", "target_type": "student", "target_id": "u-stu1"},
        ],
        "course_assignments": [
            {"id": "ca-1", "course_id": "co-1", "target_type": "class", "target_id": "c-1",
             "assigned_by": "u-teacher"},
        ],
        "topic_assignments": [
            {"id": "ta-1", "topic_id": "t-1", "target_type": "student", "target_id": "u-stu2",
             "assigned_by": "u-teacher"},
        ],
        "attempts": [
            {"id": "at-1", "assignment_id": "as-2", "student_id": "u-stu1", "score": 1,
             "max_score": 1, "data_json": "{\"q1\": 1}"},
        ],
        "assignment_progress": [
            {"id": "ap-1", "assignment_id": "as-1", "student_id": "u-stu1", "data_json": "{}"},
        ],
        "assignment_access": [
            {"id": "aa-1", "assignment_id": "as-1", "student_id": "u-stu2"},
        ],
    }


@pytest.fixture
def dataset() -> dict[str, list[dict]]:
    return school_dataset()


@pytest.fixture
def source_store(dataset) -> MemoryStore:
    return MemoryStore(dataset)


@pytest.fixture
def source_assets() -> MemoryAssetStore:
    return MemoryAssetStore(ASSET_FILES)


@pytest.fixture
def empty_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def empty_assets() -> MemoryAssetStore:
    return MemoryAssetStore()
