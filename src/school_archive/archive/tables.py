"""Entity collections of the school dataset, in restore order.

The order is fixed and reviewed by hand whenever a collection with
cross-references is added; ``ArchiveSchema`` rejects a reference to a
table that is not declared earlier.
"""

from school_archive.archive.models import ArchiveSchema, ForeignKey, TableDef

_TARGET_TABLES = {"class": "classes", "student": "users"}
_ASSIGNMENT_REF_TABLES = {"lesson": "lessons", "assessment": "assessments"}


def _target() -> ForeignKey:
    return ForeignKey(field="target_id", type_field="target_type", type_tables=_TARGET_TABLES)


def _author(field: str) -> ForeignKey:
    return ForeignKey(field=field, table="users")


SCHOOL_SCHEMA = ArchiveSchema(
    tables=[
        TableDef(name="settings", pk="key", label_field="key", upsert=True),
        TableDef(
            name="users",
            label_field="username",
            match_fields=["username", "email"],
            scope="users",
        ),
        TableDef(
            name="classes",
            label_field="name",
            required_refs=[ForeignKey(field="teacher_id", table="users")],
        ),
        TableDef(
            name="class_students",
            pk=None,
            required_refs=[
                ForeignKey(field="class_id", table="classes"),
                ForeignKey(field="student_id", table="users"),
            ],
        ),
        TableDef(name="courses", label_field="title"),
        TableDef(
            name="topics",
            label_field="title",
            required_refs=[ForeignKey(field="course_id", table="courses")],
        ),
        TableDef(
            name="lessons",
            label_field="title",
            optional_refs=[_author("created_by")],
            content_field="content_json",
        ),
        TableDef(
            name="topic_lessons",
            pk=None,
            required_refs=[
                ForeignKey(field="topic_id", table="topics"),
                ForeignKey(field="lesson_id", table="lessons"),
            ],
        ),
        TableDef(
            name="assessments",
            label_field="title",
            optional_refs=[_author("created_by")],
            content_field="content_json",
        ),
        TableDef(
            name="assignments",
            label_field="title",
            required_refs=[
                ForeignKey(field="ref_id", type_field="type", type_tables=_ASSIGNMENT_REF_TABLES),
            ],
            optional_refs=[_author("assigned_by")],
        ),
        TableDef(
            name="assignment_targets",
            pk=None,
            required_refs=[ForeignKey(field="assignment_id", table="assignments"), _target()],
        ),
        TableDef(
            name="course_assignments",
            required_refs=[ForeignKey(field="course_id", table="courses"), _target()],
            optional_refs=[_author("assigned_by")],
        ),
        TableDef(
            name="topic_assignments",
            required_refs=[ForeignKey(field="topic_id", table="topics"), _target()],
            optional_refs=[_author("assigned_by")],
        ),
        TableDef(
            name="attempts",
            scope="progress",
            required_refs=[
                ForeignKey(field="assignment_id", table="assignments"),
                ForeignKey(field="student_id", table="users"),
            ],
        ),
        TableDef(
            name="assignment_progress",
            scope="progress",
            required_refs=[
                ForeignKey(field="assignment_id", table="assignments"),
                ForeignKey(field="student_id", table="users"),
            ],
        ),
        TableDef(
            name="assignment_access",
            scope="progress",
            required_refs=[
                ForeignKey(field="assignment_id", table="assignments"),
                ForeignKey(field="student_id", table="users"),
            ],
        ),
    ]
)
