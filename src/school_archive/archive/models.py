"""Archive schema: table hierarchy, manifest, and on-disk layout.

The dataset is declared as an ordered list of ``TableDef`` entries
(parents before children) with their references.  The builder writes one
``data/<table>.json`` per entry and the restorer walks the same list to
insert in dependency order and remap identifiers.

Archive layout::

    manifest.json            {exportDate, formatVersion, totalAssets, totalSize, assets}
    data/<table>.json        list of that table's rows
    assets/<kind>s/<file>    asset bytes, kind in {image, video, document}
    README.md                notes for humans, ignored on restore

Usage:
    from school_archive.archive.models import ArchiveSchema, TableDef, ForeignKey

    schema = ArchiveSchema(tables=[
        TableDef(name="courses", label_field="title"),
        TableDef(name="topics", label_field="title",
                 required_refs=[ForeignKey(field="course_id", table="courses")]),
    ])
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from school_archive.assets.store import relative_asset_name
from school_archive.content.extractor import AssetKind

FORMAT_VERSION = "3.0.0"
SUPPORTED_FORMAT_VERSIONS = frozenset({FORMAT_VERSION})

MANIFEST_NAME = "manifest.json"
README_NAME = "README.md"
DATA_DIR = "data"
ASSETS_DIR = "assets"

Scope = Literal["structural", "users", "progress"]


class ForeignKey(BaseModel):
    """Reference from a column to another table's primary key.

    Either ``table`` names a fixed target, or ``type_field`` names a
    discriminator column whose value selects the target through
    ``type_tables`` (e.g. ``target_type`` of ``"class"`` or ``"student"``).
    """

    field: str                                        # FK column in this table
    table: str | None = None                          # fixed target table
    type_field: str | None = None                     # discriminator column
    type_tables: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _one_target(self) -> "ForeignKey":
        if (self.table is None) == (self.type_field is None):
            raise ValueError(
                f"ForeignKey '{self.field}' needs exactly one of table or type_field"
            )
        return self

    def target_table(self, row: dict) -> str | None:
        """Return the referenced table for ``row``, or ``None`` if undeterminable."""
        if self.table is not None:
            return self.table
        return self.type_tables.get(row.get(self.type_field))

    def target_tables(self) -> set[str]:
        if self.table is not None:
            return {self.table}
        return set(self.type_tables.values())


class TableDef(BaseModel):
    """Definition of one entity collection for archive operations."""

    name: str                                         # table name and data file stem
    pk: str | None = "id"                             # None for composite-key join tables
    label_field: str | None = None                    # identifies a record in error messages
    match_fields: list[str] = Field(default_factory=list)    # natural keys, map onto existing rows
    upsert: bool = False                              # replace by pk instead of remapping
    required_refs: list[ForeignKey] = Field(default_factory=list)  # skip record if unresolved
    optional_refs: list[ForeignKey] = Field(default_factory=list)  # null if unresolved
    scope: Scope = "structural"
    content_field: str | None = None                  # column holding a content document

    @property
    def is_join(self) -> bool:
        return self.pk is None


class ArchiveSchema(BaseModel):
    """Ordered table hierarchy.  Tables are ordered by dependency (parents first)."""

    tables: list[TableDef]

    @model_validator(mode="after")
    def _parents_first(self) -> "ArchiveSchema":
        seen: set[str] = set()
        for table_def in self.tables:
            if table_def.name in seen:
                raise ValueError(f"Duplicate table '{table_def.name}'")
            for ref in table_def.required_refs + table_def.optional_refs:
                missing = ref.target_tables() - seen
                if missing:
                    raise ValueError(
                        f"{table_def.name}.{ref.field} references "
                        f"{', '.join(sorted(missing))} which is not declared before it"
                    )
            seen.add(table_def.name)
        return self

    @property
    def names(self) -> list[str]:
        return [t.name for t in self.tables]

    def table(self, name: str) -> TableDef:
        for t in self.tables:
            if t.name == name:
                return t
        raise KeyError(f"Unknown table '{name}'")


# ------------------------------------------------------------------
# Manifest
# ------------------------------------------------------------------


class ManifestAsset(BaseModel):
    """One packaged asset: its store path, kind, and byte size."""

    path: str
    kind: AssetKind
    size: int


class Manifest(BaseModel):
    """Archive index.  Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    export_date: str
    format_version: str
    total_assets: int = 0
    total_size: int = 0
    assets: list[ManifestAsset] = Field(default_factory=list)


def data_member(table_name: str) -> str:
    """Archive member name for a table's data file."""
    return f"{DATA_DIR}/{table_name}.json"


def asset_member(path: str, kind: str) -> str:
    """Archive member name for an asset.

    Example:
        >>> asset_member("/uploads/cell.png", "image")
        'assets/images/cell.png'
    """
    return f"{ASSETS_DIR}/{kind}s/{relative_asset_name(path)}"
