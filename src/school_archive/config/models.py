"""Pydantic models for archive.toml."""

from pydantic import BaseModel, Field


class StoreProfile(BaseModel):
    """Connection profile: one database plus its uploads directory."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    uploads_dir: str = "data/uploads"


class ArchiveSettings(BaseModel):
    """The ``[archive]`` table."""

    max_concurrency: int = Field(default=8, ge=1)
    output_dir: str = "backups"


class ArchiveConfig(BaseModel):
    """Complete configuration from archive.toml."""

    profiles: dict[str, StoreProfile]
    default_profile: str | None = None
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
