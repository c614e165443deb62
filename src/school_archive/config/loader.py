"""Load archive.toml into an ``ArchiveConfig``."""

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from school_archive.config.models import ArchiveConfig, ArchiveSettings, StoreProfile

CONFIG_ENV_VAR = "SCHOOL_ARCHIVE_CONFIG"
DEFAULT_CONFIG_NAME = "archive.toml"


def default_config_path() -> Path:
    """``SCHOOL_ARCHIVE_CONFIG`` if set, else ``./archive.toml``."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path.cwd() / DEFAULT_CONFIG_NAME


def load_config(config_path: Path | str | None = None) -> ArchiveConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to archive.toml (default: ``default_config_path()``)

    Returns:
        ArchiveConfig with all profiles

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    config_path = Path(config_path) if config_path is not None else default_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Archive config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_NAME} with at least one [profiles.<name>] table."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        profiles = {
            name: StoreProfile(**profile_data)
            for name, profile_data in data.get("profiles", {}).items()
        }
        return ArchiveConfig(
            profiles=profiles,
            default_profile=data.get("default_profile"),
            archive=ArchiveSettings(**data.get("archive", {})),
        )
    except (TypeError, ValidationError) as e:
        raise ValueError(f"Invalid config in {config_path}: {e}") from e
