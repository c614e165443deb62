"""Build adapters and asset stores from configuration profiles.

Profile selection priority:
1. Explicit ``profile_name`` argument (the CLI's ``--profile``)
2. ``SCHOOL_ARCHIVE_PROFILE`` env var
3. ``default_profile`` in archive.toml
4. Raise ProfileNotFoundError
"""

import os
from pathlib import Path
from urllib.parse import quote

from school_archive.adapters.postgres import AsyncPostgresAdapter
from school_archive.assets.store import LocalAssetStore
from school_archive.config.loader import load_config
from school_archive.config.models import ArchiveConfig, StoreProfile

PROFILE_ENV_VAR = "SCHOOL_ARCHIVE_PROFILE"
PASSWORD_PLACEHOLDER = "[YOUR-PASSWORD]"


class ProfileNotFoundError(Exception):
    """Raised when no profile is configured or the named one does not exist."""

    pass


def get_active_profile_name(
    config: ArchiveConfig,
    profile_name: str | None = None,
) -> str:
    """Resolve the active profile name.

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    name = profile_name or os.environ.get(PROFILE_ENV_VAR) or config.default_profile
    if name:
        return name
    raise ProfileNotFoundError(
        "No profile selected.\n"
        f"Pass --profile, set {PROFILE_ENV_VAR}, or set default_profile in archive.toml.\n"
        f"Available profiles: {', '.join(config.profiles) or '(none)'}"
    )


def get_profile(
    config: ArchiveConfig,
    profile_name: str | None = None,
) -> tuple[str, StoreProfile]:
    """Get active profile name and configuration.

    Raises:
        ProfileNotFoundError: If no profile is selected or it is not in the config
    """
    name = get_active_profile_name(config, profile_name)
    if name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{name}' not found in archive.toml.\n"
            f"Available profiles: {', '.join(config.profiles) or '(none)'}"
        )
    return name, config.profiles[name]


def resolve_url(profile: StoreProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(StoreProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and PASSWORD_PLACEHOLDER in url:
        url = url.replace(PASSWORD_PLACEHOLDER, quote(profile.db_password, safe=""))
    return url


def get_adapter(
    profile_name: str | None = None,
    config_path: Path | str | None = None,
    config: ArchiveConfig | None = None,
) -> AsyncPostgresAdapter:
    """Create an adapter for the active profile.

    Example:
        >>> adapter = get_adapter("local")
        >>> users = await adapter.select("users", "id, username")
    """
    config = config or load_config(config_path)
    _, profile = get_profile(config, profile_name)
    return AsyncPostgresAdapter(database_url=resolve_url(profile))


def get_asset_store(
    profile_name: str | None = None,
    config_path: Path | str | None = None,
    config: ArchiveConfig | None = None,
) -> LocalAssetStore:
    """Create the asset store rooted at the active profile's uploads directory."""
    config = config or load_config(config_path)
    _, profile = get_profile(config, profile_name)
    return LocalAssetStore(profile.uploads_dir)
