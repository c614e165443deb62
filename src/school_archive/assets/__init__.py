"""Binary asset store protocol and filesystem implementation."""

from school_archive.assets.store import (
    UPLOADS_PREFIX,
    AssetPathError,
    AssetStore,
    LocalAssetStore,
    relative_asset_name,
)

__all__ = [
    "UPLOADS_PREFIX",
    "AssetPathError",
    "AssetStore",
    "LocalAssetStore",
    "relative_asset_name",
]
