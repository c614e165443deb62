"""Binary asset store.

Assets are the files uploaded through the editors and referenced from
content blocks by URL (``/uploads/<file>``).  The archive engine only
needs to read and write them by that URL path, so the store interface is
path-in, bytes-out.

Usage:
    from school_archive.assets.store import LocalAssetStore

    store = LocalAssetStore("data/uploads")
    data = await store.read("/uploads/diagram.png")
    await store.write("/uploads/diagram.png", data)
"""

import asyncio
from pathlib import Path
from typing import Protocol

UPLOADS_PREFIX = "/uploads/"


class AssetPathError(ValueError):
    """Raised when an asset path does not resolve inside the store root."""


class AssetStore(Protocol):
    """Asset store interface used by the builder, restorer and statistics."""

    async def read(self, path: str) -> bytes:
        """Return the bytes stored at ``path``.

        Raises:
            FileNotFoundError: If no asset exists at ``path``.
        """
        ...

    async def write(self, path: str, data: bytes) -> None:
        """Store ``data`` at ``path``, replacing any existing asset."""
        ...

    async def exists(self, path: str) -> bool:
        """Return whether an asset exists at ``path``."""
        ...

    async def list_paths(self) -> list[str]:
        """Return the URL paths of every stored asset."""
        ...


def relative_asset_name(path: str) -> str:
    """Strip the ``/uploads/`` prefix from an asset URL path.

    Raises:
        AssetPathError: If the path is outside the uploads namespace or
            contains parent-directory segments.

    Example:
        >>> relative_asset_name("/uploads/maps/europe.png")
        'maps/europe.png'
    """
    if not path.startswith(UPLOADS_PREFIX):
        raise AssetPathError(f"Not an uploads path: {path}")
    rel = path[len(UPLOADS_PREFIX):]
    parts = rel.split("/")
    if not rel or any(part in ("", ".", "..") for part in parts):
        raise AssetPathError(f"Invalid asset path: {path}")
    return rel


class LocalAssetStore:
    """Filesystem asset store rooted at the uploads directory.

    ``/uploads/<file>`` maps to ``<root>/<file>``.  Blocking file I/O runs
    in a worker thread so concurrent fetches do not stall the event loop.

    Args:
        root: Uploads directory.  Created on first write.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        base = self.root.resolve()
        target = (base / relative_asset_name(path)).resolve()
        try:
            target.relative_to(base)
        except ValueError as exc:
            raise AssetPathError(f"Asset path escapes store root: {path}") from exc
        return target

    async def read(self, path: str) -> bytes:
        target = self._resolve(path)
        return await asyncio.to_thread(target.read_bytes)

    async def write(self, path: str, data: bytes) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)

    async def exists(self, path: str) -> bool:
        try:
            target = self._resolve(path)
        except AssetPathError:
            return False
        return await asyncio.to_thread(target.is_file)

    async def list_paths(self) -> list[str]:
        def _walk() -> list[str]:
            if not self.root.exists():
                return []
            return sorted(
                UPLOADS_PREFIX + p.relative_to(self.root).as_posix()
                for p in self.root.rglob("*")
                if p.is_file()
            )

        return await asyncio.to_thread(_walk)
