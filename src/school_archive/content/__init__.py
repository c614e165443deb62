"""Lesson and assessment content documents and asset extraction."""

from school_archive.content.blocks import (
    Block,
    ContentDocument,
    ContentDocumentError,
    iter_blocks,
    load_content_document,
)
from school_archive.content.extractor import (
    AssetKind,
    AssetReference,
    is_local_asset_url,
    iter_asset_references,
    iter_block_references,
)

__all__ = [
    "AssetKind",
    "AssetReference",
    "Block",
    "ContentDocument",
    "ContentDocumentError",
    "is_local_asset_url",
    "iter_asset_references",
    "iter_block_references",
    "iter_blocks",
    "load_content_document",
]
