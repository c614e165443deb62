"""Asset Reference Extractor.

Walks a content document and yields the locally hosted files its blocks
point at.  Pure and stateless: the builder uses it to decide which
uploaded files go into an archive.

Only ``image``, ``video`` and ``documents`` blocks carry asset URLs;
``columns`` blocks are descended into.  Every other kind is listed
explicitly so that adding a block kind without deciding how it is
extracted fails type checking at the ``assert_never`` below.

Usage:
    from school_archive.content.extractor import iter_asset_references

    refs = list(iter_asset_references(lesson["content_json"]))
"""

from collections.abc import Iterator
from typing import Any, Literal, assert_never

from pydantic import BaseModel

from school_archive.assets.store import UPLOADS_PREFIX
from school_archive.content.blocks import (
    Block,
    CheckboxBlock,
    ColumnsBlock,
    ContentDocument,
    DateBlock,
    DividerBlock,
    DocumentsBlock,
    DropdownBlock,
    FileUploadBlock,
    FillBlankBlock,
    HeadingBlock,
    ImageBlock,
    LinearScaleBlock,
    LongAnswerBlock,
    MultiGridBlock,
    QuizBlock,
    ShortAnswerBlock,
    SpacerBlock,
    TextBlock,
    TickGridBlock,
    TimeBlock,
    VideoBlock,
    load_content_document,
)

AssetKind = Literal["image", "video", "document"]


class AssetReference(BaseModel):
    """A block field pointing into the local asset store."""

    path: str
    kind: AssetKind
    size: int | None = None


def is_local_asset_url(url: str | None) -> bool:
    """Return whether ``url`` names a file in the local asset store.

    Embeds from video hosts are absolute URLs and never match the
    uploads prefix, whatever the uploaded file happens to be called.

    Example:
        >>> is_local_asset_url("/uploads/cell.png")
        True
        >>> is_local_asset_url("https://youtu.be/dQw4w9WgXcQ")
        False
    """
    return bool(url) and url.startswith(UPLOADS_PREFIX)


def iter_block_references(block: Block) -> Iterator[AssetReference]:
    """Yield the asset references held by one block and its descendants."""
    match block:
        case ImageBlock():
            if is_local_asset_url(block.url):
                yield AssetReference(path=block.url, kind="image")
        case VideoBlock():
            if is_local_asset_url(block.url):
                yield AssetReference(path=block.url, kind="video")
        case DocumentsBlock():
            for doc in block.documents:
                if is_local_asset_url(doc.url):
                    yield AssetReference(path=doc.url, kind="document", size=doc.size)
        case ColumnsBlock():
            for column in block.columns:
                for nested in column.blocks:
                    yield from iter_block_references(nested)
        case (
            HeadingBlock()
            | TextBlock()
            | SpacerBlock()
            | DividerBlock()
            | QuizBlock()
            | FillBlankBlock()
            | ShortAnswerBlock()
            | LongAnswerBlock()
            | CheckboxBlock()
            | LinearScaleBlock()
            | DropdownBlock()
            | MultiGridBlock()
            | TickGridBlock()
            | DateBlock()
            | TimeBlock()
            | FileUploadBlock()
        ):
            return
        case _:
            assert_never(block)


def iter_asset_references(content: ContentDocument | Any) -> Iterator[AssetReference]:
    """Yield every local asset reference in a content document.

    Not deduplicated: a file used twice is yielded twice.

    Args:
        content: A ``ContentDocument``, a single block, or any raw form
            accepted by ``load_content_document``.

    Raises:
        ContentDocumentError: If a raw document cannot be decoded.
    """
    if isinstance(content, BaseModel) and not isinstance(content, ContentDocument):
        yield from iter_block_references(content)
        return
    if not isinstance(content, ContentDocument):
        content = load_content_document(content)
    for block in content.blocks:
        yield from iter_block_references(block)
