"""Content document model for lessons and assessments.

A content document is an ordered list of typed blocks.  Blocks form a
strict tree: the only container is ``columns``, whose columns each own a
nested block list.  Every block kind is a pydantic model and ``Block`` is
their discriminated union on ``type``.

Documents are stored in the ``content_json`` column as
``{"blocks": [...]}``.  Editor field names are camelCase in storage
(``answerIndex``, ``correctAnswers``); models expose snake_case
attributes and accept either spelling.

Usage:
    from school_archive.content.blocks import load_content_document

    doc = load_content_document(lesson["content_json"])
    for block in iter_blocks(doc.blocks):
        print(block.type)
"""

import json
import logging
import math
from collections.abc import Iterator
from functools import lru_cache
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class ContentDocumentError(ValueError):
    """Raised when a stored content document cannot be decoded at all."""


class _Node(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class _BlockBase(_Node):
    id: str | int | None = None


# ------------------------------------------------------------------
# Presentation blocks
# ------------------------------------------------------------------


class HeadingBlock(_BlockBase):
    type: Literal["heading"]
    level: int = 1
    content: str = ""
    size: str | None = None


class TextBlock(_BlockBase):
    type: Literal["text"]
    content: str = ""
    size: str | None = None


class ImageBlock(_BlockBase):
    """Inline image.  Only ``url`` is typed; layout fields are kept as stored."""

    type: Literal["image"]
    url: str = ""
    alt: Any = None
    caption: Any = None
    width: Any = None
    height: Any = None


class VideoBlock(_BlockBase):
    type: Literal["video"]
    url: str = ""
    width: Any = None
    height: Any = None


class DocumentItem(_Node):
    """One downloadable file inside a ``documents`` block."""

    id: Any = None
    name: Any = None
    url: str = ""
    size: int | None = None
    type: Any = None

    @field_validator("size", mode="before")
    @classmethod
    def _coerce_size(cls, value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if math.isfinite(value) else None
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return None


class DocumentsBlock(_BlockBase):
    type: Literal["documents"]
    title: Any = None
    documents: list[DocumentItem] = Field(default_factory=list)

    @field_validator("documents", mode="before")
    @classmethod
    def _objects_only(cls, value: Any) -> list:
        return _dicts(value)


class SpacerBlock(_BlockBase):
    type: Literal["spacer"]
    height: float | None = None


class DividerBlock(_BlockBase):
    type: Literal["divider"]
    style: str | None = None


# ------------------------------------------------------------------
# Question blocks
# ------------------------------------------------------------------


class QuizBlock(_BlockBase):
    type: Literal["quiz"]
    question: str = ""
    options: list[str] = Field(default_factory=list)
    answer_index: int | None = None
    allow_multiple: bool | None = None
    correct_answers: list[int] | None = None
    marks: float | None = None


class FillBlankBlock(_BlockBase):
    type: Literal["fillblank"]
    prompt: str = ""
    answer: str = ""
    marks: float | None = None


class ShortAnswerBlock(_BlockBase):
    type: Literal["shortanswer"]
    question: str = ""
    answer: str = ""
    marks: float | None = None


class LongAnswerBlock(_BlockBase):
    type: Literal["longanswer"]
    question: str = ""
    answer: str = ""
    marks: float | None = None
    min_words: int | None = None
    max_words: int | None = None


class CheckboxBlock(_BlockBase):
    """Multi-select question."""

    type: Literal["checkbox"]
    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answers: list[int] = Field(default_factory=list)
    marks: float | None = None


class LinearScaleBlock(_BlockBase):
    type: Literal["linearscale"]
    question: str = ""
    min_value: float | None = None
    max_value: float | None = None
    correct_answer: float | None = None
    marks: float | None = None


class DropdownBlock(_BlockBase):
    type: Literal["dropdown"]
    question: str = ""
    options: list[str] = Field(default_factory=list)
    answer_index: int | None = None
    marks: float | None = None


class MultiGridBlock(_BlockBase):
    type: Literal["multigrid"]
    question: str = ""
    rows: list[str] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    correct_answers: dict[str, Any] = Field(default_factory=dict)
    marks: float | None = None


class TickGridBlock(_BlockBase):
    type: Literal["tickgrid"]
    question: str = ""
    rows: list[str] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    correct_answers: dict[str, Any] = Field(default_factory=dict)
    marks: float | None = None


class DateBlock(_BlockBase):
    type: Literal["date"]
    question: str = ""
    answer: str = ""
    marks: float | None = None


class TimeBlock(_BlockBase):
    type: Literal["time"]
    question: str = ""
    answer: str = ""
    marks: float | None = None


class FileUploadBlock(_BlockBase):
    """Student submission slot; holds no stored asset of its own."""

    type: Literal["fileupload"]
    question: str = ""
    allowed_types: list[str] = Field(default_factory=list)
    max_size: int | None = None
    marks: float | None = None


# ------------------------------------------------------------------
# Container
# ------------------------------------------------------------------


class Column(_Node):
    id: Any = None
    content: Any = None
    width: Any = None
    blocks: list["Block"] = Field(default_factory=list)

    @field_validator("blocks", mode="before")
    @classmethod
    def _drop_invalid(cls, value: Any) -> list:
        return _valid_blocks(value)


class ColumnsBlock(_BlockBase):
    type: Literal["columns"]
    columns: list[Column] = Field(default_factory=list)

    @field_validator("columns", mode="before")
    @classmethod
    def _objects_only(cls, value: Any) -> list:
        return _dicts(value)


Block = Annotated[
    Union[
        HeadingBlock,
        TextBlock,
        ImageBlock,
        VideoBlock,
        DocumentsBlock,
        SpacerBlock,
        DividerBlock,
        QuizBlock,
        FillBlankBlock,
        ShortAnswerBlock,
        LongAnswerBlock,
        CheckboxBlock,
        LinearScaleBlock,
        DropdownBlock,
        MultiGridBlock,
        TickGridBlock,
        DateBlock,
        TimeBlock,
        FileUploadBlock,
        ColumnsBlock,
    ],
    Field(discriminator="type"),
]

Column.model_rebuild()
ColumnsBlock.model_rebuild()


class ContentDocument(_Node):
    """Root of a lesson or assessment content tree."""

    blocks: list[Block] = Field(default_factory=list)

    @field_validator("blocks", mode="before")
    @classmethod
    def _drop_invalid(cls, value: Any) -> list:
        return _valid_blocks(value)


@lru_cache(maxsize=1)
def _block_adapter() -> TypeAdapter:
    return TypeAdapter(Block)


def _dicts(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, (dict, BaseModel))]


def _salvage(item: dict) -> BaseModel | None:
    """Rebuild an unreadable block from the fields that can point at assets.

    Returns None for kinds that carry no asset URL, or when even the URL
    fields are unusable.
    """
    block_type = item.get("type")
    try:
        if block_type in ("image", "video") and isinstance(item.get("url"), str):
            return _block_adapter().validate_python({"type": block_type, "url": item["url"]})
        if block_type == "documents":
            documents = [
                {"url": doc["url"], "size": doc.get("size")}
                for doc in _dicts(item.get("documents"))
                if isinstance(doc, dict) and isinstance(doc.get("url"), str)
            ]
            return DocumentsBlock(type="documents", documents=documents)
        if block_type == "columns":
            columns = [
                {"blocks": col.get("blocks")}
                for col in _dicts(item.get("columns"))
                if isinstance(col, dict)
            ]
            return ColumnsBlock(type="columns", columns=columns)
    except ValidationError:
        return None
    return None


def _valid_blocks(items: Any) -> list:
    """Validate blocks one at a time, dropping any that do not fit a known kind.

    An asset-bearing block that fails validation is reduced to its URL
    fields instead of being dropped, so its files are still found.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        logger.warning(f"Expected a block list, got {type(items).__name__}")
        return []
    kept = []
    for item in items:
        if isinstance(item, BaseModel):
            kept.append(item)
            continue
        try:
            kept.append(_block_adapter().validate_python(item))
        except ValidationError as e:
            block_type = item.get("type") if isinstance(item, dict) else None
            salvaged = _salvage(item) if isinstance(item, dict) else None
            if salvaged is not None:
                logger.warning(
                    f"Keeping only the asset fields of unreadable block (type={block_type!r}): "
                    f"{e.error_count()} validation errors"
                )
                kept.append(salvaged)
                continue
            logger.warning(
                f"Dropping unreadable block (type={block_type!r}): "
                f"{e.error_count()} validation errors"
            )
    return kept


def load_content_document(raw: Any) -> ContentDocument:
    """Decode a stored content document.

    Accepts the JSON string stored in ``content_json``, an already
    decoded dict, or a bare block list.  Empty values decode to an empty
    document.

    Raises:
        ContentDocumentError: If ``raw`` is not JSON or not a document shape.

    Example:
        >>> doc = load_content_document('{"blocks": [{"type": "text", "id": "b1"}]}')
        >>> doc.blocks[0].type
        'text'
    """
    if raw is None or raw == "":
        return ContentDocument()
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ContentDocumentError(f"Content is not valid JSON: {e}") from e
    if isinstance(raw, list):
        raw = {"blocks": raw}
    if not isinstance(raw, dict):
        raise ContentDocumentError(
            f"Content must be an object with a block list, got {type(raw).__name__}"
        )
    try:
        return ContentDocument.model_validate(raw)
    except ValidationError as e:
        raise ContentDocumentError(f"Invalid content document: {e}") from e


def iter_blocks(blocks: list[Block]) -> Iterator[Block]:
    """Yield every block depth-first, descending into column containers."""
    for block in blocks:
        yield block
        if isinstance(block, ColumnsBlock):
            for column in block.columns:
                yield from iter_blocks(column.blocks)
