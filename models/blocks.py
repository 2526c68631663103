"""Structured output blocks — the typed units agents emit as JSON text.

Every block carries ``id`` / ``type`` / ``status``.  The same ``id`` may be
emitted several times while a widget fills in (``init`` → ``running`` →
``finished``); consumers keep the most recent version and never touch a
block again once it is ``finished``.

Wire format is camelCase (``currentStep``, ``componentType``) to match the
block prompt contract; Python attributes are snake_case.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import ConfigDict, Field, TypeAdapter

from models.base import CamelModel


class BlockStatus(str, Enum):
    """Block lifecycle stage."""

    INIT = "init"
    RUNNING = "running"
    UPDATE = "update"
    FINISHED = "finished"


BLOCK_TYPES: tuple[str, ...] = (
    "text",
    "code",
    "component",
    "substeps",
    "alert",
    "table",
    "quote",
    "progress",
    "accordion",
    "badge",
    "separator",
)

# Every type except plain text must show a skeleton (init) before real data.
SKELETON_TYPES: frozenset[str] = frozenset(BLOCK_TYPES) - {"text"}


class BaseBlock(CamelModel):
    """Fields shared by every block type."""

    model_config = ConfigDict(extra="allow")

    id: str
    status: BlockStatus = BlockStatus.FINISHED
    content: str = ""

    @property
    def is_finished(self) -> bool:
        return self.status == BlockStatus.FINISHED

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase dict agents emit."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


class TextBlock(BaseBlock):
    type: Literal["text"] = "text"


class CodeBlock(BaseBlock):
    type: Literal["code"] = "code"
    language: str = "text"


class ComponentBlock(BaseBlock):
    """Generic card."""

    type: Literal["component"] = "component"
    component_type: str = "info"
    title: str | None = None
    description: str | None = None


class SubstepsBlock(BaseBlock):
    type: Literal["substeps"] = "substeps"
    steps: list[str] = Field(default_factory=list)
    current_step: int | None = None
    completed_steps: list[int] = Field(default_factory=list)


class AlertBlock(BaseBlock):
    type: Literal["alert"] = "alert"
    variant: str = "default"
    title: str | None = None


class TableBlock(BaseBlock):
    type: Literal["table"] = "table"
    headers: list[str] = Field(default_factory=list)
    rows: list[list[Any]] = Field(default_factory=list)
    caption: str | None = None


class QuoteBlock(BaseBlock):
    type: Literal["quote"] = "quote"
    author: str | None = None
    source: str | None = None


class ProgressBlock(BaseBlock):
    type: Literal["progress"] = "progress"
    value: float = 0
    max: float = 100
    label: str | None = None


class AccordionItem(CamelModel):
    title: str = ""
    content: str = ""


class AccordionBlock(BaseBlock):
    type: Literal["accordion"] = "accordion"
    items: list[AccordionItem] = Field(default_factory=list)


class BadgeBlock(BaseBlock):
    type: Literal["badge"] = "badge"
    variant: str = "default"
    title: str | None = None


class SeparatorBlock(BaseBlock):
    type: Literal["separator"] = "separator"


class UnknownBlock(BaseBlock):
    """A block whose ``type`` is outside the closed set; rendered as a fallback."""

    type: str


Block = Annotated[
    Union[
        TextBlock,
        CodeBlock,
        ComponentBlock,
        SubstepsBlock,
        AlertBlock,
        TableBlock,
        QuoteBlock,
        ProgressBlock,
        AccordionBlock,
        BadgeBlock,
        SeparatorBlock,
    ],
    Field(discriminator="type"),
]

AnyBlock = Union[
    TextBlock,
    CodeBlock,
    ComponentBlock,
    SubstepsBlock,
    AlertBlock,
    TableBlock,
    QuoteBlock,
    ProgressBlock,
    AccordionBlock,
    BadgeBlock,
    SeparatorBlock,
    UnknownBlock,
]

_block_adapter: TypeAdapter[Block] = TypeAdapter(Block)


def parse_block(data: dict[str, Any]) -> AnyBlock:
    """Validate a raw block dict into its typed model.

    Unknown ``type`` values become :class:`UnknownBlock` instead of failing.
    Raises ``pydantic.ValidationError`` when a known type is malformed
    (e.g. ``rows`` is not a list).
    """
    if data.get("type") not in BLOCK_TYPES:
        return UnknownBlock.model_validate(data)
    return _block_adapter.validate_python(data)


def requires_skeleton(block_type: str) -> bool:
    """True when producers must emit an ``init`` version first."""
    return block_type in SKELETON_TYPES


def can_transition(current: BlockStatus | None, incoming: BlockStatus | str | None) -> bool:
    """Whether a block in *current* status may accept an *incoming* version.

    Nothing is accepted after ``finished``; everything else is open.
    """
    return current != BlockStatus.FINISHED


def is_block_like(data: Any) -> bool:
    """Cheap shape check used before validation."""
    return isinstance(data, dict) and isinstance(data.get("id"), str) and bool(data["id"])


# ── Producer helpers ────────────────────────────────────────


def alert_block(
    block_id: str,
    title: str,
    content: str,
    *,
    variant: str = "default",
    status: BlockStatus = BlockStatus.FINISHED,
) -> AlertBlock:
    """Build an alert block (used for completion and failure notices)."""
    return AlertBlock(id=block_id, title=title, content=content, variant=variant, status=status)
