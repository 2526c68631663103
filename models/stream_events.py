"""Client-side stream events and component state.

The consumer protocol has four event kinds, discriminated by ``type``:

- ``text``:              free text appended to the ordered text buffer.
- ``component_start``:   a streamed component appears (skeleton first).
- ``component_update``:  one incremental operation against its props.
- ``component_end``:     final props; the component is complete.

Field names are snake_case on the wire (``component_id``), unlike blocks.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class UpdateOperationName(str, Enum):
    """Operation names accepted in ``component_update`` events."""

    ADD_METRIC = "add_metric"
    UPDATE_METRIC = "update_metric"
    ADD_ROW = "add_row"
    UPDATE_ROW = "update_row"
    ADD_ITEM = "add_item"
    REMOVE_ITEM = "remove_item"
    SET_PROPERTY = "set_property"
    REPLACE_DATA = "replace_data"
    APPEND_DATA = "append_data"


class TextStreamEvent(BaseModel):
    type: Literal["text"] = "text"
    content: str
    markdown: bool = True
    append: bool = False


class ComponentStartEvent(BaseModel):
    type: Literal["component_start"] = "component_start"
    component_id: str
    component: str
    props: dict[str, Any] = Field(default_factory=dict)
    estimated_props: dict[str, Any] | None = None
    timestamp: float | None = None


class ComponentUpdateEvent(BaseModel):
    type: Literal["component_update"] = "component_update"
    component_id: str
    operation: UpdateOperationName
    data: Any = None
    index: int | None = None
    path: str | None = None
    key: str | None = None
    timestamp: float | None = None


class ComponentEndEvent(BaseModel):
    type: Literal["component_end"] = "component_end"
    component_id: str
    final_props: dict[str, Any] | None = None
    timestamp: float | None = None


StreamEvent = Annotated[
    Union[TextStreamEvent, ComponentStartEvent, ComponentUpdateEvent, ComponentEndEvent],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_stream_event(data: dict[str, Any]) -> StreamEvent:
    """Validate a raw event dict.  Raises ``pydantic.ValidationError``."""
    return _event_adapter.validate_python(data)


# ── Component state ─────────────────────────────────────────


class ComponentStatus(str, Enum):
    INITIALIZING = "initializing"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERROR = "error"


def _now_ms() -> float:
    return time.time() * 1000


class ComponentState(BaseModel):
    """Consumer-side projection of one streamed component."""

    id: str
    type: str
    props: dict[str, Any] = Field(default_factory=dict)
    status: ComponentStatus = ComponentStatus.INITIALIZING
    estimated_props: dict[str, Any] | None = None
    created_at: float = Field(default_factory=_now_ms)
    last_updated: float = Field(default_factory=_now_ms)
    error: str | None = None

    def touch(self) -> None:
        self.last_updated = _now_ms()

    def mark_error(self, message: str) -> None:
        self.status = ComponentStatus.ERROR
        self.error = message
        self.touch()
