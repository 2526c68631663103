"""Stream consumer — turns data-stream parts into renderable state.

One :class:`StreamConsumer` per response.  It is the :class:`EventSink` the
transport pushes decoded parts into, and it keeps:

- ``components``: streamed component state by id;
- a :class:`~renderer.board.BlockBoard` of JSON blocks extracted from text;
- ordered text fragments (prose between blocks);
- reasoning text, tool calls and ``data-*`` payloads;
- one append-only render order, so a re-started or updated item keeps its
  original position.

Component events are applied one at a time.  A failing event marks the
component it addresses as ``error`` and processing continues.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from config.component_registry import apply_component_defaults, is_known_component
from models.stream_events import (
    ComponentEndEvent,
    ComponentStartEvent,
    ComponentState,
    ComponentStatus,
    ComponentUpdateEvent,
    StreamEvent,
    TextStreamEvent,
    parse_stream_event,
)
from renderer.board import BlockBoard, BoardChange
from renderer.operations import apply_operation, operation_from_event
from renderer.views import (
    TextFragment,
    View,
    render_block,
    render_block_error,
    render_component,
    render_text,
)
from services.block_parser import BlockStreamParser, Segment

logger = logging.getLogger(__name__)

# Failures an operation may raise against malformed props or data.
_APPLY_ERRORS = (ValueError, TypeError, KeyError, IndexError)


class EventSink(Protocol):
    """Anything that accepts decoded data-stream parts."""

    def push(self, part: dict[str, Any]) -> None: ...


class StreamConsumer:
    def __init__(self) -> None:
        self.board = BlockBoard()
        self.components: dict[str, ComponentState] = {}
        self.texts: dict[str, TextFragment] = {}
        self.reasoning: dict[str, str] = {}
        self.tools: dict[str, dict[str, Any]] = {}
        self.data: list[dict[str, Any]] = []
        self.errors: list[str] = []
        self.message_id: str | None = None
        self.chat_id: str | None = None
        self.steps = 0
        self.finished = False

        self._order: list[tuple[str, str]] = []  # (source, id)
        self._parsers: dict[str, BlockStreamParser] = {}
        self._open_fragment: dict[str, str] = {}  # text part id -> fragment id
        self._fragment_seq = 0

    # ── Data-stream parts ────────────────────────────────────

    def push(self, part: dict[str, Any]) -> None:
        """Apply one data-stream part; a malformed part is logged and skipped."""
        try:
            self._push(part)
        except Exception:
            logger.warning("Dropped malformed stream part %r", part.get("type"), exc_info=True)

    def _push(self, part: dict[str, Any]) -> None:
        kind = part.get("type", "")
        part_id = part.get("id", "")

        match kind:
            case "start":
                self.message_id = part.get("messageId")
            case "start-step":
                self.steps += 1
            case "finish-step":
                pass
            case "text-start":
                self._parsers[part_id] = BlockStreamParser()
            case "text-delta":
                parser = self._parsers.setdefault(part_id, BlockStreamParser())
                self._apply_segments(part_id, parser.feed(part.get("delta") or ""))
            case "text-end":
                parser = self._parsers.pop(part_id, None)
                if parser is not None:
                    self._apply_segments(part_id, parser.flush())
                self._open_fragment.pop(part_id, None)
            case "reasoning-start":
                self.reasoning.setdefault(part_id, "")
            case "reasoning-delta":
                self.reasoning[part_id] = self.reasoning.get(part_id, "") + (part.get("delta") or "")
            case "reasoning-end":
                pass
            case "tool-input-start" | "tool-input-available" | "tool-output-available" if not part.get("toolCallId"):
                logger.warning("%s without toolCallId; ignored", kind)
            case "tool-input-start":
                self.tools[part["toolCallId"]] = {
                    "name": part.get("toolName", ""),
                    "state": "input-streaming",
                }
            case "tool-input-available":
                call = self.tools.setdefault(part["toolCallId"], {"name": part.get("toolName", "")})
                call.update(input=part.get("input"), state="input-available")
            case "tool-output-available":
                call = self.tools.setdefault(part["toolCallId"], {"name": ""})
                call.update(output=part.get("output"), state="output-available")
            case "data-component":
                self.apply(part.get("data") or {})
            case "data-chat":
                data = part.get("data")
                if isinstance(data, dict):
                    self.chat_id = data.get("chatId")
            case "error":
                text = part.get("errorText", "")
                logger.warning("Stream error: %s", text)
                self.errors.append(text)
            case "finish":
                self._flush_all()
                self.finished = True
            case _ if kind.startswith("data-"):
                self.data.append(part)
            case _:
                logger.debug("Ignoring stream part %r", kind)

    def _flush_all(self) -> None:
        for part_id, parser in list(self._parsers.items()):
            self._apply_segments(part_id, parser.flush())
        self._parsers.clear()
        self._open_fragment.clear()

    def _apply_segments(self, part_id: str, segments: list[Segment]) -> None:
        for segment in segments:
            if segment.kind == "block" and segment.block is not None:
                self._open_fragment.pop(part_id, None)
                self.apply_block(segment.block)
            elif segment.text:
                fragment_id = self._open_fragment.get(part_id)
                if fragment_id is None:
                    fragment_id = self._new_fragment("")
                    self._open_fragment[part_id] = fragment_id
                self.texts[fragment_id].content += segment.text

    def _new_fragment(self, content: str, markdown: bool = True) -> str:
        self._fragment_seq += 1
        fragment_id = f"text-{self._fragment_seq}"
        self.texts[fragment_id] = TextFragment(fragment_id, content, markdown)
        self._order.append(("text", fragment_id))
        return fragment_id

    # ── Blocks ───────────────────────────────────────────────

    def apply_block(self, raw: dict[str, Any]) -> BoardChange:
        is_new = raw["id"] not in self.board
        change = self.board.apply(raw)
        if is_new and change in (BoardChange.ADDED, BoardChange.INVALID):
            self._order.append(("block", raw["id"]))
        return change

    # ── Component events ─────────────────────────────────────

    def apply(self, raw: dict[str, Any] | StreamEvent) -> None:
        """Apply one consumer event; never raises for bad event content."""
        if isinstance(raw, BaseModel):
            event = raw
        elif not isinstance(raw, dict):
            logger.warning("Ignoring non-object stream event %r", type(raw).__name__)
            return
        else:
            try:
                event = parse_stream_event(raw)
            except ValidationError as exc:
                logger.warning("Invalid stream event: %s", exc.errors()[:1])
                component_id = raw.get("component_id")
                if isinstance(component_id, str) and component_id in self.components:
                    self.components[component_id].mark_error(f"Invalid {raw.get('type')} event")
                return

        match event:
            case TextStreamEvent():
                self._on_text(event)
            case ComponentStartEvent():
                self._on_start(event)
            case ComponentUpdateEvent() | ComponentEndEvent():
                state = self.components.get(event.component_id)
                if state is None:
                    logger.warning("%s for unknown component %s; ignored", event.type, event.component_id)
                    return
                try:
                    if isinstance(event, ComponentUpdateEvent):
                        self._on_update(state, event)
                    else:
                        self._on_end(state, event)
                except _APPLY_ERRORS as exc:
                    logger.warning("Component %s %s failed: %s", state.id, event.type, exc)
                    state.mark_error(str(exc))

    def _on_text(self, event: TextStreamEvent) -> None:
        last = self._order[-1] if self._order else None
        if event.append and last is not None and last[0] == "text":
            self.texts[last[1]].content += event.content
        else:
            self._new_fragment(event.content, event.markdown)

    def _on_start(self, event: ComponentStartEvent) -> None:
        if not is_known_component(event.component):
            logger.warning("Unknown component type %s (%s)", event.component, event.component_id)
        if event.component_id not in self.components:
            self._order.append(("component", event.component_id))
        self.components[event.component_id] = ComponentState(
            id=event.component_id,
            type=event.component,
            props=apply_component_defaults(event.component, event.props),
            estimated_props=event.estimated_props,
        )

    def _on_update(self, state: ComponentState, event: ComponentUpdateEvent) -> None:
        if state.status == ComponentStatus.COMPLETED:
            logger.debug("Component %s already completed; update ignored", state.id)
            return
        op = operation_from_event(event, state.type, state.props)
        state.props = apply_operation(state.props, op)
        state.status = ComponentStatus.STREAMING
        state.error = None
        state.touch()

    def _on_end(self, state: ComponentState, event: ComponentEndEvent) -> None:
        if event.final_props is not None:
            state.props = apply_component_defaults(state.type, event.final_props)
        state.status = ComponentStatus.COMPLETED
        state.error = None
        state.touch()

    # ── Rendering ────────────────────────────────────────────

    def render(self) -> list[View]:
        """Current views in render order."""
        views: list[View] = []
        for source, item_id in self._order:
            if source == "text":
                fragment = self.texts[item_id]
                if fragment.content.strip():
                    views.append(render_text(fragment))
                continue
            try:
                views.append(self._render_item(source, item_id))
            except _APPLY_ERRORS as exc:
                logger.warning("Rendering %s %s failed: %s", source, item_id, exc)
                views.append(View("error", source, item_id, "error", body=str(exc)))
        return views

    def _render_item(self, source: str, item_id: str) -> View:
        if source == "component":
            return render_component(self.components[item_id])
        block = self.board.get(item_id)
        if block is None:
            return render_block_error(item_id, self.board.error(item_id) or "Invalid block")
        return render_block(block)

    @property
    def text(self) -> str:
        """All prose fragments, in order."""
        return "".join(self.texts[i].content for s, i in self._order if s == "text")
