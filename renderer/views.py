"""Views — what a block, component or text fragment looks like right now.

Every renderable item maps to a :class:`View` whose ``kind`` follows its
lifecycle:

===========================  ============
block / component status     view kind
===========================  ============
``init`` / ``initializing``  ``skeleton``
``running`` / ``update`` /   ``partial`` (``updating=True``)
``streaming``
``finished`` / ``completed`` ``final``
``error``                    ``error``
unknown type                 ``fallback``
===========================  ============

``body`` is a plain-text rendering suitable for terminals and logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from config.component_registry import is_known_component
from models.blocks import (
    AccordionBlock,
    AlertBlock,
    AnyBlock,
    BadgeBlock,
    BlockStatus,
    CodeBlock,
    ComponentBlock,
    ProgressBlock,
    QuoteBlock,
    SeparatorBlock,
    SubstepsBlock,
    TableBlock,
    TextBlock,
    UnknownBlock,
)
from models.stream_events import ComponentState, ComponentStatus


@dataclass
class View:
    kind: str  # skeleton | partial | final | error | fallback | text
    source: str  # block | component | text
    id: str
    type: str
    body: str = ""
    updating: bool = False
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class TextFragment:
    id: str
    content: str
    markdown: bool = True


# ── Shared formatting ───────────────────────────────────────


def _table(headers: list[Any], rows: list[Any]) -> str:
    lines = []
    if headers:
        lines.append(" | ".join(str(h) for h in headers))
        lines.append(" | ".join("---" for _ in headers))
    for row in rows:
        cells = row if isinstance(row, list) else [row]
        lines.append(" | ".join(str(c) for c in cells))
    return "\n".join(lines)


def _progress(label: str | None, value: float, maximum: float) -> str:
    pct = round(value / maximum * 100) if maximum else 0
    prefix = f"{label}: " if label else ""
    return f"{prefix}{value:g}/{maximum:g} ({pct}%)"


def _join(*parts: str | None) -> str:
    return "\n".join(p for p in parts if p)


# ── Blocks ──────────────────────────────────────────────────


def _text_body(block: TextBlock) -> str:
    return block.content


def _code_body(block: CodeBlock) -> str:
    return f"```{block.language}\n{block.content}\n```"


def _component_body(block: ComponentBlock) -> str:
    return _join(block.title, block.description, block.content)


def _substeps_body(block: SubstepsBlock) -> str:
    lines = []
    for i, step in enumerate(block.steps):
        if i in block.completed_steps:
            mark = "[x]"
        elif i == block.current_step:
            mark = "[>]"
        else:
            mark = "[ ]"
        lines.append(f"{mark} {step}")
    return _join(block.content, "\n".join(lines))


def _alert_body(block: AlertBlock) -> str:
    title = f"{block.title}: " if block.title else ""
    return f"[{block.variant}] {title}{block.content}"


def _table_body(block: TableBlock) -> str:
    return _join(block.content, _table(block.headers, block.rows), block.caption)


def _quote_body(block: QuoteBlock) -> str:
    attribution = ", ".join(p for p in (block.author, block.source) if p)
    return _join(f"> {block.content}", f"-- {attribution}" if attribution else None)


def _progress_body(block: ProgressBlock) -> str:
    return _join(_progress(block.label, block.value, block.max), block.content)


def _accordion_body(block: AccordionBlock) -> str:
    items = [f"> {item.title}\n  {item.content}" for item in block.items]
    return _join(block.content, "\n".join(items))


def _badge_body(block: BadgeBlock) -> str:
    return f"[{block.content}]"


def _separator_body(block: SeparatorBlock) -> str:
    return f"---- {block.content} ----" if block.content else "----"


_BLOCK_BODIES: dict[type, Callable[[Any], str]] = {
    TextBlock: _text_body,
    CodeBlock: _code_body,
    ComponentBlock: _component_body,
    SubstepsBlock: _substeps_body,
    AlertBlock: _alert_body,
    TableBlock: _table_body,
    QuoteBlock: _quote_body,
    ProgressBlock: _progress_body,
    AccordionBlock: _accordion_body,
    BadgeBlock: _badge_body,
    SeparatorBlock: _separator_body,
}


def render_block(block: AnyBlock) -> View:
    if isinstance(block, UnknownBlock):
        return View("fallback", "block", block.id, block.type, body=f"Unknown block type: {block.type}")
    if block.status == BlockStatus.INIT:
        return View("skeleton", "block", block.id, block.type, body=f"Loading {block.type}...")
    body = _BLOCK_BODIES[type(block)](block)
    if block.status == BlockStatus.FINISHED:
        return View("final", "block", block.id, block.type, body=body)
    return View("partial", "block", block.id, block.type, body=body, updating=True)


def render_block_error(block_id: str, message: str) -> View:
    return View("error", "block", block_id, "error", body=message)


# ── Components ──────────────────────────────────────────────


def _card(props: dict[str, Any]) -> str:
    return _join(props.get("title"), props.get("description"), props.get("content"), props.get("footer"))


def _kpi_grid(props: dict[str, Any]) -> str:
    lines = []
    for metric in props["metrics"]:
        if not isinstance(metric, dict):
            lines.append(str(metric))
            continue
        extra = " ".join(str(v) for v in (metric.get("trend"), metric.get("change")) if v is not None)
        line = f"{metric.get('label', '')}: {metric.get('value', '')}"
        lines.append(f"{line} ({extra})" if extra else line)
    return _join(props.get("title"), "\n".join(lines))


def _chart(props: dict[str, Any]) -> str:
    points = [", ".join(f"{k}={v}" for k, v in p.items()) if isinstance(p, dict) else str(p) for p in props["data"]]
    return _join(f"{props.get('title') or 'Chart'} ({props['type']})", "\n".join(points))


def _table_component(props: dict[str, Any]) -> str:
    return _join(props.get("title"), _table(props["headers"], props["rows"]), props.get("caption"))


def _list(props: dict[str, Any]) -> str:
    lines = []
    for i, item in enumerate(props["items"], start=1):
        if not isinstance(item, dict):
            lines.append(f"- {item}")
            continue
        marker = f"{i}." if props.get("ordered") else "-"
        text = item.get("title", "")
        if item.get("description"):
            text += f": {item['description']}"
        if item.get("status"):
            text += f" [{item['status']}]"
        lines.append(f"{marker} {text}")
    return _join(props.get("title"), "\n".join(lines))


def _alert_component(props: dict[str, Any]) -> str:
    title = f"{props['title']}: " if props.get("title") else ""
    return f"[{props.get('variant', 'default')}] {title}{props['description']}"


def _progress_component(props: dict[str, Any]) -> str:
    return _join(_progress(props["label"], float(props["value"]), float(props.get("max") or 100)), props.get("description"))


_COMPONENT_BODIES: dict[str, Callable[[dict[str, Any]], str]] = {
    "Card": _card,
    "KPIGrid": _kpi_grid,
    "Chart": _chart,
    "Table": _table_component,
    "List": _list,
    "Alert": _alert_component,
    "Progress": _progress_component,
}


def render_component(state: ComponentState) -> View:
    if state.status == ComponentStatus.ERROR:
        return View("error", "component", state.id, state.type, body=state.error or "Component failed")
    if not is_known_component(state.type):
        return View("fallback", "component", state.id, state.type, body=f"Unknown component: {state.type}")
    if state.status == ComponentStatus.INITIALIZING:
        return View("skeleton", "component", state.id, state.type, body=f"Loading {state.type}...", data=dict(state.props))
    body = _COMPONENT_BODIES[state.type](state.props)
    if state.status == ComponentStatus.COMPLETED:
        return View("final", "component", state.id, state.type, body=body, data=dict(state.props))
    return View("partial", "component", state.id, state.type, body=body, updating=True, data=dict(state.props))


# ── Text ────────────────────────────────────────────────────


def render_text(fragment: TextFragment) -> View:
    return View("text", "text", fragment.id, "markdown" if fragment.markdown else "plain", body=fragment.content)
