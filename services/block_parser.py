"""Incremental extraction of JSON blocks from streamed agent text.

Agents emit blocks as JSON objects inline with ordinary prose.  Text arrives
in arbitrary fragments, so the parser keeps a small buffer and tracks brace
depth (string- and escape-aware) to find complete top-level objects.

Objects that carry a non-empty string ``id`` are returned as blocks; any
other text, including JSON that is not block-like, is returned as prose.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal

from models.blocks import is_block_like

logger = logging.getLogger(__name__)


@dataclass
class Segment:
    """One piece of parsed output: prose text or a raw block dict."""

    kind: Literal["text", "block"]
    text: str = ""
    block: dict[str, Any] | None = None


def _load_object(candidate: str) -> dict[str, Any] | None:
    try:
        value = json.loads(candidate, strict=False)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


class BlockStreamParser:
    """Feed text fragments, receive prose and block segments in order."""

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._buffer = ""
        self._scan = 0  # next index of _buffer to examine
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._start = -1  # index of the opening brace when depth > 0

    @property
    def pending(self) -> bool:
        """True while an object is open and unfinished."""
        return self._depth > 0

    def feed(self, chunk: str) -> list[Segment]:
        self._buffer += chunk
        segments: list[Segment] = []
        buf = self._buffer
        i = self._scan
        prose_start = 0 if self._depth == 0 else -1

        while i < len(buf):
            ch = buf[i]
            if self._depth == 0:
                if ch == "{":
                    if i > prose_start:
                        segments.append(Segment("text", text=buf[prose_start:i]))
                    self._start = i
                    self._depth = 1
                    self._in_string = False
                    self._escape = False
                i += 1
                continue

            if self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch == "{":
                self._depth += 1
            elif ch == "}":
                self._depth -= 1
                if self._depth == 0:
                    candidate = buf[self._start : i + 1]
                    obj = _load_object(candidate)
                    if obj is not None and is_block_like(obj):
                        segments.append(Segment("block", block=obj))
                    else:
                        segments.append(Segment("text", text=candidate))
                    prose_start = i + 1
                    self._start = -1
            i += 1

        if self._depth == 0:
            if prose_start < len(buf):
                segments.append(Segment("text", text=buf[prose_start:]))
            self._buffer = ""
            self._scan = 0
        else:
            # Keep only the open object; rebase indices onto the new buffer.
            self._buffer = buf[self._start :]
            self._scan = i - self._start
            self._start = 0
        return segments

    def flush(self) -> list[Segment]:
        """End of stream: an unterminated object is returned as prose."""
        segments: list[Segment] = []
        if self._buffer:
            logger.debug("Unterminated block at end of stream (%d chars)", len(self._buffer))
            segments.append(Segment("text", text=self._buffer))
        self._reset()
        return segments


def extract_blocks(text: str) -> list[dict[str, Any]]:
    """All block-like objects in a complete piece of text, in order."""
    parser = BlockStreamParser()
    segments = parser.feed(text) + parser.flush()
    return [s.block for s in segments if s.kind == "block" and s.block is not None]
