"""Block board — the latest version of every block seen in a stream.

Rules:
- a block id that reached ``finished`` is frozen; anything later for that
  id is ignored, even a payload without ``type``;
- a payload without ``type`` updates a known id with that id's type, and is
  dropped when the id is new;
- ``status: "update"`` shallow-merges onto the current version;
- any other status replaces the current version.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import ValidationError

from models.blocks import AnyBlock, BlockStatus, can_transition, parse_block

logger = logging.getLogger(__name__)


class BoardChange(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    IGNORED = "ignored"
    INVALID = "invalid"


class BlockBoard:
    def __init__(self) -> None:
        self._blocks: dict[str, AnyBlock] = {}
        self._errors: dict[str, str] = {}

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks or block_id in self._errors

    def get(self, block_id: str) -> AnyBlock | None:
        return self._blocks.get(block_id)

    def error(self, block_id: str) -> str | None:
        return self._errors.get(block_id)

    def apply(self, raw: dict[str, Any]) -> BoardChange:
        """Apply one raw block payload (must carry a string ``id``)."""
        block_id = raw["id"]
        current = self._blocks.get(block_id)

        if current is not None and not can_transition(current.status, raw.get("status")):
            logger.debug("Block %s already finished; ignoring update", block_id)
            return BoardChange.IGNORED

        payload = dict(raw)
        if "type" not in payload:
            if current is None:
                logger.warning("Block %s has no type and no earlier version; dropped", block_id)
                return BoardChange.IGNORED
            payload["type"] = current.type

        if current is not None and payload.get("status") == BlockStatus.UPDATE.value:
            payload = {**current.to_wire(), **payload}

        is_new = block_id not in self
        try:
            block = parse_block(payload)
        except ValidationError as exc:
            logger.warning("Invalid block %s: %s", block_id, exc.errors()[:1])
            self._errors[block_id] = f"Invalid {payload.get('type')} block"
            return BoardChange.INVALID

        self._errors.pop(block_id, None)
        self._blocks[block_id] = block
        return BoardChange.ADDED if is_new else BoardChange.UPDATED
