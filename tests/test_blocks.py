"""Tests for block models and the component registry."""

from __future__ import annotations

import json
from datetime import date

import pytest
from pydantic import ValidationError

from config.component_registry import (
    apply_component_defaults,
    is_known_component,
    primary_collection,
)
from config.prompts.blocks import get_block_schema_prompt
from config.prompts.dispatcher import build_dispatcher_prompt
from config.prompts.specialists import build_executor_prompt, build_reasoner_prompt
from models.blocks import (
    BLOCK_TYPES,
    AlertBlock,
    BlockStatus,
    TableBlock,
    TextBlock,
    UnknownBlock,
    alert_block,
    can_transition,
    is_block_like,
    parse_block,
    requires_skeleton,
)


class TestParseBlock:
    def test_known_type_is_typed(self):
        block = parse_block({"id": "t1", "type": "table", "headers": ["a"], "rows": [[1]]})
        assert isinstance(block, TableBlock)
        assert block.rows == [[1]]
        assert block.status == BlockStatus.FINISHED

    def test_camel_case_fields(self):
        block = parse_block({
            "id": "s1",
            "type": "substeps",
            "steps": ["a", "b"],
            "currentStep": 1,
            "completedSteps": [0],
        })
        assert block.current_step == 1
        assert block.completed_steps == [0]

    def test_unknown_type_becomes_unknown_block(self):
        block = parse_block({"id": "x1", "type": "hologram", "content": "?"})
        assert isinstance(block, UnknownBlock)
        assert block.type == "hologram"

    def test_malformed_known_type_raises(self):
        with pytest.raises(ValidationError):
            parse_block({"id": "t1", "type": "table", "rows": "not a list"})

    def test_extra_fields_survive_round_trip(self):
        block = parse_block({"id": "c1", "type": "code", "language": "py", "theme": "dark"})
        assert block.to_wire()["theme"] == "dark"

    def test_to_json_uses_camel_case(self):
        block = parse_block({"id": "s1", "type": "substeps", "steps": ["a"], "currentStep": 0})
        data = json.loads(block.to_json())
        assert data["currentStep"] == 0
        assert "current_step" not in data


class TestLifecycle:
    def test_finished_accepts_nothing(self):
        assert not can_transition(BlockStatus.FINISHED, "running")
        assert not can_transition(BlockStatus.FINISHED, None)

    def test_open_statuses_accept_updates(self):
        assert can_transition(BlockStatus.INIT, "running")
        assert can_transition(BlockStatus.RUNNING, BlockStatus.UPDATE)
        assert can_transition(None, "init")

    def test_text_needs_no_skeleton(self):
        assert not requires_skeleton("text")
        assert requires_skeleton("table")
        assert requires_skeleton("alert")

    def test_is_block_like(self):
        assert is_block_like({"id": "a", "type": "text"})
        assert not is_block_like({"id": "", "type": "text"})
        assert not is_block_like({"type": "text"})
        assert not is_block_like(["id"])

    def test_alert_block_helper(self):
        block = alert_block("a1", "Done", "All good", variant="destructive")
        assert isinstance(block, AlertBlock)
        assert block.to_wire() == {
            "id": "a1",
            "type": "alert",
            "status": "finished",
            "content": "All good",
            "variant": "destructive",
            "title": "Done",
        }

    def test_text_block_default(self):
        assert TextBlock(id="t").is_finished


class TestComponentRegistry:
    def test_table_defaults(self):
        assert apply_component_defaults("Table", {}) == {"headers": [], "rows": []}

    def test_existing_values_win(self):
        props = apply_component_defaults("Table", {"headers": ["a"], "title": "T"})
        assert props == {"headers": ["a"], "rows": [], "title": "T"}

    def test_none_values_are_defaulted(self):
        assert apply_component_defaults("KPIGrid", {"metrics": None}) == {"metrics": []}

    def test_defaults_are_not_shared(self):
        first = apply_component_defaults("List", None)
        first["items"].append("x")
        assert apply_component_defaults("List", None) == {"items": []}

    def test_unknown_component_untouched(self):
        assert apply_component_defaults("Hologram", {"a": 1}) == {"a": 1}
        assert not is_known_component("Hologram")

    def test_primary_collection(self):
        assert primary_collection("Table") == "rows"
        assert primary_collection("KPIGrid") == "metrics"
        assert primary_collection("Card") == "items"
        assert primary_collection("Hologram") == "items"


class TestPrompts:
    def test_dispatcher_prompt_lists_every_block_type(self):
        prompt = build_dispatcher_prompt(date(2026, 1, 2))
        assert "Today's date: 2026-01-02" in prompt
        for block_type in BLOCK_TYPES:
            assert f"- {block_type}: " in prompt

    def test_prompt_examples_are_valid_blocks(self):
        for line in get_block_schema_prompt().splitlines():
            if line.startswith("- "):
                example = json.loads(line.split(": ", 1)[1])
                assert parse_block(example).type == example["type"]

    def test_specialist_prompts_carry_block_schema(self):
        assert '"type": "table"' in build_reasoner_prompt()
        assert '"type": "table"' in build_executor_prompt()
