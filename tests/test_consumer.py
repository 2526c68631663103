"""Tests for the client stream consumer, block board and views."""

from __future__ import annotations

import json

import pytest

from models.stream_events import ComponentStatus
from renderer.board import BlockBoard, BoardChange
from renderer.consumer import StreamConsumer
from renderer.transport import SSEStreamReader
from services.datastream import DataStreamEncoder

enc = DataStreamEncoder()


def _text_part(consumer: StreamConsumer, text_id: str, *deltas: str) -> None:
    consumer.push(enc.text_start(text_id))
    for delta in deltas:
        consumer.push(enc.text_delta(text_id, delta))
    consumer.push(enc.text_end(text_id))


def _block(**fields) -> str:
    return json.dumps(fields)


# ── Block board ─────────────────────────────────────────────


class TestBlockBoard:
    def test_finished_block_is_immutable(self):
        board = BlockBoard()
        board.apply({"id": "b1", "type": "alert", "status": "finished", "content": "final"})
        assert board.apply({"id": "b1", "type": "alert", "status": "running", "content": "late"}) == BoardChange.IGNORED
        assert board.apply({"id": "b1", "content": "typeless"}) == BoardChange.IGNORED
        assert board.get("b1").content == "final"

    def test_lifecycle_and_update_merge(self):
        board = BlockBoard()
        assert board.apply({"id": "t1", "type": "table", "status": "init"}) == BoardChange.ADDED
        board.apply({"id": "t1", "type": "table", "status": "running", "headers": ["a"], "caption": "c"})
        assert board.apply({"id": "t1", "status": "update", "rows": [[1]]}) == BoardChange.UPDATED
        block = board.get("t1")
        assert block.headers == ["a"]
        assert block.rows == [[1]]
        assert block.caption == "c"

    def test_typeless_new_block_is_dropped(self):
        board = BlockBoard()
        assert board.apply({"id": "x", "content": "?"}) == BoardChange.IGNORED
        assert "x" not in board

    def test_invalid_block_is_recorded(self):
        board = BlockBoard()
        assert board.apply({"id": "t1", "type": "table", "rows": 5}) == BoardChange.INVALID
        assert board.error("t1") == "Invalid table block"


# ── Text and blocks through the data stream ─────────────────


class TestTextStream:
    def test_prose_and_blocks_keep_order(self):
        consumer = StreamConsumer()
        block = _block(id="a1", type="alert", variant="default", title="Note", content="Hi")
        _text_part(consumer, "t1", "Before ", block[:12], block[12:], " after")

        views = consumer.render()
        assert [(v.source, v.kind) for v in views] == [("text", "text"), ("block", "final"), ("text", "text")]
        assert views[0].body == "Before "
        assert views[1].body == "[default] Note: Hi"
        assert views[2].body == " after"

    def test_unknown_block_type_falls_back(self):
        consumer = StreamConsumer()
        _text_part(consumer, "t1", _block(id="h1", type="hologram", content="?"))
        (view,) = consumer.render()
        assert view.kind == "fallback"
        assert view.body == "Unknown block type: hologram"

    def test_block_lifecycle_views(self):
        consumer = StreamConsumer()
        _text_part(consumer, "t1", _block(id="p1", type="progress", status="init"))
        assert consumer.render()[0].kind == "skeleton"

        _text_part(consumer, "t2", _block(id="p1", type="progress", status="running", value=40, label="Upload"))
        view = consumer.render()[0]
        assert (view.kind, view.updating, view.body) == ("partial", True, "Upload: 40/100 (40%)")

        _text_part(consumer, "t3", _block(id="p1", type="progress", status="finished", value=100))
        _text_part(consumer, "t4", _block(id="p1", type="progress", status="running", value=10))
        views = consumer.render()
        assert len(views) == 1
        assert views[0].kind == "final"
        assert views[0].body == "100/100 (100%)"

    def test_invalid_block_renders_error(self):
        consumer = StreamConsumer()
        _text_part(consumer, "t1", _block(id="t1", type="table", rows="bad"))
        (view,) = consumer.render()
        assert view.kind == "error"

    def test_unterminated_block_becomes_prose_at_finish(self):
        consumer = StreamConsumer()
        consumer.push(enc.text_start("t1"))
        consumer.push(enc.text_delta("t1", 'Oops {"id": "x"'))
        consumer.push(enc.finish())
        assert consumer.finished
        assert consumer.text == 'Oops {"id": "x"'

    def test_reasoning_tools_errors_and_data(self):
        consumer = StreamConsumer()
        consumer.push(enc.start("m1"))
        consumer.push(enc.data("chat", {"chatId": "chat-1"}))
        consumer.push(enc.reasoning_start("r1"))
        consumer.push(enc.reasoning_delta("r1", "thinking"))
        consumer.push(enc.reasoning_end("r1"))
        consumer.push(enc.tool_input_start("c1", "web_search"))
        consumer.push(enc.tool_input_available("c1", "web_search", {"query": "q"}))
        consumer.push(enc.tool_output_available("c1", {"results": []}))
        consumer.push(enc.data("notice", {"x": 1}))
        consumer.push(enc.error("INTERNAL_ERROR: boom"))

        assert consumer.message_id == "m1"
        assert consumer.chat_id == "chat-1"
        assert consumer.reasoning == {"r1": "thinking"}
        assert consumer.tools["c1"] == {
            "name": "web_search",
            "state": "output-available",
            "input": {"query": "q"},
            "output": {"results": []},
        }
        assert consumer.data == [{"type": "data-notice", "data": {"x": 1}}]
        assert consumer.errors == ["INTERNAL_ERROR: boom"]


# ── Component events ────────────────────────────────────────


class TestComponents:
    def test_table_defaults_and_idempotent_restart(self):
        consumer = StreamConsumer()
        start = {"type": "component_start", "component_id": "k1", "component": "Table", "props": {}}
        consumer.apply(start)
        state = consumer.components["k1"]
        assert state.props == {"headers": [], "rows": []}
        assert state.status == ComponentStatus.INITIALIZING
        assert consumer.render()[0].kind == "skeleton"

        consumer.apply({"type": "component_update", "component_id": "k1", "operation": "add_row", "data": ["a"]})
        consumer.apply(start)

        assert consumer.components["k1"].props == {"headers": [], "rows": []}
        assert len(consumer.render()) == 1

    def test_update_for_missing_component_is_a_no_op(self, caplog):
        consumer = StreamConsumer()
        consumer.apply({"type": "component_update", "component_id": "ghost", "operation": "add_row", "data": [1]})
        assert consumer.components == {}
        assert consumer.render() == []
        assert "ghost" in caplog.text

    def test_update_and_end(self):
        consumer = StreamConsumer()
        consumer.apply({"type": "component_start", "component_id": "kpi", "component": "KPIGrid"})
        consumer.apply({
            "type": "component_update",
            "component_id": "kpi",
            "operation": "add_metric",
            "data": {"label": "Users", "value": 10},
        })
        state = consumer.components["kpi"]
        assert state.status == ComponentStatus.STREAMING
        view = consumer.render()[0]
        assert view.updating
        assert view.body == "Users: 10"

        consumer.apply({"type": "component_end", "component_id": "kpi", "final_props": {"title": "KPIs"}})
        assert state.status == ComponentStatus.COMPLETED
        assert state.props == {"title": "KPIs", "metrics": []}
        assert consumer.render()[0].kind == "final"

    def test_completed_component_ignores_updates(self):
        consumer = StreamConsumer()
        consumer.apply({"type": "component_start", "component_id": "l1", "component": "List"})
        consumer.apply({"type": "component_end", "component_id": "l1"})
        consumer.apply({"type": "component_update", "component_id": "l1", "operation": "add_item", "data": {"title": "x"}})
        assert consumer.components["l1"].props["items"] == []

    def test_failing_event_marks_component_error_and_continues(self):
        consumer = StreamConsumer()
        consumer.apply({"type": "component_start", "component_id": "t", "component": "Table"})
        consumer.apply({"type": "component_start", "component_id": "l", "component": "List"})
        consumer.apply({"type": "component_update", "component_id": "t", "operation": "update_row", "index": 3, "data": [1]})
        consumer.apply({"type": "component_update", "component_id": "l", "operation": "add_item", "data": {"title": "ok"}})

        assert consumer.components["t"].status == ComponentStatus.ERROR
        assert "out of range" in consumer.components["t"].error
        assert consumer.components["l"].props["items"] == [{"title": "ok"}]
        assert [v.kind for v in consumer.render()] == ["error", "partial"]

    def test_invalid_event_for_known_component(self):
        consumer = StreamConsumer()
        consumer.apply({"type": "component_start", "component_id": "t", "component": "Table"})
        consumer.apply({"type": "component_update", "component_id": "t", "operation": "explode"})
        assert consumer.components["t"].status == ComponentStatus.ERROR

    def test_unknown_component_falls_back(self):
        consumer = StreamConsumer()
        consumer.apply({"type": "component_start", "component_id": "h", "component": "Hologram", "props": {"a": 1}})
        view = consumer.render()[0]
        assert view.kind == "fallback"
        assert view.body == "Unknown component: Hologram"

    def test_text_events_append(self):
        consumer = StreamConsumer()
        consumer.apply({"type": "text", "content": "Hello"})
        consumer.apply({"type": "text", "content": " world", "append": True})
        consumer.apply({"type": "text", "content": "New"})
        assert [v.body for v in consumer.render()] == ["Hello world", "New"]

    def test_tool_activity_list_via_data_parts(self):
        consumer = StreamConsumer()
        consumer.push(enc.component({
            "type": "component_start",
            "component_id": "activity",
            "component": "List",
            "props": {"title": "Tool activity", "items": []},
        }))
        consumer.push(enc.component({
            "type": "component_update",
            "component_id": "activity",
            "operation": "add_item",
            "data": {"id": "c1", "title": "web_search", "description": "q", "status": "running"},
        }))
        consumer.push(enc.component({
            "type": "component_update",
            "component_id": "activity",
            "operation": "set_property",
            "path": "items.0.status",
            "data": "done",
        }))
        assert consumer.render()[0].body == "Tool activity\n- web_search: q [done]"


# ── Transport ───────────────────────────────────────────────


class TestTransport:
    def test_reader_decodes_lines(self):
        consumer = StreamConsumer()
        reader = SSEStreamReader(consumer)
        body = (
            enc.encode(enc.start("m1"))
            + ": heartbeat\n\n"
            + enc.encode(enc.text_start("t1"))
            + enc.encode(enc.text_delta("t1", "Hi"))
            + "data: {not json\n\n"
            + enc.encode(enc.text_end("t1"))
            + enc.encode(enc.finish())
            + "data: [DONE]\n\n"
            + enc.encode(enc.text_delta("t1", "ignored"))
        )
        reader.read_text(body)

        assert reader.done
        assert reader.parts == 5
        assert consumer.finished
        assert [view.body for view in consumer.render()] == ["Hi"]

    @pytest.mark.parametrize("line", ["", "event: ping", ": comment", "data: [1, 2]"])
    def test_ignored_lines(self, line):
        consumer = StreamConsumer()
        SSEStreamReader(consumer).feed_line(line)
        assert consumer.render() == []

    @pytest.mark.parametrize(
        "bad_part",
        [
            {"type": "data-component", "data": ["not", "an", "event"]},
            {"type": "data-chat", "data": "chat-1"},
            {"type": "tool-input-start", "toolName": "web_search"},
            {"type": "tool-input-available", "input": {"query": "q"}},
            {"type": "tool-output-available", "output": {}},
            {"type": "text-delta", "id": "t0", "delta": None},
            {"type": 7},
        ],
    )
    def test_malformed_part_does_not_stop_the_stream(self, bad_part):
        consumer = StreamConsumer()
        reader = SSEStreamReader(consumer)
        body = (
            "data: " + json.dumps(bad_part) + "\n\n"
            + enc.encode(enc.text_start("t1"))
            + enc.encode(enc.text_delta("t1", "still here"))
            + enc.encode(enc.text_end("t1"))
            + enc.encode(enc.finish())
        )
        reader.read_text(body)

        assert consumer.finished
        assert consumer.text == "still here"
        assert consumer.tools == {}
