"""In-memory metrics for tool calls and dispatcher turns.

Collected per process and exposed at ``GET /api/metrics`` so operators can
see tool latency, failure rates and how often turns hit the step cap.
"""

from __future__ import annotations

import math
import threading
from collections import defaultdict


def _percentile(values: list[float], p: float) -> float:
    if not values:
        return 0.0
    if len(values) == 1:
        return values[0]
    ordered = sorted(values)
    pos = (len(ordered) - 1) * p
    lo = math.floor(pos)
    hi = math.ceil(pos)
    if lo == hi:
        return ordered[lo]
    frac = pos - lo
    return ordered[lo] * (1 - frac) + ordered[hi] * frac


def _summarize(latencies: list[float], status_map: dict[str, int]) -> dict:
    total = sum(status_map.values())
    ok_count = status_map.get("ok", 0)
    return {
        "count": total,
        "success_rate": (ok_count / total) if total else 0.0,
        "latency_p50_ms": round(_percentile(latencies, 0.5), 2),
        "latency_p95_ms": round(_percentile(latencies, 0.95), 2),
        "status_breakdown": dict(status_map),
    }


class MetricsCollector:
    """Thread-safe in-memory metrics collector."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tool_latencies: dict[str, list[float]] = defaultdict(list)
        self._tool_status: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._turn_stats: dict[str, dict] = {}

    def _turn(self, turn_id: str, chat_id: str) -> dict:
        return self._turn_stats.setdefault(
            turn_id,
            {
                "turn_id": turn_id,
                "chat_id": chat_id,
                "tool_call_count": 0,
                "tool_error_count": 0,
                "total_latency_ms": 0.0,
                "outcome": "running",
            },
        )

    def record_tool_call(
        self,
        *,
        tool_name: str,
        status: str,
        latency_ms: float,
        turn_id: str = "",
        chat_id: str = "",
    ) -> None:
        with self._lock:
            self._tool_latencies[tool_name].append(float(latency_ms))
            self._tool_status[tool_name][status] += 1

            if turn_id:
                turn = self._turn(turn_id, chat_id)
                turn["tool_call_count"] += 1
                if status != "ok":
                    turn["tool_error_count"] += 1
                turn["total_latency_ms"] += float(latency_ms)

    def record_turn_end(
        self,
        *,
        turn_id: str,
        chat_id: str = "",
        outcome: str,
        requests: int = 0,
    ) -> None:
        """Record how a turn ended: ``completed``, ``step_cap``, ``error`` or ``cancelled``."""
        with self._lock:
            turn = self._turn(turn_id, chat_id)
            turn["outcome"] = outcome
            turn["model_requests"] = requests

    def get_turn_summary(self, turn_id: str) -> dict:
        with self._lock:
            return dict(self._turn_stats.get(turn_id, {}))

    def snapshot(self) -> dict:
        with self._lock:
            tools = {
                tool: _summarize(latencies, self._tool_status.get(tool, {}))
                for tool, latencies in self._tool_latencies.items()
            }
            outcomes: dict[str, int] = defaultdict(int)
            for turn in self._turn_stats.values():
                outcomes[turn["outcome"]] += 1
            return {
                "tools": tools,
                "turns": {"count": len(self._turn_stats), "outcomes": dict(outcomes)},
            }

    def reset(self) -> None:
        with self._lock:
            self._tool_latencies.clear()
            self._tool_status.clear()
            self._turn_stats.clear()


_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _metrics_collector
