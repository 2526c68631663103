"""Single-source tool registry with toolset classification.

All dispatcher tools register here via ``@register_tool(toolset=...)`` and
are retrieved as a PydanticAI ``FunctionToolset`` via ``get_tools(...)``.

Design:
- Tools are plain async functions taking ``RunContext[AgentDeps]`` first.
- Each tool belongs to exactly one toolset.
- Every call is timed and recorded in the metrics collector.
"""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Sequence

from pydantic_ai import Tool
from pydantic_ai.toolsets import FunctionToolset

from services.metrics import get_metrics_collector

logger = logging.getLogger(__name__)

# ── Toolset names ───────────────────────────────────────────

TOOLSET_CAPABILITY = "capability"  # web search, page fetch
TOOLSET_SPECIALIST = "specialist"  # reasoner / executor delegation

ALL_TOOLSETS = [TOOLSET_CAPABILITY, TOOLSET_SPECIALIST]


# ── Registry internals ──────────────────────────────────────


@dataclass
class RegisteredTool:
    """Metadata for a registered tool."""

    name: str
    func: Callable[..., Any]
    toolset: str
    description: str = ""


_registry: dict[str, RegisteredTool] = {}


def register_tool(
    toolset: str,
    *,
    name: str | None = None,
):
    """Decorator to register a tool function with a toolset.

    Usage::

        @register_tool(toolset="capability")
        async def web_search(ctx: RunContext[AgentDeps], query: str) -> dict:
            ...
    """
    if toolset not in ALL_TOOLSETS:
        raise ValueError(f"Unknown toolset: {toolset!r}. Must be one of {ALL_TOOLSETS}")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        tool_name = name or func.__name__
        doc = (func.__doc__ or "").strip().split("\n")[0]
        wrapped = _wrap_with_metrics(func, tool_name)
        _registry[tool_name] = RegisteredTool(
            name=tool_name,
            func=wrapped,
            toolset=toolset,
            description=doc,
        )
        return wrapped

    return decorator


# ── Public API ──────────────────────────────────────────────


def get_tools(toolsets: Sequence[str] = ALL_TOOLSETS) -> FunctionToolset:
    """Return a FunctionToolset containing tools from the given toolsets."""
    selected = [
        Tool(rt.func, name=rt.name)
        for rt in _registry.values()
        if rt.toolset in toolsets
    ]
    return FunctionToolset(selected)


def get_tool_names(toolsets: Sequence[str] | None = None) -> list[str]:
    """Return tool names, optionally filtered by toolset."""
    if toolsets is None:
        return list(_registry.keys())
    return [rt.name for rt in _registry.values() if rt.toolset in toolsets]


def get_tool_descriptions() -> list[dict[str, str]]:
    """Return name + description for every registered tool."""
    return [
        {"name": rt.name, "description": rt.description, "toolset": rt.toolset}
        for rt in _registry.values()
    ]


def _result_status(result: Any) -> str:
    if isinstance(result, dict):
        if result.get("error") or result.get("success") is False:
            return "error"
        if "message" in result and not result.get("results"):
            return "degraded"
    return "ok"


def _wrap_with_metrics(func: Callable[..., Any], tool_name: str) -> Callable[..., Any]:
    if not inspect.iscoroutinefunction(func):
        return func

    @wraps(func)
    async def wrapped(*args: Any, **kwargs: Any) -> Any:
        start = time.monotonic()
        status = "ok"
        turn_id = ""
        chat_id = ""

        # PydanticAI injects RunContext as first positional arg.
        run_ctx = args[0] if args else kwargs.get("ctx")
        deps = getattr(run_ctx, "deps", None)
        if deps is not None:
            turn_id = str(getattr(deps, "turn_id", "") or "")
            chat_id = str(getattr(deps, "chat_id", "") or "")

        lock = getattr(deps, "tool_lock", None)
        try:
            if lock is not None:
                async with lock:
                    result = await func(*args, **kwargs)
            else:
                result = await func(*args, **kwargs)
            status = _result_status(result)
            return result
        except Exception:
            status = "error"
            logger.exception("tool %s raised an unhandled exception", tool_name)
            raise
        finally:
            latency_ms = (time.monotonic() - start) * 1000
            get_metrics_collector().record_tool_call(
                tool_name=tool_name,
                status=status,
                latency_ms=latency_ms,
                turn_id=turn_id,
                chat_id=chat_id,
            )

    return wrapped
