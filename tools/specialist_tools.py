"""Specialist tools — delegate to a sub-agent through the bridge.

The specialist's output streams to the user while the call runs; the tool
result carries the full answer back to the dispatcher.
"""

from __future__ import annotations

from pydantic_ai import RunContext

from agents.dispatcher import AgentDeps
from agents.specialists import executor_spec, reasoner_spec
from tools.registry import TOOLSET_SPECIALIST, register_tool


def _unavailable(key: str) -> dict:
    return {key: "Specialists are not configured.", "reasoning": "", "success": False}


@register_tool(toolset=TOOLSET_SPECIALIST)
async def ask_reasoner(
    ctx: RunContext[AgentDeps],
    question: str,
    context: str | None = None,
) -> dict:
    """Ask the deep-reasoning specialist to analyze a complex question.

    Use for architecture, multi-factor comparisons, strategy and hard
    reasoning problems.  Its analysis is shown to the user as it streams.

    Args:
        question: The question to analyze.
        context: Optional background the specialist needs.
    """
    deps = ctx.deps
    if deps.bridge is None:
        return _unavailable("analysis")
    return await deps.bridge.invoke(
        reasoner_spec(deps.settings),
        question,
        channel=deps.channel,
        context=context,
        turn_id=deps.turn_id,
    )


@register_tool(toolset=TOOLSET_SPECIALIST)
async def delegate_task(
    ctx: RunContext[AgentDeps],
    task: str,
    requirements: str | None = None,
) -> dict:
    """Hand a well-specified task to the precision-execution specialist.

    Args:
        task: What to produce.
        requirements: Optional constraints the output must meet.
    """
    deps = ctx.deps
    if deps.bridge is None:
        return _unavailable("result")
    return await deps.bridge.invoke(
        executor_spec(deps.settings),
        task,
        channel=deps.channel,
        context=requirements,
        turn_id=deps.turn_id,
    )
