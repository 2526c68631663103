"""Capability tools — web search and page fetch.

Both tools always return a structured dict; transport errors, non-success
statuses and quota exhaustion are reported in the result, never raised.
"""

from __future__ import annotations

import logging

from pydantic_ai import RunContext

from agents.dispatcher import AgentDeps
from errors.exceptions import CapabilityError, QuotaExceededError
from tools.registry import TOOLSET_CAPABILITY, register_tool

logger = logging.getLogger(__name__)


@register_tool(toolset=TOOLSET_CAPABILITY)
async def web_search(ctx: RunContext[AgentDeps], query: str) -> dict:
    """Search the web for up-to-date information using Brave Search.

    Args:
        query: The search query.
    """
    client = ctx.deps.search
    if client is None:
        return {"results": [], "message": "Web search is not configured."}
    try:
        results = await client.search(query)
    except QuotaExceededError as exc:
        logger.warning("Search skipped, quota exhausted (%d/%d)", exc.used, exc.limit)
        return {"results": [], "message": exc.user_message}
    except CapabilityError as exc:
        logger.warning("Search failed for %r: %s", query, exc.detail)
        return {"results": [], "message": exc.detail}
    return {"results": results}


@register_tool(toolset=TOOLSET_CAPABILITY)
async def fetch_web_page(
    ctx: RunContext[AgentDeps],
    url: str,
    selector: str | None = None,
) -> dict:
    """Fetch and extract the readable text of a web page.

    Args:
        url: The page URL.
        selector: Optional CSS selector for the content of interest.
    """
    fetcher = ctx.deps.pages
    if fetcher is None:
        return {"error": "Page fetching is not configured."}
    try:
        content = await fetcher.fetch(url, selector)
    except CapabilityError as exc:
        return {"error": exc.detail}
    return {"content": content}
