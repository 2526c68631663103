"""Health, search usage and metrics endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from services.metrics import get_metrics_collector
from tools.registry import get_tool_descriptions

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    """Configuration and search-quota status.

    ``degraded`` when the dispatcher's provider key is missing.  ``tools``
    lists what the dispatcher can call.
    """
    state = request.app.state
    settings = state.settings
    missing = settings.missing_config()
    return {
        "status": "degraded" if settings.dispatcher_key_env() in missing else "healthy",
        "missing_config": missing,
        "search": state.rate_tracker.usage_info(),
        "tools": get_tool_descriptions(),
    }


@router.get("/api/search/usage")
async def search_usage(request: Request):
    return request.app.state.rate_tracker.usage_info()


@router.post("/api/search/usage/reset")
async def reset_search_usage(request: Request):
    request.app.state.rate_tracker.reset()
    logger.info("Search usage reset via API")
    return request.app.state.rate_tracker.usage_info()


@router.get("/api/metrics")
async def metrics():
    return get_metrics_collector().snapshot()
