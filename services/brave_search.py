"""Brave web search client.

Wraps ``httpx.AsyncClient`` with:
- subscription-token auth
- quota short-circuit through the shared :class:`RateLimitTracker`
- usage recording from every response's rate-limit headers
- connection-pool lifecycle tied to the FastAPI lifespan
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from errors.exceptions import CapabilityError, QuotaExceededError
from services.rate_limit import RateLimitTracker

logger = logging.getLogger(__name__)


class BraveSearchClient:
    """Async client for the Brave web search API."""

    def __init__(
        self,
        *,
        api_key: str,
        tracker: RateLimitTracker,
        base_url: str = "https://api.search.brave.com/res/v1/web/search",
        result_limit: int = 3,
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._tracker = tracker
        self._base_url = base_url
        self._result_limit = result_limit
        self._timeout = timeout
        self._http = http
        self._owns_http = http is None

    @property
    def tracker(self) -> RateLimitTracker:
        return self._tracker

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        self._owns_http = True
        logger.info("BraveSearchClient started")

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
            logger.info("BraveSearchClient closed")

    # -- search --------------------------------------------------------------

    async def search(self, query: str) -> list[dict[str, str]]:
        """Top results for *query* as ``{title, url, snippet}`` dicts.

        Raises:
            QuotaExceededError: budget spent; no request was made.
            CapabilityError: non-2xx response, transport failure or a body
                that is not a Brave results object.
        """
        if self._tracker.is_rate_limited():
            state = self._tracker.snapshot()
            raise QuotaExceededError(state.used, state.limit)

        if self._http is None:
            await self.start()
        assert self._http is not None

        start = time.monotonic()
        try:
            resp = await self._http.get(
                self._base_url,
                params={"q": query},
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": self._api_key,
                },
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Brave search transport error for %r: %s", query, exc)
            raise CapabilityError(
                "web_search", "Search failed due to a network or server error."
            ) from exc

        elapsed = (time.monotonic() - start) * 1000
        self._tracker.update_from_headers(resp.headers, resp.status_code)
        logger.info("Brave search %r -> %d (%.0fms)", query, resp.status_code, elapsed)

        if not resp.is_success:
            raise CapabilityError(
                "web_search",
                f"Search failed with status {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data: Any = resp.json()
        except ValueError as exc:
            raise CapabilityError("web_search", "Search returned an invalid response") from exc

        raw = _web_results(data)
        if raw is None:
            logger.warning("Unexpected Brave response shape for %r", query)
            raise CapabilityError("web_search", "Search returned an invalid response")
        return [
            {
                "title": r.get("title", ""),
                "url": r.get("url", ""),
                "snippet": r.get("description", ""),
            }
            for r in raw[: self._result_limit]
        ]


def _web_results(data: Any) -> list[dict[str, Any]] | None:
    """``web.results`` of a Brave payload; ``None`` when the shape is wrong."""
    if not isinstance(data, dict):
        return None
    web = data.get("web") or {}
    if not isinstance(web, dict):
        return None
    results = web.get("results") or []
    if not isinstance(results, list) or not all(isinstance(r, dict) for r in results):
        return None
    return results
