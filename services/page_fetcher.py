"""Fetch a web page and reduce it to plain text for the model."""

from __future__ import annotations

import logging
import re

import httpx

from errors.exceptions import CapabilityError

logger = logging.getLogger(__name__)

_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def html_to_text(html: str, max_chars: int = 3000) -> str:
    """Strip scripts, styles and tags; collapse whitespace; truncate."""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = _WS_RE.sub(" ", text).strip()
    if len(text) > max_chars:
        text = text[:max_chars] + "..."
    return text


class PageFetcher:
    """Async page fetcher with a browser-like User-Agent."""

    def __init__(
        self,
        *,
        user_agent: str,
        max_chars: int = 3000,
        timeout: float = 15.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._user_agent = user_agent
        self._max_chars = max_chars
        self._timeout = timeout
        self._http = http
        self._owns_http = http is None

    async def start(self) -> None:
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout), follow_redirects=True
        )
        self._owns_http = True

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def fetch(self, url: str, selector: str | None = None) -> str:
        """Readable text of *url*.

        *selector* is accepted for API compatibility; extraction always
        covers the whole document.

        Raises:
            CapabilityError: non-2xx (message names the URL and status) or
                transport failure or an unusable URL.
        """
        if self._http is None:
            await self.start()
        assert self._http is not None

        if selector:
            logger.debug("Selector %r ignored for %s", selector, url)

        try:
            resp = await self._http.get(url, headers={"User-Agent": self._user_agent})
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Page fetch failed for %s: %s", url, exc)
            raise CapabilityError("fetch_web_page", "Failed to scrape the webpage") from exc

        if not resp.is_success:
            logger.warning("Page fetch %s -> %d", url, resp.status_code)
            raise CapabilityError(
                "fetch_web_page",
                f"Failed to fetch {url}: {resp.status_code}",
                status_code=resp.status_code,
            )
        return html_to_text(resp.text, self._max_chars)
