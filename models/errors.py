"""Structured error codes for the outbound stream.

SSE stream errors follow the format::

    {ERROR_CODE}: {tool_name} — {human_readable_detail}

for tool failures, and ``{ERROR_CODE}: {detail}`` otherwise.
"""

from __future__ import annotations

import re
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes carried in ``error`` parts and HTTP error bodies."""

    INVALID_REQUEST = "INVALID_REQUEST"
    CHAT_NOT_FOUND = "CHAT_NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    TOOL_EXECUTION_FAILED = "TOOL_EXECUTION_FAILED"
    LLM_PROVIDER_ERROR = "LLM_PROVIDER_ERROR"
    SERVICE_DEGRADED = "SERVICE_DEGRADED"


def format_tool_error(tool_name: str, detail: str) -> str:
    """``TOOL_EXECUTION_FAILED: {tool_name} — {detail}``"""
    return f"{ErrorCode.TOOL_EXECUTION_FAILED.value}: {tool_name} — {detail}"


def format_llm_error(detail: str) -> str:
    """``LLM_PROVIDER_ERROR: {detail}``"""
    return f"{ErrorCode.LLM_PROVIDER_ERROR.value}: {detail}"


def format_error(code: ErrorCode, detail: str) -> str:
    return f"{code.value}: {detail}"


# Tool names registered in tools/.
_TOOL_NAME_RE = re.compile(
    r"\b("
    r"web_search"
    r"|fetch_web_page"
    r"|ask_reasoner"
    r"|delegate_task"
    r")\b"
)

_TOOL_HINT_RE = re.compile(r"\btool\b", re.IGNORECASE)

_RATE_LIMIT_RE = re.compile(r"\b429\b|rate limit|quota", re.IGNORECASE)


def classify_stream_error(error_text: str) -> str:
    """Classify a raw exception string into an SSE ``errorText``.

    Classification order (first match wins):
        1. Tool execution failure: a known tool name or the word "tool".
        2. Rate limiting: 429 / rate limit / quota.
        3. LLM provider error: timeout, connection, context length, token,
           content filter, safety.
        4. Fallback: ``INTERNAL_ERROR``.
    """
    tool_match = _TOOL_NAME_RE.search(error_text)
    if tool_match:
        return format_tool_error(tool_match.group(1), error_text)
    if _TOOL_HINT_RE.search(error_text):
        return format_tool_error("unknown_tool", error_text)

    if _RATE_LIMIT_RE.search(error_text):
        return format_error(ErrorCode.RATE_LIMITED, error_text)

    err_lower = error_text.lower()
    if "content filter" in err_lower or "safety" in err_lower:
        return format_llm_error("Content filtered by safety policy")
    if "context length" in err_lower or "token" in err_lower:
        return format_llm_error(f"Context length exceeded — {error_text}")
    if "timeout" in err_lower or "connection" in err_lower:
        return format_llm_error(error_text)

    return format_error(ErrorCode.INTERNAL_ERROR, error_text)
