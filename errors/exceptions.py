"""Domain-specific exceptions for MirrorStone Agents.

These exceptions let the tool, bridge and API layers distinguish between
failure modes and map them to structured tool results, alert blocks or
SSE ``error`` parts.
"""

from __future__ import annotations


class ToolError(Exception):
    """Base class for tool execution errors."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        self.detail = message
        super().__init__(f"Tool '{tool_name}' failed: {message}")


class CapabilityError(ToolError):
    """An external capability (search, page fetch) could not be served.

    Raised inside the service clients and converted into the structured
    empty result at the tool boundary; callers of the tools never see it.
    """

    def __init__(self, tool_name: str, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(tool_name, message)


class QuotaExceededError(CapabilityError):
    """The monthly search budget is exhausted (or the provider answered 429)."""

    def __init__(self, used: int, limit: int) -> None:
        self.used = used
        self.limit = limit
        super().__init__("web_search", self.user_message, status_code=429)

    @property
    def user_message(self) -> str:
        return f"Search quota exceeded ({self.used}/{self.limit}). Try again after the quota resets."


class InferenceError(Exception):
    """A streaming chat-completions request failed (non-2xx or bad payload)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class SubAgentError(ToolError):
    """A specialist invocation failed; carries the specialist name."""

    def __init__(self, specialist: str, message: str) -> None:
        self.specialist = specialist
        super().__init__(specialist, message)
