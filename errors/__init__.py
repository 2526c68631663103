"""Custom exception hierarchy for MirrorStone Agents."""

from errors.exceptions import (
    CapabilityError,
    InferenceError,
    QuotaExceededError,
    SubAgentError,
    ToolError,
)

__all__ = [
    "CapabilityError",
    "InferenceError",
    "QuotaExceededError",
    "SubAgentError",
    "ToolError",
]
