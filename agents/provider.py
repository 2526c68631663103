"""Agent provider — model construction for the dispatcher and specialists.

Model names use the ``"provider/model"`` format (``"deepseek/deepseek-chat"``,
``"anthropic/claude-sonnet-4-5"``).  The dispatcher needs a PydanticAI model
(:func:`create_model`); specialists stream raw chat completions and need the
endpoint coordinates instead (:func:`resolve_endpoint`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Provider prefix → (OpenAI-compatible base_url, settings_key_attr)
_PROVIDER_MAP: dict[str, tuple[str, str]] = {
    "deepseek": ("https://api.deepseek.com", "deepseek_api_key"),
    "openai": ("https://api.openai.com/v1", "openai_api_key"),
    "anthropic": ("https://api.anthropic.com/v1", "anthropic_api_key"),
}


@dataclass(frozen=True)
class ModelEndpoint:
    """Coordinates for a raw chat-completions call."""

    base_url: str
    api_key: str
    model_id: str

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


def split_model_name(name: str) -> tuple[str, str]:
    """``"deepseek/deepseek-chat"`` → ``("deepseek", "deepseek-chat")``.

    A bare name is treated as an OpenAI model.
    """
    if "/" in name:
        prefix, model_id = name.split("/", 1)
        return prefix, model_id
    return "openai", name


def resolve_endpoint(model_name: str, settings: Settings | None = None) -> ModelEndpoint:
    """Resolve a model name to its OpenAI-compatible endpoint.

    Raises:
        ValueError: unknown provider prefix.
    """
    settings = settings or get_settings()
    prefix, model_id = split_model_name(model_name)
    if prefix not in _PROVIDER_MAP:
        raise ValueError(f"Unknown provider {prefix!r} in model name {model_name!r}")
    base_url, key_attr = _PROVIDER_MAP[prefix]
    return ModelEndpoint(base_url=base_url, api_key=getattr(settings, key_attr, ""), model_id=model_id)


def create_model(model_name: str | None = None, settings: Settings | None = None):
    """Build a PydanticAI model instance.

    - ``anthropic/*`` → native :class:`AnthropicModel` (tool-use, streaming)
    - ``deepseek/*``, ``openai/*`` or bare name → :class:`OpenAIChatModel`
      against the provider's OpenAI-compatible endpoint

    Args:
        model_name: Model identifier in ``"provider/model"`` format.
                    Defaults to ``settings.dispatcher_model``.
    """
    settings = settings or get_settings()
    name = model_name or settings.dispatcher_model
    prefix, model_id = split_model_name(name)

    if prefix == "anthropic":
        from pydantic_ai.models.anthropic import AnthropicModel
        from pydantic_ai.providers.anthropic import AnthropicProvider

        provider = AnthropicProvider(api_key=settings.anthropic_api_key)
        return AnthropicModel(model_id, provider=provider)

    endpoint = resolve_endpoint(name, settings)
    provider = OpenAIProvider(api_key=endpoint.api_key, base_url=endpoint.base_url)
    return OpenAIChatModel(model_id, provider=provider)
