"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False
    sse_heartbeat_interval: float = 15.0  # seconds of channel silence before ": heartbeat"

    # ── Agents ───────────────────────────────────────────────
    dispatcher_model: str = "deepseek/deepseek-chat"  # Conversational coordinator
    reasoner_model: str = "deepseek/deepseek-reasoner"  # Deep-reasoning specialist
    executor_model: str = "deepseek/deepseek-chat"  # Precision-execution specialist
    agent_max_steps: int = 15  # Dispatcher: hard cap on model requests per turn
    max_tokens: int = 8192
    temperature: float | None = 0.7
    inference_timeout: float = 120.0  # seconds, specialist streaming calls

    # Provider API keys
    deepseek_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # ── Capability tools ─────────────────────────────────────
    brave_api_key: str = ""
    brave_search_url: str = "https://api.search.brave.com/res/v1/web/search"
    search_result_limit: int = 3
    search_monthly_limit: int = 1000
    search_timeout: float = 10.0

    page_fetch_max_chars: int = 3000
    page_fetch_timeout: float = 15.0
    page_fetch_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    # ── Chat history store ───────────────────────────────────
    chat_store_type: str = "memory"  # "memory" or "redis"
    redis_url: str = ""  # e.g. redis://:password@host:6379/0

    # ── Helpers ───────────────────────────────────────────────

    def dispatcher_key_env(self) -> str:
        """Env name of the API key the dispatcher model needs."""
        provider = self.dispatcher_model.split("/", 1)[0] if "/" in self.dispatcher_model else "openai"
        return f"{provider}_api_key".upper()

    def missing_config(self) -> list[str]:
        """Return env keys required for a fully working service."""
        missing: list[str] = []
        key_attr = self.dispatcher_key_env().lower()
        if hasattr(self, key_attr) and not getattr(self, key_attr):
            missing.append(key_attr.upper())
        if not self.brave_api_key:
            missing.append("BRAVE_API_KEY")
        return missing


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
