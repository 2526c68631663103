"""FastAPI entry point for the MirrorStone agents service."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agents.bridge import SubAgentBridge
from agents.dispatcher import Dispatcher
from config.settings import Settings, get_settings
from services.brave_search import BraveSearchClient
from services.chat_store import RedisChatStore, get_chat_store
from services.inference_client import InferenceClient
from services.middleware import RequestIdFilter, RequestIdMiddleware
from services.page_fetcher import PageFetcher
from services.rate_limit import RateLimitTracker

logger = logging.getLogger(__name__)

settings = get_settings()


def configure_logging(debug: bool = False) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s")
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.INFO)


def init_state(app: FastAPI, app_settings: Settings, **overrides) -> None:
    """Build the shared runtime objects onto ``app.state``.

    Keyword overrides replace individual objects (tests inject fakes).
    """
    state = app.state
    state.settings = app_settings
    state.rate_tracker = overrides.get("rate_tracker") or RateLimitTracker(
        app_settings.search_monthly_limit
    )
    state.search = overrides.get("search") or BraveSearchClient(
        api_key=app_settings.brave_api_key,
        tracker=state.rate_tracker,
        base_url=app_settings.brave_search_url,
        result_limit=app_settings.search_result_limit,
        timeout=app_settings.search_timeout,
    )
    state.pages = overrides.get("pages") or PageFetcher(
        user_agent=app_settings.page_fetch_user_agent,
        max_chars=app_settings.page_fetch_max_chars,
        timeout=app_settings.page_fetch_timeout,
    )
    state.inference = overrides.get("inference") or InferenceClient(
        timeout=app_settings.inference_timeout
    )
    state.bridge = overrides.get("bridge") or SubAgentBridge(state.inference, app_settings)
    state.dispatcher = overrides.get("dispatcher") or Dispatcher(settings=app_settings)
    state.chat_store = overrides.get("chat_store") or get_chat_store()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — start/stop shared resources."""
    configure_logging(settings.debug)
    init_state(app, settings)
    await app.state.search.start()
    await app.state.pages.start()
    await app.state.inference.start()

    missing = settings.missing_config()
    if missing:
        logger.warning("Missing configuration: %s", ", ".join(missing))

    store = app.state.chat_store
    if isinstance(store, RedisChatStore):
        if await store.ping():
            logger.info("Redis connection verified")
        else:
            logger.warning("Redis connection failed; chats may not persist")

    yield

    if isinstance(store, RedisChatStore):
        await store.close()
    await app.state.inference.close()
    await app.state.pages.close()
    await app.state.search.close()


app = FastAPI(
    title="MirrorStone Agents",
    description="Multi-agent chat orchestration with streamed structured blocks",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ─────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

# ── Populate tool registry (must happen before the dispatcher runs) ──
import tools.capability_tools  # noqa: E402, F401  (registers tools via @register_tool)
import tools.specialist_tools  # noqa: E402, F401

# ── Register routers ────────────────────────────────────────
from api.chat import router as chat_router  # noqa: E402
from api.chats import router as chats_router  # noqa: E402
from api.health import router as health_router  # noqa: E402

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(chats_router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
        timeout_keep_alive=120,
    )
