"""
API Gateway -- FastAPI application factory.

Creates the FastAPI app with all routes and the shared SessionManager.
This is the entrypoint for uvicorn:

    uvicorn warroom.api.gateway:create_app --factory --host 0.0.0.0 --port 8000

Or via the CLI:

    warroom serve --port 8000

Security:
  - CORS restricted to configured origins (default: localhost only)
  - Session creation rate-limited per client
  - All external input validated at boundary (SessionManager + validators)
"""

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import DeliberationConfig
from ..events.sink import EventHub
from ..llm import ModelGateway, create_client as create_llm_client
from ..orchestration.session_manager import SessionManager
from ..search import SearchGateway, create_search_client
from .middleware.rate_limit import RateLimiter
from .routes import agents, health, sessions, ws

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://localhost:8080",
]


def _get_cors_origins() -> list[str]:
    """Load CORS origins from environment or use safe defaults."""
    origins_env = os.environ.get("CORS_ORIGINS", "")
    if origins_env.strip():
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    return DEFAULT_CORS_ORIGINS


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are client errors like any other invalid input."""
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@asynccontextmanager
async def _lifespan(application: FastAPI):
    yield
    await application.state.manager.shutdown()


def create_app(
    manager: SessionManager | None = None,
    hub: EventHub | None = None,
    config: DeliberationConfig | None = None,
    gateway: ModelGateway | None = None,
    search: SearchGateway | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """
    Application factory -- creates and configures the FastAPI app.

    Args:
        manager: Pre-built SessionManager (its sink must be `hub`). Built from
            the other arguments when None.
        hub: EventHub the WebSocket channel subscribes to.
        config: Deliberation config (from WARROOM_* env vars if None).
        gateway: Model gateway (LLMClient from provider API keys if None).
        search: Search gateway (Tavily if TAVILY_API_KEY is set, else off).
        rate_limiter: Session-creation limiter (env-configured if None).
    """
    application = FastAPI(
        title="War Room API",
        description="Multi-agent deliberation with human escalations",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=_lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )

    if manager is None:
        hub = hub or EventHub()
        config = config or DeliberationConfig.from_env()
        if gateway is None:
            gateway = create_llm_client(max_tokens=config.max_tokens)
        if search is None:
            search = create_search_client()
        manager = SessionManager.build(gateway, sink=hub, config=config, search=search)
    elif hub is None:
        if not isinstance(manager.sink, EventHub):
            raise ValueError("create_app needs an EventHub when the manager's sink is not one")
        hub = manager.sink

    application.state.manager = manager
    application.state.hub = hub
    application.state.rate_limiter = rate_limiter or RateLimiter()
    application.state.llm_configured = manager.llm_configured
    application.state.search_enabled = manager.search_enabled
    application.state.start_time = time.time()

    application.add_exception_handler(RequestValidationError, _invalid_request)

    application.include_router(health.router, prefix="/api", tags=["Health"])
    application.include_router(agents.router, prefix="/api/v1", tags=["Roster"])
    application.include_router(sessions.router, prefix="/api/v1", tags=["Sessions"])
    application.include_router(ws.router, tags=["Live"])

    logger.info("[Gateway] API gateway initialized")
    return application
