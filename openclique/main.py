"""OpenClique FastAPI application."""

from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from openclique import __version__
from openclique.config import get_settings
from openclique.database import close_db, init_db
from openclique.logging_config import (
    bind_request_context,
    clear_request_context,
    configure_from_settings,
    get_logger,
)
from openclique.redis import close_redis, init_redis

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: init DB + Redis on startup, cleanup on shutdown."""
    settings = get_settings()
    configure_from_settings(settings)

    logger.info("starting_database_init")
    await init_db()

    # Ops event publishing degrades to DB-only when Redis is down
    await init_redis(settings.redis_url)

    logger.info("application_started", version=__version__)
    yield

    logger.info("shutting_down")
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


app = FastAPI(
    title="OpenClique",
    description="Quest lifecycle and admin review service",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every log line of a request with its request id."""
    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    bind_request_context(request_id=request_id, path=request.url.path)
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-ID"] = request_id
    return response


# --- Routers ---
from openclique.routes.admin_quests import router as admin_quests_router  # noqa: E402

app.include_router(admin_quests_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "openclique"}
