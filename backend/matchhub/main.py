"""
backend/matchhub/main.py

Purpose:
    FastAPI application bootstrap: logging, optional Mongo cache store,
    middleware and router wiring, adapter shutdown.

Dependencies:
    - matchhub.database
    - matchhub.services.cache_service
    - matchhub.providers.*
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from matchhub.config import settings
from matchhub.database import close_db, connect_db
from matchhub.middleware.logging import StructuredLoggingMiddleware, setup_logging
from matchhub.providers.base import ProviderError
from matchhub.providers.broadcast_feed import broadcast_feed_provider
from matchhub.providers.competition_api import competition_api_provider
from matchhub.providers.sports_feed import sports_feed_provider
from matchhub.routers.matches import router as matches_router
from matchhub.routers.teams import router as teams_router
from matchhub.services.cache_service import InMemoryStore, MongoStore, cache_layer

logger = logging.getLogger("matchhub")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    mongo_enabled = settings.CACHE_BACKEND.strip().lower() == "mongo"
    if mongo_enabled:
        await connect_db()
        cache_layer.use_store(MongoStore())
        logger.info("Provider cache backed by MongoDB")
    else:
        cache_layer.use_store(InMemoryStore())
        logger.info("Provider cache held in memory")

    yield

    for adapter in (sports_feed_provider, competition_api_provider, broadcast_feed_provider):
        await adapter.aclose()
    if mongo_enabled:
        await close_db()


app = FastAPI(
    title="matchhub",
    description="Cross-provider match aggregation",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.split_csv(settings.BACKEND_CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

app.include_router(matches_router)
app.include_router(teams_router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.warning("Provider error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Upstream provider error."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    return {"status": "ok"}
