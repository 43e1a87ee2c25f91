"""PitchForge: FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.admin import router as admin_router
from app.api.v1.auth import router as auth_router
from app.api.v1.billing import router as billing_router
from app.api.v1.bulk import router as bulk_router
from app.api.v1.logos import router as logos_router
from app.api.v1.market import router as market_router
from app.api.v1.narratives import formatters_router
from app.api.v1.narratives import router as narratives_router
from app.api.v1.pitches import router as pitches_router
from app.api.v1.webhooks import router as webhooks_router
from app.config import settings
from app.database import async_session_factory, engine
from app.errors import register_exception_handlers
from app.services.bulk_worker import BulkJobWorker
from app.services.sec_client import TickerDirectory

# Configure root logger so all app.* loggers output to stderr (captured by Docker).
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    worker = BulkJobWorker(async_session_factory)
    app.state.bulk_worker = worker
    app.state.ticker_directory = TickerDirectory()
    await worker.recover_interrupted_jobs()
    yield
    # Shutdown: stop bulk jobs, then dispose engine connections
    await worker.shutdown()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Sales pitch, narrative and market intelligence generation for B2B prospecting.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth_router)
app.include_router(billing_router)
app.include_router(pitches_router)
app.include_router(narratives_router)
app.include_router(formatters_router)
app.include_router(bulk_router)
app.include_router(market_router)
app.include_router(logos_router)
app.include_router(admin_router)
app.include_router(webhooks_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
