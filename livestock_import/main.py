"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
and registers all API routers.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routers import imports, mapping
from .core.config import settings
from .core.logging_config import configure_logging

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events."""
    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
        yield
        return

    from .db.models import create_animals_table
    from .db.session import get_engine

    try:
        create_animals_table(get_engine())
    except Exception:
        logger.exception("Failed to initialize database tables; the service cannot start without them")
        raise

    yield


app = FastAPI(
    title="Livestock Import API",
    version="1.0.0",
    description="Import animal records from arbitrary CSV exports with assisted column mapping",
    lifespan=lifespan,
)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
allowed_origins = [origin.strip() for origin in allowed_origins]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(imports.router)
app.include_router(mapping.router)


@app.get("/")
async def root():
    """Root endpoint returning API information."""
    return {
        "message": "Livestock Import API",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "livestock-import-api"
    }
