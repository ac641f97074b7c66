"""Tutorscore - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import settings
from app.database import init_db
from app.routers import scoring

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # Create data directory if needed
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    # Initialize database tables
    await init_db()
    yield


app = FastAPI(title="Tutorscore", version="0.1.0", lifespan=lifespan)

# Routers
app.include_router(scoring.router)


@app.get("/health")
async def health():
    return {"status": "ok", "scoring_enabled": settings.SCORING_ENABLED}
