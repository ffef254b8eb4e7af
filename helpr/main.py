"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from helpr.db.engine import create_schema, engine
from helpr.api.router import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_schema()
    logger.info("Service store ready")
    yield
    await engine.dispose()


app = FastAPI(
    title="Helpr",
    description="On-demand moving help: job requests, provider bids, and live status.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
