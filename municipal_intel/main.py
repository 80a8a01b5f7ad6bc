"""
FastAPI application entry point for the Municipal Intelligence API.

This module configures logging and CORS, registers the API routers, and
starts the ASGI server when executed directly.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from municipal_intel import __version__
from municipal_intel.api import api_router
from municipal_intel.core.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup the settings are loaded once so configuration errors surface
    before the first request.
    """
    settings = get_settings()
    logger.info(
        f"Municipal Intelligence API starting "
        f"(z-threshold {settings.z_score_threshold}, cache size {settings.cache_max_size})"
    )

    yield

    logger.info("Municipal Intelligence API shutting down")


# Create FastAPI application
app = FastAPI(
    title="Municipal Intelligence API",
    version=__version__,
    description=(
        "Financial intelligence for municipal budgets. "
        "Provides risk scoring, anomaly detection, forecasting, "
        "optimization recommendations and compliance analysis."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Dashboard dev server
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer checks.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Municipal Intelligence API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "municipal_intel.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
