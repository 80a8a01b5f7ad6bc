"""
API package initialization.

This package contains FastAPI router modules for the Municipal Intelligence engine:
- intelligence: Full bundle analysis plus risk, anomaly, forecast and
  recommendation component endpoints
"""

from fastapi import APIRouter

from municipal_intel.api.intelligence import router as intelligence_router

# Create main API router
api_router = APIRouter()

api_router.include_router(intelligence_router)  # intelligence router has its own prefix

__all__ = [
    "api_router",
    "intelligence_router",
]
