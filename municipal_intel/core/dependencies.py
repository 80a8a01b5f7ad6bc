"""
FastAPI dependency injection module for the Municipal Intelligence engine.

This module provides reusable FastAPI dependencies for configuration access
and the shared InsightAggregator. Endpoint handlers receive both through
type aliases so tests can swap them with `app.dependency_overrides`.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_aggregator: Returns the process-wide InsightAggregator (and its cache)
- SettingsDep: Type alias for injecting Settings into endpoints
- AggregatorDep: Type alias for injecting the aggregator into endpoints

Usage Examples:
    @router.post("/analyze")
    async def analyze(bundle: MunicipalDataBundle, aggregator: AggregatorDep):
        return aggregator.analyze(bundle)

    # In tests
    app.dependency_overrides[get_aggregator] = lambda: InsightAggregator(clock=fixed_clock)

See Also:
    - municipal_intel/core/config.py: Settings and environment variables
    - municipal_intel/services/insight_aggregator.py: Report composition and caching
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from municipal_intel.core.config import Settings, get_settings
from municipal_intel.services.insight_aggregator import InsightAggregator


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so the dependency can be overridden:

        app.dependency_overrides[get_settings_dependency] = lambda: test_settings
    """
    return get_settings()


# =============================================================================
# Aggregator Dependency
# =============================================================================

@lru_cache()
def get_aggregator() -> InsightAggregator:
    """
    Return the process-wide InsightAggregator.

    The aggregator owns the report cache, so one instance is shared by every
    request. Call `get_aggregator.cache_clear()` to start from an empty cache.
    """
    return InsightAggregator(settings=get_settings())


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(aggregator: AggregatorDep)
AggregatorDep = Annotated[InsightAggregator, Depends(get_aggregator)]
