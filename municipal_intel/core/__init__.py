"""
Core infrastructure package for the Municipal Intelligence engine.

Provides:
- Configuration management via pydantic-settings
- The bounded report cache owned by each InsightAggregator

FastAPI dependencies live in municipal_intel.core.dependencies and are
imported from there directly; they depend on the services layer, which in
turn depends on this package.

Usage Examples:
    from municipal_intel.core import get_settings, InsightCache

    settings = get_settings()
    cache = InsightCache(max_size=settings.cache_max_size)
"""

# =============================================================================
# Re-exports from municipal_intel.core.config
# =============================================================================
from municipal_intel.core.config import Settings, get_settings

# =============================================================================
# Re-exports from municipal_intel.core.cache
# =============================================================================
from municipal_intel.core.cache import InsightCache

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Report caching (from cache.py)
    'InsightCache',
]
