"""
System health router.

Wired to:
- Settings for configuration
- ReportStore for cache status
"""

import time

from fastapi import APIRouter, Depends

from dspr import __version__
from dspr.config import get_settings
from dspr.routers.dependencies import get_dashboard
from dspr.services.dashboard import Dashboard
from dspr.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

# Track startup time for uptime calculation
_startup_time = time.time()


@router.get("/health")
async def system_health(dashboard: Dashboard = Depends(get_dashboard)):
    """
    Get system health status.
    Degraded when the last report fetch failed.
    """
    settings = get_settings()
    uptime = time.time() - _startup_time
    store = dashboard.store

    return {
        "success": True,
        "data": {
            "status": "degraded" if store.is_failed else "healthy",
            "version": __version__,
            "uptime_seconds": round(uptime, 1),
            "report_status": store.status.value,
            "cache_fresh": store.is_fresh,
            "has_data": store.report is not None,
            "api_base_url": settings.dspr_api_base_url,
            "dev_mode": settings.dev_mode,
        },
    }
