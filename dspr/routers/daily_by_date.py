"""
Daily-by-date router.

Wired to:
- DailyByDateService for the per-day timeline, comparisons and week pattern
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from dspr.models.enums import DailySortKey
from dspr.routers.dependencies import (
    apply_config_action,
    config_payload,
    get_dashboard,
    module_payload,
)
from dspr.services.dashboard import Dashboard
from dspr.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class SortRequest(BaseModel):
    sort: DailySortKey


@router.get("")
async def daily_by_date_view(dashboard: Dashboard = Depends(get_dashboard)):
    """Filtered, sorted day entries with day-over-day comparisons."""
    return module_payload(dashboard.daily_by_date)


@router.get("/dates")
async def available_dates(dashboard: Dashboard = Depends(get_dashboard)):
    return {"success": True, "data": dashboard.daily_by_date.available_dates}


@router.get("/config")
async def daily_by_date_config(dashboard: Dashboard = Depends(get_dashboard)):
    return config_payload(dashboard.daily_by_date)


@router.put("/config/filter")
async def set_daily_by_date_filter(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.daily_by_date
    return apply_config_action(service, service.set_filter, changes)


@router.delete("/config/filter")
async def clear_daily_by_date_filter(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.daily_by_date.clear_filter()
    return config_payload(dashboard.daily_by_date)


@router.put("/config/sort")
async def set_daily_by_date_sort(
    request: SortRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    dashboard.daily_by_date.set_sort(request.sort)
    return config_payload(dashboard.daily_by_date)


@router.put("/config/comparison-thresholds")
async def set_daily_by_date_comparison_thresholds(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.daily_by_date
    return apply_config_action(service, service.set_comparison_thresholds, changes)


@router.post("/config/reset")
async def reset_daily_by_date_config(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.daily_by_date.reset_config()
    return config_payload(dashboard.daily_by_date)
