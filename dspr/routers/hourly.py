"""
Hourly sales router.

Wired to:
- HourlyService for the aggregated hourly view, per-hour breakdown and alerts
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from dspr.routers.dependencies import (
    AlertToggleRequest,
    alerts_payload,
    apply_config_action,
    config_payload,
    get_dashboard,
    module_payload,
)
from dspr.services.dashboard import Dashboard
from dspr.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def hourly_view(dashboard: Dashboard = Depends(get_dashboard)):
    """Day aggregate graded from the hourly records."""
    return module_payload(dashboard.hourly)


@router.get("/hours")
async def hourly_breakdown(dashboard: Dashboard = Depends(get_dashboard)):
    """Per-hour sales breakdown and the peak hour."""
    service = dashboard.hourly
    peak = service.peak_hour
    return {
        "success": True,
        "data": {
            "hours": [h.model_dump(mode="json") for h in service.hours],
            "peak_hour": peak.model_dump(mode="json") if peak else None,
            "total_sales": service.total_sales,
            "total_orders": service.total_orders,
            "promise_met_percent": service.promise_met_percent,
        },
    }


@router.get("/alerts")
async def hourly_alerts(dashboard: Dashboard = Depends(get_dashboard)):
    return alerts_payload(dashboard.hourly)


@router.get("/config")
async def hourly_config(dashboard: Dashboard = Depends(get_dashboard)):
    return config_payload(dashboard.hourly)


@router.put("/config/thresholds")
async def set_hourly_thresholds(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return apply_config_action(dashboard.hourly, dashboard.hourly.set_thresholds, changes)


@router.put("/config/filter")
async def set_hourly_filter(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return apply_config_action(dashboard.hourly, dashboard.hourly.set_filter, changes)


@router.delete("/config/filter")
async def clear_hourly_filter(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.hourly.clear_filter()
    return config_payload(dashboard.hourly)


@router.put("/config/alert-settings")
async def set_hourly_alert_settings(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return apply_config_action(dashboard.hourly, dashboard.hourly.set_alert_settings, changes)


@router.post("/alerts/toggle")
async def toggle_hourly_alerts(
    request: AlertToggleRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    dashboard.hourly.toggle_alerts(request.enabled)
    return alerts_payload(dashboard.hourly)


@router.post("/config/reset")
async def reset_hourly_config(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.hourly.reset_config()
    return config_payload(dashboard.hourly)
