"""
Daily performance router.

Wired to:
- DailyService for the daily view, alerts and configuration actions
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
async def daily_view(dashboard: Dashboard = Depends(get_dashboard)):
    """Graded daily view with category summaries."""
    return module_payload(dashboard.daily)


@router.get("/summary")
async def daily_summary(dashboard: Dashboard = Depends(get_dashboard)):
    """Headline daily metrics."""
    service = dashboard.daily
    return {
        "success": True,
        "data": {
            "has_data": service.has_data,
            "score": service.score,
            "grade": service.grade,
            "total_sales": service.total_sales,
            "labor_percent": service.labor_percent,
            "customer_count": service.customer_count,
            "average_ticket": service.average_ticket,
            "alert_count": service.alert_count,
        },
    }


@router.get("/alerts")
async def daily_alerts(dashboard: Dashboard = Depends(get_dashboard)):
    return alerts_payload(dashboard.daily)


@router.get("/config")
async def daily_config(dashboard: Dashboard = Depends(get_dashboard)):
    return config_payload(dashboard.daily)


@router.put("/config/targets")
async def set_daily_targets(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Update performance targets and re-grade the daily view."""
    return apply_config_action(dashboard.daily, dashboard.daily.set_targets, changes)


@router.put("/config/alert-settings")
async def set_daily_alert_settings(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return apply_config_action(dashboard.daily, dashboard.daily.set_alert_settings, changes)


@router.put("/config/cost-thresholds")
async def set_daily_cost_thresholds(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return apply_config_action(dashboard.daily, dashboard.daily.set_cost_thresholds, changes)


@router.put("/config/grade-bands")
async def set_daily_grade_bands(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return apply_config_action(dashboard.daily, dashboard.daily.set_grade_bands, changes)


@router.post("/alerts/toggle")
async def toggle_daily_alerts(
    request: AlertToggleRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    dashboard.daily.toggle_alerts(request.enabled)
    return alerts_payload(dashboard.daily)


@router.post("/config/reset")
async def reset_daily_config(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.daily.reset_config()
    return config_payload(dashboard.daily)
