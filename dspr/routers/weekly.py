"""
Weekly performance router.

Wired to:
- WeeklyCurrentService for the current-week view, projections and filter
- WeeklyPreviousService for the baseline week and week-over-week trends
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field

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


class OperatingDaysRequest(BaseModel):
    """Operating days used for daily averages."""

    days: int = Field(ge=1, le=7)


# =============================================================================
# Current week
# =============================================================================


@router.get("/current")
async def weekly_current_view(dashboard: Dashboard = Depends(get_dashboard)):
    """Current-week view with projections and week-over-week comparison."""
    return module_payload(dashboard.weekly_current)


@router.get("/current/alerts")
async def weekly_current_alerts(dashboard: Dashboard = Depends(get_dashboard)):
    return alerts_payload(dashboard.weekly_current)


@router.get("/current/config")
async def weekly_current_config(dashboard: Dashboard = Depends(get_dashboard)):
    return config_payload(dashboard.weekly_current)


@router.put("/current/config/thresholds")
async def set_weekly_current_thresholds(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.weekly_current
    return apply_config_action(service, service.set_thresholds, changes)


@router.put("/current/config/filter")
async def set_weekly_current_filter(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Update the filter; the view reports whether it matches."""
    service = dashboard.weekly_current
    return apply_config_action(service, service.set_filter, changes)


@router.delete("/current/config/filter")
async def clear_weekly_current_filter(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.weekly_current.clear_filter()
    return config_payload(dashboard.weekly_current)


@router.put("/current/config/operating-days")
async def set_weekly_current_operating_days(
    request: OperatingDaysRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.weekly_current
    return apply_config_action(service, service.set_operating_days, {"days": request.days})


@router.put("/current/config/alert-settings")
async def set_weekly_current_alert_settings(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.weekly_current
    return apply_config_action(service, service.set_alert_settings, changes)


@router.post("/current/alerts/toggle")
async def toggle_weekly_current_alerts(
    request: AlertToggleRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    dashboard.weekly_current.toggle_alerts(request.enabled)
    return alerts_payload(dashboard.weekly_current)


@router.post("/current/config/reset")
async def reset_weekly_current_config(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.weekly_current.reset_config()
    return config_payload(dashboard.weekly_current)


# =============================================================================
# Previous week
# =============================================================================


@router.get("/previous")
async def weekly_previous_view(dashboard: Dashboard = Depends(get_dashboard)):
    """Previous-week baseline with per-metric trend analysis."""
    return module_payload(dashboard.weekly_previous)


@router.get("/previous/trends")
async def weekly_previous_trends(dashboard: Dashboard = Depends(get_dashboard)):
    """Week-over-week direction counts and the action flag."""
    service = dashboard.weekly_previous
    analysis = service.trend_analysis
    return {
        "success": True,
        "data": {
            "overall_trend": service.overall_trend,
            "improved_count": service.improved_count,
            "declined_count": service.declined_count,
            "action_required": service.action_required,
            "trend_analysis": analysis.model_dump(mode="json") if analysis else None,
        },
    }


@router.get("/previous/alerts")
async def weekly_previous_alerts(dashboard: Dashboard = Depends(get_dashboard)):
    return alerts_payload(dashboard.weekly_previous)


@router.get("/previous/config")
async def weekly_previous_config(dashboard: Dashboard = Depends(get_dashboard)):
    return config_payload(dashboard.weekly_previous)


@router.put("/previous/config/comparison-thresholds")
async def set_weekly_previous_comparison_thresholds(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.weekly_previous
    return apply_config_action(service, service.set_comparison_thresholds, changes)


@router.put("/previous/config/thresholds")
async def set_weekly_previous_thresholds(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.weekly_previous
    return apply_config_action(service, service.set_thresholds, changes)


@router.put("/previous/config/operating-days")
async def set_weekly_previous_operating_days(
    request: OperatingDaysRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.weekly_previous
    return apply_config_action(service, service.set_operating_days, {"days": request.days})


@router.put("/previous/config/alert-settings")
async def set_weekly_previous_alert_settings(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    service = dashboard.weekly_previous
    return apply_config_action(service, service.set_alert_settings, changes)


@router.post("/previous/alerts/toggle")
async def toggle_weekly_previous_alerts(
    request: AlertToggleRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    dashboard.weekly_previous.toggle_alerts(request.enabled)
    return alerts_payload(dashboard.weekly_previous)


@router.post("/previous/config/reset")
async def reset_weekly_previous_config(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.weekly_previous.reset_config()
    return config_payload(dashboard.weekly_previous)
