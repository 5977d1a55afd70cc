"""
Delivery service quality (DSQR) router.

Wired to:
- DsqrService for per-platform KPI status, summary and delivery alerts

The KPI filter only narrows the /kpis listing; it never changes the view.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from dspr.models.enums import DeliveryPlatform
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


def _filter_payload(dashboard: Dashboard) -> Dict[str, Any]:
    return {"success": True, "data": dashboard.dsqr.filter.model_dump(mode="json")}


@router.get("")
async def dsqr_view(dashboard: Dashboard = Depends(get_dashboard)):
    """Per-platform KPI statuses with the cross-platform summary."""
    return module_payload(dashboard.dsqr)


@router.get("/platforms/{platform}")
async def dsqr_platform(
    platform: DeliveryPlatform,
    dashboard: Dashboard = Depends(get_dashboard),
):
    metrics = dashboard.dsqr.platform(platform)
    if metrics is None:
        raise HTTPException(status_code=404, detail=f"No DSQR data for {platform.value}")
    return {"success": True, "data": metrics.model_dump(mode="json")}


@router.get("/kpis")
async def dsqr_filtered_kpis(dashboard: Dashboard = Depends(get_dashboard)):
    """KPIs across platforms narrowed by the current filter."""
    return {
        "success": True,
        "data": [
            {"platform": platform.value, **kpi.model_dump(mode="json")}
            for platform, kpi in dashboard.dsqr.filtered_kpis
        ],
    }


@router.get("/alerts")
async def dsqr_alerts(dashboard: Dashboard = Depends(get_dashboard)):
    return alerts_payload(dashboard.dsqr)


@router.get("/config")
async def dsqr_config(dashboard: Dashboard = Depends(get_dashboard)):
    return config_payload(dashboard.dsqr)


@router.put("/config/level-bands")
async def set_dsqr_level_bands(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return apply_config_action(dashboard.dsqr, dashboard.dsqr.set_level_bands, changes)


@router.put("/config/alert-config")
async def set_dsqr_alert_config(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return apply_config_action(dashboard.dsqr, dashboard.dsqr.set_alert_config, changes)


@router.get("/filter")
async def dsqr_filter(dashboard: Dashboard = Depends(get_dashboard)):
    return _filter_payload(dashboard)


@router.put("/filter")
async def set_dsqr_filter(
    changes: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
):
    try:
        dashboard.dsqr.set_filter(**changes)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    return _filter_payload(dashboard)


@router.delete("/filter")
async def clear_dsqr_filter(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.dsqr.clear_filter()
    return _filter_payload(dashboard)


@router.post("/alerts/toggle")
async def toggle_dsqr_alerts(
    request: AlertToggleRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    dashboard.dsqr.toggle_alerts(request.enabled)
    return alerts_payload(dashboard.dsqr)


@router.post("/config/reset")
async def reset_dsqr_config(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.dsqr.reset_config()
    return config_payload(dashboard.dsqr)
