"""
Report fetch and cache router.

Wired to:
- ReportStore for fetch, refetch, cache invalidation and status
- Dashboard for clearing the store together with every module view
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from dspr.connectors.report_client import (
    ReportValidationError,
    validate_business_date,
    validate_store_id,
)
from dspr.routers.dependencies import get_dashboard
from dspr.services.dashboard import Dashboard
from dspr.utils.logging import bind_report_context, get_logger

logger = get_logger(__name__)
router = APIRouter()


class FetchReportRequest(BaseModel):
    """Request to load the report for a store and business date."""

    store_id: str = Field(description="Franchise store id (NNNNN-NNNNN)")
    business_date: str = Field(description="Business date (YYYY-MM-DD)")
    force: bool = Field(default=False, description="Bypass the fresh-cache short-circuit")


def _fetch_outcome(dashboard: Dashboard) -> Any:
    store = dashboard.store
    if store.is_failed:
        return JSONResponse(
            status_code=502,
            content={
                "success": False,
                "error": store.error.model_dump(mode="json") if store.error else None,
                "data": store.snapshot(),
            },
        )
    return {"success": True, "data": store.snapshot()}


@router.post("/fetch")
async def fetch_report(
    request: FetchReportRequest,
    dashboard: Dashboard = Depends(get_dashboard),
):
    """
    Fetch the report for a store/date.
    Served from cache when fresh data for the same key is already loaded.
    """
    try:
        validate_store_id(request.store_id)
        validate_business_date(request.business_date)
    except ReportValidationError as e:
        raise HTTPException(status_code=422, detail=e.to_api_error().model_dump())

    bind_report_context(request.store_id, request.business_date)
    logger.info(
        "fetch_report_request",
        store_id=request.store_id,
        business_date=request.business_date,
        force=request.force,
    )
    await dashboard.fetch(request.store_id, request.business_date, force=request.force)
    return _fetch_outcome(dashboard)


@router.post("/refetch")
async def refetch_report(dashboard: Dashboard = Depends(get_dashboard)):
    """Force a fetch for the last requested store/date."""
    if dashboard.store.current_request is None:
        raise HTTPException(status_code=409, detail="No previous request to refetch")
    await dashboard.store.refetch()
    return _fetch_outcome(dashboard)


@router.post("/invalidate")
async def invalidate_cache(dashboard: Dashboard = Depends(get_dashboard)):
    """Mark the cached report stale without discarding it."""
    dashboard.store.invalidate_cache()
    return {"success": True, "data": dashboard.store.snapshot()}


@router.post("/clear")
async def clear_report(dashboard: Dashboard = Depends(get_dashboard)):
    """Drop the report and every module view."""
    dashboard.clear_all()
    return {"success": True, "data": dashboard.store.snapshot()}


@router.post("/clear-error")
async def clear_error(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.store.clear_error()
    return {"success": True, "data": dashboard.store.snapshot()}


@router.get("/status")
async def report_status(dashboard: Dashboard = Depends(get_dashboard)):
    """Request status, cache freshness and module data availability."""
    data: Dict[str, Any] = dashboard.store.snapshot()
    data["modules"] = {
        name: {
            "has_data": service.has_data,
            "alert_count": service.alert_count,
        }
        for name, service in dashboard.services.items()
    }
    return {"success": True, "data": data}


@router.get("/raw")
async def raw_report(dashboard: Dashboard = Depends(get_dashboard)):
    """The normalized report currently held by the store."""
    report = dashboard.store.report
    if report is None:
        raise HTTPException(status_code=404, detail="No report loaded")
    return {"success": True, "data": report.model_dump(mode="json")}
