"""
Shared router dependencies and response helpers.

The Dashboard lives on app.state and is built by the application lifespan;
tests replace it through app.dependency_overrides[get_dashboard].
"""

from typing import Any, Callable, Dict

from fastapi import HTTPException, Request
from pydantic import BaseModel, ValidationError

from dspr.services.base import DerivationService
from dspr.services.dashboard import Dashboard
from dspr.utils.logging import get_logger

logger = get_logger(__name__)


class AlertToggleRequest(BaseModel):
    """Enable or disable alert generation for a module."""

    enabled: bool


def get_dashboard(request: Request) -> Dashboard:
    """Return the application's Dashboard."""
    dashboard = getattr(request.app.state, "dashboard", None)
    if dashboard is None:
        raise HTTPException(status_code=503, detail="Dashboard not initialized")
    return dashboard


def module_payload(service: DerivationService) -> Dict[str, Any]:
    """Envelope for a module view."""
    return {"success": True, "data": service.snapshot()}


def alerts_payload(service: DerivationService) -> Dict[str, Any]:
    """Envelope for a module's alert lists."""
    return {
        "success": True,
        "data": {
            "module": service.name,
            "alerts_enabled": service.alerts_enabled,
            "alert_count": service.alert_count,
            "has_critical_alerts": service.has_critical_alerts,
            "alerts": [a.model_dump(mode="json") for a in service.alerts],
            "critical": [a.model_dump(mode="json") for a in service.critical_alerts],
            "urgent": [a.model_dump(mode="json") for a in service.urgent_alerts],
        },
    }


def config_payload(service: DerivationService) -> Dict[str, Any]:
    return {"success": True, "data": service.config.model_dump(mode="json")}


def apply_config_action(service: DerivationService, action: Callable[..., None], changes: Dict[str, Any]):
    """
    Run a config action with request-body changes and return the new config.

    Raises:
        HTTPException: 422 when the merged config fails validation
    """
    try:
        action(**changes)
    except ValidationError as e:
        logger.warning("config_action_rejected", module=service.name, errors=e.error_count())
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    except TypeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return config_payload(service)
