"""API routers for all endpoints."""

from dspr.routers import daily, daily_by_date, dsqr, hourly, reports, system, weekly

__all__ = [
    "reports",
    "daily",
    "weekly",
    "hourly",
    "dsqr",
    "daily_by_date",
    "system",
]
