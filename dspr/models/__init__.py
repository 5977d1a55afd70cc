"""
Pydantic v2 data models for the DSPR dashboard.

Model Organization:
    - enums: Enumeration types shared by every module
    - common: ApiError, retry/cache/request state, FilteringValues, Alert
    - report: Canonical RawReport and its slices
    - grading: Threshold and alert tables for the shared grading engine
    - daily, weekly, hourly, dsqr, daily_by_date: Per-module views and config

Usage:
    >>> from dspr.models import RawReport, StoreMetrics
    >>> metrics = StoreMetrics(total_sales=12500.0, labor=0.22)
"""

from .common import Alert, ApiError, CacheState, CurrentRequest, FilteringValues, RetryConfig
from .report import DayEntry, DsqrReport, HourlySales, HourRecord, RawReport, StoreMetrics

__all__ = [
    "Alert",
    "ApiError",
    "CacheState",
    "CurrentRequest",
    "FilteringValues",
    "RetryConfig",
    "DayEntry",
    "DsqrReport",
    "HourlySales",
    "HourRecord",
    "RawReport",
    "StoreMetrics",
]
