"""
Shared request, cache and error models.

These shapes are produced by the report client and the report store and are
read by every derivation service and the HTTP layer.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import (
    AlertCategory,
    AlertImpact,
    AlertPriority,
    AlertSeverity,
    DeliveryPlatform,
)


def utc_now() -> datetime:
    """Current UTC time as a naive datetime; all package timestamps are naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ApiError(BaseModel):
    """
    Single structured error shape surfaced by the report client.

    Attributes:
        message: Human readable message
        status: HTTP status, None when no response was received
        code: Machine readable code (VALIDATION_ERROR, NETWORK_ERROR, ...)
        details: Response body or extra context
    """

    message: str = Field(description="Human readable error message")
    status: Optional[int] = Field(default=None, description="HTTP status code if any")
    code: Optional[str] = Field(default=None, description="Machine readable error code")
    details: Optional[Any] = Field(default=None, description="Extra error context")


def format_api_error(error: ApiError) -> str:
    """Render an ApiError as '[status] (code) message', omitting absent parts."""
    parts = []
    if error.status is not None:
        parts.append(f"[{error.status}]")
    if error.code:
        parts.append(f"({error.code})")
    parts.append(error.message)
    return " ".join(parts)


class RetryConfig(BaseModel):
    """Retry and exponential backoff policy for report fetches."""

    max_attempts: int = Field(default=3, ge=1, description="Total attempts including the first")
    base_delay_ms: int = Field(default=500, ge=0, description="Delay before the first retry")
    max_delay_ms: int = Field(default=10000, ge=0, description="Upper bound for any delay")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Growth per attempt")
    jitter_ms: int = Field(default=100, ge=0, description="Max random jitter added per delay")


class CacheState(BaseModel):
    """
    Cache freshness flag plus expiry.

    is_fresh is stored as set at fetch time; callers should use
    fresh_at(now) which re-evaluates expiry lazily.
    """

    is_fresh: bool = Field(default=False, description="Freshness flag set on success")
    expires_at: Optional[datetime] = Field(default=None, description="Expiry timestamp")

    def fresh_at(self, now: datetime) -> bool:
        return self.is_fresh and self.expires_at is not None and now < self.expires_at


class CurrentRequest(BaseModel):
    """Most recent (store, date) request, used for refetch."""

    store_id: str
    business_date: str
    requested_at: datetime


class FilteringValues(BaseModel):
    """Report metadata block: store, date, week bounds and lookback window."""

    store: str = Field(description="Franchise store id")
    date: str = Field(description="Business date (YYYY-MM-DD)")
    items: List[int] = Field(default_factory=list, description="Item codes")
    week: int = Field(default=0, ge=0, description="Week number of the year")
    week_start_date: str = Field(description="Week start (YYYY-MM-DD)")
    week_end_date: str = Field(description="Week end (YYYY-MM-DD)")
    look_back_start: str = Field(description="Lookback window start")
    look_back_end: str = Field(description="Lookback window end")
    deposit_delivery_url: str = Field(default="", description="Deposit delivery link")

    @field_validator("items", mode="before")
    @classmethod
    def coerce_items(cls, v: Any) -> List[int]:
        """Drop non-numeric item codes instead of rejecting the report."""
        if v is None:
            return []
        result = []
        for item in v:
            try:
                result.append(int(item))
            except (TypeError, ValueError):
                continue
        return result


class Alert(BaseModel):
    """
    A derived alert for a single metric breach.

    Regenerated on every derivation, never persisted.
    """

    model_config = ConfigDict(frozen=True)

    severity: AlertSeverity = Field(description="Alert severity")
    priority: AlertPriority = Field(description="Ranking priority")
    metric: str = Field(description="Metric name")
    title: str = Field(default="", description="Short title")
    message: str = Field(description="Human readable message")
    current_value: Any = Field(default=None, description="Observed value")
    target_value: Optional[float] = Field(default=None, description="Target or threshold")
    variance: Optional[float] = Field(default=None, description="Variance vs target, percent")
    category: Optional[AlertCategory] = Field(default=None, description="Business area")
    platform: Optional[DeliveryPlatform] = Field(default=None, description="Delivery platform")
    impact: Optional[AlertImpact] = Field(default=None, description="Estimated impact")
    recommendations: List[str] = Field(default_factory=list, description="Suggested actions")
