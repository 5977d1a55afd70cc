"""
Hourly-aggregate view and configuration models.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .common import Alert, utc_now
from .enums import PerformanceGrade
from .grading import AlertSettings, GradeBands
from .report import StoreMetrics


class HourlyThresholds(BaseModel):
    """Thresholds for the hourly aggregate. Promise-met is a percent, the rest fractions."""

    max_labor_percent: float = Field(default=0.25, ge=0, le=1)
    max_waste_percent: float = Field(default=0.08, ge=0, le=1)
    max_overshort: float = Field(default=10.0, ge=0, description="Max |over/short| in dollars")
    min_customer_service: float = Field(default=0.90, ge=0, le=1)
    min_promise_met_percent: float = Field(default=80.0, ge=0, le=100)
    min_upselling: float = Field(default=0.70, ge=0, le=1)
    min_customer_count_percent: float = Field(default=0.80, ge=0)
    min_portal_usage_rate: float = Field(default=0.95, ge=0, le=1)
    min_portal_on_time_rate: float = Field(default=0.95, ge=0, le=1)
    min_digital_percent: float = Field(default=0.40, ge=0, le=1)
    min_average_ticket: float = Field(default=12.0, ge=0)


class HourlyFilter(BaseModel):
    min_sales: Optional[float] = Field(default=None, ge=0)
    max_labor_percent: Optional[float] = Field(default=None, ge=0, le=1)
    max_waste_percent: Optional[float] = Field(default=None, ge=0, le=1)
    min_customer_service: Optional[float] = Field(default=None, ge=0, le=1)
    min_digital_percent: Optional[float] = Field(default=None, ge=0, le=1)
    alerts_only: bool = Field(default=False, description="Match only views that carry alerts")


class HourlyConfig(BaseModel):
    thresholds: HourlyThresholds = Field(default_factory=HourlyThresholds)
    filter: HourlyFilter = Field(default_factory=HourlyFilter)
    grade_bands: GradeBands = Field(default_factory=GradeBands)
    alert_settings: AlertSettings = Field(default_factory=AlertSettings)


class HourBreakdown(BaseModel):
    """Per-hour line of the day."""

    hour: int
    total_sales: float
    order_count: float
    average_ticket: float
    digital_sales: float
    digital_percent: float
    hnr_promise_met_percent: float
    share_of_day: float = Field(description="Fraction of the day's sales")


class HourlySalesSummary(BaseModel):
    total_sales: float
    order_count: float
    average_ticket: float
    phone_sales: float
    call_center_sales: float
    drive_thru_sales: float
    website_sales: float
    mobile_sales: float
    digital_sales: float
    digital_percent: float


class HourlyQualitySummary(BaseModel):
    hnr_transactions: float
    hnr_promises_met: float
    hnr_promise_met_percent: float
    hnr_promise_broken_percent: float


class HourlyView(BaseModel):
    """Daily-shaped view built from the hourly breakdown."""

    store_id: str
    business_date: str
    aggregate: StoreMetrics
    sales: HourlySalesSummary
    quality: HourlyQualitySummary
    hours: List[HourBreakdown] = Field(default_factory=list)
    peak_hour: Optional[HourBreakdown] = None
    score: float = Field(ge=0, le=100)
    grade: PerformanceGrade
    violations: List[str] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    matches_filter: bool = True
    processed_at: datetime = Field(default_factory=utc_now)
