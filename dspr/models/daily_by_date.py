"""
Daily-by-date view and configuration models.

Each day of the week is compared with the same weekday of the previous week;
the view adds a timeline, averages, best/worst day and a weekday pattern.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .common import utc_now
from .enums import DailySortKey, DayTrend
from .report import DayEntry


class DayComparisonThresholds(BaseModel):
    """Sales-change bands for day trends, as fractions."""

    significant_change: float = Field(default=0.10, ge=0)
    improvement: float = Field(default=0.02, ge=0)
    decline: float = Field(default=-0.02, le=0)

    @model_validator(mode="after")
    def validate_order(self) -> "DayComparisonThresholds":
        if self.significant_change < self.improvement:
            raise ValueError("significant_change must be >= improvement")
        return self


class DailyByDateFilter(BaseModel):
    start_date: Optional[str] = Field(default=None, description="Inclusive YYYY-MM-DD")
    end_date: Optional[str] = Field(default=None, description="Inclusive YYYY-MM-DD")
    days_of_week: Optional[List[int]] = Field(default=None, description="0 = Sunday ... 6 = Saturday")
    min_sales: Optional[float] = Field(default=None, ge=0)
    improvement_only: bool = False
    decline_only: bool = False
    min_customer_service: Optional[float] = Field(default=None, ge=0, le=1)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def truncate_date(cls, v):
        if isinstance(v, str) and len(v) > 10:
            return v[:10]
        return v

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v):
        if v is not None and any(day < 0 or day > 6 for day in v):
            raise ValueError("days_of_week entries must be between 0 and 6")
        return v


class DailyByDateConfig(BaseModel):
    filter: DailyByDateFilter = Field(default_factory=DailyByDateFilter)
    sort: DailySortKey = DailySortKey.DATE_ASC
    comparison_thresholds: DayComparisonThresholds = Field(default_factory=DayComparisonThresholds)


class DayComparison(BaseModel):
    date: str
    day_of_week: int
    day_name: str
    sales_change: float
    sales_change_percent: float
    customer_change: float
    customer_change_percent: float
    avg_ticket_change: float
    avg_ticket_change_percent: float
    labor_change: float
    digital_change: float
    waste_change: float
    customer_service_change: float
    trend: DayTrend


class Timeline(BaseModel):
    """Date-ordered series for charting."""

    dates: List[str] = Field(default_factory=list)
    sales: List[float] = Field(default_factory=list)
    customers: List[float] = Field(default_factory=list)
    avg_ticket: List[float] = Field(default_factory=list)
    labor_percent: List[float] = Field(default_factory=list)
    digital_percent: List[float] = Field(default_factory=list)
    waste_percent: List[float] = Field(default_factory=list)
    customer_service: List[float] = Field(default_factory=list)
    prev_week_sales: List[float] = Field(default_factory=list)
    prev_week_customers: List[float] = Field(default_factory=list)


class DailyAverages(BaseModel):
    avg_sales: float = 0.0
    avg_customers: float = 0.0
    avg_ticket: float = 0.0
    avg_labor_percent: float = 0.0
    avg_waste_percent: float = 0.0
    avg_digital_percent: float = 0.0
    avg_customer_service: float = 0.0
    sales_std_dev: float = Field(default=0.0, description="Population standard deviation")
    sales_variability: float = Field(default=0.0, description="Std dev over mean, 0 when mean is 0")


class DayOfWeekStats(BaseModel):
    day_of_week: int
    day_name: str
    avg_sales: float
    avg_customers: float
    avg_ticket: float
    occurrences: int
    rank: int = Field(description="1 = highest average sales")


class WeekPattern(BaseModel):
    breakdown: List[DayOfWeekStats] = Field(default_factory=list)
    strongest_day: Optional[DayOfWeekStats] = None
    weakest_day: Optional[DayOfWeekStats] = None
    weekday_avg_sales: float = 0.0
    weekend_avg_sales: float = 0.0
    weekend_weekday_ratio: float = 0.0


class DailyByDateView(BaseModel):
    store_id: str
    week: int
    entries: List[DayEntry] = Field(default_factory=list, description="Filtered and sorted days")
    comparisons: Dict[str, DayComparison] = Field(default_factory=dict)
    timeline: Timeline = Field(default_factory=Timeline)
    averages: DailyAverages = Field(default_factory=DailyAverages)
    best_day: Optional[DayEntry] = None
    worst_day: Optional[DayEntry] = None
    week_pattern: WeekPattern = Field(default_factory=WeekPattern)
    processed_at: datetime = Field(default_factory=utc_now)
