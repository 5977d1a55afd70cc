"""
Weekly view, comparison and configuration models.

Covers the current-week view (with week-over-week deltas), the
previous-week baseline view and the comparison/trend engine output.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from .common import Alert, utc_now
from .enums import (
    ComparisonDirection,
    GrowthIndicator,
    MetricFormat,
    PerformanceGrade,
    TrendSeverity,
)
from .grading import AlertSettings, GradeBands


# =============================================================================
# Configuration
# =============================================================================


class WeeklyThresholds(BaseModel):
    """Weekly performance thresholds. Ratios are fractions."""

    max_labor_percent: float = Field(default=0.25, ge=0, le=1)
    max_waste_percent: float = Field(default=0.08, ge=0, le=1)
    min_customer_service: float = Field(default=0.90, ge=0, le=1)
    min_portal_usage_rate: float = Field(default=0.95, ge=0, le=1)
    min_portal_on_time_rate: float = Field(default=0.95, ge=0, le=1)
    min_digital_percent: float = Field(default=0.40, ge=0, le=1)
    min_average_ticket: float = Field(default=12.0, ge=0)
    min_customer_count_percent: float = Field(default=0.80, ge=0)


class WeeklyFilter(BaseModel):
    """Optional predicates a weekly view must satisfy; None means unset."""

    min_sales: Optional[float] = Field(default=None, ge=0)
    max_labor_percent: Optional[float] = Field(default=None, ge=0, le=1)
    max_waste_percent: Optional[float] = Field(default=None, ge=0, le=1)
    min_customer_service: Optional[float] = Field(default=None, ge=0, le=1)
    min_digital_percent: Optional[float] = Field(default=None, ge=0, le=1)
    min_grade: Optional[PerformanceGrade] = None

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class WeeklyConfig(BaseModel):
    thresholds: WeeklyThresholds = Field(default_factory=WeeklyThresholds)
    filter: WeeklyFilter = Field(default_factory=WeeklyFilter)
    operating_days_per_week: int = Field(default=7, ge=1, le=7)
    grade_bands: GradeBands = Field(default_factory=GradeBands)
    alert_settings: AlertSettings = Field(default_factory=AlertSettings)


class ComparisonThresholds(BaseModel):
    """Percent-change bands for trend severity, as fractions."""

    significant_change: float = Field(default=0.02, ge=0, description="Moderate at or above")
    strong_change: float = Field(default=0.10, ge=0, description="Strong at or above")

    @model_validator(mode="after")
    def validate_order(self) -> "ComparisonThresholds":
        if self.strong_change < self.significant_change:
            raise ValueError("strong_change must be >= significant_change")
        return self


class WeeklyPreviousConfig(BaseModel):
    comparison_thresholds: ComparisonThresholds = Field(default_factory=ComparisonThresholds)
    operating_days_per_week: int = Field(default=7, ge=1, le=7)
    thresholds: WeeklyThresholds = Field(default_factory=WeeklyThresholds)
    grade_bands: GradeBands = Field(default_factory=GradeBands)
    alert_settings: AlertSettings = Field(default_factory=AlertSettings)


# =============================================================================
# Summaries
# =============================================================================


class WeeklyFinancialSummary(BaseModel):
    total_sales: float
    total_cash_sales: float
    total_tips: float
    total_waste: float
    waste_percent: float
    over_short: float
    cash_deposit_difference: float
    net_revenue: float
    daily_average_sales: float
    daily_average_tips: float


class WeeklyOperationalSummary(BaseModel):
    labor_cost: float
    labor_percent: float
    customer_count: float
    customer_count_percent: float
    average_ticket: float
    portal_eligible_transactions: float
    portal_usage_rate: float
    portal_on_time_rate: float
    daily_average_customers: float


class WeeklyQualitySummary(BaseModel):
    customer_service: float
    upselling: float
    portal_on_time_percent: float
    portal_usage_percent: float
    refunded_order_count: float
    modified_order_count: float
    refund_rate: float = Field(description="Refunds per customer, percent")


class WeeklySalesChannelSummary(BaseModel):
    digital_sales: float
    digital_percent: float
    phone_sales: float
    website_sales: float
    mobile_sales: float
    call_center_sales: float
    drive_thru_sales: float
    doordash_sales: float
    ubereats_sales: float
    grubhub_sales: float
    total_delivery_sales: float
    delivery_percent: float
    digital_growth_indicator: GrowthIndicator


class WeeklyCostControlSummary(BaseModel):
    total_waste: float
    waste_percent: float
    labor_percent: float
    over_short: float
    refunded_order_count: float
    modified_order_count: float
    cost_efficiency_score: float = Field(ge=0, le=100)


class WeeklyTrends(BaseModel):
    daily_average_sales: float
    daily_average_customers: float
    daily_average_ticket: float
    sales_per_customer: float
    operating_days: int
    week_progress: float = Field(ge=0, le=1)
    projected_week_total: Optional[float] = None
    annual_run_rate: float


class MetricChange(BaseModel):
    """Week-over-week change for one metric with a growth indicator."""

    metric: str
    current: float
    previous: float
    change: float
    change_percent: float
    indicator: GrowthIndicator


class WeeklyChangeSummary(BaseModel):
    sales: MetricChange
    customers: MetricChange
    average_ticket: MetricChange
    labor_percent: MetricChange
    waste_percent: MetricChange
    digital_percent: MetricChange
    customer_service: MetricChange
    overall_trend: GrowthIndicator


class WeeklyCurrentView(BaseModel):
    store_id: str
    week: int
    week_start_date: str
    week_end_date: str
    financial: WeeklyFinancialSummary
    operational: WeeklyOperationalSummary
    quality: WeeklyQualitySummary
    sales_channels: WeeklySalesChannelSummary
    cost_control: WeeklyCostControlSummary
    trends: WeeklyTrends
    comparison: Optional[WeeklyChangeSummary] = None
    score: float = Field(ge=0, le=100)
    grade: PerformanceGrade
    violations: List[str] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    matches_filter: bool = True
    processed_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Comparison and trend engine
# =============================================================================


class MetricComparison(BaseModel):
    key: str
    name: str
    current: float
    previous: float
    absolute_change: float
    percent_change: float = Field(description="Fraction, 0 when previous is 0")
    direction: ComparisonDirection
    is_improvement: bool
    format: MetricFormat


class WeekOverWeekComparison(BaseModel):
    sales: MetricComparison
    customer_count: MetricComparison
    average_ticket: MetricComparison
    labor_percent: MetricComparison
    waste_percent: MetricComparison
    digital_percent: MetricComparison
    customer_service: MetricComparison
    portal_on_time: MetricComparison
    improved_count: int
    declined_count: int
    overall_trend: ComparisonDirection

    def metrics(self) -> List[MetricComparison]:
        return [
            self.sales,
            self.customer_count,
            self.average_ticket,
            self.labor_percent,
            self.waste_percent,
            self.digital_percent,
            self.customer_service,
            self.portal_on_time,
        ]


class TrendAnalysis(BaseModel):
    direction: ComparisonDirection
    severity: TrendSeverity
    magnitude: float = Field(ge=0)
    description: str
    action_recommended: bool


class MultiMetricTrendAnalysis(BaseModel):
    sales: TrendAnalysis
    customer: TrendAnalysis
    operational_efficiency: TrendAnalysis
    quality: TrendAnalysis
    digital_adoption: TrendAnalysis
    overall_health: TrendAnalysis

    def named_analyses(self) -> List[Tuple[str, TrendAnalysis]]:
        return [
            ("sales", self.sales),
            ("customer", self.customer),
            ("operational_efficiency", self.operational_efficiency),
            ("quality", self.quality),
            ("digital_adoption", self.digital_adoption),
            ("overall_health", self.overall_health),
        ]


class WeeklyPreviousView(BaseModel):
    """Previous-week baseline plus comparison against the current week."""

    store_id: str
    week: int
    week_start_date: str
    week_end_date: str
    financial: WeeklyFinancialSummary
    operational: WeeklyOperationalSummary
    quality: WeeklyQualitySummary
    sales_channels: WeeklySalesChannelSummary
    cost_control: WeeklyCostControlSummary
    score: float = Field(ge=0, le=100)
    grade: PerformanceGrade
    comparison: Optional[WeekOverWeekComparison] = None
    trend_analysis: Optional[MultiMetricTrendAnalysis] = None
    alerts: List[Alert] = Field(default_factory=list)
    processed_at: datetime = Field(default_factory=utc_now)
