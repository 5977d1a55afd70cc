"""
Daily view and configuration models.

The daily view is rebuilt from (StoreMetrics, DailyConfig) on every report
update or configuration change.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from .common import Alert, utc_now
from .enums import (
    ChannelPerformanceLevel,
    CostControlGrade,
    LetterGrade,
    PerformanceGrade,
    QualityGrade,
    SalesChannelType,
)
from .grading import AlertSettings, GradeBands


# =============================================================================
# Configuration
# =============================================================================


class DailyTargets(BaseModel):
    """Performance targets. Ratios are fractions, average ticket is dollars."""

    labor_cost: float = Field(default=0.25, ge=0, description="Max labor as fraction of sales")
    waste: float = Field(default=0.08, ge=0, description="Max waste as fraction of sales")
    customer_service: float = Field(default=0.90, ge=0, le=1, description="Min service score")
    digital_sales: float = Field(default=0.40, ge=0, le=1, description="Min digital share")
    portal_utilization: float = Field(default=0.95, ge=0, le=1, description="Min portal usage")
    portal_on_time: float = Field(default=0.95, ge=0, le=1, description="Min portal on-time")
    customer_count: float = Field(default=0.80, ge=0, description="Min customer count ratio")
    average_ticket: float = Field(default=12.0, ge=0, description="Min average ticket ($)")


class CostThresholds(BaseModel):
    max_labor_percentage: float = Field(default=0.25, ge=0, description="Labor ceiling (fraction)")
    max_waste_percentage: float = Field(default=8.0, ge=0, description="Waste ceiling (percent)")


class DailyConfig(BaseModel):
    targets: DailyTargets = Field(default_factory=DailyTargets)
    alert_settings: AlertSettings = Field(default_factory=AlertSettings)
    cost_thresholds: CostThresholds = Field(default_factory=CostThresholds)
    grade_bands: GradeBands = Field(default_factory=GradeBands)


# =============================================================================
# Category summaries
# =============================================================================


class FinancialSummary(BaseModel):
    total_sales: float
    cash_sales: float
    digital_sales: float
    average_ticket: float
    tips: float
    cash_variance: float
    labor_cost_percentage: float
    revenue_per_customer: float
    financial_score: float
    performance_grade: LetterGrade


class OperationalSummary(BaseModel):
    customer_count: float
    customer_count_percentage: float
    total_orders: float
    portal_utilization: float
    portal_on_time_percentage: float
    modification_rate: float
    refund_rate: float
    efficiency_score: float


class ChannelPerformance(BaseModel):
    channel: SalesChannelType
    sales: float
    percentage: float = Field(description="Share of total sales, percent")
    orders: int
    average_order_value: float
    performance_level: ChannelPerformanceLevel


class SalesChannelSummary(BaseModel):
    traditional: ChannelPerformance
    digital: ChannelPerformance
    delivery: ChannelPerformance
    phone: ChannelPerformance
    top_channel: SalesChannelType
    digital_adoption_rate: float


class QualitySummary(BaseModel):
    customer_service_score: float
    order_accuracy: float = Field(description="Percent of orders neither refunded nor modified")
    service_consistency: float = Field(description="Mean of portal usage and on-time, percent")
    quality_score: float
    quality_grade: QualityGrade


class CostControlSummary(BaseModel):
    total_waste: float
    waste_percentage: float = Field(description="Waste as percent of sales")
    labor_efficiency: float
    cost_control_grade: CostControlGrade


# =============================================================================
# View
# =============================================================================


class DailyView(BaseModel):
    """Graded, alerted view of one business day."""

    store_id: str
    business_date: str
    financial: FinancialSummary
    operational: OperationalSummary
    sales_channels: SalesChannelSummary
    quality: QualitySummary
    cost_control: CostControlSummary
    score: float = Field(ge=0, le=100)
    grade: PerformanceGrade
    violations: List[str] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    processed_at: datetime = Field(default_factory=utc_now)
