"""
Enumeration types for the DSPR dashboard.

All enums inherit from str to ensure JSON serialization compatibility.
Ordered enums (grades, priorities, platforms) declare members in rank order;
helpers below rely on that declaration order.
"""

from enum import Enum


class ApiStatus(str, Enum):
    """Lifecycle status of the report request."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StoreEventType(str, Enum):
    """Events emitted by the report store to its subscribers."""

    REPORT_UPDATED = "report_updated"
    FETCH_FAILED = "fetch_failed"
    CLEARED = "cleared"


# =============================================================================
# Alerts
# =============================================================================


class AlertSeverity(str, Enum):
    """Alert severity, lowest to highest."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AlertPriority(str, Enum):
    """Alert priority, used to rank alert lists."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    AlertPriority.URGENT: 4,
    AlertPriority.HIGH: 3,
    AlertPriority.MEDIUM: 2,
    AlertPriority.LOW: 1,
}


class AlertCategory(str, Enum):
    """Business area an alert belongs to."""

    FINANCIAL = "financial"
    OPERATIONAL = "operational"
    QUALITY = "quality"
    COST_CONTROL = "cost_control"
    SALES = "sales"
    CUSTOMER = "customer"
    DIGITAL = "digital"
    DELIVERY = "delivery"


class AlertImpact(str, Enum):
    """Estimated business impact of an alert."""

    SEVERE = "severe"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# =============================================================================
# Grades
# =============================================================================


class PerformanceGrade(str, Enum):
    """Overall grade derived from a 0-100 score via bands."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    CRITICAL = "Critical"


GRADE_RANK = {
    PerformanceGrade.CRITICAL: 0,
    PerformanceGrade.POOR: 1,
    PerformanceGrade.FAIR: 2,
    PerformanceGrade.GOOD: 3,
    PerformanceGrade.EXCELLENT: 4,
}


class LetterGrade(str, Enum):
    """School-style letter grade."""

    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D_PLUS = "D+"
    D = "D"
    F = "F"


class QualityGrade(str, Enum):
    PREMIUM = "premium"
    HIGH = "high"
    STANDARD = "standard"
    BELOW_STANDARD = "below_standard"
    CRITICAL = "critical"


class CostControlGrade(str, Enum):
    OPTIMAL = "optimal"
    EFFICIENT = "efficient"
    ACCEPTABLE = "acceptable"
    CONCERNING = "concerning"
    CRITICAL = "critical"


class ChannelPerformanceLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    BELOW_AVERAGE = "below_average"


class PlatformPerformanceLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"


class SalesChannelType(str, Enum):
    TRADITIONAL = "traditional"
    DIGITAL = "digital"
    DELIVERY = "delivery"
    PHONE = "phone"


# =============================================================================
# Trends
# =============================================================================


class GrowthIndicator(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    FLAT = "flat"
    DECLINING = "declining"


class ComparisonDirection(str, Enum):
    IMPROVED = "improved"
    DECLINED = "declined"
    UNCHANGED = "unchanged"


class TrendSeverity(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


SEVERITY_RANK = {
    TrendSeverity.WEAK: 0,
    TrendSeverity.MODERATE: 1,
    TrendSeverity.STRONG: 2,
}


class DayTrend(str, Enum):
    """Day-over-same-day-last-week sales trend."""

    SIGNIFICANT_IMPROVEMENT = "significant_improvement"
    IMPROVEMENT = "improvement"
    STABLE = "stable"
    DECLINE = "decline"
    SIGNIFICANT_DECLINE = "significant_decline"


# =============================================================================
# Delivery platforms
# =============================================================================


class DeliveryPlatform(str, Enum):
    """Third-party delivery platforms, in tie-break order."""

    DOORDASH = "doordash"
    UBEREATS = "ubereats"
    GRUBHUB = "grubhub"


class TrackingStatus(str, Enum):
    """Server-asserted KPI tracking status."""

    ON_TRACK = "on_track"
    OFF_TRACK = "off_track"
    NOT_APPLICABLE = "not_applicable"


class MetricUnit(str, Enum):
    RATING = "rating"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    TIME_MINUTES = "time_minutes"
    TIME_HOURS = "time_hours"
    COUNT = "count"


class MetricFormat(str, Enum):
    """Display format for week-over-week comparisons."""

    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    NUMBER = "number"


class DailySortKey(str, Enum):
    DATE_ASC = "date_asc"
    DATE_DESC = "date_desc"
    SALES_DESC = "sales_desc"
    CUSTOMERS_DESC = "customers_desc"
    AVG_TICKET_DESC = "avg_ticket_desc"
    SALES_CHANGE_DESC = "sales_change_desc"
    SERVICE_DESC = "service_desc"


class MetricDirection(str, Enum):
    """Polarity of a metric: which way is good."""

    HIGHER_BETTER = "higher_better"
    LOWER_BETTER = "lower_better"
