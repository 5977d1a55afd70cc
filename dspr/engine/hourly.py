"""
Hourly-aggregate deriver.

Sums the per-hour records into a daily-shaped StoreMetrics and grades it
with the shared engine against HourlyThresholds. The hourly feed only
carries sales, orders, channel splits and hot-and-ready promise counts;
metrics it does not carry are left out of grading instead of being scored
as zero.

Version: hourly_v1
"""

from datetime import datetime
from typing import Dict, List, Optional

import structlog

from dspr.engine.grading import generate_alerts, grade_from_score, score_metrics
from dspr.models.common import utc_now
from dspr.models.enums import (
    AlertCategory,
    AlertImpact,
    AlertPriority,
    AlertSeverity,
    MetricDirection,
)
from dspr.models.grading import AlertRule, ThresholdRule
from dspr.models.hourly import (
    HourBreakdown,
    HourlyConfig,
    HourlyFilter,
    HourlyQualitySummary,
    HourlySalesSummary,
    HourlyThresholds,
    HourlyView,
)
from dspr.models.report import HourlySales, HourRecord, StoreMetrics

logger = structlog.get_logger()

HIGHER = MetricDirection.HIGHER_BETTER
LOWER = MetricDirection.LOWER_BETTER


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    return numerator / denominator * scale if denominator > 0 else 0.0


# =============================================================================
# Aggregation
# =============================================================================


def aggregate_hours(hourly: HourlySales) -> StoreMetrics:
    """
    Sum the hours into daily-shaped totals.

    Order count stands in for customer count. Ratios are 0 when their
    denominator is 0.
    """
    hours = hourly.hours
    total_sales = sum(h.total_sales for h in hours)
    orders = sum(h.order_count for h in hours)
    website = sum(h.website for h in hours)
    mobile = sum(h.mobile for h in hours)
    hnr_transactions = sum(h.hnr_transactions for h in hours)
    hnr_met = sum(h.hnr_promise_met_transactions for h in hours)

    return StoreMetrics(
        total_sales=total_sales,
        customer_count=orders,
        phone=sum(h.phone_sales for h in hours),
        call_center_agent=sum(h.call_center_agent for h in hours),
        drive_thru_sales=sum(h.drive_thru for h in hours),
        website=website,
        mobile=mobile,
        average_ticket=_ratio(total_sales, orders),
        digital_sales_percent=_ratio(website + mobile, total_sales),
        hnr_transactions=hnr_transactions,
        hnr_promise_met_transactions=hnr_met,
        hnr_promise_met_percent=_ratio(hnr_met, hnr_transactions, 100),
        hnr_promise_broken_percent=_ratio(hnr_transactions - hnr_met, hnr_transactions, 100),
    )


def hour_breakdown(hours: List[HourRecord], day_total: float) -> List[HourBreakdown]:
    return [
        HourBreakdown(
            hour=h.hour,
            total_sales=h.total_sales,
            order_count=h.order_count,
            average_ticket=_ratio(h.total_sales, h.order_count),
            digital_sales=h.website + h.mobile,
            digital_percent=_ratio(h.website + h.mobile, h.total_sales),
            hnr_promise_met_percent=_ratio(h.hnr_promise_met_transactions, h.hnr_transactions, 100),
            share_of_day=_ratio(h.total_sales, day_total),
        )
        for h in sorted(hours, key=lambda record: record.hour)
    ]


def peak_hour(breakdown: List[HourBreakdown]) -> Optional[HourBreakdown]:
    """Highest-sales hour; the earliest wins a tie. None for an empty or zero-sales day."""
    best: Optional[HourBreakdown] = None
    for line in breakdown:
        if line.total_sales > 0 and (best is None or line.total_sales > best.total_sales):
            best = line
    return best


# =============================================================================
# Threshold tables
# =============================================================================


def hourly_rules(thresholds: HourlyThresholds) -> List[ThresholdRule]:
    return [
        ThresholdRule(metric="labor", label="Labor", threshold=thresholds.max_labor_percent, direction=LOWER, penalty=15),
        ThresholdRule(metric="waste", label="Waste", threshold=thresholds.max_waste_percent, direction=LOWER, penalty=15),
        ThresholdRule(
            metric="customer_service",
            label="Customer Service",
            threshold=thresholds.min_customer_service,
            direction=HIGHER,
            penalty=20,
        ),
        ThresholdRule(
            metric="portal_usage",
            label="Portal Usage",
            threshold=thresholds.min_portal_usage_rate,
            direction=HIGHER,
            penalty=10,
        ),
        ThresholdRule(
            metric="portal_on_time",
            label="Portal On-Time",
            threshold=thresholds.min_portal_on_time_rate,
            direction=HIGHER,
            penalty=10,
        ),
        ThresholdRule(
            metric="hnr_promise_met",
            label="HNR Promise Met",
            threshold=thresholds.min_promise_met_percent,
            direction=HIGHER,
            penalty=15,
        ),
        ThresholdRule(
            metric="digital",
            label="Digital Sales",
            threshold=thresholds.min_digital_percent,
            direction=HIGHER,
            penalty=10,
        ),
        ThresholdRule(
            metric="customer_count",
            label="Customer Count",
            threshold=thresholds.min_customer_count_percent,
            direction=HIGHER,
            penalty=5,
        ),
    ]


def hourly_alert_rules(thresholds: HourlyThresholds) -> List[AlertRule]:
    return [
        AlertRule(
            metric="labor",
            title="Labor Above Target",
            category=AlertCategory.COST_CONTROL,
            direction=LOWER,
            threshold=thresholds.max_labor_percent,
            escalation_factor=1.2,
            escalated_severity=AlertSeverity.CRITICAL,
            priority=AlertPriority.HIGH,
            impact=AlertImpact.HIGH,
            message="Labor percentage exceeds target ({actual:.1%})",
        ),
        AlertRule(
            metric="waste",
            title="Waste Above Target",
            category=AlertCategory.COST_CONTROL,
            direction=LOWER,
            threshold=thresholds.max_waste_percent,
            escalation_factor=1.5,
            escalated_severity=AlertSeverity.ERROR,
            priority=AlertPriority.HIGH,
            impact=AlertImpact.MEDIUM,
            message="Waste percentage exceeds target ({actual:.1%})",
        ),
        AlertRule(
            metric="customer_service",
            title="Customer Service Below Target",
            category=AlertCategory.QUALITY,
            direction=HIGHER,
            threshold=thresholds.min_customer_service,
            escalation_factor=0.85,
            escalated_severity=AlertSeverity.CRITICAL,
            priority=AlertPriority.URGENT,
            impact=AlertImpact.HIGH,
            message="Customer service score below target ({actual:.1%})",
        ),
        AlertRule(
            metric="hnr_promise_met",
            title="HNR Promise Rate Below Target",
            category=AlertCategory.QUALITY,
            direction=HIGHER,
            threshold=thresholds.min_promise_met_percent,
            escalation_factor=0.8,
            escalated_severity=AlertSeverity.ERROR,
            priority=AlertPriority.HIGH,
            impact=AlertImpact.HIGH,
            message="HNR promise rate below target ({actual:.1f}%)",
            recommendations=["Check hot-and-ready holding times during peak hours"],
        ),
        AlertRule(
            metric="portal_usage",
            title="Portal Usage Below Target",
            category=AlertCategory.OPERATIONAL,
            direction=HIGHER,
            threshold=thresholds.min_portal_usage_rate,
            priority=AlertPriority.MEDIUM,
            impact=AlertImpact.MEDIUM,
            message="Portal usage rate below target ({actual:.1%})",
        ),
        AlertRule(
            metric="digital",
            title="Digital Sales Below Target",
            category=AlertCategory.OPERATIONAL,
            direction=HIGHER,
            threshold=thresholds.min_digital_percent,
            severity=AlertSeverity.INFO,
            priority=AlertPriority.LOW,
            impact=AlertImpact.LOW,
            message="Digital sales below target ({actual:.1%})",
        ),
        AlertRule(
            metric="overshort",
            title="Over/Short Above Threshold",
            category=AlertCategory.FINANCIAL,
            direction=LOWER,
            threshold=thresholds.max_overshort,
            escalation_factor=2.0,
            escalated_severity=AlertSeverity.ERROR,
            priority=AlertPriority.HIGH,
            impact=AlertImpact.MEDIUM,
            message="Over/short exceeds threshold (${actual:.2f})",
        ),
    ]


def hourly_values(aggregate: StoreMetrics) -> Dict[str, Optional[float]]:
    """Metric values the hourly feed actually measures; the rest are None."""
    has_hnr = bool(aggregate.hnr_transactions)
    return {
        "labor": None,
        "waste": None,
        "customer_service": None,
        "portal_usage": None,
        "portal_on_time": None,
        "customer_count": None,
        "overshort": None,
        "hnr_promise_met": aggregate.hnr_promise_met_percent if has_hnr else None,
        "digital": aggregate.digital_sales_percent if aggregate.total_sales > 0 else None,
    }


# =============================================================================
# Summaries and filter
# =============================================================================


def summarize_sales(aggregate: StoreMetrics) -> HourlySalesSummary:
    return HourlySalesSummary(
        total_sales=aggregate.total_sales,
        order_count=aggregate.customer_count,
        average_ticket=aggregate.average_ticket,
        phone_sales=aggregate.phone,
        call_center_sales=aggregate.call_center_agent,
        drive_thru_sales=aggregate.drive_thru_sales,
        website_sales=aggregate.website,
        mobile_sales=aggregate.mobile,
        digital_sales=aggregate.digital_sales,
        digital_percent=aggregate.digital_sales_percent,
    )


def summarize_quality(aggregate: StoreMetrics) -> HourlyQualitySummary:
    return HourlyQualitySummary(
        hnr_transactions=aggregate.hnr_transactions or 0.0,
        hnr_promises_met=aggregate.hnr_promise_met_transactions or 0.0,
        hnr_promise_met_percent=aggregate.hnr_promise_met_percent or 0.0,
        hnr_promise_broken_percent=aggregate.hnr_promise_broken_percent or 0.0,
    )


def matches_filter(view: HourlyView, hourly_filter: HourlyFilter) -> bool:
    data = view.aggregate
    if hourly_filter.min_sales is not None and data.total_sales < hourly_filter.min_sales:
        return False
    if hourly_filter.max_labor_percent is not None and data.labor > hourly_filter.max_labor_percent:
        return False
    if hourly_filter.max_waste_percent is not None and data.waste_fraction > hourly_filter.max_waste_percent:
        return False
    if (
        hourly_filter.min_customer_service is not None
        and data.customer_service < hourly_filter.min_customer_service
    ):
        return False
    if (
        hourly_filter.min_digital_percent is not None
        and data.digital_sales_percent < hourly_filter.min_digital_percent
    ):
        return False
    if hourly_filter.alerts_only and not view.alerts:
        return False
    return True


# =============================================================================
# Derivation
# =============================================================================


def derive_hourly(
    hourly: HourlySales,
    store_id: str,
    business_date: str,
    config: Optional[HourlyConfig] = None,
    processed_at: Optional[datetime] = None,
) -> HourlyView:
    """
    Derive the hourly-aggregate view.

    Args:
        hourly: Per-hour records for the day
        store_id: Store identity
        business_date: Business date
        config: Thresholds, filter, bands and alert settings
        processed_at: Timestamp to stamp on the view (defaults to now)

    Returns:
        HourlyView
    """
    config = config or HourlyConfig()
    aggregate = aggregate_hours(hourly)
    breakdown = hour_breakdown(hourly.hours, aggregate.total_sales)

    values = hourly_values(aggregate)
    result = score_metrics(values, hourly_rules(config.thresholds))
    alerts = generate_alerts(values, hourly_alert_rules(config.thresholds), config.alert_settings)

    view = HourlyView(
        store_id=store_id,
        business_date=business_date,
        aggregate=aggregate,
        sales=summarize_sales(aggregate),
        quality=summarize_quality(aggregate),
        hours=breakdown,
        peak_hour=peak_hour(breakdown),
        score=result.score,
        grade=grade_from_score(result.score, config.grade_bands),
        violations=result.violations,
        alerts=alerts,
        processed_at=processed_at or utc_now(),
    )
    view = view.model_copy(update={"matches_filter": matches_filter(view, config.filter)})

    logger.debug(
        "hourly_view_derived",
        store_id=store_id,
        business_date=business_date,
        hours=len(breakdown),
        score=view.score,
        grade=view.grade.value,
        peak_hour=view.peak_hour.hour if view.peak_hour else None,
    )
    return view
