"""
Weekly-current metrics deriver.

Summarizes the current week aggregate, grades it against WeeklyThresholds
through the shared engine and, when the previous week is available, adds
week-over-week deltas with growth indicators.

The weekly summary builders here are shared with the previous-week deriver.

Version: weekly_current_v1
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import structlog

from dspr.engine.grading import generate_alerts, grade_from_score, score_metrics
from dspr.models.common import utc_now
from dspr.models.enums import (
    GRADE_RANK,
    AlertCategory,
    AlertImpact,
    AlertPriority,
    AlertSeverity,
    GrowthIndicator,
    MetricDirection,
)
from dspr.models.grading import AlertRule, ThresholdRule
from dspr.models.report import StoreMetrics
from dspr.models.weekly import (
    MetricChange,
    WeeklyChangeSummary,
    WeeklyConfig,
    WeeklyCostControlSummary,
    WeeklyCurrentView,
    WeeklyFilter,
    WeeklyFinancialSummary,
    WeeklyOperationalSummary,
    WeeklyQualitySummary,
    WeeklySalesChannelSummary,
    WeeklyThresholds,
    WeeklyTrends,
)

logger = structlog.get_logger()

HIGHER = MetricDirection.HIGHER_BETTER
LOWER = MetricDirection.LOWER_BETTER

WEEKS_PER_YEAR = 52

# Growth indicator bands on change percent (fractions)
STRONG_GROWTH = 0.05
MODERATE_GROWTH = 0.01
FLAT_FLOOR = -0.01


# =============================================================================
# Helpers
# =============================================================================


def parse_report_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a report date or timestamp into a naive datetime; None if unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def week_progress(week_start: str, week_end: str, as_of: datetime) -> float:
    """
    Fraction of the week elapsed at as_of, clamped to [0, 1].

    A date-only week end includes that whole day. Unparseable bounds count
    as a complete week.
    """
    start = parse_report_datetime(week_start)
    end = parse_report_datetime(week_end)
    if start is None or end is None or end < start:
        return 1.0
    if len(week_end) == 10:
        end += timedelta(days=1)
    if as_of <= start:
        return 0.0
    if as_of >= end:
        return 1.0
    return min(1.0, max(0.0, (as_of - start) / (end - start)))


def project_week_total(current_total: float, progress: float) -> float:
    if progress <= 0:
        return 0.0
    if progress >= 1:
        return current_total
    return current_total / progress


def growth_indicator(change_percent: float) -> GrowthIndicator:
    if change_percent >= STRONG_GROWTH:
        return GrowthIndicator.STRONG
    if change_percent >= MODERATE_GROWTH:
        return GrowthIndicator.MODERATE
    if change_percent >= FLAT_FLOOR:
        return GrowthIndicator.FLAT
    return GrowthIndicator.DECLINING


def metric_change(metric: str, current: float, previous: float) -> MetricChange:
    change = current - previous
    change_percent = change / previous if previous != 0 else 0.0
    return MetricChange(
        metric=metric,
        current=current,
        previous=previous,
        change=change,
        change_percent=change_percent,
        indicator=growth_indicator(change_percent),
    )


# =============================================================================
# Threshold tables
# =============================================================================


def weekly_rules(thresholds: WeeklyThresholds) -> List[ThresholdRule]:
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
            penalty=10,
        ),
        ThresholdRule(
            metric="average_ticket",
            label="Average Ticket",
            threshold=thresholds.min_average_ticket,
            direction=HIGHER,
            penalty=10,
        ),
    ]


def weekly_alert_rules(thresholds: WeeklyThresholds) -> List[AlertRule]:
    return [
        AlertRule(
            metric="labor",
            title="Weekly Labor Above Threshold",
            category=AlertCategory.COST_CONTROL,
            direction=LOWER,
            threshold=thresholds.max_labor_percent,
            escalation_factor=1.2,
            escalated_severity=AlertSeverity.CRITICAL,
            priority=AlertPriority.HIGH,
            urgent_variance=20,
            impact=AlertImpact.HIGH,
            message="Weekly labor is {abs_variance:.1f}% above threshold",
            recommendations=["Rebalance shifts against weekly sales curve"],
        ),
        AlertRule(
            metric="waste",
            title="Weekly Waste Above Threshold",
            category=AlertCategory.COST_CONTROL,
            direction=LOWER,
            threshold=thresholds.max_waste_percent,
            escalation_factor=1.5,
            escalated_severity=AlertSeverity.ERROR,
            priority=AlertPriority.HIGH,
            impact=AlertImpact.MEDIUM,
            message="Weekly waste is {abs_variance:.1f}% above threshold",
            recommendations=["Review prep levels and inventory rotation"],
        ),
        AlertRule(
            metric="customer_service",
            title="Weekly Customer Service Below Threshold",
            category=AlertCategory.QUALITY,
            direction=HIGHER,
            threshold=thresholds.min_customer_service,
            escalation_factor=0.85,
            escalated_severity=AlertSeverity.CRITICAL,
            priority=AlertPriority.URGENT,
            impact=AlertImpact.HIGH,
            message="Weekly customer service is {abs_variance:.1f}% below threshold",
            recommendations=["Review complaints logged this week"],
        ),
        AlertRule(
            metric="digital",
            title="Weekly Digital Sales Below Threshold",
            category=AlertCategory.SALES,
            direction=HIGHER,
            threshold=thresholds.min_digital_percent,
            severity=AlertSeverity.INFO,
            priority=AlertPriority.MEDIUM,
            impact=AlertImpact.LOW,
            message="Weekly digital share is {abs_variance:.1f}% below threshold",
            recommendations=["Promote online ordering channels"],
        ),
        AlertRule(
            metric="portal_usage",
            title="Weekly Portal Usage Below Threshold",
            category=AlertCategory.OPERATIONAL,
            direction=HIGHER,
            threshold=thresholds.min_portal_usage_rate,
            priority=AlertPriority.MEDIUM,
            impact=AlertImpact.MEDIUM,
            message="Weekly portal usage is {abs_variance:.1f}% below threshold",
            recommendations=["Ensure all eligible orders are put into the portal"],
        ),
    ]


def weekly_values(data: StoreMetrics) -> Dict[str, Optional[float]]:
    return {
        "labor": data.labor,
        "waste": data.waste_fraction,
        "customer_service": data.customer_service,
        "portal_usage": data.put_into_portal_percent,
        "portal_on_time": data.in_portal_on_time_percent,
        "digital": data.digital_sales_percent,
        "customer_count": data.customer_count_percent,
        "average_ticket": data.average_ticket,
    }


# =============================================================================
# Summaries (shared with the previous-week deriver)
# =============================================================================


def summarize_financial(data: StoreMetrics, operating_days: int) -> WeeklyFinancialSummary:
    return WeeklyFinancialSummary(
        total_sales=data.total_sales,
        total_cash_sales=data.total_cash_sales,
        total_tips=data.total_tips,
        total_waste=data.total_waste,
        waste_percent=data.waste_fraction,
        over_short=data.over_short,
        cash_deposit_difference=data.cash_sales_vs_deposit_difference,
        net_revenue=data.total_sales - data.total_waste - abs(data.over_short),
        daily_average_sales=data.total_sales / operating_days,
        daily_average_tips=data.total_tips / operating_days,
    )


def summarize_operational(data: StoreMetrics, operating_days: int) -> WeeklyOperationalSummary:
    return WeeklyOperationalSummary(
        labor_cost=data.total_sales * data.labor,
        labor_percent=data.labor,
        customer_count=data.customer_count,
        customer_count_percent=data.customer_count_percent,
        average_ticket=data.average_ticket,
        portal_eligible_transactions=data.total_portal_eligible_transactions,
        portal_usage_rate=data.put_into_portal_percent,
        portal_on_time_rate=data.in_portal_on_time_percent,
        daily_average_customers=data.customer_count / operating_days,
    )


def summarize_quality(data: StoreMetrics) -> WeeklyQualitySummary:
    refund_rate = data.refunded_order_qty / data.customer_count * 100 if data.customer_count > 0 else 0.0
    return WeeklyQualitySummary(
        customer_service=data.customer_service,
        upselling=data.upselling,
        portal_on_time_percent=data.in_portal_on_time_percent,
        portal_usage_percent=data.put_into_portal_percent,
        refunded_order_count=data.refunded_order_qty,
        modified_order_count=data.modified_order_qty,
        refund_rate=refund_rate,
    )


def digital_growth_indicator(digital_percent: float) -> GrowthIndicator:
    if digital_percent >= 0.5:
        return GrowthIndicator.STRONG
    if digital_percent >= 0.4:
        return GrowthIndicator.MODERATE
    return GrowthIndicator.FLAT


def summarize_sales_channels(data: StoreMetrics) -> WeeklySalesChannelSummary:
    delivery = data.delivery_sales
    return WeeklySalesChannelSummary(
        digital_sales=data.digital_sales,
        digital_percent=data.digital_sales_percent,
        phone_sales=data.phone,
        website_sales=data.website,
        mobile_sales=data.mobile,
        call_center_sales=data.call_center_agent,
        drive_thru_sales=data.drive_thru_sales,
        doordash_sales=data.doordash_sales,
        ubereats_sales=data.ubereats_sales,
        grubhub_sales=data.grubhub_sales,
        total_delivery_sales=delivery,
        delivery_percent=delivery / data.total_sales if data.total_sales > 0 else 0.0,
        digital_growth_indicator=digital_growth_indicator(data.digital_sales_percent),
    )


def cost_efficiency_score(data: StoreMetrics, thresholds: WeeklyThresholds) -> float:
    """
    0-100 cost efficiency.

    Labor and waste lose their relative excess over threshold (capped at 30
    points each); cash over/short above 1% of sales loses up to 20 points.
    """
    score = 100.0

    max_labor = thresholds.max_labor_percent
    if max_labor > 0 and data.labor > max_labor:
        score -= min(30.0, (data.labor - max_labor) / max_labor * 100)

    max_waste = thresholds.max_waste_percent
    waste = data.waste_fraction
    if max_waste > 0 and waste > max_waste:
        score -= min(30.0, (waste - max_waste) / max_waste * 100)

    if data.total_sales > 0:
        over_short_percent = abs(data.over_short) / data.total_sales
        if over_short_percent > 0.01:
            score -= min(20.0, over_short_percent * 1000)

    return max(0.0, score)


def summarize_cost_control(data: StoreMetrics, thresholds: WeeklyThresholds) -> WeeklyCostControlSummary:
    return WeeklyCostControlSummary(
        total_waste=data.total_waste,
        waste_percent=data.waste_fraction,
        labor_percent=data.labor,
        over_short=data.over_short,
        refunded_order_count=data.refunded_order_qty,
        modified_order_count=data.modified_order_qty,
        cost_efficiency_score=cost_efficiency_score(data, thresholds),
    )


def summarize_trends(data: StoreMetrics, operating_days: int, progress: float) -> WeeklyTrends:
    return WeeklyTrends(
        daily_average_sales=data.total_sales / operating_days,
        daily_average_customers=data.customer_count / operating_days,
        daily_average_ticket=data.average_ticket,
        sales_per_customer=data.total_sales / data.customer_count if data.customer_count > 0 else 0.0,
        operating_days=operating_days,
        week_progress=progress,
        projected_week_total=project_week_total(data.total_sales, progress) if progress < 1 else None,
        annual_run_rate=data.total_sales * WEEKS_PER_YEAR,
    )


def compare_weeks(current: StoreMetrics, previous: StoreMetrics) -> WeeklyChangeSummary:
    """Week-over-week deltas; overall trend from mean sales/customers/ticket change."""
    sales = metric_change("sales", current.total_sales, previous.total_sales)
    customers = metric_change("customers", current.customer_count, previous.customer_count)
    ticket = metric_change("average_ticket", current.average_ticket, previous.average_ticket)
    overall = (sales.change_percent + customers.change_percent + ticket.change_percent) / 3
    return WeeklyChangeSummary(
        sales=sales,
        customers=customers,
        average_ticket=ticket,
        labor_percent=metric_change("labor_percent", current.labor, previous.labor),
        waste_percent=metric_change("waste_percent", current.waste_fraction, previous.waste_fraction),
        digital_percent=metric_change(
            "digital_percent", current.digital_sales_percent, previous.digital_sales_percent
        ),
        customer_service=metric_change(
            "customer_service", current.customer_service, previous.customer_service
        ),
        overall_trend=growth_indicator(overall),
    )


def matches_filter(view: WeeklyCurrentView, data: StoreMetrics, weekly_filter: WeeklyFilter) -> bool:
    """True when the week satisfies every set predicate of the filter."""
    if weekly_filter.min_sales is not None and data.total_sales < weekly_filter.min_sales:
        return False
    if weekly_filter.max_labor_percent is not None and data.labor > weekly_filter.max_labor_percent:
        return False
    if weekly_filter.max_waste_percent is not None and data.waste_fraction > weekly_filter.max_waste_percent:
        return False
    if (
        weekly_filter.min_customer_service is not None
        and data.customer_service < weekly_filter.min_customer_service
    ):
        return False
    if (
        weekly_filter.min_digital_percent is not None
        and data.digital_sales_percent < weekly_filter.min_digital_percent
    ):
        return False
    if weekly_filter.min_grade is not None and GRADE_RANK[view.grade] < GRADE_RANK[weekly_filter.min_grade]:
        return False
    return True


# =============================================================================
# Derivation
# =============================================================================


def derive_weekly_current(
    current: StoreMetrics,
    previous: Optional[StoreMetrics],
    store_id: str,
    week: int,
    week_start_date: str,
    week_end_date: str,
    as_of: datetime,
    config: Optional[WeeklyConfig] = None,
    processed_at: Optional[datetime] = None,
) -> WeeklyCurrentView:
    """
    Derive the current-week view.

    Args:
        current: Current week aggregate
        previous: Previous week aggregate, if available
        store_id: Store identity
        week: Week number
        week_start_date: Week start bound
        week_end_date: Week end bound
        as_of: Reference time for week progress
        config: Thresholds, filter, operating days, bands and alert settings
        processed_at: Timestamp to stamp on the view (defaults to now)

    Returns:
        WeeklyCurrentView
    """
    config = config or WeeklyConfig()
    days = config.operating_days_per_week
    progress = week_progress(week_start_date, week_end_date, as_of)

    values = weekly_values(current)
    result = score_metrics(values, weekly_rules(config.thresholds))
    alerts = generate_alerts(values, weekly_alert_rules(config.thresholds), config.alert_settings)

    view = WeeklyCurrentView(
        store_id=store_id,
        week=week,
        week_start_date=week_start_date,
        week_end_date=week_end_date,
        financial=summarize_financial(current, days),
        operational=summarize_operational(current, days),
        quality=summarize_quality(current),
        sales_channels=summarize_sales_channels(current),
        cost_control=summarize_cost_control(current, config.thresholds),
        trends=summarize_trends(current, days, progress),
        comparison=compare_weeks(current, previous) if previous is not None else None,
        score=result.score,
        grade=grade_from_score(result.score, config.grade_bands),
        violations=result.violations,
        alerts=alerts,
        processed_at=processed_at or utc_now(),
    )
    view = view.model_copy(update={"matches_filter": matches_filter(view, current, config.filter)})

    logger.debug(
        "weekly_current_view_derived",
        store_id=store_id,
        week=week,
        score=view.score,
        grade=view.grade.value,
        has_comparison=view.comparison is not None,
        matches_filter=view.matches_filter,
    )
    return view
