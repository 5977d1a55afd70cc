"""
Previous-week baseline deriver.

Summarizes the previous week with the same builders as the current-week
deriver, grades it with the weekly thresholds and, when the current week is
present, attaches the week-over-week comparison and trend analysis. Alerts
are raised for trends that recommend action.

Version: weekly_previous_v1
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

import structlog

from dspr.engine.comparison import analyze_trends, compare, format_metric_comparison
from dspr.engine.grading import grade_from_score, rank_alerts, score_metrics
from dspr.engine.weekly_current import (
    parse_report_datetime,
    summarize_cost_control,
    summarize_financial,
    summarize_operational,
    summarize_quality,
    summarize_sales_channels,
    weekly_rules,
    weekly_values,
)
from dspr.models.common import Alert, utc_now
from dspr.models.enums import (
    AlertCategory,
    AlertImpact,
    AlertPriority,
    AlertSeverity,
    TrendSeverity,
)
from dspr.models.report import StoreMetrics
from dspr.models.weekly import (
    MultiMetricTrendAnalysis,
    TrendAnalysis,
    WeekOverWeekComparison,
    WeeklyPreviousConfig,
    WeeklyPreviousView,
)

logger = structlog.get_logger()

# trend name -> (category, comparison keys quoted in the alert)
TREND_ALERTS = {
    "sales": (AlertCategory.SALES, ["sales"]),
    "customer": (AlertCategory.CUSTOMER, ["customer_count"]),
    "operational_efficiency": (AlertCategory.COST_CONTROL, ["labor_percent", "waste_percent"]),
    "quality": (AlertCategory.QUALITY, ["customer_service", "portal_on_time"]),
    "digital_adoption": (AlertCategory.DIGITAL, ["digital_percent"]),
    "overall_health": (AlertCategory.OPERATIONAL, []),
}


def shift_date(value: str, days: int) -> str:
    """Shift a report date by whole days, keeping the input's date/time shape."""
    parsed = parse_report_datetime(value)
    if parsed is None:
        return value
    shifted = parsed + timedelta(days=days)
    if len(value) == 10:
        return shifted.date().isoformat()
    return shifted.isoformat()


def previous_week_bounds(week: int, week_start_date: str, week_end_date: str) -> Tuple[int, str, str]:
    """Previous week number and bounds derived from the current week."""
    return week - 1, shift_date(week_start_date, -7), shift_date(week_end_date, -7)


def trend_alert(
    name: str,
    trend: TrendAnalysis,
    comparison: WeekOverWeekComparison,
) -> Alert:
    category, keys = TREND_ALERTS[name]
    details = [
        f"{getattr(comparison, key).name}: {format_metric_comparison(getattr(comparison, key))}"
        for key in keys
    ]
    strong = trend.severity == TrendSeverity.STRONG
    title = name.replace("_", " ").title()
    return Alert(
        severity=AlertSeverity.ERROR if strong else AlertSeverity.WARNING,
        priority=AlertPriority.HIGH if strong else AlertPriority.MEDIUM,
        category=category,
        metric=name,
        title=f"{title} Declining",
        message=trend.description + (f" ({'; '.join(details)})" if details else ""),
        current_value=trend.magnitude * 100,
        target_value=0.0,
        variance=-trend.magnitude * 100,
        impact=AlertImpact.HIGH if strong else AlertImpact.MEDIUM,
        recommendations=[f"Investigate week-over-week drivers of {title.lower()}"],
    )


def trend_alerts(
    analysis: MultiMetricTrendAnalysis,
    comparison: WeekOverWeekComparison,
    config: WeeklyPreviousConfig,
) -> List[Alert]:
    if not config.alert_settings.enable_alerts:
        return []
    alerts = [
        trend_alert(name, trend, comparison)
        for name, trend in analysis.named_analyses()
        if trend.action_recommended
    ]
    return rank_alerts(alerts, config.alert_settings.max_alerts)


def derive_weekly_previous(
    previous: StoreMetrics,
    current: Optional[StoreMetrics],
    store_id: str,
    current_week: int,
    current_week_start: str,
    current_week_end: str,
    config: Optional[WeeklyPreviousConfig] = None,
    processed_at: Optional[datetime] = None,
) -> WeeklyPreviousView:
    """
    Derive the previous-week baseline view.

    Args:
        previous: Previous week aggregate
        current: Current week aggregate, if available
        store_id: Store identity
        current_week: Current week number (the baseline is week - 1)
        current_week_start: Current week start bound
        current_week_end: Current week end bound
        config: Comparison thresholds, operating days, thresholds, bands, alert settings
        processed_at: Timestamp to stamp on the view (defaults to now)

    Returns:
        WeeklyPreviousView
    """
    config = config or WeeklyPreviousConfig()
    days = config.operating_days_per_week
    week, start, end = previous_week_bounds(current_week, current_week_start, current_week_end)

    result = score_metrics(weekly_values(previous), weekly_rules(config.thresholds))

    comparison = None
    analysis = None
    alerts: List[Alert] = []
    if current is not None:
        comparison = compare(current, previous)
        analysis = analyze_trends(comparison, config.comparison_thresholds)
        alerts = trend_alerts(analysis, comparison, config)

    view = WeeklyPreviousView(
        store_id=store_id,
        week=week,
        week_start_date=start,
        week_end_date=end,
        financial=summarize_financial(previous, days),
        operational=summarize_operational(previous, days),
        quality=summarize_quality(previous),
        sales_channels=summarize_sales_channels(previous),
        cost_control=summarize_cost_control(previous, config.thresholds),
        score=result.score,
        grade=grade_from_score(result.score, config.grade_bands),
        comparison=comparison,
        trend_analysis=analysis,
        alerts=alerts,
        processed_at=processed_at or utc_now(),
    )

    logger.debug(
        "weekly_previous_view_derived",
        store_id=store_id,
        week=week,
        grade=view.grade.value,
        overall_trend=comparison.overall_trend.value if comparison else None,
        alerts=len(alerts),
    )
    return view
