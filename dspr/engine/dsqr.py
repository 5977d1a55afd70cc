"""
Delivery Service Quality Report (DSQR) deriver.

Evaluates the three delivery platforms against fixed KPI tables. Tracking
status is asserted by the server per KPI; this module only counts, ranks and
alerts on it.

Version: dsqr_v1
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from dspr.engine.grading import letter_grade, rank_alerts
from dspr.models.common import Alert, utc_now
from dspr.models.dsqr import (
    DsqrAlertConfig,
    DsqrConfig,
    DsqrFilter,
    DsqrSummary,
    DsqrView,
    KpiDefinition,
    KpiValue,
    PlatformKpi,
    PlatformLevelBands,
    PlatformMetrics,
)
from dspr.models.enums import (
    AlertCategory,
    AlertPriority,
    AlertSeverity,
    DeliveryPlatform,
    MetricUnit,
    PlatformPerformanceLevel,
    TrackingStatus,
)
from dspr.models.report import DsqrReport

logger = structlog.get_logger()


# =============================================================================
# KPI tables
# =============================================================================

DOORDASH_KPIS: Tuple[KpiDefinition, ...] = (
    KpiDefinition(
        name="DD_Ratings_Average_Rating",
        label="Average Rating",
        unit=MetricUnit.RATING,
        is_critical=True,
        target=4.5,
        tracking_key="DD_NAOT_Ratings_Average_Rating",
    ),
    KpiDefinition(
        name="DD_Most_Loved_Restaurant",
        label="Most Loved Restaurant",
        unit=MetricUnit.COUNT,
        yes_no=True,
    ),
    KpiDefinition(name="DD_Optimization_Score", label="Optimization Score", unit=MetricUnit.RATING),
    KpiDefinition(
        name="DD_Cancellations_Sales_Lost",
        label="Cancellations Sales Lost",
        unit=MetricUnit.CURRENCY,
        is_critical=True,
        tracking_key="DD_NAOT_Cancellations_Sales_Lost",
    ),
    KpiDefinition(
        name="DD_Missing_or_Incorrect_Error_Charges",
        label="Error Charges",
        unit=MetricUnit.CURRENCY,
        is_critical=True,
        tracking_key="DD_NAOT_Missing_or_Incorrect_Error_Charges",
    ),
    KpiDefinition(
        name="DD_Avoidable_Wait_M_Sec",
        label="Avoidable Wait Time",
        unit=MetricUnit.TIME_MINUTES,
        is_critical=True,
        tracking_key="DD_NAOT_Avoidable_Wait_M_Sec",
    ),
    KpiDefinition(
        name="DD_Total_Dasher_Wait_M_Sec",
        label="Total Dasher Wait",
        unit=MetricUnit.TIME_MINUTES,
        tracking_key="DD_NAOT_Total_Dasher_Wait_M_Sec",
    ),
    KpiDefinition(
        name="DD_Downtime_H_MM",
        label="Downtime",
        unit=MetricUnit.TIME_HOURS,
        is_critical=True,
        tracking_key="DD_NAOT_Downtime_H_MM",
    ),
    KpiDefinition(name="DD_Reviews_Responded", label="Reviews Responded", unit=MetricUnit.PERCENTAGE),
)

UBEREATS_KPIS: Tuple[KpiDefinition, ...] = (
    KpiDefinition(
        name="UE_Customer_reviews_overview",
        label="Customer Reviews",
        unit=MetricUnit.RATING,
        is_critical=True,
        target=4.3,
        tracking_key="UE_NAOT_Customer_reviews_overview",
    ),
    KpiDefinition(
        name="UE_Cost_of_Refunds",
        label="Cost of Refunds",
        unit=MetricUnit.CURRENCY,
        is_critical=True,
        tracking_key="UE_NAOT_Cost_of_Refunds",
    ),
    KpiDefinition(
        name="UE_Unfulfilled_order_rate",
        label="Unfulfilled Order Rate",
        unit=MetricUnit.PERCENTAGE,
        is_critical=True,
        tracking_key="UE_NAOT_Unfulfilled_order_rate",
    ),
    KpiDefinition(
        name="UE_Time_unavailable_during_open_hours_hh_mm",
        label="Time Unavailable",
        unit=MetricUnit.TIME_HOURS,
        is_critical=True,
        tracking_key="UE_NAOT_Time_unavailable_during_open_hours_hh_mm",
    ),
    KpiDefinition(name="UE_Top_inaccurate_item", label="Top Inaccurate Item", unit=MetricUnit.COUNT),
    KpiDefinition(name="UE_Reviews_Responded", label="Reviews Responded", unit=MetricUnit.PERCENTAGE),
)

GRUBHUB_KPIS: Tuple[KpiDefinition, ...] = (
    KpiDefinition(
        name="GH_Rating",
        label="Overall Rating",
        unit=MetricUnit.RATING,
        is_critical=True,
        target=4.0,
        tracking_key="GH_NAOT_Rating",
    ),
    KpiDefinition(
        name="GH_Food_was_good",
        label="Food Quality",
        unit=MetricUnit.PERCENTAGE,
        tracking_key="GH_NAOT_Food_was_good",
    ),
    KpiDefinition(
        name="GH_Delivery_was_on_time",
        label="Delivery Timeliness",
        unit=MetricUnit.PERCENTAGE,
        tracking_key="GH_NAOT_Delivery_was_on_time",
    ),
    KpiDefinition(
        name="GH_Order_was_accurate",
        label="Order Accuracy",
        unit=MetricUnit.PERCENTAGE,
        tracking_key="GH_NAOT_Order_was_accurate",
    ),
)

# Iteration order is the tie-break order for best/attention picks
PLATFORM_KPIS: Dict[DeliveryPlatform, Tuple[Tuple[KpiDefinition, ...], str]] = {
    DeliveryPlatform.DOORDASH: (DOORDASH_KPIS, "DD_Ratings_Average_Rating"),
    DeliveryPlatform.UBEREATS: (UBEREATS_KPIS, "UE_Customer_reviews_overview"),
    DeliveryPlatform.GRUBHUB: (GRUBHUB_KPIS, "GH_Rating"),
}

RECOMMENDATIONS = {
    MetricUnit.RATING: ["Review recent customer feedback", "Implement quality control measures"],
    MetricUnit.CURRENCY: ["Analyze root causes of charges", "Improve order accuracy processes"],
    MetricUnit.TIME_MINUTES: ["Optimize kitchen workflow", "Review staffing levels"],
    MetricUnit.TIME_HOURS: ["Optimize kitchen workflow", "Review staffing levels"],
}


# =============================================================================
# Helpers
# =============================================================================


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def kpi_value(raw: Any, definition: KpiDefinition) -> KpiValue:
    if definition.yes_no:
        return "Yes" if _numeric(raw) == 1 else "No"
    number = _numeric(raw)
    if number is not None:
        return number
    if raw is None:
        return None
    return str(raw)


def kpi_status(definition: KpiDefinition, tracking: Mapping[str, TrackingStatus]) -> TrackingStatus:
    if definition.tracking_key is None:
        return TrackingStatus.ON_TRACK
    return tracking.get(definition.tracking_key, TrackingStatus.NOT_APPLICABLE)


def performance_level(percentage: float, bands: PlatformLevelBands) -> PlatformPerformanceLevel:
    if percentage >= bands.excellent:
        return PlatformPerformanceLevel.EXCELLENT
    if percentage >= bands.good:
        return PlatformPerformanceLevel.GOOD
    if percentage >= bands.fair:
        return PlatformPerformanceLevel.FAIR
    if percentage >= bands.poor:
        return PlatformPerformanceLevel.POOR
    return PlatformPerformanceLevel.CRITICAL


# =============================================================================
# Platforms and summary
# =============================================================================


def evaluate_platform(
    platform: DeliveryPlatform,
    report: DsqrReport,
    bands: PlatformLevelBands,
) -> PlatformMetrics:
    """Evaluate one platform's KPI table against the report."""
    definitions, rating_key = PLATFORM_KPIS[platform]
    kpis = [
        PlatformKpi(
            name=definition.name,
            label=definition.label,
            value=kpi_value(report.scores.get(definition.name), definition),
            status=kpi_status(definition, report.tracking),
            unit=definition.unit,
            is_critical=definition.is_critical,
            target=definition.target,
        )
        for definition in definitions
    ]

    on_track = sum(1 for kpi in kpis if kpi.status == TrackingStatus.ON_TRACK)
    applicable = sum(1 for kpi in kpis if kpi.status != TrackingStatus.NOT_APPLICABLE)
    percentage = on_track / applicable * 100 if applicable > 0 else 0.0

    return PlatformMetrics(
        platform=platform,
        overall_rating=_numeric(report.scores.get(rating_key)),
        kpis=kpis,
        on_track_count=on_track,
        total_applicable_metrics=applicable,
        performance_percentage=percentage,
        performance_level=performance_level(percentage, bands),
    )


def pick_best_and_attention(
    platforms: Dict[DeliveryPlatform, PlatformMetrics],
) -> Tuple[Optional[DeliveryPlatform], Optional[DeliveryPlatform]]:
    """
    Highest and lowest performance percentage.

    Ties go to the platform that comes first in DeliveryPlatform order, for
    both picks.
    """
    best: Optional[PlatformMetrics] = None
    worst: Optional[PlatformMetrics] = None
    for platform in DeliveryPlatform:
        metrics = platforms.get(platform)
        if metrics is None:
            continue
        if best is None or metrics.performance_percentage > best.performance_percentage:
            best = metrics
        if worst is None or metrics.performance_percentage < worst.performance_percentage:
            worst = metrics
    return (
        best.platform if best else None,
        worst.platform if worst else None,
    )


def summarize(platforms: Dict[DeliveryPlatform, PlatformMetrics]) -> DsqrSummary:
    """Cross-platform summary. A missing platform rating counts as 0 in the average."""
    values = list(platforms.values())
    total_on_track = sum(p.on_track_count for p in values)
    total_applicable = sum(p.total_applicable_metrics for p in values)
    overall = total_on_track / total_applicable * 100 if total_applicable > 0 else 0.0
    best, attention = pick_best_and_attention(platforms)
    return DsqrSummary(
        average_rating=sum(p.overall_rating or 0.0 for p in values) / len(values) if values else 0.0,
        total_on_track=total_on_track,
        total_applicable=total_applicable,
        overall_performance=overall,
        performance_grade=letter_grade(overall),
        best_platform=best,
        attention_required=attention,
    )


# =============================================================================
# Alerts and filter
# =============================================================================


def kpi_alert(platform: DeliveryPlatform, kpi: PlatformKpi, config: DsqrAlertConfig) -> Alert:
    severity = AlertSeverity.WARNING
    priority = AlertPriority.MEDIUM
    if kpi.unit == MetricUnit.RATING and isinstance(kpi.value, float):
        if kpi.value < config.critical_rating_floor:
            severity = AlertSeverity.CRITICAL
            priority = AlertPriority.URGENT
        elif kpi.value < config.warning_rating_floor:
            severity = AlertSeverity.ERROR
            priority = AlertPriority.HIGH

    return Alert(
        severity=severity,
        priority=priority,
        category=AlertCategory.DELIVERY,
        platform=platform,
        metric=kpi.name,
        title=kpi.label,
        message=f"{kpi.label} is off track",
        current_value=kpi.value,
        target_value=kpi.target,
        recommendations=list(RECOMMENDATIONS.get(kpi.unit, [])),
    )


def generate_dsqr_alerts(
    platforms: Dict[DeliveryPlatform, PlatformMetrics],
    config: DsqrAlertConfig,
) -> List[Alert]:
    """Alerts for critical KPIs that are off track, ranked by priority and capped."""
    if not config.enable_alerts:
        return []
    alerts = [
        kpi_alert(platform, kpi, config)
        for platform, metrics in platforms.items()
        for kpi in metrics.kpis
        if kpi.is_critical and kpi.status == TrackingStatus.OFF_TRACK
    ]
    return rank_alerts(alerts, config.max_alerts)


def filtered_kpis(view: DsqrView, dsqr_filter: DsqrFilter) -> List[Tuple[DeliveryPlatform, PlatformKpi]]:
    """KPIs across platforms that pass the filter, in platform then table order."""
    selected: List[Tuple[DeliveryPlatform, PlatformKpi]] = []
    for platform in DeliveryPlatform:
        metrics = view.platforms.get(platform)
        if metrics is None:
            continue
        if dsqr_filter.platforms is not None and platform not in dsqr_filter.platforms:
            continue
        for kpi in metrics.kpis:
            if dsqr_filter.statuses is not None and kpi.status not in dsqr_filter.statuses:
                continue
            if dsqr_filter.critical_only and not kpi.is_critical:
                continue
            selected.append((platform, kpi))
    return selected


# =============================================================================
# Derivation
# =============================================================================


def derive_dsqr(
    report: DsqrReport,
    store_id: str,
    business_date: str,
    config: Optional[DsqrConfig] = None,
    processed_at: Optional[datetime] = None,
) -> DsqrView:
    """
    Derive the DSQR view.

    Args:
        report: Scores and tracking flags
        store_id: Store identity
        business_date: Business date
        config: Level bands and alert configuration
        processed_at: Timestamp to stamp on the view (defaults to now)

    Returns:
        DsqrView
    """
    config = config or DsqrConfig()
    platforms = {
        platform: evaluate_platform(platform, report, config.level_bands)
        for platform in PLATFORM_KPIS
    }
    summary = summarize(platforms)
    alerts = generate_dsqr_alerts(platforms, config.alert_config)

    view = DsqrView(
        store_id=store_id,
        business_date=business_date,
        platforms=platforms,
        summary=summary,
        alerts=alerts,
        processed_at=processed_at or utc_now(),
    )

    logger.debug(
        "dsqr_view_derived",
        store_id=store_id,
        business_date=business_date,
        overall_performance=summary.overall_performance,
        grade=summary.performance_grade.value,
        alerts=len(alerts),
    )
    return view
