"""
Daily metrics deriver.

Turns one day's StoreMetrics into a DailyView: category summaries
(financial, operational, sales channels, quality, cost control), an overall
score and grade from the shared threshold engine, and ranked alerts.

Version: daily_v1
"""

from datetime import datetime
from typing import Dict, List, Optional

import structlog

from dspr.engine.grading import (
    generate_alerts,
    grade_from_score,
    letter_grade,
    score_metrics,
)
from dspr.models.common import utc_now
from dspr.models.daily import (
    ChannelPerformance,
    CostControlSummary,
    CostThresholds,
    DailyConfig,
    DailyTargets,
    DailyView,
    FinancialSummary,
    OperationalSummary,
    QualitySummary,
    SalesChannelSummary,
)
from dspr.models.enums import (
    AlertCategory,
    AlertImpact,
    AlertPriority,
    AlertSeverity,
    ChannelPerformanceLevel,
    CostControlGrade,
    MetricDirection,
    QualityGrade,
    SalesChannelType,
)
from dspr.models.grading import AlertRule, ThresholdRule
from dspr.models.report import StoreMetrics

logger = structlog.get_logger()

HIGHER = MetricDirection.HIGHER_BETTER
LOWER = MetricDirection.LOWER_BETTER

# Operational efficiency fixed limits
PORTAL_ON_TIME_FLOOR = 0.95
MAX_MODIFICATION_RATE = 0.05
MAX_REFUND_RATE = 0.03


# =============================================================================
# Threshold tables
# =============================================================================


def overall_rules(targets: DailyTargets) -> List[ThresholdRule]:
    """Overall score table. Penalties total 100."""
    return [
        ThresholdRule(metric="labor", label="Labor", threshold=targets.labor_cost, direction=LOWER, penalty=15),
        ThresholdRule(metric="waste", label="Waste", threshold=targets.waste, direction=LOWER, penalty=15),
        ThresholdRule(
            metric="customer_service",
            label="Customer Service",
            threshold=targets.customer_service,
            direction=HIGHER,
            penalty=20,
        ),
        ThresholdRule(
            metric="portal_utilization",
            label="Portal Usage",
            threshold=targets.portal_utilization,
            direction=HIGHER,
            penalty=10,
        ),
        ThresholdRule(
            metric="portal_on_time",
            label="Portal On-Time",
            threshold=targets.portal_on_time,
            direction=HIGHER,
            penalty=10,
        ),
        ThresholdRule(
            metric="digital_sales",
            label="Digital Sales",
            threshold=targets.digital_sales,
            direction=HIGHER,
            penalty=10,
        ),
        ThresholdRule(
            metric="customer_count",
            label="Customer Count",
            threshold=targets.customer_count,
            direction=HIGHER,
            penalty=10,
        ),
        ThresholdRule(
            metric="average_ticket",
            label="Average Ticket",
            threshold=targets.average_ticket,
            direction=HIGHER,
            penalty=10,
        ),
    ]


def financial_rules(targets: DailyTargets) -> List[ThresholdRule]:
    return [
        ThresholdRule(
            metric="labor",
            threshold=targets.labor_cost,
            direction=LOWER,
            penalty=20,
            soft_threshold=targets.labor_cost * 0.9,
            soft_penalty=10,
        ),
        ThresholdRule(
            metric="abs_over_short",
            threshold=10,
            direction=LOWER,
            penalty=15,
            soft_threshold=5,
            soft_penalty=8,
        ),
        ThresholdRule(metric="digital_sales", threshold=targets.digital_sales, direction=HIGHER, penalty=10),
    ]


def efficiency_rules(targets: DailyTargets) -> List[ThresholdRule]:
    return [
        ThresholdRule(metric="customer_count", threshold=targets.customer_count, direction=HIGHER, penalty=20),
        ThresholdRule(
            metric="portal_utilization", threshold=targets.portal_utilization, direction=HIGHER, penalty=15
        ),
        ThresholdRule(metric="portal_on_time", threshold=PORTAL_ON_TIME_FLOOR, direction=HIGHER, penalty=15),
        ThresholdRule(metric="modification_rate", threshold=MAX_MODIFICATION_RATE, direction=LOWER, penalty=10),
        ThresholdRule(metric="refund_rate", threshold=MAX_REFUND_RATE, direction=LOWER, penalty=10),
    ]


def alert_rules(targets: DailyTargets) -> List[AlertRule]:
    return [
        AlertRule(
            metric="labor",
            title="Labor Cost Above Target",
            category=AlertCategory.COST_CONTROL,
            direction=LOWER,
            threshold=targets.labor_cost,
            severity=AlertSeverity.WARNING,
            escalation_factor=1.2,
            escalated_severity=AlertSeverity.CRITICAL,
            priority=AlertPriority.HIGH,
            urgent_variance=20,
            impact=AlertImpact.MEDIUM,
            impact_bands=[(30, AlertImpact.SEVERE), (15, AlertImpact.HIGH)],
            message="Labor cost is {abs_variance:.1f}% above target",
            recommendations=[
                "Review staffing schedule for optimization",
                "Analyze peak hours and adjust accordingly",
                "Consider cross-training to improve flexibility",
            ],
        ),
        AlertRule(
            metric="waste",
            title="Waste Above Target",
            category=AlertCategory.COST_CONTROL,
            direction=LOWER,
            threshold=targets.waste,
            severity=AlertSeverity.WARNING,
            escalation_factor=1.5,
            escalated_severity=AlertSeverity.ERROR,
            priority=AlertPriority.HIGH,
            impact=AlertImpact.MEDIUM,
            message="Waste is {abs_variance:.1f}% above target",
            recommendations=[
                "Review inventory management practices",
                "Check for expired products",
                "Implement better portion control",
            ],
        ),
        AlertRule(
            metric="customer_service",
            title="Customer Service Below Target",
            category=AlertCategory.QUALITY,
            direction=HIGHER,
            threshold=targets.customer_service,
            severity=AlertSeverity.WARNING,
            escalation_factor=0.85,
            escalated_severity=AlertSeverity.CRITICAL,
            priority=AlertPriority.URGENT,
            impact=AlertImpact.HIGH,
            message="Customer service score is {abs_variance:.1f}% below target",
            recommendations=[
                "Review customer feedback and complaints",
                "Provide additional staff training",
                "Implement service recovery procedures",
            ],
        ),
        AlertRule(
            metric="digital_sales",
            title="Digital Sales Below Target",
            category=AlertCategory.SALES,
            direction=HIGHER,
            threshold=targets.digital_sales,
            severity=AlertSeverity.INFO,
            priority=AlertPriority.MEDIUM,
            impact=AlertImpact.LOW,
            message="Digital sales are {abs_variance:.1f}% below target",
            recommendations=[
                "Promote online ordering channels",
                "Offer digital-exclusive deals",
                "Improve mobile app user experience",
            ],
        ),
        AlertRule(
            metric="portal_utilization",
            title="Portal Utilization Below Target",
            category=AlertCategory.OPERATIONAL,
            direction=HIGHER,
            threshold=targets.portal_utilization,
            severity=AlertSeverity.WARNING,
            priority=AlertPriority.MEDIUM,
            impact=AlertImpact.MEDIUM,
            message="Portal utilization is {abs_variance:.1f}% below target",
            recommendations=[
                "Train staff on portal usage",
                "Review portal entry procedures",
                "Ensure all eligible orders are tracked",
            ],
        ),
    ]


def metric_values(data: StoreMetrics) -> Dict[str, Optional[float]]:
    """Flatten StoreMetrics into the keys used by the daily tables."""
    total_orders = data.refunded_order_qty + data.modified_order_qty + data.customer_count
    return {
        "labor": data.labor,
        "waste": data.waste_fraction,
        "customer_service": data.customer_service,
        "portal_utilization": data.put_into_portal_percent,
        "portal_on_time": data.in_portal_on_time_percent,
        "digital_sales": data.digital_sales_percent,
        "customer_count": data.customer_count_percent,
        "average_ticket": data.average_ticket,
        "abs_over_short": abs(data.over_short),
        "modification_rate": data.modified_order_qty / total_orders if total_orders > 0 else 0.0,
        "refund_rate": data.refunded_order_qty / total_orders if total_orders > 0 else 0.0,
    }


# =============================================================================
# Category summaries
# =============================================================================


def summarize_financial(data: StoreMetrics, targets: DailyTargets) -> FinancialSummary:
    result = score_metrics(metric_values(data), financial_rules(targets))
    return FinancialSummary(
        total_sales=data.total_sales,
        cash_sales=data.total_cash_sales,
        digital_sales=data.digital_sales,
        average_ticket=data.average_ticket,
        tips=data.total_tips,
        cash_variance=data.over_short,
        labor_cost_percentage=data.labor,
        revenue_per_customer=data.total_sales / data.customer_count if data.customer_count > 0 else 0.0,
        financial_score=result.score,
        performance_grade=letter_grade(result.score),
    )


def summarize_operational(data: StoreMetrics, targets: DailyTargets) -> OperationalSummary:
    values = metric_values(data)
    result = score_metrics(values, efficiency_rules(targets))
    return OperationalSummary(
        customer_count=data.customer_count,
        customer_count_percentage=data.customer_count_percent,
        total_orders=data.refunded_order_qty + data.modified_order_qty + data.customer_count,
        portal_utilization=data.put_into_portal_percent,
        portal_on_time_percentage=data.in_portal_on_time_percent,
        modification_rate=values["modification_rate"],
        refund_rate=values["refund_rate"],
        efficiency_score=result.score,
    )


def channel_level(percentage: float) -> ChannelPerformanceLevel:
    if percentage > 30:
        return ChannelPerformanceLevel.EXCELLENT
    if percentage > 20:
        return ChannelPerformanceLevel.GOOD
    if percentage > 10:
        return ChannelPerformanceLevel.AVERAGE
    return ChannelPerformanceLevel.BELOW_AVERAGE


def _channel(data: StoreMetrics, channel: SalesChannelType, sales: float) -> ChannelPerformance:
    percentage = sales / data.total_sales * 100 if data.total_sales > 0 else 0.0
    orders = int(data.customer_count * percentage / 100)
    return ChannelPerformance(
        channel=channel,
        sales=sales,
        percentage=percentage,
        orders=orders,
        average_order_value=sales / orders if orders > 0 else 0.0,
        performance_level=channel_level(percentage),
    )


def summarize_sales_channels(data: StoreMetrics) -> SalesChannelSummary:
    traditional_sales = (
        data.total_sales
        - data.digital_sales
        - data.delivery_sales
        - data.phone_sales
        - data.drive_thru_sales
    )
    channels = [
        _channel(data, SalesChannelType.TRADITIONAL, traditional_sales),
        _channel(data, SalesChannelType.DIGITAL, data.digital_sales),
        _channel(data, SalesChannelType.DELIVERY, data.delivery_sales),
        _channel(data, SalesChannelType.PHONE, data.phone_sales),
    ]
    # max() keeps the first channel on ties
    top = max(channels, key=lambda c: c.sales)
    return SalesChannelSummary(
        traditional=channels[0],
        digital=channels[1],
        delivery=channels[2],
        phone=channels[3],
        top_channel=top.channel,
        digital_adoption_rate=data.digital_sales_percent,
    )


def quality_grade(score: float) -> QualityGrade:
    if score >= 95:
        return QualityGrade.PREMIUM
    if score >= 85:
        return QualityGrade.HIGH
    if score >= 75:
        return QualityGrade.STANDARD
    if score >= 60:
        return QualityGrade.BELOW_STANDARD
    return QualityGrade.CRITICAL


def summarize_quality(data: StoreMetrics) -> QualitySummary:
    total_orders = data.customer_count
    problematic = data.refunded_order_qty + data.modified_order_qty
    order_accuracy = (total_orders - problematic) / total_orders * 100 if total_orders > 0 else 100.0
    consistency = (data.put_into_portal_percent + data.in_portal_on_time_percent) / 2 * 100
    score = (data.customer_service * 100 + order_accuracy + consistency) / 3
    return QualitySummary(
        customer_service_score=data.customer_service,
        order_accuracy=order_accuracy,
        service_consistency=consistency,
        quality_score=score,
        quality_grade=quality_grade(score),
    )


def cost_control_grade(labor: float, waste_pct: float, thresholds: CostThresholds) -> CostControlGrade:
    max_labor = thresholds.max_labor_percentage
    max_waste = thresholds.max_waste_percentage
    if labor <= max_labor * 0.8 and waste_pct <= max_waste * 0.5:
        return CostControlGrade.OPTIMAL
    if labor <= max_labor and waste_pct <= max_waste:
        return CostControlGrade.EFFICIENT
    if labor <= max_labor * 1.1 and waste_pct <= max_waste * 1.2:
        return CostControlGrade.ACCEPTABLE
    if labor <= max_labor * 1.3 or waste_pct <= max_waste * 1.5:
        return CostControlGrade.CONCERNING
    return CostControlGrade.CRITICAL


def summarize_cost_control(data: StoreMetrics, thresholds: CostThresholds) -> CostControlSummary:
    waste_pct = data.waste_fraction * 100

    labor_efficiency = 100.0
    if data.labor > thresholds.max_labor_percentage:
        labor_efficiency -= 40
    elif data.labor > thresholds.max_labor_percentage * 0.9:
        labor_efficiency -= 20

    return CostControlSummary(
        total_waste=data.total_waste,
        waste_percentage=waste_pct,
        labor_efficiency=labor_efficiency,
        cost_control_grade=cost_control_grade(data.labor, waste_pct, thresholds),
    )


# =============================================================================
# Derivation
# =============================================================================


def derive_daily(
    data: StoreMetrics,
    store_id: str,
    business_date: str,
    config: Optional[DailyConfig] = None,
    processed_at: Optional[datetime] = None,
) -> DailyView:
    """
    Derive the daily view.

    Pure function of its inputs apart from processed_at.

    Args:
        data: Day metrics
        store_id: Store identity
        business_date: Business date
        config: Targets, alert settings, cost thresholds and grade bands
        processed_at: Timestamp to stamp on the view (defaults to now)

    Returns:
        DailyView
    """
    config = config or DailyConfig()
    values = metric_values(data)

    result = score_metrics(values, overall_rules(config.targets))
    alerts = generate_alerts(values, alert_rules(config.targets), config.alert_settings)

    view = DailyView(
        store_id=store_id,
        business_date=business_date,
        financial=summarize_financial(data, config.targets),
        operational=summarize_operational(data, config.targets),
        sales_channels=summarize_sales_channels(data),
        quality=summarize_quality(data),
        cost_control=summarize_cost_control(data, config.cost_thresholds),
        score=result.score,
        grade=grade_from_score(result.score, config.grade_bands),
        violations=result.violations,
        alerts=alerts,
        processed_at=processed_at or utc_now(),
    )

    logger.debug(
        "daily_view_derived",
        store_id=store_id,
        business_date=business_date,
        score=view.score,
        grade=view.grade.value,
        alerts=len(alerts),
    )
    return view
