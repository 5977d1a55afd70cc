"""
Week-over-week comparison and trend engine.

Compares two weekly aggregates metric by metric (respecting each metric's
polarity), then rolls the comparisons up into per-metric and per-group
trend analyses with severity and an action flag.

Version: comparison_v1
"""

from typing import Callable, Dict, List, Optional, Tuple

import structlog

from dspr.models.enums import (
    SEVERITY_RANK,
    ComparisonDirection,
    MetricDirection,
    MetricFormat,
    TrendSeverity,
)
from dspr.models.report import StoreMetrics
from dspr.models.weekly import (
    ComparisonThresholds,
    MetricComparison,
    MultiMetricTrendAnalysis,
    TrendAnalysis,
    WeekOverWeekComparison,
)

logger = structlog.get_logger()

# Absolute changes smaller than this are treated as no change
NEGLIGIBLE_CHANGE = 0.001

# Overall trend needs a lead of more than this many metrics
HYSTERESIS = 1

HIGHER = MetricDirection.HIGHER_BETTER
LOWER = MetricDirection.LOWER_BETTER

# key -> (display name, polarity, format, accessor)
TRACKED_METRICS: Dict[str, Tuple[str, MetricDirection, MetricFormat, Callable[[StoreMetrics], float]]] = {
    "sales": ("Sales", HIGHER, MetricFormat.CURRENCY, lambda m: m.total_sales),
    "customer_count": ("Customer Count", HIGHER, MetricFormat.NUMBER, lambda m: m.customer_count),
    "average_ticket": ("Average Ticket", HIGHER, MetricFormat.CURRENCY, lambda m: m.average_ticket),
    "labor_percent": ("Labor %", LOWER, MetricFormat.PERCENTAGE, lambda m: m.labor),
    "waste_percent": ("Waste %", LOWER, MetricFormat.PERCENTAGE, lambda m: m.waste_fraction),
    "digital_percent": ("Digital %", HIGHER, MetricFormat.PERCENTAGE, lambda m: m.digital_sales_percent),
    "customer_service": ("Customer Service", HIGHER, MetricFormat.PERCENTAGE, lambda m: m.customer_service),
    "portal_on_time": (
        "Portal On-Time",
        HIGHER,
        MetricFormat.PERCENTAGE,
        lambda m: m.in_portal_on_time_percent,
    ),
}


# =============================================================================
# Comparison
# =============================================================================


def compare_metric(
    key: str,
    name: str,
    current: float,
    previous: float,
    polarity: MetricDirection,
    metric_format: MetricFormat = MetricFormat.NUMBER,
) -> MetricComparison:
    """Compare one metric; direction accounts for whether higher is better."""
    absolute_change = current - previous
    percent_change = absolute_change / previous if previous != 0 else 0.0

    if abs(absolute_change) < NEGLIGIBLE_CHANGE:
        direction = ComparisonDirection.UNCHANGED
    else:
        went_up = absolute_change > 0
        better = went_up if polarity == HIGHER else not went_up
        direction = ComparisonDirection.IMPROVED if better else ComparisonDirection.DECLINED

    return MetricComparison(
        key=key,
        name=name,
        current=current,
        previous=previous,
        absolute_change=absolute_change,
        percent_change=percent_change,
        direction=direction,
        is_improvement=direction == ComparisonDirection.IMPROVED,
        format=metric_format,
    )


def overall_direction(improved: int, declined: int) -> ComparisonDirection:
    if improved > declined + HYSTERESIS:
        return ComparisonDirection.IMPROVED
    if declined > improved + HYSTERESIS:
        return ComparisonDirection.DECLINED
    return ComparisonDirection.UNCHANGED


def compare(current: StoreMetrics, previous: StoreMetrics) -> WeekOverWeekComparison:
    """
    Compare the eight tracked metrics between two weeks.

    Args:
        current: Current week aggregate
        previous: Previous week aggregate

    Returns:
        WeekOverWeekComparison with counts and overall trend
    """
    comparisons: Dict[str, MetricComparison] = {
        key: compare_metric(key, name, accessor(current), accessor(previous), polarity, metric_format)
        for key, (name, polarity, metric_format, accessor) in TRACKED_METRICS.items()
    }

    improved = sum(1 for mc in comparisons.values() if mc.direction == ComparisonDirection.IMPROVED)
    declined = sum(1 for mc in comparisons.values() if mc.direction == ComparisonDirection.DECLINED)

    return WeekOverWeekComparison(
        **comparisons,
        improved_count=improved,
        declined_count=declined,
        overall_trend=overall_direction(improved, declined),
    )


# =============================================================================
# Trend analysis
# =============================================================================


def trend_severity(magnitude: float, thresholds: ComparisonThresholds) -> TrendSeverity:
    if magnitude >= thresholds.strong_change:
        return TrendSeverity.STRONG
    if magnitude >= thresholds.significant_change:
        return TrendSeverity.MODERATE
    return TrendSeverity.WEAK


SEVERITY_ADVERB = {
    TrendSeverity.STRONG: "significantly",
    TrendSeverity.MODERATE: "moderately",
    TrendSeverity.WEAK: "slightly",
}


def describe_trend(name: str, direction: ComparisonDirection, severity: TrendSeverity, magnitude: float) -> str:
    if direction == ComparisonDirection.UNCHANGED:
        return f"{name} remained stable"
    return f"{name} {SEVERITY_ADVERB[severity]} {direction.value} by {magnitude * 100:.1f}%"


def analyze_trend(mc: MetricComparison, thresholds: Optional[ComparisonThresholds] = None) -> TrendAnalysis:
    """Trend analysis for a single metric comparison."""
    thresholds = thresholds or ComparisonThresholds()
    magnitude = abs(mc.percent_change)
    severity = trend_severity(magnitude, thresholds)
    return TrendAnalysis(
        direction=mc.direction,
        severity=severity,
        magnitude=magnitude,
        description=describe_trend(mc.name, mc.direction, severity, magnitude),
        action_recommended=severity == TrendSeverity.STRONG and mc.direction == ComparisonDirection.DECLINED,
    )


def analyze_group(
    name: str,
    comparisons: List[MetricComparison],
    thresholds: ComparisonThresholds,
) -> TrendAnalysis:
    """
    Roll several comparisons into one trend.

    Improved only when every member improved; declined when none improved
    and at least one declined.
    """
    directions = [mc.direction for mc in comparisons]
    if all(d == ComparisonDirection.IMPROVED for d in directions):
        direction = ComparisonDirection.IMPROVED
    elif ComparisonDirection.IMPROVED not in directions and ComparisonDirection.DECLINED in directions:
        direction = ComparisonDirection.DECLINED
    else:
        direction = ComparisonDirection.UNCHANGED

    magnitude = sum(abs(mc.percent_change) for mc in comparisons) / len(comparisons)
    severity = trend_severity(magnitude, thresholds)
    return TrendAnalysis(
        direction=direction,
        severity=severity,
        magnitude=magnitude,
        description=describe_trend(name, direction, severity, magnitude),
        action_recommended=direction == ComparisonDirection.DECLINED and severity == TrendSeverity.STRONG,
    )


def analyze_overall(comparison: WeekOverWeekComparison, thresholds: ComparisonThresholds) -> TrendAnalysis:
    metrics = comparison.metrics()
    direction = comparison.overall_trend

    severity = TrendSeverity.WEAK
    if direction != ComparisonDirection.UNCHANGED:
        agreeing = [
            trend_severity(abs(mc.percent_change), thresholds)
            for mc in metrics
            if mc.direction == direction
        ]
        if agreeing:
            severity = max(agreeing, key=lambda s: SEVERITY_RANK[s])

    if direction == ComparisonDirection.UNCHANGED:
        description = "Overall performance remained stable"
    else:
        description = (
            f"Overall performance {direction.value}: "
            f"{comparison.improved_count} of {len(metrics)} metrics improved, "
            f"{comparison.declined_count} declined"
        )

    return TrendAnalysis(
        direction=direction,
        severity=severity,
        magnitude=comparison.improved_count / len(metrics),
        description=description,
        action_recommended=comparison.declined_count > comparison.improved_count,
    )


def analyze_trends(
    comparison: WeekOverWeekComparison,
    thresholds: Optional[ComparisonThresholds] = None,
) -> MultiMetricTrendAnalysis:
    """
    Build the multi-metric trend analysis for a week-over-week comparison.

    Args:
        comparison: Output of compare()
        thresholds: Severity bands (defaults: moderate 2%, strong 10%)

    Returns:
        MultiMetricTrendAnalysis
    """
    thresholds = thresholds or ComparisonThresholds()
    analysis = MultiMetricTrendAnalysis(
        sales=analyze_trend(comparison.sales, thresholds),
        customer=analyze_trend(comparison.customer_count, thresholds),
        operational_efficiency=analyze_group(
            "Operational efficiency",
            [comparison.labor_percent, comparison.waste_percent],
            thresholds,
        ),
        quality=analyze_group(
            "Quality",
            [comparison.customer_service, comparison.portal_on_time],
            thresholds,
        ),
        digital_adoption=analyze_trend(comparison.digital_percent, thresholds),
        overall_health=analyze_overall(comparison, thresholds),
    )

    logger.debug(
        "trend_analysis_completed",
        overall=analysis.overall_health.direction.value,
        improved=comparison.improved_count,
        declined=comparison.declined_count,
    )
    return analysis


# =============================================================================
# Formatting
# =============================================================================


def _signed(value: float, fmt: str) -> str:
    sign = "+" if value >= 0 else "-"
    return sign + fmt.format(abs(value))


def format_metric_comparison(mc: MetricComparison) -> str:
    """
    Render a comparison as change plus percent change.

    Examples: "+$1000.00 (+10.0%)", "-1.5 pts (-5.7%)", "+25 (+2.1%)"
    """
    if mc.format == MetricFormat.CURRENCY:
        change = _signed(mc.absolute_change, "${:.2f}")
    elif mc.format == MetricFormat.PERCENTAGE:
        change = _signed(mc.absolute_change * 100, "{:.1f} pts")
    else:
        change = _signed(mc.absolute_change, "{:,.0f}")
    return f"{change} ({_signed(mc.percent_change * 100, '{:.1f}%')})"
