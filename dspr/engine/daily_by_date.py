"""
Daily-by-date deriver.

Works on the week's per-day entries: filter, sort, compare each day with the
same weekday last week, and summarize the week's shape.

Version: daily_by_date_v1
"""

import math
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

import structlog

from dspr.models.common import utc_now
from dspr.models.daily_by_date import (
    DailyAverages,
    DailyByDateConfig,
    DailyByDateFilter,
    DailyByDateView,
    DayComparison,
    DayComparisonThresholds,
    DayOfWeekStats,
    Timeline,
    WeekPattern,
)
from dspr.models.enums import DailySortKey, DayTrend
from dspr.models.report import DayEntry

logger = structlog.get_logger()

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
WEEKEND = (0, 6)


def day_of_week(value: str) -> int:
    """Day of week with Sunday = 0."""
    return (date.fromisoformat(value[:10]).weekday() + 1) % 7


def _change_percent(change: float, previous: float) -> float:
    return change / previous if previous != 0 else 0.0


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def day_trend(sales_change_percent: float, thresholds: DayComparisonThresholds) -> DayTrend:
    if sales_change_percent >= thresholds.significant_change:
        return DayTrend.SIGNIFICANT_IMPROVEMENT
    if sales_change_percent >= thresholds.improvement:
        return DayTrend.IMPROVEMENT
    if sales_change_percent <= -thresholds.significant_change:
        return DayTrend.SIGNIFICANT_DECLINE
    if sales_change_percent <= thresholds.decline:
        return DayTrend.DECLINE
    return DayTrend.STABLE


def compare_day(entry: DayEntry, thresholds: Optional[DayComparisonThresholds] = None) -> DayComparison:
    thresholds = thresholds or DayComparisonThresholds()
    current, previous = entry.current, entry.previous_week
    dow = day_of_week(entry.date)

    sales_change = current.total_sales - previous.total_sales
    customer_change = current.customer_count - previous.customer_count
    ticket_change = current.average_ticket - previous.average_ticket
    sales_change_percent = _change_percent(sales_change, previous.total_sales)

    return DayComparison(
        date=entry.date,
        day_of_week=dow,
        day_name=DAY_NAMES[dow],
        sales_change=sales_change,
        sales_change_percent=sales_change_percent,
        customer_change=customer_change,
        customer_change_percent=_change_percent(customer_change, previous.customer_count),
        avg_ticket_change=ticket_change,
        avg_ticket_change_percent=_change_percent(ticket_change, previous.average_ticket),
        labor_change=current.labor - previous.labor,
        digital_change=current.digital_sales_percent - previous.digital_sales_percent,
        waste_change=current.waste_fraction - previous.waste_fraction,
        customer_service_change=current.customer_service - previous.customer_service,
        trend=day_trend(sales_change_percent, thresholds),
    )


def build_timeline(entries: List[DayEntry]) -> Timeline:
    ordered = sorted(entries, key=lambda e: e.date)
    return Timeline(
        dates=[e.date for e in ordered],
        sales=[e.current.total_sales for e in ordered],
        customers=[e.current.customer_count for e in ordered],
        avg_ticket=[e.current.average_ticket for e in ordered],
        labor_percent=[e.current.labor for e in ordered],
        digital_percent=[e.current.digital_sales_percent for e in ordered],
        waste_percent=[e.current.waste_fraction for e in ordered],
        customer_service=[e.current.customer_service for e in ordered],
        prev_week_sales=[e.previous_week.total_sales for e in ordered],
        prev_week_customers=[e.previous_week.customer_count for e in ordered],
    )


def daily_averages(entries: List[DayEntry]) -> DailyAverages:
    if not entries:
        return DailyAverages()

    sales = [e.current.total_sales for e in entries]
    avg_sales = _mean(sales)
    std_dev = math.sqrt(sum((value - avg_sales) ** 2 for value in sales) / len(sales))

    return DailyAverages(
        avg_sales=avg_sales,
        avg_customers=_mean([e.current.customer_count for e in entries]),
        avg_ticket=_mean([e.current.average_ticket for e in entries]),
        avg_labor_percent=_mean([e.current.labor for e in entries]),
        avg_waste_percent=_mean([e.current.waste_fraction for e in entries]),
        avg_digital_percent=_mean([e.current.digital_sales_percent for e in entries]),
        avg_customer_service=_mean([e.current.customer_service for e in entries]),
        sales_std_dev=std_dev,
        sales_variability=std_dev / avg_sales if avg_sales != 0 else 0.0,
    )


def best_day(entries: List[DayEntry]) -> Optional[DayEntry]:
    """Highest sales; the first entry wins a tie."""
    best = None
    for entry in entries:
        if best is None or entry.current.total_sales > best.current.total_sales:
            best = entry
    return best


def worst_day(entries: List[DayEntry]) -> Optional[DayEntry]:
    worst = None
    for entry in entries:
        if worst is None or entry.current.total_sales < worst.current.total_sales:
            worst = entry
    return worst


def filter_entries(entries: List[DayEntry], day_filter: DailyByDateFilter) -> List[DayEntry]:
    def keep(entry: DayEntry) -> bool:
        if day_filter.start_date and entry.date < day_filter.start_date:
            return False
        if day_filter.end_date and entry.date > day_filter.end_date:
            return False
        if day_filter.days_of_week and day_of_week(entry.date) not in day_filter.days_of_week:
            return False
        if day_filter.min_sales is not None and entry.current.total_sales < day_filter.min_sales:
            return False
        if (
            day_filter.min_customer_service is not None
            and entry.current.customer_service < day_filter.min_customer_service
        ):
            return False
        if day_filter.improvement_only and entry.current.total_sales <= entry.previous_week.total_sales:
            return False
        if day_filter.decline_only and entry.current.total_sales >= entry.previous_week.total_sales:
            return False
        return True

    return [entry for entry in entries if keep(entry)]


SORT_KEYS: Dict[DailySortKey, Callable[[DayEntry], float]] = {
    DailySortKey.SALES_DESC: lambda e: e.current.total_sales,
    DailySortKey.CUSTOMERS_DESC: lambda e: e.current.customer_count,
    DailySortKey.AVG_TICKET_DESC: lambda e: e.current.average_ticket,
    DailySortKey.SALES_CHANGE_DESC: lambda e: e.current.total_sales - e.previous_week.total_sales,
    DailySortKey.SERVICE_DESC: lambda e: e.current.customer_service,
}


def sort_entries(entries: List[DayEntry], sort: DailySortKey) -> List[DayEntry]:
    if sort == DailySortKey.DATE_ASC:
        return sorted(entries, key=lambda e: e.date)
    if sort == DailySortKey.DATE_DESC:
        return sorted(entries, key=lambda e: e.date, reverse=True)
    return sorted(entries, key=SORT_KEYS[sort], reverse=True)


def week_pattern(entries: List[DayEntry]) -> WeekPattern:
    """Per-weekday averages ranked by sales, plus weekday vs weekend split."""
    groups: Dict[int, List[DayEntry]] = {}
    for entry in entries:
        groups.setdefault(day_of_week(entry.date), []).append(entry)

    stats = [
        DayOfWeekStats(
            day_of_week=dow,
            day_name=DAY_NAMES[dow],
            avg_sales=_mean([e.current.total_sales for e in group]),
            avg_customers=_mean([e.current.customer_count for e in group]),
            avg_ticket=_mean([e.current.average_ticket for e in group]),
            occurrences=len(group),
            rank=0,
        )
        for dow, group in groups.items()
    ]
    stats.sort(key=lambda s: (-s.avg_sales, s.day_of_week))
    ranked = [s.model_copy(update={"rank": index + 1}) for index, s in enumerate(stats)]

    weekday = [e.current.total_sales for e in entries if day_of_week(e.date) not in WEEKEND]
    weekend = [e.current.total_sales for e in entries if day_of_week(e.date) in WEEKEND]
    weekday_avg = _mean(weekday)
    weekend_avg = _mean(weekend)

    return WeekPattern(
        breakdown=ranked,
        strongest_day=ranked[0] if ranked else None,
        weakest_day=ranked[-1] if ranked else None,
        weekday_avg_sales=weekday_avg,
        weekend_avg_sales=weekend_avg,
        weekend_weekday_ratio=weekend_avg / weekday_avg if weekday_avg != 0 else 0.0,
    )


def derive_daily_by_date(
    entries: List[DayEntry],
    store_id: str,
    week: int,
    config: Optional[DailyByDateConfig] = None,
    processed_at: Optional[datetime] = None,
) -> DailyByDateView:
    """
    Derive the daily-by-date view.

    Args:
        entries: Parsed per-day entries
        store_id: Store identity
        week: Week number
        config: Filter, sort key and comparison thresholds
        processed_at: Timestamp to stamp on the view (defaults to now)

    Returns:
        DailyByDateView; best/worst day are None when no entry survives the filter
    """
    config = config or DailyByDateConfig()
    selected = sort_entries(filter_entries(entries, config.filter), config.sort)

    view = DailyByDateView(
        store_id=store_id,
        week=week,
        entries=selected,
        comparisons={e.date: compare_day(e, config.comparison_thresholds) for e in selected},
        timeline=build_timeline(selected),
        averages=daily_averages(selected),
        best_day=best_day(selected),
        worst_day=worst_day(selected),
        week_pattern=week_pattern(selected),
        processed_at=processed_at or utc_now(),
    )

    logger.debug(
        "daily_by_date_view_derived",
        store_id=store_id,
        week=week,
        days=len(entries),
        selected=len(selected),
    )
    return view
