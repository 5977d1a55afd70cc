"""
Property-based tests using Hypothesis for the DSPR dashboard derivers.

These tests check bounds, monotonicity and symmetry of the grading,
comparison, progress and backoff helpers across generated inputs rather than
hand-picked examples.
"""

from datetime import datetime, timedelta

import hypothesis.strategies as st
from hypothesis import given, settings

from dspr.connectors.report_client import compute_backoff_delay
from dspr.engine.comparison import analyze_trends, compare
from dspr.engine.daily import derive_daily, overall_rules
from dspr.engine.daily_by_date import best_day, daily_averages, worst_day
from dspr.engine.dsqr import derive_dsqr
from dspr.engine.grading import score_metrics
from dspr.engine.weekly_current import week_progress
from dspr.models.common import RetryConfig
from dspr.models.daily import DailyTargets
from dspr.models.enums import ComparisonDirection, TrackingStatus
from tests.conftest import (
    BUSINESS_DATE,
    DSQR_TRACKING_KEYS,
    STORE_ID,
    make_day_entry,
    make_dsqr,
    make_metrics,
)

PROCESSED_AT = datetime(2025, 1, 15, 12, 0, 0)

ratios = st.floats(min_value=0.0, max_value=1.0, allow_nan=False, allow_infinity=False)
money = st.floats(min_value=0.0, max_value=1_000_000.0, allow_nan=False, allow_infinity=False)


# =============================================================================
# Daily grading
# =============================================================================


@given(
    labor=ratios,
    customer_service=ratios,
    digital=ratios,
    total_sales=money,
)
@settings(max_examples=100)
def test_prop_daily_derivation_is_idempotent(
    labor: float,
    customer_service: float,
    digital: float,
    total_sales: float,
):
    """
    Invariant 1: Deriving twice from the same input yields the same view.

    Property: derive_daily(m) == derive_daily(m) for any metrics m
    """
    metrics = make_metrics(
        labor=labor,
        customer_service=customer_service,
        digital_sales_percent=digital,
        total_sales=total_sales,
    )

    first = derive_daily(metrics, STORE_ID, BUSINESS_DATE, processed_at=PROCESSED_AT)
    second = derive_daily(metrics, STORE_ID, BUSINESS_DATE, processed_at=PROCESSED_AT)

    assert first == second


@given(low=ratios, high=ratios)
@settings(max_examples=100)
def test_prop_worse_labor_never_raises_score(low: float, high: float):
    """
    Invariant 2: Labor is lower-is-better, so more labor never scores higher.

    Property: labor_a <= labor_b implies score(a) >= score(b)
    """
    low, high = min(low, high), max(low, high)

    better = derive_daily(make_metrics(labor=low), STORE_ID, BUSINESS_DATE, processed_at=PROCESSED_AT)
    worse = derive_daily(make_metrics(labor=high), STORE_ID, BUSINESS_DATE, processed_at=PROCESSED_AT)

    assert worse.score <= better.score


@given(
    values=st.fixed_dictionaries(
        {
            "labor": ratios,
            "waste": ratios,
            "customer_service": ratios,
            "portal_utilization": ratios,
            "portal_on_time": ratios,
            "digital_sales": ratios,
            "customer_count": st.floats(min_value=0.0, max_value=5.0, allow_nan=False),
            "average_ticket": st.floats(min_value=0.0, max_value=100.0, allow_nan=False),
        }
    )
)
@settings(max_examples=100)
def test_prop_score_is_bounded(values: dict):
    """
    Invariant 3: Scores are clamped to [0, 100].

    Property: For any metric values, 0 <= score <= 100
    """
    result = score_metrics(values, overall_rules(DailyTargets()))

    assert 0.0 <= result.score <= 100.0
    assert len(result.violations) == len(set(result.violations))


# =============================================================================
# Week-over-week comparison
# =============================================================================


@given(
    sales_a=money,
    sales_b=money,
    customers_a=st.floats(min_value=0.0, max_value=10_000.0, allow_nan=False),
    customers_b=st.floats(min_value=0.0, max_value=10_000.0, allow_nan=False),
    labor_a=ratios,
    labor_b=ratios,
)
@settings(max_examples=100)
def test_prop_swapping_weeks_swaps_counts(
    sales_a: float,
    sales_b: float,
    customers_a: float,
    customers_b: float,
    labor_a: float,
    labor_b: float,
):
    """
    Invariant 4: Comparison direction is antisymmetric.

    Property: improved(a, b) == declined(b, a) and declined(a, b) == improved(b, a)
    """
    week_a = make_metrics(total_sales=sales_a, customer_count=customers_a, labor=labor_a)
    week_b = make_metrics(total_sales=sales_b, customer_count=customers_b, labor=labor_b)

    forward = compare(week_a, week_b)
    backward = compare(week_b, week_a)

    assert forward.improved_count == backward.declined_count
    assert forward.declined_count == backward.improved_count
    assert forward.improved_count + forward.declined_count <= 8


@given(sales=money, previous=money)
@settings(max_examples=100)
def test_prop_action_only_on_strong_decline(sales: float, previous: float):
    """
    Invariant 5: A single-metric trend recommends action only for a strong decline.

    Property: sales.action_recommended implies DECLINED and magnitude >= 10%
    """
    analysis = analyze_trends(compare(make_metrics(total_sales=sales), make_metrics(total_sales=previous)))

    if analysis.sales.action_recommended:
        assert analysis.sales.direction == ComparisonDirection.DECLINED
        assert analysis.sales.magnitude >= 0.10


# =============================================================================
# Week progress
# =============================================================================


@given(offset_hours=st.integers(min_value=-24 * 30, max_value=24 * 30))
@settings(max_examples=100)
def test_prop_week_progress_is_bounded(offset_hours: int):
    """
    Invariant 6: Week progress stays in [0, 1] for any reference time.

    Property: 0 <= week_progress(start, end, t) <= 1
    """
    as_of = datetime(2025, 1, 12) + timedelta(hours=offset_hours)
    progress = week_progress("2025-01-12", "2025-01-18", as_of)

    assert 0.0 <= progress <= 1.0


@given(
    first=st.integers(min_value=0, max_value=24 * 7),
    second=st.integers(min_value=0, max_value=24 * 7),
)
@settings(max_examples=100)
def test_prop_week_progress_is_monotonic(first: int, second: int):
    """
    Invariant 7: Later reference times never report less progress.

    Property: t1 <= t2 implies progress(t1) <= progress(t2)
    """
    early, late = min(first, second), max(first, second)
    start = datetime(2025, 1, 12)

    assert week_progress("2025-01-12", "2025-01-18", start + timedelta(hours=early)) <= week_progress(
        "2025-01-12", "2025-01-18", start + timedelta(hours=late)
    )


# =============================================================================
# Retry backoff
# =============================================================================


@given(
    attempt=st.integers(min_value=0, max_value=20),
    base_delay_ms=st.integers(min_value=0, max_value=5000),
    max_delay_ms=st.integers(min_value=0, max_value=60000),
    multiplier=st.floats(min_value=1.0, max_value=4.0, allow_nan=False),
    jitter_ms=st.floats(min_value=0.0, max_value=1000.0, allow_nan=False),
)
@settings(max_examples=100)
def test_prop_backoff_delay_never_exceeds_max(
    attempt: int,
    base_delay_ms: int,
    max_delay_ms: int,
    multiplier: float,
    jitter_ms: float,
):
    """
    Invariant 8: Backoff delays are non-negative and capped at max_delay_ms.

    Property: 0 <= delay <= max_delay_ms / 1000
    """
    config = RetryConfig(
        base_delay_ms=base_delay_ms,
        max_delay_ms=max_delay_ms,
        backoff_multiplier=multiplier,
    )

    delay = compute_backoff_delay(attempt, config, jitter_ms=jitter_ms)

    assert 0.0 <= delay <= max_delay_ms / 1000.0


@given(
    attempt=st.integers(min_value=0, max_value=19),
    multiplier=st.floats(min_value=1.0, max_value=4.0, allow_nan=False),
)
@settings(max_examples=100)
def test_prop_backoff_delay_is_non_decreasing(attempt: int, multiplier: float):
    """
    Invariant 9: Without jitter, each retry waits at least as long as the last.

    Property: delay(n) <= delay(n + 1)
    """
    config = RetryConfig(backoff_multiplier=multiplier)

    assert compute_backoff_delay(attempt, config) <= compute_backoff_delay(attempt + 1, config)


# =============================================================================
# DSQR and daily-by-date
# =============================================================================


@given(
    statuses=st.lists(
        st.sampled_from(list(TrackingStatus)),
        min_size=len(DSQR_TRACKING_KEYS),
        max_size=len(DSQR_TRACKING_KEYS),
    )
)
@settings(max_examples=100)
def test_prop_dsqr_performance_is_bounded(statuses: list):
    """
    Invariant 10: Platform and overall performance stay in [0, 100].

    Property: For any tracking flags, every percentage is in [0, 100]
    """
    tracking = dict(zip(DSQR_TRACKING_KEYS, statuses))
    view = derive_dsqr(make_dsqr(tracking=tracking), STORE_ID, BUSINESS_DATE, processed_at=PROCESSED_AT)

    assert 0.0 <= view.summary.overall_performance <= 100.0
    for metrics in view.platforms.values():
        assert 0.0 <= metrics.performance_percentage <= 100.0
        assert metrics.on_track_count <= metrics.total_applicable_metrics


@given(sales=st.lists(money, min_size=1, max_size=7))
@settings(max_examples=100)
def test_prop_best_and_worst_day_bracket_average(sales: list):
    """
    Invariant 11: The best day sells at least the average; the worst at most.

    Property: worst.sales <= avg_sales <= best.sales
    """
    entries = [make_day_entry(f"2025-01-{12 + i:02d}", value, value) for i, value in enumerate(sales)]

    averages = daily_averages(entries)
    best = best_day(entries)
    worst = worst_day(entries)

    assert best.current.total_sales == max(sales)
    assert worst.current.total_sales == min(sales)
    assert worst.current.total_sales - 1e-6 <= averages.avg_sales <= best.current.total_sales + 1e-6
