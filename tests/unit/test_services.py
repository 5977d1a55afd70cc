"""
Unit tests for the module services and the dashboard composition root:
store subscription, config actions, stale-on-error and clearing.
"""

import asyncio

import pytest
from pydantic import ValidationError

from dspr.connectors.report_client import NetworkError
from dspr.models.enums import (
    ComparisonDirection,
    DailySortKey,
    DeliveryPlatform,
    LetterGrade,
    PerformanceGrade,
)
from dspr.services.daily_service import DailyService
from tests.conftest import BUSINESS_DATE, STORE_ID, make_report_payload

NEXT_DATE = "2025-01-16"


def fetch(dashboard, business_date: str = BUSINESS_DATE, **kwargs) -> None:
    asyncio.run(dashboard.fetch(STORE_ID, business_date, **kwargs))


# ============================================================================
# Dashboard wiring
# ============================================================================


class TestDashboard:
    """Test that one fetch feeds every module."""

    def test_dashboard_fetch_populates_every_module(self, loaded_dashboard, clock):
        """All six services derive a view from one report."""
        for name, service in loaded_dashboard.services.items():
            assert service.has_data, name
            assert service.last_processed == clock.now

        assert set(loaded_dashboard.services) == {
            "daily",
            "weekly_current",
            "weekly_previous",
            "hourly",
            "dsqr",
            "daily_by_date",
        }

    def test_dashboard_module_headlines(self, loaded_dashboard):
        """Headline selectors reflect the default report."""
        d = loaded_dashboard

        assert d.daily.grade == PerformanceGrade.EXCELLENT
        assert d.daily.total_sales == 10000.0
        assert d.weekly_current.week_progress == pytest.approx(0.5)
        assert d.weekly_previous.overall_trend == ComparisonDirection.IMPROVED
        assert d.weekly_previous.action_required is False
        assert d.weekly_previous.view.week == 2
        assert d.hourly.peak_hour.hour == 12
        assert d.hourly.promise_met_percent == pytest.approx(88.0)
        assert d.dsqr.performance_grade == LetterGrade.A_PLUS
        assert d.daily_by_date.best_day.date == "2025-01-12"

    def test_dashboard_clear_all_resets_store_and_views(self, loaded_dashboard):
        """clear_all drops the report and every module view."""
        loaded_dashboard.clear_all()

        assert loaded_dashboard.store.report is None
        assert loaded_dashboard.store.is_idle
        assert not any(service.has_data for service in loaded_dashboard.services.values())

    def test_dashboard_store_clear_keeps_module_views(self, loaded_dashboard):
        """Clearing only the store leaves derived views in place."""
        loaded_dashboard.store.clear()

        assert loaded_dashboard.daily.has_data
        assert loaded_dashboard.daily.score == 100

    def test_dashboard_aclose_closes_client_and_unsubscribes(self, loaded_dashboard, fake_client):
        """aclose closes the client; later store events no longer reach the services."""
        view = loaded_dashboard.daily.view
        asyncio.run(loaded_dashboard.aclose())

        assert fake_client.closed is True
        asyncio.run(loaded_dashboard.store.fetch(STORE_ID, NEXT_DATE))
        assert loaded_dashboard.daily.view is view

    def test_service_created_after_fetch_ingests_current_report(self, loaded_dashboard, clock):
        """A late subscriber derives from the report already in the store."""
        service = DailyService(loaded_dashboard.store, clock=clock)

        assert service.has_data
        assert service.score == loaded_dashboard.daily.score


# ============================================================================
# Store events
# ============================================================================


class TestStoreEvents:
    """Test how services react to store events."""

    def test_failed_refresh_keeps_previous_views(self, loaded_dashboard, fake_client):
        """A failed fetch leaves every view as it was."""
        views = {name: service.view for name, service in loaded_dashboard.services.items()}
        fake_client.error = NetworkError("down")
        fetch(loaded_dashboard, force=True)

        assert loaded_dashboard.store.is_failed
        for name, service in loaded_dashboard.services.items():
            assert service.view is views[name], name

    def test_missing_slice_keeps_prior_module_view(self, loaded_dashboard, fake_client):
        """A report without hourly data leaves the hourly view untouched."""
        fake_client.payloads[(STORE_ID, NEXT_DATE)] = make_report_payload(
            business_date=NEXT_DATE, omit=("dailyHourlySales",)
        )
        fetch(loaded_dashboard, business_date=NEXT_DATE)

        assert loaded_dashboard.daily.view.business_date == NEXT_DATE
        assert loaded_dashboard.hourly.view.business_date == BUSINESS_DATE

    def test_cached_fetch_does_not_rederive(self, loaded_dashboard):
        """A fresh-cache fetch emits nothing, so views keep their identity."""
        view = loaded_dashboard.daily.view
        fetch(loaded_dashboard)

        assert loaded_dashboard.daily.view is view


# ============================================================================
# Config actions
# ============================================================================


class TestConfigActions:
    """Test per-module configuration actions."""

    def test_daily_set_targets_rederives(self, loaded_dashboard):
        """Tightening the labor target re-grades immediately."""
        loaded_dashboard.daily.set_targets(labor_cost=0.20)

        assert loaded_dashboard.daily.config.targets.labor_cost == 0.20
        assert loaded_dashboard.daily.score == 85
        assert [a.metric for a in loaded_dashboard.daily.alerts] == ["labor"]

    def test_daily_invalid_target_is_rejected_and_config_kept(self, loaded_dashboard):
        """An out-of-range target raises and leaves config and view alone."""
        view = loaded_dashboard.daily.view
        with pytest.raises(ValidationError):
            loaded_dashboard.daily.set_targets(labor_cost=-1)

        assert loaded_dashboard.daily.config.targets.labor_cost == 0.25
        assert loaded_dashboard.daily.view is view

    def test_daily_non_descending_grade_bands_rejected(self, loaded_dashboard):
        """Grade bands must stay strictly descending."""
        with pytest.raises(ValidationError):
            loaded_dashboard.daily.set_grade_bands(excellent=50)

    def test_toggle_alerts_off_and_on(self, loaded_dashboard):
        """Disabled alerts empty the list; enabling restores it."""
        daily = loaded_dashboard.daily
        daily.set_targets(labor_cost=0.20)

        daily.toggle_alerts(False)
        assert daily.alerts == []
        assert daily.alerts_enabled is False

        daily.toggle_alerts(True)
        assert daily.alert_count == 1

    def test_reset_config_restores_defaults(self, loaded_dashboard):
        """reset_config goes back to default targets."""
        loaded_dashboard.daily.set_targets(labor_cost=0.20)
        loaded_dashboard.daily.reset_config()

        assert loaded_dashboard.daily.config.targets.labor_cost == 0.25
        assert loaded_dashboard.daily.score == 100

    def test_config_change_before_data_is_kept(self, dashboard):
        """Config set before any fetch applies to the first derivation."""
        dashboard.daily.set_targets(labor_cost=0.20)
        assert not dashboard.daily.has_data

        fetch(dashboard)
        assert dashboard.daily.score == 85

    def test_weekly_current_operating_days(self, loaded_dashboard):
        """Operating days change daily averages and are range checked."""
        loaded_dashboard.weekly_current.set_operating_days(5)
        assert loaded_dashboard.weekly_current.view.financial.daily_average_sales == pytest.approx(14000.0)

        with pytest.raises(ValidationError):
            loaded_dashboard.weekly_current.set_operating_days(0)

    def test_weekly_current_filter_and_clear(self, loaded_dashboard):
        """The weekly filter sets matches_filter; clearing it matches again."""
        weekly = loaded_dashboard.weekly_current
        weekly.set_filter(min_sales=100000.0)
        assert weekly.matches_filter is False

        weekly.clear_filter()
        assert weekly.matches_filter is True

    def test_weekly_previous_strong_threshold_changes_severity(self, loaded_dashboard):
        """Raising the strong band downgrades the sales trend."""
        previous = loaded_dashboard.weekly_previous
        previous.set_comparison_thresholds(strong_change=0.5)

        assert previous.trend_analysis.sales.severity.value == "moderate"

    def test_dsqr_filter_is_view_only(self, loaded_dashboard):
        """Changing the KPI filter never re-derives."""
        dsqr = loaded_dashboard.dsqr
        view = dsqr.view
        dsqr.set_filter(platforms=[DeliveryPlatform.GRUBHUB])

        assert dsqr.view is view
        assert len(dsqr.filtered_kpis) == 4

        dsqr.clear_filter()
        assert len(dsqr.filtered_kpis) == 19

    def test_dsqr_invalid_filter_rejected(self, loaded_dashboard):
        """Unknown platforms are rejected."""
        with pytest.raises(ValidationError):
            loaded_dashboard.dsqr.set_filter(platforms=["not-a-platform"])

    def test_daily_by_date_sort_and_filter(self, loaded_dashboard):
        """Sort and filter actions reshape the entry list."""
        days = loaded_dashboard.daily_by_date
        days.set_sort(DailySortKey.SALES_DESC)
        assert days.available_dates == ["2025-01-12", "2025-01-15", "2025-01-14", "2025-01-13"]

        days.set_filter(decline_only=True)
        assert days.available_dates == ["2025-01-14"]

        days.clear_filter()
        assert len(days.available_dates) == 4

    def test_daily_by_date_has_no_alert_toggle(self, loaded_dashboard):
        """The per-date module carries no alerts."""
        days = loaded_dashboard.daily_by_date
        days.toggle_alerts(True)

        assert days.alerts_enabled is False
        assert days.alerts == []


# ============================================================================
# Snapshots
# ============================================================================


class TestSnapshots:
    """Test serializable module summaries."""

    def test_snapshot_without_data(self, dashboard):
        """An empty module snapshot has no view."""
        snapshot = dashboard.hourly.snapshot()

        assert snapshot == {
            "module": "hourly",
            "has_data": False,
            "last_processed": None,
            "alert_count": 0,
            "view": None,
        }

    def test_snapshot_with_data_is_json_ready(self, loaded_dashboard):
        """Enums and datetimes are rendered as JSON values."""
        snapshot = loaded_dashboard.daily.snapshot()

        assert snapshot["has_data"] is True
        assert snapshot["view"]["grade"] == "Excellent"
        assert snapshot["view"]["store_id"] == STORE_ID
        assert isinstance(snapshot["last_processed"], str)
