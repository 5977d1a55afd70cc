"""
Unit tests for the report adapter: key variants, metadata defaults, partial
payloads and tracking-flag parsing.
"""

import math
from datetime import datetime

import pytest

from dspr.adapters.report_adapter import ReportAdapter, parse_tracking_status, week_number_for
from dspr.models.enums import TrackingStatus
from tests.conftest import (
    BUSINESS_DATE,
    STORE_ID,
    make_daily_by_date_payload,
    make_metrics_payload,
    make_report_payload,
)


@pytest.fixture
def adapter():
    return ReportAdapter()


class TestAdapterMetrics:
    """Test metric key normalization."""

    def test_adapter_normalize_full_payload(self, adapter):
        """Every slice of a complete payload is populated."""
        report = adapter.normalize(make_report_payload(), STORE_ID, BUSINESS_DATE)

        assert report.daily.total_sales == 10000.0
        assert report.daily.average_ticket == 15.0
        assert report.hourly is not None
        assert len(report.hourly.hours) == 3
        assert report.dsqr is not None
        assert report.weekly_current.total_sales == 70000.0
        assert report.weekly_previous.total_sales == 63000.0
        assert [e.date for e in report.daily_by_date] == [
            "2025-01-12",
            "2025-01-13",
            "2025-01-14",
            "2025-01-15",
        ]

    @pytest.mark.parametrize("key", ["Total_Sales", "TotalSales", "total_sales", "totalsales"])
    def test_adapter_total_sales_key_variants(self, adapter, key):
        """Snake, Pascal and squashed spellings map to total_sales."""
        metrics = adapter.parse_metrics({key: 1234.5})
        assert metrics.total_sales == 1234.5

    @pytest.mark.parametrize("key", ["Avrage_ticket", "Average_Ticket", "average_ticket", "Avrageticket"])
    def test_adapter_average_ticket_typo_variants(self, adapter, key):
        """The historic 'Avrage' spelling is accepted."""
        assert adapter.parse_metrics({key: 16.2}).average_ticket == 16.2

    def test_adapter_deposit_difference_typo(self, adapter):
        """'Deposite' and 'Deposit' spellings both map."""
        assert adapter.parse_metrics({"Cash_Sales_Vs_Deposite_Difference": -4}).cash_sales_vs_deposit_difference == -4
        assert adapter.parse_metrics({"Cash_Sales_Vs_Deposit_Difference": 3}).cash_sales_vs_deposit_difference == 3

    def test_adapter_first_alias_wins(self, adapter):
        """When two spellings are present the first in lookup order wins."""
        metrics = adapter.parse_metrics({"Total_Sales": 100.0, "total_sales": 999.0})
        assert metrics.total_sales == 100.0

    def test_adapter_missing_and_junk_values_default_to_zero(self, adapter):
        """None, NaN, infinities and strings become 0."""
        metrics = adapter.parse_metrics(
            {"Total_Sales": None, "labor": float("nan"), "Waste_Alta": float("inf"), "Customer_count": "n/a"}
        )
        assert metrics.total_sales == 0.0
        assert metrics.labor == 0.0
        assert metrics.waste_alta == 0.0
        assert metrics.customer_count == 0.0
        assert not math.isnan(metrics.labor)

    def test_adapter_numeric_strings_are_parsed(self, adapter):
        """Numeric strings are converted."""
        assert adapter.parse_metrics({"Total_Sales": "2500.75"}).total_sales == 2500.75

    def test_adapter_hnr_fields_stay_none_when_absent(self, adapter):
        """Optional HNR fields are None rather than 0 when missing."""
        metrics = adapter.parse_metrics(make_metrics_payload())
        assert metrics.hnr_transactions is None
        assert metrics.hnr_promise_met_percent is None


class TestAdapterSections:
    """Test slice presence and metadata defaults."""

    def test_adapter_missing_slices_are_none(self, adapter):
        """Omitted sections normalize to None / empty, never raise."""
        payload = make_report_payload(omit=("dailyHourlySales", "dailyDSQRData", "PrevWeekDSPRData", "DailyDSPRByDate"))
        report = adapter.normalize(payload, STORE_ID, BUSINESS_DATE)

        assert report.daily is not None
        assert report.hourly is None
        assert report.dsqr is None
        assert report.weekly_previous is None
        assert report.daily_by_date == []

    def test_adapter_empty_payload_uses_request_key(self, adapter):
        """With no metadata block, store/date/week come from the request."""
        report = adapter.normalize({}, STORE_ID, BUSINESS_DATE)

        fv = report.filtering_values
        assert fv.store == STORE_ID
        assert fv.date == BUSINESS_DATE
        assert fv.week == 3
        assert fv.week_start_date == BUSINESS_DATE
        assert report.daily is None

    def test_adapter_spaced_filtering_values_key(self, adapter):
        """'Filtering Values' with a space is accepted."""
        payload = {"Filtering Values": {"Store": "12345-67890", "Date": "2025-03-01", "Week": 9}}
        fv = adapter.normalize(payload, STORE_ID, BUSINESS_DATE).filtering_values

        assert fv.store == "12345-67890"
        assert fv.date == "2025-03-01"
        assert fv.week == 9

    def test_adapter_timestamp_date_is_truncated(self, adapter):
        """A timestamp date is cut to YYYY-MM-DD so cache keys compare equal."""
        payload = {"FilteringValues": {"date": "2025-01-15T00:00:00Z"}}
        report = adapter.normalize(payload, STORE_ID, BUSINESS_DATE)

        assert report.filtering_values.date == BUSINESS_DATE
        assert report.matches(STORE_ID, BUSINESS_DATE)

    def test_adapter_non_numeric_items_are_dropped(self, adapter):
        """Item codes that are not integers are skipped."""
        payload = {"FilteringValues": {"items": [1, "2", "x", None]}}
        assert adapter.normalize(payload, STORE_ID, BUSINESS_DATE).filtering_values.items == [1, 2]

    def test_adapter_received_at_is_stamped(self, adapter):
        """received_at uses the supplied timestamp."""
        stamp = datetime(2025, 1, 15, 9, 30)
        assert adapter.normalize({}, STORE_ID, BUSINESS_DATE, received_at=stamp).received_at == stamp


class TestAdapterDailyByDate:
    """Test per-date map parsing."""

    def test_adapter_daily_by_date_skips_non_date_keys(self, adapter):
        """Keys that are not ISO dates or values that are not objects are skipped."""
        raw = make_daily_by_date_payload([("2025-01-13", 100.0, 90.0)])
        raw["summary"] = {"Total_Sales": 1}
        raw["2025-01-14"] = "not an object"

        entries = adapter.parse_daily_by_date(raw)
        assert [e.date for e in entries] == ["2025-01-13"]
        assert entries[0].previous_week.total_sales == 90.0

    def test_adapter_daily_by_date_missing_prev_week_falls_back_to_current(self, adapter):
        """Without PrevWeek the current day doubles as the comparison."""
        entries = adapter.parse_daily_by_date({"2025-01-13": make_metrics_payload(total_sales=500.0)})
        assert entries[0].previous_week.total_sales == 500.0

    def test_adapter_daily_by_date_sorted_by_date(self, adapter):
        """Entries come back in date order regardless of map order."""
        raw = make_daily_by_date_payload([("2025-01-15", 1.0, 1.0), ("2025-01-12", 2.0, 2.0)])
        assert [e.date for e in adapter.parse_daily_by_date(raw)] == ["2025-01-12", "2025-01-15"]


class TestTrackingAndWeek:
    """Test tracking flags and week numbering."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("On Track", TrackingStatus.ON_TRACK),
            ("on_track", TrackingStatus.ON_TRACK),
            (True, TrackingStatus.ON_TRACK),
            (1, TrackingStatus.ON_TRACK),
            ("Off Track", TrackingStatus.OFF_TRACK),
            (False, TrackingStatus.OFF_TRACK),
            (0, TrackingStatus.OFF_TRACK),
            (None, TrackingStatus.NOT_APPLICABLE),
            ("N/A", TrackingStatus.NOT_APPLICABLE),
            ("", TrackingStatus.NOT_APPLICABLE),
        ],
    )
    def test_parse_tracking_status(self, value, expected):
        """Server tracking flags map onto the three statuses."""
        assert parse_tracking_status(value) == expected

    def test_adapter_dsqr_tracking_parsed(self, adapter):
        """DSQR tracking values are parsed to TrackingStatus."""
        dsqr = adapter.parse_dsqr({"score": {"GH_Rating": 4.1}, "is_on_track": {"GH_NAOT_Rating": "Off Track"}})
        assert dsqr.scores["GH_Rating"] == 4.1
        assert dsqr.tracking["GH_NAOT_Rating"] == TrackingStatus.OFF_TRACK

    @pytest.mark.parametrize(
        "business_date,expected",
        [("2025-01-01", 1), ("2025-01-04", 1), ("2025-01-05", 2), ("2025-01-15", 3), ("not-a-date", 0)],
    )
    def test_week_number_for(self, business_date, expected):
        """Sunday-started weeks; week 1 contains January 1."""
        assert week_number_for(business_date) == expected
