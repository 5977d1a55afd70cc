"""
Pytest configuration and shared fixtures for the DSPR dashboard test suite.

Factories build report payloads in the upstream wire shape (PascalCase keys,
historic typos included) so tests exercise the adapter the same way
production traffic does. Canonical-model factories are provided for engine
tests that do not need the wire layer.
"""

import asyncio
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Set testing environment BEFORE importing app
os.environ["TESTING"] = "true"
os.environ["LOG_FORMAT"] = "console"
os.environ["DSPR_API_BASE_URL"] = "https://reports.test/api"

from dspr.models.report import DayEntry, DsqrReport, HourlySales, HourRecord, StoreMetrics
from dspr.models.enums import TrackingStatus
from dspr.services.dashboard import Dashboard
from dspr.storage.report_store import ReportStore

STORE_ID = "03795-00001"
BUSINESS_DATE = "2025-01-15"
WEEK_START = "2025-01-12"
WEEK_END = "2025-01-18"


# ---------------------------------------------------------------------------
# Canonical metric factories
# ---------------------------------------------------------------------------

# A day that clears every default target
HEALTHY_METRICS: Dict[str, float] = dict(
    labor=0.22,
    waste_gateway=200.0,
    waste_alta=100.0,
    over_short=2.0,
    refunded_order_qty=5.0,
    total_cash_sales=3000.0,
    total_sales=10000.0,
    modified_order_qty=10.0,
    total_tips=450.0,
    customer_count=650.0,
    doordash_sales=900.0,
    ubereats_sales=600.0,
    grubhub_sales=300.0,
    phone=800.0,
    call_center_agent=200.0,
    website=2500.0,
    mobile=2000.0,
    digital_sales_percent=0.45,
    total_portal_eligible_transactions=400.0,
    put_into_portal_percent=0.97,
    in_portal_on_time_percent=0.96,
    drive_thru_sales=500.0,
    upselling=0.75,
    cash_sales_vs_deposit_difference=0.0,
    average_ticket=15.0,
    customer_count_percent=0.90,
    customer_service=0.95,
)

# canonical field -> primary wire key
WIRE_KEYS: Dict[str, str] = {
    "labor": "labor",
    "waste_gateway": "Waste_Gateway",
    "over_short": "Over_Short",
    "refunded_order_qty": "Refunded_order_Qty",
    "total_cash_sales": "Total_Cash_Sales",
    "total_sales": "Total_Sales",
    "waste_alta": "Waste_Alta",
    "modified_order_qty": "Modified_Order_Qty",
    "total_tips": "Total_TIPS",
    "customer_count": "Customer_count",
    "doordash_sales": "DoorDash_Sales",
    "ubereats_sales": "UberEats_Sales",
    "grubhub_sales": "GrubHub_Sales",
    "phone": "Phone",
    "call_center_agent": "Call_Center_Agent",
    "website": "Website",
    "mobile": "Mobile",
    "digital_sales_percent": "Digital_Sales_Percent",
    "total_portal_eligible_transactions": "Total_Portal_Eligible_Transactions",
    "put_into_portal_percent": "Put_into_Portal_Percent",
    "in_portal_on_time_percent": "In_Portal_on_Time_Percent",
    "drive_thru_sales": "Drive_Thru_Sales",
    "upselling": "Upselling",
    "cash_sales_vs_deposit_difference": "Cash_Sales_Vs_Deposite_Difference",
    "average_ticket": "Avrage_ticket",
    "customer_count_percent": "Customer_count_percent",
    "customer_service": "Customer_Service",
}


def make_metrics(**overrides) -> StoreMetrics:
    """Factory for canonical StoreMetrics (healthy day unless overridden)."""
    return StoreMetrics(**{**HEALTHY_METRICS, **overrides})


def make_weekly_metrics(scale: float = 7.0, **overrides) -> StoreMetrics:
    """Weekly aggregate: money and counts scaled, ratios unchanged."""
    ratios = {
        "labor",
        "digital_sales_percent",
        "put_into_portal_percent",
        "in_portal_on_time_percent",
        "upselling",
        "average_ticket",
        "customer_count_percent",
        "customer_service",
    }
    fields = {
        name: value if name in ratios else value * scale
        for name, value in HEALTHY_METRICS.items()
    }
    return StoreMetrics(**{**fields, **overrides})


def make_metrics_payload(**overrides) -> Dict[str, Any]:
    """Wire-shaped metrics block; overrides use canonical field names."""
    fields = {**HEALTHY_METRICS, **overrides}
    return {WIRE_KEYS.get(name, name): value for name, value in fields.items()}


# ---------------------------------------------------------------------------
# Hourly and DSQR factories
# ---------------------------------------------------------------------------


def make_hour_payload(
    hour: int,
    total_sales: float,
    order_count: float,
    website: float = 0.0,
    mobile: float = 0.0,
    hnr_transactions: float = 0.0,
    hnr_met: float = 0.0,
) -> Dict[str, Any]:
    return {
        "Hour": hour,
        "Total_Sales": total_sales,
        "Phone_Sales": 0.0,
        "Call_Center_Agent": 0.0,
        "Drive_Thru": 0.0,
        "Website": website,
        "Mobile": mobile,
        "Order_Count": order_count,
        "HNR": {"Transactions": hnr_transactions, "Promise_Met_Transactions": hnr_met},
    }


def make_hourly_payload(hours: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    if hours is None:
        hours = [
            make_hour_payload(11, 800.0, 50, website=250.0, mobile=150.0, hnr_transactions=20, hnr_met=18),
            make_hour_payload(12, 1500.0, 100, website=500.0, mobile=300.0, hnr_transactions=40, hnr_met=36),
            make_hour_payload(17, 1200.0, 80, website=400.0, mobile=200.0, hnr_transactions=40, hnr_met=34),
        ]
    return {"franchise_store": STORE_ID, "business_date": BUSINESS_DATE, "hours": hours}


def make_hourly(records: List[Tuple[int, float, float]]) -> HourlySales:
    """Canonical HourlySales from (hour, total_sales, order_count) tuples."""
    return HourlySales(
        franchise_store=STORE_ID,
        business_date=BUSINESS_DATE,
        hours=[HourRecord(hour=h, total_sales=s, order_count=o) for h, s, o in records],
    )


DSQR_SCORES: Dict[str, Any] = {
    "DD_Ratings_Average_Rating": 4.7,
    "DD_Most_Loved_Restaurant": 1,
    "DD_Optimization_Score": 8.5,
    "DD_Cancellations_Sales_Lost": 12.5,
    "DD_Missing_or_Incorrect_Error_Charges": 3.0,
    "DD_Avoidable_Wait_M_Sec": "2:15",
    "DD_Total_Dasher_Wait_M_Sec": "4:30",
    "DD_Downtime_H_MM": "0:00",
    "DD_Reviews_Responded": 0.8,
    "UE_Customer_reviews_overview": 4.6,
    "UE_Cost_of_Refunds": 8.0,
    "UE_Unfulfilled_order_rate": 0.01,
    "UE_Time_unavailable_during_open_hours_hh_mm": "0:10",
    "UE_Top_inaccurate_item": "Pepperoni",
    "UE_Reviews_Responded": 0.5,
    "GH_Rating": 4.4,
    "GH_Food_was_good": 0.92,
    "GH_Delivery_was_on_time": 0.9,
    "GH_Order_was_accurate": 0.95,
}

DSQR_TRACKING_KEYS: List[str] = [
    "DD_NAOT_Ratings_Average_Rating",
    "DD_NAOT_Cancellations_Sales_Lost",
    "DD_NAOT_Missing_or_Incorrect_Error_Charges",
    "DD_NAOT_Avoidable_Wait_M_Sec",
    "DD_NAOT_Total_Dasher_Wait_M_Sec",
    "DD_NAOT_Downtime_H_MM",
    "UE_NAOT_Customer_reviews_overview",
    "UE_NAOT_Cost_of_Refunds",
    "UE_NAOT_Unfulfilled_order_rate",
    "UE_NAOT_Time_unavailable_during_open_hours_hh_mm",
    "GH_NAOT_Rating",
    "GH_NAOT_Food_was_good",
    "GH_NAOT_Delivery_was_on_time",
    "GH_NAOT_Order_was_accurate",
]


def make_dsqr_payload(
    scores: Optional[Dict[str, Any]] = None,
    tracking: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Wire DSQR block; every tracked KPI is "On Track" unless overridden."""
    return {
        "score": {**DSQR_SCORES, **(scores or {})},
        "is_on_track": {**{key: "On Track" for key in DSQR_TRACKING_KEYS}, **(tracking or {})},
    }


def make_dsqr(
    scores: Optional[Dict[str, Any]] = None,
    tracking: Optional[Dict[str, TrackingStatus]] = None,
) -> DsqrReport:
    return DsqrReport(
        scores={**DSQR_SCORES, **(scores or {})},
        tracking={
            **{key: TrackingStatus.ON_TRACK for key in DSQR_TRACKING_KEYS},
            **(tracking or {}),
        },
    )


# ---------------------------------------------------------------------------
# Daily-by-date factories
# ---------------------------------------------------------------------------


def make_day_entry(day: str, sales: float, previous_sales: float, **overrides) -> DayEntry:
    return DayEntry(
        date=day,
        current=make_metrics(total_sales=sales, **overrides),
        previous_week=make_metrics(total_sales=previous_sales),
    )


# Sun 12 .. Wed 15, with last week's same weekday
WEEK_DAYS: List[Tuple[str, float, float]] = [
    ("2025-01-12", 12000.0, 11000.0),
    ("2025-01-13", 8000.0, 8000.0),
    ("2025-01-14", 9000.0, 10000.0),
    ("2025-01-15", 10000.0, 9500.0),
]


def make_daily_by_date_payload(days: Optional[List[Tuple[str, float, float]]] = None) -> Dict[str, Any]:
    days = WEEK_DAYS if days is None else days
    return {
        day: {**make_metrics_payload(total_sales=sales), "PrevWeek": make_metrics_payload(total_sales=prev)}
        for day, sales, prev in days
    }


# ---------------------------------------------------------------------------
# Full report payload
# ---------------------------------------------------------------------------


def make_report_payload(
    store_id: str = STORE_ID,
    business_date: str = BUSINESS_DATE,
    daily: Optional[Dict[str, Any]] = None,
    hourly: Optional[Dict[str, Any]] = None,
    dsqr: Optional[Dict[str, Any]] = None,
    weekly_current: Optional[Dict[str, Any]] = None,
    weekly_previous: Optional[Dict[str, Any]] = None,
    daily_by_date: Optional[Dict[str, Any]] = None,
    omit: Tuple[str, ...] = (),
) -> Dict[str, Any]:
    """
    Factory for a complete wire-shaped report payload.

    Sections named in omit are left out of the payload entirely.
    """
    daily_block = {
        "dailyDSPRData": daily if daily is not None else make_metrics_payload(),
        "dailyHourlySales": hourly if hourly is not None else make_hourly_payload(),
        "dailyDSQRData": dsqr if dsqr is not None else make_dsqr_payload(),
    }
    weekly_block = {
        "DSPRData": weekly_current
        if weekly_current is not None
        else make_metrics_payload(total_sales=70000.0, customer_count=4550.0),
        "PrevWeekDSPRData": weekly_previous
        if weekly_previous is not None
        else make_metrics_payload(total_sales=63000.0, customer_count=4300.0),
        "DailyDSPRByDate": daily_by_date if daily_by_date is not None else make_daily_by_date_payload(),
    }
    for key in omit:
        daily_block.pop(key, None)
        weekly_block.pop(key, None)

    return {
        "FilteringValues": {
            "store": store_id,
            "date": business_date,
            "items": [101, 202],
            "week": 3,
            "weekStartDate": WEEK_START,
            "weekEndDate": WEEK_END,
            "lookBackStart": "2024-12-15",
            "lookBackEnd": business_date,
            "depositDeliveryUrl": "https://deposits.test/03795",
        },
        "reports": {"daily": daily_block, "weekly": weekly_block},
    }


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Injectable clock; advance() moves time forward."""

    def __init__(self, now: datetime = datetime(2025, 1, 15, 12, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeReportClient:
    """
    Stand-in for ReportClient.

    Returns payloads per (store, date) key, or raises `error` when set.
    hold() returns an event the fetch for that key waits on.
    """

    def __init__(self, payload: Optional[Dict[str, Any]] = None):
        self.payload = payload
        self.payloads: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.error: Optional[Exception] = None
        self.calls: List[Tuple[str, str]] = []
        self.gates: Dict[Tuple[str, str], asyncio.Event] = {}
        self.closed = False

    def hold(self, store_id: str, business_date: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[(store_id, business_date)] = gate
        return gate

    async def fetch_report(self, store_id: str, business_date: str, body=None) -> Dict[str, Any]:
        key = (store_id, business_date)
        self.calls.append(key)
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        if key in self.payloads:
            return self.payloads[key]
        if self.payload is not None:
            return self.payload
        return make_report_payload(store_id=store_id, business_date=business_date)

    async def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeReportClient()


@pytest.fixture
def store(fake_client, clock):
    return ReportStore(fake_client, clock=clock)


@pytest.fixture
def dashboard(fake_client, store, clock):
    return Dashboard(fake_client, store=store, clock=clock)


@pytest.fixture
def loaded_dashboard(dashboard):
    """Dashboard with the default report already fetched."""
    asyncio.run(dashboard.fetch(STORE_ID, BUSINESS_DATE))
    return dashboard
