"""
Canonical report models.

RawReport is the normalized form of the report payload. The adapter in
dspr.adapters.report_adapter is the only place that knows wire key names;
everything downstream reads these canonical snake_case fields.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import FilteringValues, utc_now
from .enums import TrackingStatus


class StoreMetrics(BaseModel):
    """
    One day's (or one week's) store metrics.

    Ratios (labor, customer_service, digital_sales_percent, ...) are
    fractions in [0, 1]. Missing wire fields default to zero.
    """

    model_config = ConfigDict(frozen=True)

    labor: float = 0.0
    waste_gateway: float = 0.0
    over_short: float = 0.0
    refunded_order_qty: float = 0.0
    total_cash_sales: float = 0.0
    total_sales: float = 0.0
    waste_alta: float = 0.0
    modified_order_qty: float = 0.0
    total_tips: float = 0.0
    customer_count: float = 0.0
    doordash_sales: float = 0.0
    ubereats_sales: float = 0.0
    grubhub_sales: float = 0.0
    phone: float = 0.0
    call_center_agent: float = 0.0
    website: float = 0.0
    mobile: float = 0.0
    digital_sales_percent: float = 0.0
    total_portal_eligible_transactions: float = 0.0
    put_into_portal_percent: float = 0.0
    in_portal_on_time_percent: float = 0.0
    drive_thru_sales: float = 0.0
    upselling: float = 0.0
    cash_sales_vs_deposit_difference: float = 0.0
    average_ticket: float = 0.0
    customer_count_percent: float = 0.0
    customer_service: float = 0.0

    # Hot-and-ready promise tracking; only present on hourly aggregates
    hnr_transactions: Optional[float] = None
    hnr_promise_met_transactions: Optional[float] = None
    hnr_promise_met_percent: Optional[float] = None
    hnr_promise_broken_percent: Optional[float] = None

    @property
    def total_waste(self) -> float:
        return self.waste_gateway + self.waste_alta

    @property
    def waste_fraction(self) -> float:
        """Waste as a fraction of sales, 0 when there are no sales."""
        return self.total_waste / self.total_sales if self.total_sales > 0 else 0.0

    @property
    def delivery_sales(self) -> float:
        return self.doordash_sales + self.ubereats_sales + self.grubhub_sales

    @property
    def digital_sales(self) -> float:
        return self.website + self.mobile

    @property
    def phone_sales(self) -> float:
        return self.phone + self.call_center_agent


class HourRecord(BaseModel):
    """Sales for a single hour of the business day."""

    model_config = ConfigDict(frozen=True)

    hour: int = Field(default=0, ge=0, description="Hour of day or position in the day")
    total_sales: float = 0.0
    phone_sales: float = 0.0
    call_center_agent: float = 0.0
    drive_thru: float = 0.0
    website: float = 0.0
    mobile: float = 0.0
    order_count: float = 0.0
    hnr_transactions: float = 0.0
    hnr_promise_met_transactions: float = 0.0


class HourlySales(BaseModel):
    model_config = ConfigDict(frozen=True)

    franchise_store: str = ""
    business_date: str = ""
    hours: List[HourRecord] = Field(default_factory=list)


class DsqrReport(BaseModel):
    """Delivery platform scores plus server-asserted tracking flags."""

    model_config = ConfigDict(frozen=True)

    scores: Dict[str, Any] = Field(default_factory=dict, description="KPI name -> value")
    tracking: Dict[str, TrackingStatus] = Field(
        default_factory=dict, description="Tracking key -> status"
    )


class DayEntry(BaseModel):
    """One business day within the week plus the same weekday last week."""

    model_config = ConfigDict(frozen=True)

    date: str
    current: StoreMetrics
    previous_week: StoreMetrics


class RawReport(BaseModel):
    """
    Normalized report for a (store, business date) key.

    Immutable once built. The report store replaces it wholesale on every
    successful fetch.
    """

    model_config = ConfigDict(frozen=True)

    filtering_values: FilteringValues
    daily: Optional[StoreMetrics] = None
    hourly: Optional[HourlySales] = None
    dsqr: Optional[DsqrReport] = None
    weekly_current: Optional[StoreMetrics] = None
    weekly_previous: Optional[StoreMetrics] = None
    daily_by_date: List[DayEntry] = Field(default_factory=list)
    received_at: datetime = Field(default_factory=utc_now)

    def matches(self, store_id: str, business_date: str) -> bool:
        return (
            self.filtering_values.store == store_id
            and self.filtering_values.date == business_date
        )
