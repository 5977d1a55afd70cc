"""
Report adapter: the single normalization boundary for report payloads.

The upstream payload is not fully stable. The same logical field arrives as
snake_case ("Total_Sales"), squashed ("TotalSales") or with historic typos
("Avrage_ticket"). This adapter maps every accepted wire shape onto the
canonical models in dspr.models.report immediately on ingress, so derivation
code never needs fallback chains.

Wire layout:
    FilteringValues | "Filtering Values"   metadata block
    reports.daily.dailyDSPRData            day metrics
    reports.daily.dailyHourlySales         hourly breakdown
    reports.daily.dailyDSQRData            delivery platform scores
    reports.weekly.DSPRData                current week aggregate
    reports.weekly.PrevWeekDSPRData        previous week aggregate
    reports.weekly.DailyDSPRByDate         per-date map, each with PrevWeek
"""

import math
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from dspr.models.common import FilteringValues, utc_now
from dspr.models.enums import TrackingStatus
from dspr.models.report import (
    DayEntry,
    DsqrReport,
    HourlySales,
    HourRecord,
    RawReport,
    StoreMetrics,
)

logger = structlog.get_logger()


# =============================================================================
# Field alias tables
# =============================================================================

# canonical field -> accepted wire keys, in lookup order. The squashed
# (underscore-free) variant of every key is accepted as well.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "labor": ("labor", "Labor"),
    "waste_gateway": ("waste_gateway", "Waste_Gateway"),
    "over_short": ("over_short", "Over_Short"),
    "refunded_order_qty": ("Refunded_order_Qty", "refunded_order_qty"),
    "total_cash_sales": ("Total_Cash_Sales", "total_cash_sales"),
    "total_sales": ("Total_Sales", "total_sales"),
    "waste_alta": ("Waste_Alta", "waste_alta"),
    "modified_order_qty": ("Modified_Order_Qty", "modified_order_qty"),
    "total_tips": ("Total_TIPS", "Total_Tips", "total_tips"),
    "customer_count": ("Customer_count", "Customer_Count", "customer_count"),
    "doordash_sales": ("DoorDash_Sales", "doordash_sales"),
    "ubereats_sales": ("UberEats_Sales", "ubereats_sales"),
    "grubhub_sales": ("GrubHub_Sales", "grubhub_sales"),
    "phone": ("Phone", "phone"),
    "call_center_agent": ("Call_Center_Agent", "call_center_agent"),
    "website": ("Website", "website"),
    "mobile": ("Mobile", "mobile"),
    "digital_sales_percent": ("Digital_Sales_Percent", "digital_sales_percent"),
    "total_portal_eligible_transactions": (
        "Total_Portal_Eligible_Transactions",
        "total_portal_eligible_transactions",
    ),
    "put_into_portal_percent": ("Put_into_Portal_Percent", "put_into_portal_percent"),
    "in_portal_on_time_percent": ("In_Portal_on_Time_Percent", "in_portal_on_time_percent"),
    "drive_thru_sales": ("Drive_Thru_Sales", "drive_thru_sales"),
    "upselling": ("Upselling", "upselling"),
    "cash_sales_vs_deposit_difference": (
        "Cash_Sales_Vs_Deposite_Difference",
        "Cash_Sales_Vs_Deposit_Difference",
        "cash_sales_vs_deposit_difference",
    ),
    "average_ticket": ("Avrage_ticket", "Average_Ticket", "average_ticket"),
    "customer_count_percent": ("Customer_count_percent", "customer_count_percent"),
    "customer_service": ("Customer_Service", "customer_service"),
}

# Optional hot-and-ready fields; left as None when absent
HNR_ALIASES: Dict[str, Tuple[str, ...]] = {
    "hnr_transactions": ("HNR_Transactions", "hnr_transactions"),
    "hnr_promise_met_transactions": (
        "HNR_Promise_Met_Transactions",
        "hnr_promise_met_transactions",
    ),
    "hnr_promise_met_percent": ("HNR_Promise_Met_Percent", "hnr_promise_met_percent"),
    "hnr_promise_broken_percent": ("HNR_Promise_Broken_Percent", "hnr_promise_broken_percent"),
}

HOUR_ALIASES: Dict[str, Tuple[str, ...]] = {
    "total_sales": ("Total_Sales", "total_sales"),
    "phone_sales": ("Phone_Sales", "phone_sales"),
    "call_center_agent": ("Call_Center_Agent", "call_center_agent"),
    "drive_thru": ("Drive_Thru", "drive_thru"),
    "website": ("Website", "website"),
    "mobile": ("Mobile", "mobile"),
    "order_count": ("Order_Count", "order_count"),
}

FILTERING_ALIASES: Dict[str, Tuple[str, ...]] = {
    "store": ("store", "Store"),
    "date": ("date", "Date"),
    "items": ("items", "Items"),
    "week": ("week", "Week"),
    "week_start_date": ("weekStartDate", "week_start_date"),
    "week_end_date": ("weekEndDate", "week_end_date"),
    "look_back_start": ("lookBackStart", "look_back_start"),
    "look_back_end": ("lookBackEnd", "look_back_end"),
    "deposit_delivery_url": ("depositDeliveryUrl", "deposit_delivery_url"),
}

ON_TRACK_VALUES = frozenset({"on track", "on_track", "ontrack", "yes", "true", "met", "1"})
NOT_APPLICABLE_VALUES = frozenset({"", "n/a", "na", "not applicable", "not_applicable", "none", "null"})


def _with_squashed(keys: Tuple[str, ...]) -> Tuple[str, ...]:
    """Append the underscore-free variant of every key, preserving order."""
    result: List[str] = list(keys)
    for key in keys:
        squashed = key.replace("_", "")
        if squashed not in result:
            result.append(squashed)
    return tuple(result)


def _first_present(raw: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _safe_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Convert to float; None, NaN, infinities and junk become default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def parse_tracking_status(value: Any) -> TrackingStatus:
    """
    Map a server tracking flag onto TrackingStatus.

    True / 1 / "on track" style values are on track; None, empty and
    "n/a" style values are not applicable; anything else is off track.
    """
    if value is None:
        return TrackingStatus.NOT_APPLICABLE
    if isinstance(value, TrackingStatus):
        return value
    if isinstance(value, bool):
        return TrackingStatus.ON_TRACK if value else TrackingStatus.OFF_TRACK
    if isinstance(value, (int, float)):
        return TrackingStatus.ON_TRACK if value == 1 else TrackingStatus.OFF_TRACK
    text = str(value).strip().lower()
    if text in ON_TRACK_VALUES:
        return TrackingStatus.ON_TRACK
    if text in NOT_APPLICABLE_VALUES:
        return TrackingStatus.NOT_APPLICABLE
    return TrackingStatus.OFF_TRACK


def week_number_for(business_date: str) -> int:
    """
    Week of year counting Sunday-started weeks, week 1 contains Jan 1.

    ceil((day_index + jan1_weekday + 1) / 7) with Sunday = 0.
    Returns 0 for an unparseable date.
    """
    try:
        d = date.fromisoformat(business_date)
    except (TypeError, ValueError):
        return 0
    jan1 = date(d.year, 1, 1)
    jan1_weekday = (jan1.weekday() + 1) % 7
    return math.ceil(((d - jan1).days + jan1_weekday + 1) / 7)


def is_iso_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


class ReportAdapter:
    """
    Maps raw report payloads onto RawReport.

    Missing slices become None, missing numeric fields become 0 and missing
    metadata is computed from the request key. The adapter never raises on
    partial payloads.
    """

    def __init__(self):
        self.logger = logger.bind(adapter="dspr_report")
        self._metric_keys = {name: _with_squashed(keys) for name, keys in FIELD_ALIASES.items()}
        self._hnr_keys = {name: _with_squashed(keys) for name, keys in HNR_ALIASES.items()}
        self._hour_keys = {name: _with_squashed(keys) for name, keys in HOUR_ALIASES.items()}

    def normalize(
        self,
        payload: Mapping[str, Any],
        store_id: str,
        business_date: str,
        received_at: Optional[datetime] = None,
    ) -> RawReport:
        """
        Normalize a decoded report payload.

        Args:
            payload: Decoded JSON object from the report client
            store_id: Requested store id, used for metadata defaults
            business_date: Requested business date, used for metadata defaults
            received_at: Receipt timestamp (defaults to now)

        Returns:
            Immutable RawReport
        """
        reports = self._mapping(payload.get("reports"))
        daily = self._mapping(reports.get("daily"))
        weekly = self._mapping(reports.get("weekly"))

        report = RawReport(
            filtering_values=self.parse_filtering_values(
                payload.get("FilteringValues", payload.get("Filtering Values")),
                store_id,
                business_date,
            ),
            daily=self._optional_metrics(daily.get("dailyDSPRData")),
            hourly=self._optional_hourly(daily.get("dailyHourlySales")),
            dsqr=self._optional_dsqr(daily.get("dailyDSQRData")),
            weekly_current=self._optional_metrics(weekly.get("DSPRData")),
            weekly_previous=self._optional_metrics(weekly.get("PrevWeekDSPRData")),
            daily_by_date=self.parse_daily_by_date(weekly.get("DailyDSPRByDate")),
            received_at=received_at or utc_now(),
        )

        self.logger.debug(
            "report_normalized",
            store_id=report.filtering_values.store,
            business_date=report.filtering_values.date,
            has_daily=report.daily is not None,
            has_hourly=report.hourly is not None,
            has_dsqr=report.dsqr is not None,
            has_weekly_current=report.weekly_current is not None,
            has_weekly_previous=report.weekly_previous is not None,
            days=len(report.daily_by_date),
        )
        return report

    # =========================================================================
    # Sections
    # =========================================================================

    def parse_filtering_values(
        self,
        raw: Any,
        store_id: str,
        business_date: str,
    ) -> FilteringValues:
        """Fill each missing metadata field from the request key."""
        raw = self._mapping(raw)
        values = {
            name: _first_present(raw, keys) for name, keys in FILTERING_ALIASES.items()
        }

        if not raw:
            self.logger.info(
                "filtering_values_missing",
                store_id=store_id,
                business_date=business_date,
            )

        week = values["week"]
        try:
            week = int(week) if week is not None else None
        except (TypeError, ValueError):
            week = None

        # Timestamps are cut to their date so cache keys compare equal
        report_date = str(values["date"] or business_date)
        if is_iso_date(report_date[:10]):
            report_date = report_date[:10]

        return FilteringValues(
            store=str(values["store"] or store_id),
            date=report_date,
            items=values["items"] if isinstance(values["items"], list) else [],
            week=week if week is not None and week >= 0 else week_number_for(business_date),
            week_start_date=str(values["week_start_date"] or business_date),
            week_end_date=str(values["week_end_date"] or business_date),
            look_back_start=str(values["look_back_start"] or business_date),
            look_back_end=str(values["look_back_end"] or business_date),
            deposit_delivery_url=str(values["deposit_delivery_url"] or ""),
        )

    def parse_metrics(self, raw: Mapping[str, Any]) -> StoreMetrics:
        fields: Dict[str, Any] = {
            name: _safe_float(_first_present(raw, keys))
            for name, keys in self._metric_keys.items()
        }
        for name, keys in self._hnr_keys.items():
            fields[name] = _safe_float(_first_present(raw, keys), default=None)
        return StoreMetrics(**fields)

    def parse_hourly(self, raw: Mapping[str, Any]) -> HourlySales:
        hours = raw.get("hours")
        records: List[HourRecord] = []
        if isinstance(hours, list):
            for position, hour in enumerate(hours):
                if isinstance(hour, Mapping):
                    records.append(self._parse_hour(hour, position))
        return HourlySales(
            franchise_store=str(raw.get("franchise_store") or ""),
            business_date=str(raw.get("business_date") or ""),
            hours=records,
        )

    def parse_dsqr(self, raw: Mapping[str, Any]) -> DsqrReport:
        scores = self._mapping(_first_present(raw, ("score", "Score", "scores")))
        tracking = self._mapping(_first_present(raw, ("is_on_track", "isOnTrack", "IsOnTrack")))
        return DsqrReport(
            scores=dict(scores),
            tracking={key: parse_tracking_status(value) for key, value in tracking.items()},
        )

    def parse_daily_by_date(self, raw: Any) -> List[DayEntry]:
        """
        Parse the per-date map, skipping non-object values and non-date keys.

        A missing PrevWeek falls back to the current day.
        """
        entries: List[DayEntry] = []
        skipped = 0
        for key, value in self._mapping(raw).items():
            if not is_iso_date(key) or not isinstance(value, Mapping):
                skipped += 1
                continue
            current_raw = {k: v for k, v in value.items() if k not in ("PrevWeek", "prev_week")}
            prev_raw = _first_present(value, ("PrevWeek", "prev_week"))
            current = self.parse_metrics(current_raw)
            previous = (
                self.parse_metrics(prev_raw) if isinstance(prev_raw, Mapping) else current
            )
            entries.append(DayEntry(date=key, current=current, previous_week=previous))

        if skipped:
            self.logger.debug("daily_by_date_entries_skipped", skipped=skipped)
        entries.sort(key=lambda entry: entry.date)
        return entries

    # =========================================================================
    # Helpers
    # =========================================================================

    def _parse_hour(self, raw: Mapping[str, Any], position: int) -> HourRecord:
        fields: Dict[str, Any] = {
            name: _safe_float(_first_present(raw, keys))
            for name, keys in self._hour_keys.items()
        }
        hnr = self._mapping(_first_present(raw, ("HNR", "hnr")))
        fields["hnr_transactions"] = _safe_float(hnr.get("Transactions"))
        fields["hnr_promise_met_transactions"] = _safe_float(hnr.get("Promise_Met_Transactions"))

        hour = _safe_float(_first_present(raw, ("Hour", "hour")), default=None)
        fields["hour"] = int(hour) if hour is not None and hour >= 0 else position
        return HourRecord(**fields)

    def _optional_metrics(self, raw: Any) -> Optional[StoreMetrics]:
        return self.parse_metrics(raw) if isinstance(raw, Mapping) else None

    def _optional_hourly(self, raw: Any) -> Optional[HourlySales]:
        return self.parse_hourly(raw) if isinstance(raw, Mapping) else None

    def _optional_dsqr(self, raw: Any) -> Optional[DsqrReport]:
        return self.parse_dsqr(raw) if isinstance(raw, Mapping) else None

    @staticmethod
    def _mapping(value: Any) -> Mapping[str, Any]:
        return value if isinstance(value, Mapping) else {}
