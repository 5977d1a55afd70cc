"""
Hourly-aggregate module service.
"""

from datetime import datetime
from typing import Any, List, Optional

from dspr.engine.hourly import derive_hourly
from dspr.models.enums import PerformanceGrade
from dspr.models.hourly import HourBreakdown, HourlyConfig, HourlyFilter, HourlyView
from dspr.models.report import HourlySales, RawReport, StoreMetrics
from dspr.services.base import DerivationService


class HourlyService(DerivationService[HourlyConfig, HourlyView]):
    name = "hourly"

    def default_config(self) -> HourlyConfig:
        return HourlyConfig()

    def extract(self, report: RawReport) -> Optional[HourlySales]:
        return report.hourly

    def derive(self, report: RawReport, config: HourlyConfig, now: datetime) -> HourlyView:
        return derive_hourly(
            report.hourly,
            report.filtering_values.store,
            report.filtering_values.date,
            config=config,
            processed_at=now,
        )

    # Actions

    def set_thresholds(self, **changes: Any) -> None:
        self.update_config("thresholds", **changes)

    def set_filter(self, **changes: Any) -> None:
        self.update_config("filter", **changes)

    def clear_filter(self) -> None:
        self.set_config(self._config.model_copy(update={"filter": HourlyFilter()}))

    def set_alert_settings(self, **changes: Any) -> None:
        self.update_config("alert_settings", **changes)

    # Selectors

    @property
    def aggregate(self) -> Optional[StoreMetrics]:
        return self._view_attr("aggregate")

    @property
    def hours(self) -> List[HourBreakdown]:
        return list(self._view_attr("hours", []))

    @property
    def peak_hour(self) -> Optional[HourBreakdown]:
        return self._view_attr("peak_hour")

    @property
    def grade(self) -> Optional[PerformanceGrade]:
        return self._view_attr("grade")

    @property
    def total_sales(self) -> float:
        return self.aggregate.total_sales if self.aggregate else 0.0

    @property
    def total_orders(self) -> float:
        return self.aggregate.customer_count if self.aggregate else 0.0

    @property
    def promise_met_percent(self) -> float:
        if self.aggregate is None:
            return 0.0
        return self.aggregate.hnr_promise_met_percent or 0.0
