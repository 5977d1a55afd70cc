"""
Daily module service: configuration, selectors and actions for the daily view.
"""

from datetime import datetime
from typing import Any, Optional

from dspr.engine.daily import derive_daily
from dspr.models.daily import (
    CostControlSummary,
    DailyConfig,
    DailyView,
    FinancialSummary,
    OperationalSummary,
    QualitySummary,
    SalesChannelSummary,
)
from dspr.models.enums import PerformanceGrade
from dspr.models.report import RawReport, StoreMetrics
from dspr.services.base import DerivationService


class DailyService(DerivationService[DailyConfig, DailyView]):
    name = "daily"

    def default_config(self) -> DailyConfig:
        return DailyConfig()

    def extract(self, report: RawReport) -> Optional[StoreMetrics]:
        return report.daily

    def derive(self, report: RawReport, config: DailyConfig, now: datetime) -> DailyView:
        return derive_daily(
            report.daily,
            report.filtering_values.store,
            report.filtering_values.date,
            config=config,
            processed_at=now,
        )

    # Actions

    def set_targets(self, **changes: Any) -> None:
        self.update_config("targets", **changes)

    def set_alert_settings(self, **changes: Any) -> None:
        self.update_config("alert_settings", **changes)

    def set_cost_thresholds(self, **changes: Any) -> None:
        self.update_config("cost_thresholds", **changes)

    def set_grade_bands(self, **changes: Any) -> None:
        self.update_config("grade_bands", **changes)

    # Selectors

    @property
    def financial(self) -> Optional[FinancialSummary]:
        return self._view_attr("financial")

    @property
    def operational(self) -> Optional[OperationalSummary]:
        return self._view_attr("operational")

    @property
    def sales_channels(self) -> Optional[SalesChannelSummary]:
        return self._view_attr("sales_channels")

    @property
    def quality(self) -> Optional[QualitySummary]:
        return self._view_attr("quality")

    @property
    def cost_control(self) -> Optional[CostControlSummary]:
        return self._view_attr("cost_control")

    @property
    def score(self) -> Optional[float]:
        return self._view_attr("score")

    @property
    def grade(self) -> Optional[PerformanceGrade]:
        return self._view_attr("grade")

    @property
    def total_sales(self) -> float:
        return self.financial.total_sales if self.financial else 0.0

    @property
    def labor_percent(self) -> float:
        return self.financial.labor_cost_percentage if self.financial else 0.0

    @property
    def customer_count(self) -> float:
        return self.operational.customer_count if self.operational else 0.0

    @property
    def average_ticket(self) -> float:
        return self.financial.average_ticket if self.financial else 0.0
