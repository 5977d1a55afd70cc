"""
Daily-by-date module service.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from dspr.engine.daily_by_date import derive_daily_by_date
from dspr.models.daily_by_date import (
    DailyAverages,
    DailyByDateConfig,
    DailyByDateFilter,
    DailyByDateView,
    DayComparison,
    Timeline,
    WeekPattern,
)
from dspr.models.enums import DailySortKey
from dspr.models.report import DayEntry, RawReport
from dspr.services.base import DerivationService


class DailyByDateService(DerivationService[DailyByDateConfig, DailyByDateView]):
    name = "daily_by_date"
    alert_settings_field = None

    def default_config(self) -> DailyByDateConfig:
        return DailyByDateConfig()

    def extract(self, report: RawReport) -> Optional[List[DayEntry]]:
        return report.daily_by_date or None

    def derive(self, report: RawReport, config: DailyByDateConfig, now: datetime) -> DailyByDateView:
        return derive_daily_by_date(
            report.daily_by_date,
            report.filtering_values.store,
            report.filtering_values.week,
            config=config,
            processed_at=now,
        )

    # Actions

    def set_filter(self, **changes: Any) -> None:
        self.update_config("filter", **changes)

    def clear_filter(self) -> None:
        self.set_config(self._config.model_copy(update={"filter": DailyByDateFilter()}))

    def set_sort(self, sort: DailySortKey) -> None:
        self.set_config(self._config.model_copy(update={"sort": DailySortKey(sort)}))

    def set_comparison_thresholds(self, **changes: Any) -> None:
        self.update_config("comparison_thresholds", **changes)

    # Selectors

    @property
    def entries(self) -> List[DayEntry]:
        return list(self._view_attr("entries", []))

    @property
    def comparisons(self) -> Dict[str, DayComparison]:
        return dict(self._view_attr("comparisons", {}))

    @property
    def timeline(self) -> Optional[Timeline]:
        return self._view_attr("timeline")

    @property
    def averages(self) -> Optional[DailyAverages]:
        return self._view_attr("averages")

    @property
    def best_day(self) -> Optional[DayEntry]:
        return self._view_attr("best_day")

    @property
    def worst_day(self) -> Optional[DayEntry]:
        return self._view_attr("worst_day")

    @property
    def week_pattern(self) -> Optional[WeekPattern]:
        return self._view_attr("week_pattern")

    @property
    def available_dates(self) -> List[str]:
        return [entry.date for entry in self.entries]
