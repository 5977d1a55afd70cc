"""
Weekly module services: current week and previous-week baseline.
"""

from datetime import datetime
from typing import Any, Optional

from dspr.engine.weekly_current import derive_weekly_current
from dspr.engine.weekly_previous import derive_weekly_previous
from dspr.models.enums import ComparisonDirection, PerformanceGrade
from dspr.models.report import RawReport, StoreMetrics
from dspr.models.weekly import (
    MultiMetricTrendAnalysis,
    WeekOverWeekComparison,
    WeeklyChangeSummary,
    WeeklyConfig,
    WeeklyCurrentView,
    WeeklyFilter,
    WeeklyPreviousConfig,
    WeeklyPreviousView,
    WeeklyTrends,
)
from dspr.services.base import DerivationService, merge_model


class WeeklyCurrentService(DerivationService[WeeklyConfig, WeeklyCurrentView]):
    name = "weekly_current"

    def default_config(self) -> WeeklyConfig:
        return WeeklyConfig()

    def extract(self, report: RawReport) -> Optional[StoreMetrics]:
        return report.weekly_current

    def derive(self, report: RawReport, config: WeeklyConfig, now: datetime) -> WeeklyCurrentView:
        fv = report.filtering_values
        return derive_weekly_current(
            report.weekly_current,
            report.weekly_previous,
            fv.store,
            fv.week,
            fv.week_start_date,
            fv.week_end_date,
            as_of=now,
            config=config,
            processed_at=now,
        )

    # Actions

    def set_thresholds(self, **changes: Any) -> None:
        self.update_config("thresholds", **changes)

    def set_filter(self, **changes: Any) -> None:
        self.update_config("filter", **changes)

    def clear_filter(self) -> None:
        self.set_config(self._config.model_copy(update={"filter": WeeklyFilter()}))

    def set_operating_days(self, days: int) -> None:
        self.set_config(merge_model(self._config, {"operating_days_per_week": days}))

    def set_alert_settings(self, **changes: Any) -> None:
        self.update_config("alert_settings", **changes)

    # Selectors

    @property
    def comparison(self) -> Optional[WeeklyChangeSummary]:
        return self._view_attr("comparison")

    @property
    def trends(self) -> Optional[WeeklyTrends]:
        return self._view_attr("trends")

    @property
    def grade(self) -> Optional[PerformanceGrade]:
        return self._view_attr("grade")

    @property
    def score(self) -> Optional[float]:
        return self._view_attr("score")

    @property
    def matches_filter(self) -> bool:
        return bool(self._view_attr("matches_filter", False))

    @property
    def total_sales(self) -> float:
        financial = self._view_attr("financial")
        return financial.total_sales if financial else 0.0

    @property
    def week_progress(self) -> float:
        return self.trends.week_progress if self.trends else 0.0


class WeeklyPreviousService(DerivationService[WeeklyPreviousConfig, WeeklyPreviousView]):
    name = "weekly_previous"

    def default_config(self) -> WeeklyPreviousConfig:
        return WeeklyPreviousConfig()

    def extract(self, report: RawReport) -> Optional[StoreMetrics]:
        return report.weekly_previous

    def derive(self, report: RawReport, config: WeeklyPreviousConfig, now: datetime) -> WeeklyPreviousView:
        fv = report.filtering_values
        return derive_weekly_previous(
            report.weekly_previous,
            report.weekly_current,
            fv.store,
            fv.week,
            fv.week_start_date,
            fv.week_end_date,
            config=config,
            processed_at=now,
        )

    # Actions

    def set_comparison_thresholds(self, **changes: Any) -> None:
        self.update_config("comparison_thresholds", **changes)

    def set_thresholds(self, **changes: Any) -> None:
        self.update_config("thresholds", **changes)

    def set_operating_days(self, days: int) -> None:
        self.set_config(merge_model(self._config, {"operating_days_per_week": days}))

    def set_alert_settings(self, **changes: Any) -> None:
        self.update_config("alert_settings", **changes)

    # Selectors

    @property
    def comparison(self) -> Optional[WeekOverWeekComparison]:
        return self._view_attr("comparison")

    @property
    def trend_analysis(self) -> Optional[MultiMetricTrendAnalysis]:
        return self._view_attr("trend_analysis")

    @property
    def overall_trend(self) -> Optional[ComparisonDirection]:
        return self.comparison.overall_trend if self.comparison else None

    @property
    def improved_count(self) -> int:
        return self.comparison.improved_count if self.comparison else 0

    @property
    def declined_count(self) -> int:
        return self.comparison.declined_count if self.comparison else 0

    @property
    def grade(self) -> Optional[PerformanceGrade]:
        return self._view_attr("grade")

    @property
    def action_required(self) -> bool:
        if self.trend_analysis is None:
            return False
        return any(trend.action_recommended for _, trend in self.trend_analysis.named_analyses())
