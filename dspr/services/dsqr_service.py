"""
DSQR module service.

The KPI filter is view-only state: changing it never re-derives, it only
changes what filtered_kpis returns.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from dspr.engine.dsqr import derive_dsqr, filtered_kpis
from dspr.models.dsqr import DsqrConfig, DsqrFilter, DsqrSummary, DsqrView, PlatformKpi, PlatformMetrics
from dspr.models.enums import DeliveryPlatform, LetterGrade
from dspr.models.report import DsqrReport, RawReport
from dspr.services.base import DerivationService, merge_model
from dspr.storage.report_store import ReportStore


class DsqrService(DerivationService[DsqrConfig, DsqrView]):
    name = "dsqr"
    alert_settings_field = "alert_config"

    def __init__(self, store: ReportStore, config: Optional[DsqrConfig] = None, **kwargs):
        self._filter = DsqrFilter()
        super().__init__(store, config, **kwargs)

    def default_config(self) -> DsqrConfig:
        return DsqrConfig()

    def extract(self, report: RawReport) -> Optional[DsqrReport]:
        return report.dsqr

    def derive(self, report: RawReport, config: DsqrConfig, now: datetime) -> DsqrView:
        return derive_dsqr(
            report.dsqr,
            report.filtering_values.store,
            report.filtering_values.date,
            config=config,
            processed_at=now,
        )

    # Actions

    def set_level_bands(self, **changes: Any) -> None:
        self.update_config("level_bands", **changes)

    def set_alert_config(self, **changes: Any) -> None:
        self.update_config("alert_config", **changes)

    def set_filter(self, **changes: Any) -> None:
        self._filter = merge_model(self._filter, changes)
        self.logger.info("module_filter_updated", changes=changes)

    def clear_filter(self) -> None:
        self._filter = DsqrFilter()

    # Selectors

    @property
    def filter(self) -> DsqrFilter:
        return self._filter

    @property
    def platforms(self) -> Dict[DeliveryPlatform, PlatformMetrics]:
        return dict(self._view_attr("platforms", {}))

    def platform(self, platform: DeliveryPlatform) -> Optional[PlatformMetrics]:
        return self.platforms.get(platform)

    @property
    def summary(self) -> Optional[DsqrSummary]:
        return self._view_attr("summary")

    @property
    def filtered_kpis(self) -> List[Tuple[DeliveryPlatform, PlatformKpi]]:
        if self._view is None:
            return []
        return filtered_kpis(self._view, self._filter)

    @property
    def overall_performance(self) -> float:
        return self.summary.overall_performance if self.summary else 0.0

    @property
    def performance_grade(self) -> Optional[LetterGrade]:
        return self.summary.performance_grade if self.summary else None

    @property
    def average_rating(self) -> float:
        return self.summary.average_rating if self.summary else 0.0

    @property
    def best_platform(self) -> Optional[DeliveryPlatform]:
        return self.summary.best_platform if self.summary else None

    @property
    def attention_required(self) -> Optional[DeliveryPlatform]:
        return self.summary.attention_required if self.summary else None
