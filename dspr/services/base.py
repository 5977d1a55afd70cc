"""
Base derivation service.

A derivation service owns one module's state (the report it derived from,
its processed view, its configuration and the last-processed time). It
subscribes to the report store and re-derives whenever the report is
replaced or its own configuration changes.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from dspr.models.common import Alert, utc_now
from dspr.models.enums import AlertPriority, AlertSeverity, StoreEventType
from dspr.models.report import RawReport
from dspr.storage.report_store import ReportStore, StoreEvent
from dspr.utils.logging import get_logger

logger = get_logger(__name__)

ConfigT = TypeVar("ConfigT", bound=BaseModel)
ViewT = TypeVar("ViewT", bound=BaseModel)


def merge_model(model: BaseModel, changes: Dict[str, Any]) -> BaseModel:
    """
    Return a validated copy of model with changes applied.

    Raises:
        pydantic.ValidationError: If the merged values are invalid
    """
    return type(model).model_validate({**model.model_dump(), **changes})


class DerivationService(Generic[ConfigT, ViewT]):
    """
    Store-subscribed state holder for one derivation module.

    Subclasses set `name`, provide `default_config()`, `extract()` and
    `derive()`. A report without the module's slice leaves the prior state
    untouched.
    """

    name = "module"
    alert_settings_field: Optional[str] = "alert_settings"

    def __init__(
        self,
        store: ReportStore,
        config: Optional[ConfigT] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self._clock = clock
        self._config: ConfigT = config or self.default_config()
        self._report: Optional[RawReport] = None
        self._view: Optional[ViewT] = None
        self._last_processed: Optional[datetime] = None
        self.logger = logger.bind(module=self.name)
        self._unsubscribe = store.subscribe(self.on_store_event)

        if store.report is not None:
            self._ingest(store.report)

    # =========================================================================
    # Hooks
    # =========================================================================

    def default_config(self) -> ConfigT:
        raise NotImplementedError

    def extract(self, report: RawReport) -> Any:
        """Return this module's slice of the report, or None when absent."""
        raise NotImplementedError

    def derive(self, report: RawReport, config: ConfigT, now: datetime) -> ViewT:
        raise NotImplementedError

    # =========================================================================
    # Store events
    # =========================================================================

    def on_store_event(self, event: StoreEvent) -> None:
        if event.type == StoreEventType.REPORT_UPDATED and event.report is not None:
            self._ingest(event.report)
        elif event.type == StoreEventType.FETCH_FAILED:
            self.logger.info("module_keeping_stale_view", has_view=self._view is not None)

    def _ingest(self, report: RawReport) -> None:
        if self.extract(report) is None:
            self.logger.warning(
                "module_slice_missing",
                store_id=report.filtering_values.store,
                business_date=report.filtering_values.date,
            )
            return
        self._report = report
        self._rederive()

    def _rederive(self) -> None:
        if self._report is None:
            return
        now = self._clock()
        self._view = self.derive(self._report, self._config, now)
        self._last_processed = now
        self.logger.info(
            "module_view_derived",
            store_id=self._report.filtering_values.store,
            business_date=self._report.filtering_values.date,
            alerts=len(self.alerts),
        )

    # =========================================================================
    # Actions
    # =========================================================================

    def set_config(self, config: ConfigT) -> None:
        self._config = config
        self._rederive()

    def update_config(self, section: str, **changes: Any) -> None:
        """
        Merge changes into one config section and re-derive.

        Raises:
            pydantic.ValidationError: If the resulting section is invalid
        """
        current = getattr(self._config, section)
        self.set_config(self._config.model_copy(update={section: merge_model(current, changes)}))
        self.logger.info("module_config_updated", section=section, changes=changes)

    def toggle_alerts(self, enabled: bool) -> None:
        if self.alert_settings_field is None:
            return
        self.update_config(self.alert_settings_field, enable_alerts=enabled)

    def reset_config(self) -> None:
        self.set_config(self.default_config())
        self.logger.info("module_config_reset")

    def clear(self) -> None:
        self._report = None
        self._view = None
        self._last_processed = None
        self.logger.info("module_cleared")

    def close(self) -> None:
        self._unsubscribe()

    # =========================================================================
    # Selectors
    # =========================================================================

    @property
    def raw(self) -> Any:
        return self.extract(self._report) if self._report is not None else None

    @property
    def view(self) -> Optional[ViewT]:
        return self._view

    @property
    def config(self) -> ConfigT:
        return self._config

    @property
    def last_processed(self) -> Optional[datetime]:
        return self._last_processed

    @property
    def has_data(self) -> bool:
        return self._view is not None

    @property
    def alerts(self) -> List[Alert]:
        return list(getattr(self._view, "alerts", []) or [])

    @property
    def critical_alerts(self) -> List[Alert]:
        return [a for a in self.alerts if a.severity == AlertSeverity.CRITICAL]

    @property
    def urgent_alerts(self) -> List[Alert]:
        return [a for a in self.alerts if a.priority == AlertPriority.URGENT]

    @property
    def alert_count(self) -> int:
        return len(self.alerts)

    @property
    def has_critical_alerts(self) -> bool:
        return bool(self.critical_alerts)

    @property
    def alerts_enabled(self) -> bool:
        if self.alert_settings_field is None:
            return False
        return getattr(self._config, self.alert_settings_field).enable_alerts

    def _view_attr(self, name: str, default: Any = None) -> Any:
        return getattr(self._view, name, default) if self._view is not None else default

    def snapshot(self) -> Dict[str, Any]:
        """Serializable module summary for the HTTP layer and CLI."""
        return {
            "module": self.name,
            "has_data": self.has_data,
            "last_processed": self._last_processed.isoformat() if self._last_processed else None,
            "alert_count": self.alert_count,
            "view": self._view.model_dump(mode="json") if self._view is not None else None,
        }
