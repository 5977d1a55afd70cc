"""
Dashboard composition root.

Wires one ReportClient, one ReportStore and the six module services
together. Nothing here is a global singleton; the HTTP app and the CLI each
build their own Dashboard.
"""

from datetime import datetime
from typing import Callable, Dict, Optional

from dspr.config import Settings, get_settings
from dspr.connectors.report_client import ReportClient, StaticTokenStorage
from dspr.models.common import utc_now
from dspr.services.base import DerivationService
from dspr.services.daily_by_date_service import DailyByDateService
from dspr.services.daily_service import DailyService
from dspr.services.dsqr_service import DsqrService
from dspr.services.hourly_service import HourlyService
from dspr.services.weekly_service import WeeklyCurrentService, WeeklyPreviousService
from dspr.storage.report_store import ReportStore
from dspr.utils.logging import get_logger

logger = get_logger(__name__)


class Dashboard:
    """
    Report store plus every derivation service subscribed to it.

    Attributes:
        client: Report client (owned; closed by aclose)
        store: Central report store
        daily, weekly_current, weekly_previous, hourly, dsqr, daily_by_date: Module services
    """

    def __init__(
        self,
        client: ReportClient,
        store: Optional[ReportStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.store = store or ReportStore(client, clock=clock)

        self.daily = DailyService(self.store, clock=clock)
        self.weekly_current = WeeklyCurrentService(self.store, clock=clock)
        self.weekly_previous = WeeklyPreviousService(self.store, clock=clock)
        self.hourly = HourlyService(self.store, clock=clock)
        self.dsqr = DsqrService(self.store, clock=clock)
        self.daily_by_date = DailyByDateService(self.store, clock=clock)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Dashboard":
        """Build a dashboard from environment settings."""
        settings = settings or get_settings()
        client = ReportClient(
            base_url=settings.dspr_api_base_url,
            token_storage=StaticTokenStorage(settings.dspr_api_token or None),
            retry_config=settings.retry_config,
            timeout=settings.dspr_api_timeout_seconds,
        )
        store = ReportStore(client, ttl=settings.cache_ttl)
        logger.info(
            "dashboard_created",
            base_url=settings.dspr_api_base_url,
            cache_ttl_seconds=settings.cache_ttl_seconds,
            max_attempts=settings.retry_max_attempts,
        )
        return cls(client, store)

    @property
    def services(self) -> Dict[str, DerivationService]:
        return {
            service.name: service
            for service in (
                self.daily,
                self.weekly_current,
                self.weekly_previous,
                self.hourly,
                self.dsqr,
                self.daily_by_date,
            )
        }

    async def fetch(self, store_id: str, business_date: str, force: bool = False) -> None:
        await self.store.fetch(store_id, business_date, force=force)

    def clear_all(self) -> None:
        """Clear the store and every module view."""
        self.store.clear()
        for service in self.services.values():
            service.clear()
        logger.info("dashboard_cleared")

    async def aclose(self) -> None:
        for service in self.services.values():
            service.close()
        await self.client.close()
