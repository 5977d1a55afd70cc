"""
Central report store.

Single source of truth for the current report: owns the normalized RawReport,
request status and error, and the TTL cache flag. Derivation services
subscribe and rebuild their views when the report changes.

Behavior:
- fetch() short-circuits when fresh data for the same (store, date) is loaded
- concurrent fetches for the same key share one in-flight task while that
  task still holds the latest request token
- every fetch gets a request token; a completion whose token is no longer
  the latest is discarded, so a slow superseded response never overwrites
  a newer one
- failures keep the previous report (serve stale on error) and revoke
  freshness
- freshness is evaluated lazily against the clock, never by a timer
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from dspr.adapters.report_adapter import ReportAdapter
from dspr.connectors.report_client import ReportClient, ReportClientError
from dspr.models.common import ApiError, CacheState, CurrentRequest, FilteringValues, utc_now
from dspr.models.enums import ApiStatus, StoreEventType
from dspr.models.report import RawReport
from dspr.utils.logging import get_logger, log_event

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(minutes=5)


class StoreEvent(BaseModel):
    """Notification delivered to store subscribers."""

    model_config = ConfigDict(frozen=True)

    type: StoreEventType
    report: Optional[RawReport] = None
    error: Optional[ApiError] = None


Listener = Callable[[StoreEvent], None]


class ReportStore:
    """
    TTL-aware store for the current report.

    Attributes:
        client: Injected report client (anything with async fetch_report)
        adapter: Normalization boundary for payloads
        ttl: Cache time-to-live
    """

    def __init__(
        self,
        client: ReportClient,
        adapter: Optional[ReportAdapter] = None,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.adapter = adapter or ReportAdapter()
        self.ttl = ttl
        self._clock = clock

        self._report: Optional[RawReport] = None
        self._status = ApiStatus.IDLE
        self._error: Optional[ApiError] = None
        self._last_fetched: Optional[datetime] = None
        self._cache = CacheState()
        self._current_request: Optional[CurrentRequest] = None

        self._request_counter = 0
        self._latest_token = 0
        self._in_flight: Dict[Tuple[str, str], Tuple[int, asyncio.Task]] = {}
        self._listeners: List[Listener] = []

    # =========================================================================
    # Actions
    # =========================================================================

    async def fetch(
        self,
        store_id: str,
        business_date: str,
        force: bool = False,
        skip_cache: bool = False,
    ) -> None:
        """
        Fetch the report for a (store, date) key.

        Never raises for fetch failures; the outcome lands in status and error.

        Args:
            store_id: Franchise store id
            business_date: Business date (YYYY-MM-DD)
            force: Bypass the freshness short-circuit
            skip_cache: Same as force; kept for callers that only skip the cache
        """
        key = (store_id, business_date)

        if not force and not skip_cache and self.is_fresh_data_loaded_for(store_id, business_date):
            logger.info(
                "report_fetch_skipped_cache_fresh",
                store_id=store_id,
                business_date=business_date,
                expires_at=self._cache.expires_at.isoformat() if self._cache.expires_at else None,
            )
            return

        in_flight = self._in_flight.get(key)
        if in_flight is not None:
            in_flight_token, in_flight_task = in_flight
            # only the latest request may be joined
            if in_flight_token == self._latest_token and not in_flight_task.done():
                logger.info(
                    "report_fetch_coalesced",
                    store_id=store_id,
                    business_date=business_date,
                    request_token=in_flight_token,
                )
                await asyncio.shield(in_flight_task)
                return

        self._request_counter += 1
        token = self._request_counter
        self._latest_token = token
        self._status = ApiStatus.LOADING
        self._error = None
        self._current_request = CurrentRequest(
            store_id=store_id,
            business_date=business_date,
            requested_at=self._clock(),
        )

        logger.info(
            "report_fetch_started",
            store_id=store_id,
            business_date=business_date,
            request_token=token,
            force=force,
            skip_cache=skip_cache,
        )

        task = asyncio.ensure_future(self._run_fetch(store_id, business_date, token))
        self._in_flight[key] = (token, task)
        task.add_done_callback(lambda done: self._release(key, done))
        await asyncio.shield(task)

    async def refetch(self) -> None:
        """Force a fetch with the last requested (store, date) pair."""
        if self._current_request is None:
            logger.warning("Cannot refetch: no previous request found")
            return
        await self.fetch(
            self._current_request.store_id,
            self._current_request.business_date,
            force=True,
        )

    def invalidate_cache(self) -> None:
        """Revoke freshness without discarding data."""
        self._cache = CacheState(is_fresh=False, expires_at=None)
        logger.info("report_cache_invalidated")

    def clear(self) -> None:
        """
        Reset to the idle, empty state.

        Any in-flight response is discarded when it lands, and a later fetch
        for the same key starts a new request.
        """
        self._request_counter += 1
        self._latest_token = self._request_counter

        self._report = None
        self._status = ApiStatus.IDLE
        self._error = None
        self._last_fetched = None
        self._cache = CacheState()
        self._current_request = None

        logger.info("report_store_cleared")
        self._emit(StoreEvent(type=StoreEventType.CLEARED))

    def clear_error(self) -> None:
        self._error = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for store events.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Internals
    # =========================================================================

    async def _run_fetch(self, store_id: str, business_date: str, token: int) -> None:
        report: Optional[RawReport] = None
        error: Optional[ApiError] = None

        try:
            payload = await self.client.fetch_report(store_id, business_date)
            report = self.adapter.normalize(
                payload, store_id, business_date, received_at=self._clock()
            )
        except ReportClientError as e:
            error = e.to_api_error()
        except Exception as e:
            logger.error(
                "report_fetch_unexpected_error",
                store_id=store_id,
                business_date=business_date,
                error=str(e),
                exc_info=True,
            )
            error = ApiError(message=str(e) or type(e).__name__, code="UNKNOWN_ERROR")

        if token != self._latest_token:
            logger.warning(
                "report_stale_response_discarded",
                store_id=store_id,
                business_date=business_date,
                request_token=token,
                latest_token=self._latest_token,
            )
            return

        if report is not None:
            self._apply_success(report)
        else:
            self._apply_failure(store_id, business_date, error)

    def _apply_success(self, report: RawReport) -> None:
        now = self._clock()
        self._report = report
        self._status = ApiStatus.SUCCEEDED
        self._error = None
        self._last_fetched = now
        self._cache = CacheState(is_fresh=True, expires_at=now + self.ttl)

        log_event(
            logger,
            "info",
            "report_fetch_succeeded",
            store_id=report.filtering_values.store,
            business_date=report.filtering_values.date,
            week=report.filtering_values.week,
            expires_at=self._cache.expires_at.isoformat(),
        )
        self._emit(StoreEvent(type=StoreEventType.REPORT_UPDATED, report=report))

    def _apply_failure(self, store_id: str, business_date: str, error: ApiError) -> None:
        self._status = ApiStatus.FAILED
        self._error = error
        self._cache = CacheState(is_fresh=False, expires_at=None)

        log_event(
            logger,
            "warning" if self._report is not None else "error",
            "report_fetch_failed",
            store_id=store_id,
            business_date=business_date,
            status=error.status,
            code=error.code,
            error=error.message,
            serving_stale=self._report is not None,
        )
        self._emit(StoreEvent(type=StoreEventType.FETCH_FAILED, report=self._report, error=error))

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "report_store_listener_failed",
                    event_type=event.type.value,
                    error=str(e),
                    exc_info=True,
                )

    def _release(self, key: Tuple[str, str], task: asyncio.Task) -> None:
        in_flight = self._in_flight.get(key)
        if in_flight is not None and in_flight[1] is task:
            del self._in_flight[key]

    # =========================================================================
    # Selectors
    # =========================================================================

    @property
    def report(self) -> Optional[RawReport]:
        return self._report

    @property
    def status(self) -> ApiStatus:
        return self._status

    @property
    def error(self) -> Optional[ApiError]:
        return self._error

    @property
    def last_fetched(self) -> Optional[datetime]:
        return self._last_fetched

    @property
    def current_request(self) -> Optional[CurrentRequest]:
        return self._current_request

    @property
    def cache(self) -> CacheState:
        """Cache state with freshness re-evaluated against the clock."""
        return CacheState(
            is_fresh=self._cache.fresh_at(self._clock()),
            expires_at=self._cache.expires_at,
        )

    @property
    def is_loading(self) -> bool:
        return self._status == ApiStatus.LOADING

    @property
    def is_succeeded(self) -> bool:
        return self._status == ApiStatus.SUCCEEDED

    @property
    def is_failed(self) -> bool:
        return self._status == ApiStatus.FAILED

    @property
    def is_idle(self) -> bool:
        return self._status == ApiStatus.IDLE

    @property
    def is_cached(self) -> bool:
        return self._cache.fresh_at(self._clock())

    @property
    def is_fresh(self) -> bool:
        return self.is_cached

    @property
    def has_fresh_data(self) -> bool:
        return self._report is not None and self.is_cached

    @property
    def is_stale(self) -> bool:
        """Report present but not fresh; distinct from absent."""
        return self._report is not None and not self.is_cached

    @property
    def has_stale_data(self) -> bool:
        return self.is_stale

    @property
    def time_until_cache_expires(self) -> Optional[timedelta]:
        if not self.is_cached or self._cache.expires_at is None:
            return None
        return max(self._cache.expires_at - self._clock(), timedelta(0))

    def is_data_loaded_for(self, store_id: str, business_date: str) -> bool:
        return self._report is not None and self._report.matches(store_id, business_date)

    def is_fresh_data_loaded_for(self, store_id: str, business_date: str) -> bool:
        return self.is_data_loaded_for(store_id, business_date) and self.is_cached

    @property
    def filtering_values(self) -> Optional[FilteringValues]:
        return self._report.filtering_values if self._report else None

    @property
    def week_number(self) -> Optional[int]:
        return self._report.filtering_values.week if self._report else None

    @property
    def week_start_date(self) -> Optional[str]:
        return self._report.filtering_values.week_start_date if self._report else None

    @property
    def week_end_date(self) -> Optional[str]:
        return self._report.filtering_values.week_end_date if self._report else None

    @property
    def deposit_delivery_url(self) -> Optional[str]:
        return self._report.filtering_values.deposit_delivery_url if self._report else None

    @property
    def item_codes(self) -> List[int]:
        return list(self._report.filtering_values.items) if self._report else []

    def snapshot(self) -> dict:
        """Serializable status summary for the HTTP layer and CLI."""
        cache = self.cache
        remaining = self.time_until_cache_expires
        return {
            "status": self._status.value,
            "error": self._error.model_dump() if self._error else None,
            "last_fetched": self._last_fetched.isoformat() if self._last_fetched else None,
            "cache": {
                "is_fresh": cache.is_fresh,
                "expires_at": cache.expires_at.isoformat() if cache.expires_at else None,
                "seconds_until_expiry": remaining.total_seconds() if remaining else None,
            },
            "is_stale": self.is_stale,
            "has_data": self._report is not None,
            "current_request": (
                self._current_request.model_dump(mode="json") if self._current_request else None
            ),
            "week_number": self.week_number,
        }
