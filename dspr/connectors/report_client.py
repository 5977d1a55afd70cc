"""
Report API client with validation, bearer auth and retry with backoff.

This module provides the async client that fetches the store performance
report for a (store, business date) key:
- Local validation of store id and date before any network I/O
- Bearer token read from an injected token storage on every attempt
- Exponential backoff with jitter for retryable failures (network, 408, 429, 5xx)
- A closed error taxonomy; raw httpx exceptions never escape

The client holds no cache and no global state. Build one and hand it to the
report store.
"""

import asyncio
import random
import re
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import httpx
import structlog

from dspr.models.common import ApiError, RetryConfig

logger = structlog.get_logger()

STORE_ID_PATTERN = re.compile(r"^\d{5}-\d{5}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

RETRYABLE_STATUSES = frozenset({408, 429})


# =============================================================================
# Errors
# =============================================================================


class ReportClientError(Exception):
    """Base class for report fetch failures."""

    code = "UNKNOWN_ERROR"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        if code is not None:
            self.code = code
        self.details = details

    @property
    def retryable(self) -> bool:
        return is_retryable_status(self.status)

    def to_api_error(self) -> ApiError:
        return ApiError(
            message=self.message,
            status=self.status,
            code=self.code,
            details=self.details,
        )


class ReportValidationError(ReportClientError):
    """Raised when the store id or date is malformed. Never retried."""

    code = "VALIDATION_ERROR"

    @property
    def retryable(self) -> bool:
        return False


class NetworkError(ReportClientError):
    """Raised when no HTTP response was received (connection error, timeout)."""

    code = "NETWORK_ERROR"


class HttpError(ReportClientError):
    """Raised for non-2xx responses."""

    code = "HTTP_ERROR"


class InvalidResponseError(ReportClientError):
    """Raised when a 2xx response body is not a JSON object."""

    code = "INVALID_RESPONSE"

    @property
    def retryable(self) -> bool:
        return False


class MaxRetriesExceededError(ReportClientError):
    """Raised when every attempt failed with a retryable error."""

    code = "MAX_RETRIES_EXCEEDED"

    def __init__(self, attempts: int, last_error: ReportClientError):
        super().__init__(
            f"Request failed after {attempts} attempts: {last_error.message}",
            status=last_error.status,
            details={"attempts": attempts, "last_error": last_error.to_api_error().model_dump()},
        )
        self.attempts = attempts
        self.last_error = last_error

    @property
    def retryable(self) -> bool:
        return False


def is_retryable_status(status: Optional[int]) -> bool:
    """No status (network/timeout), 408, 429 and any 5xx are retryable."""
    if status is None:
        return True
    return status in RETRYABLE_STATUSES or status >= 500


# =============================================================================
# Validation and backoff
# =============================================================================


def validate_store_id(store_id: str) -> None:
    if not isinstance(store_id, str) or not STORE_ID_PATTERN.match(store_id):
        raise ReportValidationError(
            f"Invalid store id '{store_id}': expected format NNNNN-NNNNN",
            details={"field": "store_id", "value": store_id},
        )


def validate_business_date(business_date: str) -> None:
    if not isinstance(business_date, str) or not DATE_PATTERN.match(business_date):
        raise ReportValidationError(
            f"Invalid date '{business_date}': expected format YYYY-MM-DD",
            details={"field": "business_date", "value": business_date},
        )
    try:
        date.fromisoformat(business_date)
    except ValueError:
        raise ReportValidationError(
            f"Invalid date '{business_date}': not a calendar date",
            details={"field": "business_date", "value": business_date},
        )


def compute_backoff_delay(attempt: int, config: RetryConfig, jitter_ms: float = 0.0) -> float:
    """
    Delay in seconds before the retry following a 0-based attempt.

    min(base * multiplier ** attempt + jitter, max_delay)
    """
    delay_ms = config.base_delay_ms * (config.backoff_multiplier ** attempt) + jitter_ms
    return min(delay_ms, config.max_delay_ms) / 1000.0


# =============================================================================
# Token storage
# =============================================================================


class TokenStorage(Protocol):
    """Source of the bearer token. Session refresh, if any, lives behind it."""

    def get_token(self) -> Optional[str]:
        ...


class StaticTokenStorage:
    """Token storage holding a fixed token (settings, CLI argument, tests)."""

    def __init__(self, token: Optional[str] = None):
        self._token = token or None

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token or None


# =============================================================================
# Client
# =============================================================================


class ReportClient:
    """
    Async client for the store performance report endpoint.

    Attributes:
        base_url: API base URL, e.g. https://host/api
        retry_config: Attempts and backoff policy
        timeout: Per-request timeout in seconds

    Example:
        >>> async with ReportClient(base_url, StaticTokenStorage(token)) as client:
        ...     payload = await client.fetch_report("03795-00001", "2025-01-15")
    """

    def __init__(
        self,
        base_url: str,
        token_storage: Optional[TokenStorage] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Optional[Callable[[], float]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_storage = token_storage or StaticTokenStorage()
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._jitter = jitter or (lambda: random.uniform(0, self.retry_config.jitter_ms))
        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ReportClient":
        self._ensure_http_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _ensure_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        token = self.token_storage.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def fetch_report(
        self,
        store_id: str,
        business_date: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Fetch the raw report payload for a store and business date.

        Args:
            store_id: Franchise store id (NNNNN-NNNNN)
            business_date: Business date (YYYY-MM-DD)
            body: Optional JSON body; defaults to {}

        Returns:
            Decoded JSON object

        Raises:
            ReportValidationError: Malformed store id or date (no network call made)
            HttpError: Non-retryable HTTP status
            InvalidResponseError: Body is not a JSON object
            MaxRetriesExceededError: Every attempt failed with a retryable error
        """
        validate_store_id(store_id)
        validate_business_date(business_date)

        url = f"{self.base_url}/dspr-report/{store_id}/{business_date}"
        max_attempts = self.retry_config.max_attempts
        last_error: Optional[ReportClientError] = None

        for attempt in range(max_attempts):
            try:
                payload = await self._request_once(url, body or {})
                logger.info(
                    "report_fetch_succeeded",
                    store_id=store_id,
                    business_date=business_date,
                    attempt=attempt + 1,
                )
                return payload
            except ReportClientError as e:
                last_error = e
                logger.warning(
                    "report_fetch_attempt_failed",
                    store_id=store_id,
                    business_date=business_date,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    status=e.status,
                    code=e.code,
                    error=e.message,
                )
                if not e.retryable:
                    raise

            if attempt + 1 < max_attempts:
                delay = compute_backoff_delay(attempt, self.retry_config, self._jitter())
                logger.info("report_fetch_retry", attempt=attempt + 1, delay_seconds=round(delay, 3))
                await self._sleep(delay)

        logger.error(
            "report_fetch_max_retries_exceeded",
            store_id=store_id,
            business_date=business_date,
            attempts=max_attempts,
        )
        raise MaxRetriesExceededError(max_attempts, last_error)

    async def _request_once(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Single POST; maps every transport outcome onto the error taxonomy."""
        client = self._ensure_http_client()

        try:
            response = await client.post(url, json=body, headers=self._build_headers())
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {e}", code="TIMEOUT")
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error: {e}")

        if response.is_error:
            raise self._http_error(response)

        try:
            payload = response.json()
        except ValueError:
            raise InvalidResponseError(
                "Response body is not valid JSON",
                status=response.status_code,
            )
        if not isinstance(payload, dict):
            raise InvalidResponseError(
                "Response body is not a JSON object",
                status=response.status_code,
                details={"type": type(payload).__name__},
            )
        return payload

    @staticmethod
    def _http_error(response: httpx.Response) -> HttpError:
        details: Any = None
        message = f"HTTP {response.status_code}: {response.reason_phrase}"
        try:
            details = response.json()
        except ValueError:
            details = response.text or None
        if isinstance(details, dict):
            server_message = details.get("message") or details.get("error")
            if isinstance(server_message, str) and server_message:
                message = server_message
        return HttpError(message, status=response.status_code, details=details)
