"""
Unit tests for the report client: request shape, retry boundary, backoff and
error taxonomy. The network is replaced with httpx.MockTransport; sleep and
jitter are injected so no test waits on a real timer.
"""

import asyncio
import json
from typing import Any, Callable, List

import httpx
import pytest

from dspr.connectors.report_client import (
    HttpError,
    InvalidResponseError,
    MaxRetriesExceededError,
    NetworkError,
    ReportClient,
    ReportValidationError,
    StaticTokenStorage,
    compute_backoff_delay,
    is_retryable_status,
    validate_business_date,
    validate_store_id,
)
from dspr.models.common import ApiError, RetryConfig, format_api_error
from tests.conftest import BUSINESS_DATE, STORE_ID, make_report_payload

BASE_URL = "https://reports.test/api"


class Recorder:
    """MockTransport handler that replays a response script and records requests."""

    def __init__(self, *responses: Callable[[httpx.Request], httpx.Response]):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        return self.responses[index](request)


def respond(status: int, body: Any = None) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, json=body if body is not None else {})


def make_client(recorder: Recorder, sleeps: List[float], **kwargs) -> ReportClient:
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return ReportClient(
        base_url=BASE_URL,
        token_storage=StaticTokenStorage("secret-token"),
        retry_config=kwargs.pop("retry_config", RetryConfig(max_attempts=3, base_delay_ms=500, jitter_ms=0)),
        transport=httpx.MockTransport(recorder),
        sleep=fake_sleep,
        jitter=lambda: 0.0,
        **kwargs,
    )


def run_fetch(client: ReportClient, store_id: str = STORE_ID, business_date: str = BUSINESS_DATE):
    async def scenario():
        try:
            return await client.fetch_report(store_id, business_date)
        finally:
            await client.close()

    return asyncio.run(scenario())


# ============================================================================
# Request shape
# ============================================================================


class TestReportClientRequest:
    """Test the outgoing request."""

    def test_report_client_fetch_posts_to_report_path(self):
        """POSTs to {base}/dspr-report/{store}/{date} with an empty JSON body."""
        recorder = Recorder(respond(200, make_report_payload()))
        payload = run_fetch(make_client(recorder, []))

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/dspr-report/{STORE_ID}/{BUSINESS_DATE}"
        assert json.loads(request.content) == {}
        assert payload["FilteringValues"]["store"] == STORE_ID

    def test_report_client_fetch_sends_bearer_token(self):
        """The token from token storage is sent as a bearer token."""
        recorder = Recorder(respond(200, {}))
        run_fetch(make_client(recorder, []))

        assert recorder.requests[0].headers["Authorization"] == "Bearer secret-token"

    def test_report_client_fetch_without_token_omits_authorization(self):
        """No Authorization header when no token is stored."""
        recorder = Recorder(respond(200, {}))
        client = make_client(recorder, [])
        client.token_storage = StaticTokenStorage(None)
        run_fetch(client)

        assert "Authorization" not in recorder.requests[0].headers

    def test_report_client_base_url_trailing_slash_is_stripped(self):
        """A trailing slash on the base URL does not double up in the path."""
        recorder = Recorder(respond(200, {}))
        client = ReportClient(
            base_url=BASE_URL + "/",
            transport=httpx.MockTransport(recorder),
            jitter=lambda: 0.0,
        )
        run_fetch(client)

        assert str(recorder.requests[0].url) == f"{BASE_URL}/dspr-report/{STORE_ID}/{BUSINESS_DATE}"


# ============================================================================
# Retry boundary
# ============================================================================


class TestReportClientRetry:
    """Test retry behavior per status class."""

    def test_report_client_retries_500_three_times_then_gives_up(self):
        """500 on every attempt: exactly 3 attempts, then MaxRetriesExceededError."""
        recorder = Recorder(respond(500, {"message": "boom"}))
        sleeps: List[float] = []

        with pytest.raises(MaxRetriesExceededError) as exc_info:
            run_fetch(make_client(recorder, sleeps))

        assert len(recorder.requests) == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, HttpError)
        assert exc_info.value.status == 500

    def test_report_client_backoff_delays_grow_exponentially(self):
        """Sleeps between attempts are base, base*2 (no jitter)."""
        recorder = Recorder(respond(503))
        sleeps: List[float] = []

        with pytest.raises(MaxRetriesExceededError):
            run_fetch(make_client(recorder, sleeps))

        assert sleeps == [0.5, 1.0]

    def test_report_client_404_is_not_retried(self):
        """404 fails after a single attempt with HttpError."""
        recorder = Recorder(respond(404, {"message": "Store not found"}))
        sleeps: List[float] = []

        with pytest.raises(HttpError) as exc_info:
            run_fetch(make_client(recorder, sleeps))

        assert len(recorder.requests) == 1
        assert sleeps == []
        assert exc_info.value.status == 404
        assert exc_info.value.message == "Store not found"

    def test_report_client_429_then_success_returns_payload(self):
        """429 is retryable; a later 200 is returned."""
        recorder = Recorder(respond(429), respond(200, {"ok": True}))
        payload = run_fetch(make_client(recorder, []))

        assert payload == {"ok": True}
        assert len(recorder.requests) == 2

    def test_report_client_timeout_is_retried_as_network_error(self):
        """Timeouts map to NetworkError(TIMEOUT) and are retried."""

        def timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        recorder = Recorder(timeout)
        with pytest.raises(MaxRetriesExceededError) as exc_info:
            run_fetch(make_client(recorder, []))

        assert len(recorder.requests) == 3
        assert isinstance(exc_info.value.last_error, NetworkError)
        assert exc_info.value.last_error.code == "TIMEOUT"
        assert exc_info.value.status is None

    def test_report_client_connect_error_then_success(self):
        """A connection error is retried."""

        def refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        recorder = Recorder(refused, respond(200, {"ok": True}))
        assert run_fetch(make_client(recorder, [])) == {"ok": True}

    def test_report_client_single_attempt_config(self):
        """max_attempts=1 means no retry at all."""
        recorder = Recorder(respond(500))
        client = make_client(recorder, [], retry_config=RetryConfig(max_attempts=1, jitter_ms=0))

        with pytest.raises(MaxRetriesExceededError):
            run_fetch(client)
        assert len(recorder.requests) == 1


# ============================================================================
# Response and input validation
# ============================================================================


class TestReportClientValidation:
    """Test validation of inputs and response bodies."""

    @pytest.mark.parametrize("store_id", ["3795-1", "03795_00001", "abcde-fghij", ""])
    def test_report_client_bad_store_id_makes_no_request(self, store_id):
        """Malformed store ids raise ReportValidationError before any network call."""
        recorder = Recorder(respond(200, {}))
        with pytest.raises(ReportValidationError):
            run_fetch(make_client(recorder, []), store_id=store_id)
        assert recorder.requests == []

    @pytest.mark.parametrize("business_date", ["2025/01/15", "15-01-2025", "2025-02-30", "today"])
    def test_report_client_bad_date_makes_no_request(self, business_date):
        """Malformed or impossible dates raise ReportValidationError."""
        recorder = Recorder(respond(200, {}))
        with pytest.raises(ReportValidationError):
            run_fetch(make_client(recorder, []), business_date=business_date)
        assert recorder.requests == []

    def test_report_client_non_object_body_is_invalid_response(self):
        """A JSON array is rejected without retry."""
        recorder = Recorder(lambda request: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(InvalidResponseError):
            run_fetch(make_client(recorder, []))
        assert len(recorder.requests) == 1

    def test_report_client_non_json_body_is_invalid_response(self):
        """A non-JSON body is rejected."""
        recorder = Recorder(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(InvalidResponseError):
            run_fetch(make_client(recorder, []))

    def test_validate_store_id_accepts_canonical_format(self):
        """NNNNN-NNNNN passes."""
        validate_store_id("03795-00001")

    def test_validate_business_date_accepts_leap_day(self):
        """2024-02-29 is a real date."""
        validate_business_date("2024-02-29")


# ============================================================================
# Error normalization and backoff helpers
# ============================================================================


class TestErrorNormalization:
    """Test ApiError conversion and helpers."""

    def test_http_error_to_api_error_keeps_status_and_code(self):
        """HttpError converts to ApiError with HTTP_ERROR code."""
        error = HttpError("Bad gateway", status=502, details={"message": "Bad gateway"})
        api_error = error.to_api_error()

        assert api_error == ApiError(
            message="Bad gateway", status=502, code="HTTP_ERROR", details={"message": "Bad gateway"}
        )

    def test_max_retries_details_include_last_error(self):
        """MaxRetriesExceededError carries attempts and the last error in details."""
        error = MaxRetriesExceededError(3, NetworkError("down"))
        api_error = error.to_api_error()

        assert api_error.code == "MAX_RETRIES_EXCEEDED"
        assert api_error.details["attempts"] == 3
        assert api_error.details["last_error"]["code"] == "NETWORK_ERROR"

    def test_format_api_error_renders_present_parts(self):
        """Status and code are rendered when present."""
        assert format_api_error(ApiError(message="Nope", status=404, code="HTTP_ERROR")) == "[404] (HTTP_ERROR) Nope"
        assert format_api_error(ApiError(message="Down")) == "Down"

    @pytest.mark.parametrize(
        "status,expected",
        [(None, True), (408, True), (429, True), (500, True), (503, True), (400, False), (401, False), (404, False)],
    )
    def test_is_retryable_status(self, status, expected):
        """No status, 408, 429 and 5xx are retryable."""
        assert is_retryable_status(status) is expected

    def test_compute_backoff_delay_is_capped(self):
        """The delay never exceeds max_delay_ms."""
        config = RetryConfig(base_delay_ms=1000, max_delay_ms=3000, backoff_multiplier=2.0)
        assert compute_backoff_delay(0, config) == 1.0
        assert compute_backoff_delay(1, config) == 2.0
        assert compute_backoff_delay(5, config) == 3.0

    def test_compute_backoff_delay_adds_jitter(self):
        """Jitter in ms is added before the cap."""
        config = RetryConfig(base_delay_ms=500, max_delay_ms=10000)
        assert compute_backoff_delay(0, config, jitter_ms=100) == pytest.approx(0.6)
