"""
Report API connector.

Usage:
    >>> from dspr.connectors import ReportClient, StaticTokenStorage
    >>> async with ReportClient(base_url, StaticTokenStorage(token)) as client:
    ...     payload = await client.fetch_report("03795-00001", "2025-01-15")
"""

from .report_client import (
    HttpError,
    InvalidResponseError,
    MaxRetriesExceededError,
    NetworkError,
    ReportClient,
    ReportClientError,
    ReportValidationError,
    StaticTokenStorage,
    TokenStorage,
)

__all__ = [
    "HttpError",
    "InvalidResponseError",
    "MaxRetriesExceededError",
    "NetworkError",
    "ReportClient",
    "ReportClientError",
    "ReportValidationError",
    "StaticTokenStorage",
    "TokenStorage",
]
