"""
In-memory report storage.

The report store keeps exactly one active report per process.
"""

from .report_store import ReportStore, StoreEvent

__all__ = ["ReportStore", "StoreEvent"]
