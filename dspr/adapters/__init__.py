"""
Report payload normalization.

ReportAdapter is the only place that knows the wire key variants of the
report payload.
"""

from .report_adapter import ReportAdapter

__all__ = ["ReportAdapter"]
