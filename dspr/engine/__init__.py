"""
Derivation engines.

Each deriver is a pure function from a report slice plus configuration to a
view model; grading and alerting go through the shared engine in
dspr.engine.grading, week-over-week trends through dspr.engine.comparison.
"""

from dspr.engine.daily import derive_daily
from dspr.engine.daily_by_date import derive_daily_by_date
from dspr.engine.dsqr import derive_dsqr
from dspr.engine.hourly import derive_hourly
from dspr.engine.weekly_current import derive_weekly_current
from dspr.engine.weekly_previous import derive_weekly_previous

__all__ = [
    "derive_daily",
    "derive_daily_by_date",
    "derive_dsqr",
    "derive_hourly",
    "derive_weekly_current",
    "derive_weekly_previous",
]
