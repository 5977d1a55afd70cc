"""
DSPR dashboard core.

Fetches the daily/weekly store performance report, caches it in a single
TTL-aware store and derives graded, alerted views per module.
"""

__version__ = "0.1.0"
