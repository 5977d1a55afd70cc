#!/usr/bin/env python3
"""
DSPR Report Fetcher

Fetches the performance report for one store and business date, runs every
derivation module and prints each module's grade and alert count.

Usage:
    python scripts/fetch_report.py 03795-00001 2025-01-15
    python scripts/fetch_report.py 03795-00001 2025-01-15 --json
    DSPR_API_TOKEN=... python scripts/fetch_report.py 03795-00001 2025-01-15 --base-url http://localhost:9000/api
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dspr.config import get_settings
from dspr.connectors.report_client import (
    ReportValidationError,
    validate_business_date,
    validate_store_id,
)
from dspr.services.dashboard import Dashboard
from dspr.utils.logging import bind_report_context, configure_logging, get_logger

logger = get_logger(__name__)


def module_grade(dashboard: Dashboard, name: str) -> Any:
    """Headline grade for a module, or None when it has nothing to grade."""
    if name == "dsqr":
        grade = dashboard.dsqr.performance_grade
    elif name == "daily_by_date":
        pattern = dashboard.daily_by_date.week_pattern
        strongest = pattern.strongest_day if pattern else None
        return f"best: {strongest.day_name}" if strongest else None
    else:
        grade = getattr(dashboard.services[name], "grade", None)
    return grade.value if grade is not None else None


def summarize(dashboard: Dashboard) -> Dict[str, Any]:
    store = dashboard.store.snapshot()
    modules = {}
    for name, service in dashboard.services.items():
        modules[name] = {
            "has_data": service.has_data,
            "grade": module_grade(dashboard, name),
            "alerts": service.alert_count,
            "critical": len(service.critical_alerts),
        }
    return {"store": store, "modules": modules}


def print_summary(summary: Dict[str, Any]) -> None:
    store = summary["store"]
    request = store["current_request"] or {}

    print("\n" + "=" * 60)
    print(f"DSPR {request.get('store_id', '?')} {request.get('business_date', '?')}")
    print("=" * 60)
    print(f"  status: {store['status']}  week: {store['week_number']}")
    if store["error"]:
        print(f"  error:  [{store['error']['code']}] {store['error']['message']}")
    print()
    print(f"  {'module':<18}{'grade':<14}{'alerts':>8}{'critical':>10}")
    print("  " + "-" * 50)
    for name, module in summary["modules"].items():
        grade = module["grade"] if module["has_data"] else "no data"
        print(f"  {name:<18}{str(grade):<14}{module['alerts']:>8}{module['critical']:>10}")
    print("=" * 60 + "\n")


async def run(store_id: str, business_date: str, base_url: str = None) -> Dict[str, Any]:
    settings = get_settings()
    if base_url:
        settings = settings.model_copy(update={"dspr_api_base_url": base_url})

    dashboard = Dashboard.from_settings(settings)
    try:
        bind_report_context(store_id, business_date)
        await dashboard.fetch(store_id, business_date)
        return summarize(dashboard)
    finally:
        await dashboard.aclose()


def main():
    """Main entry point for the report fetcher."""
    parser = argparse.ArgumentParser(description="Fetch a DSPR report and print module grades")
    parser.add_argument("store_id", help="Store id (NNNNN-NNNNN)")
    parser.add_argument("business_date", help="Business date (YYYY-MM-DD)")
    parser.add_argument("--base-url", default=None, help="Override the report API base URL")
    parser.add_argument("--json", action="store_true", help="Print the summary as JSON")
    args = parser.parse_args()

    configure_logging()

    try:
        validate_store_id(args.store_id)
        validate_business_date(args.business_date)
    except ReportValidationError as e:
        print(f"error: {e.message}", file=sys.stderr)
        sys.exit(2)

    logger.info("fetch_report_cli_started", store_id=args.store_id, business_date=args.business_date)
    summary = asyncio.run(run(args.store_id, args.business_date, args.base_url))

    if args.json:
        print(json.dumps(summary, indent=2, default=str))
    else:
        print_summary(summary)

    if summary["store"]["status"] == "failed":
        sys.exit(1)


if __name__ == "__main__":
    main()
