"""CLI entry point.

This script runs the listing expiry sweep against the hosted record store and
writes the currently published jobs to a JSON file.

Examples:
    python run_sweep.py --out jobs.json
    python run_sweep.py --out jobs.json --skip-sweep
    python run_sweep.py --admin-email admin@example.org --log-level DEBUG

The output is a list of dicts (serialized Pydantic models).
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from job_board.access import resolve_admin_access
from job_board.config import settings
from job_board.lifecycle import JobLifecycle
from job_board.listings import JobListings
from job_board.logging_config import configure_logging, get_logger
from job_board.store import PostgrestRecordStore, StoreError


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Archive expired job listings and export the live ones.")
    p.add_argument("--out", type=str, default="jobs.json", help="Output JSON file path.")
    p.add_argument("--skip-sweep", action="store_true", help="Only export; do not archive or notify.")
    p.add_argument(
        "--admin-email",
        type=str,
        default=None,
        help="Reviewer email recorded on listings archived by the sweep.",
    )
    p.add_argument("--log-level", type=str, default=None, help="Overrides LOG_LEVEL.")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging(args.log_level)
    log = get_logger("run_sweep")

    try:
        store = PostgrestRecordStore.from_settings(settings)
    except StoreError as exc:
        log.error("%s", exc.message)
        return 1

    if not args.skip_sweep:
        access = resolve_admin_access(store, args.admin_email).data if args.admin_email else None
        result = JobLifecycle(store, settings).sync_expiry_alerts(access)
        if not result.ok:
            log.error("Expiry sweep failed: %s", result.message)
            return 1
        print(f"Expiring soon: {result.data.expiring_soon}, expired: {result.data.expired}")

    listing = JobListings(store, settings).fetch_published_jobs()
    if not listing.ok:
        log.error("Could not load published jobs: %s", listing.message)
        return 1

    out_path = Path(args.out).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    data = [j.model_dump(mode="json") for j in listing.data]
    out_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    print(f"Wrote {len(data)} jobs to: {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
