#!/usr/bin/env python3
"""
Recompute channel health flags for a date range.

Re-evaluates every metric snapshot whose period starts within the range and
upserts its health flags. Safe to re-run: flags are overwritten in place.

Usage:
    python scripts/recompute_health.py --start 2026-01-05 --end 2026-01-26
    python scripts/recompute_health.py --start 2026-01-05              # single day
    python scripts/recompute_health.py --start 2026-01-05 --verbose    # DEBUG logs

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import sys
import os
import argparse
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from crm_atlas.logging_config import configure_logging
from crm_atlas.services.health import recompute_health_flags


def _iso_date(value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}' (expected YYYY-MM-DD)")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Recompute channel health flags')
    parser.add_argument('--start', type=_iso_date, required=True, help='First period start date (YYYY-MM-DD)')
    parser.add_argument('--end', type=_iso_date, help='Last period start date (defaults to --start)')
    parser.add_argument('--verbose', action='store_true', help='Log at DEBUG level')
    args = parser.parse_args(argv)

    end = args.end or args.start
    if args.start > end:
        parser.error('--start must not be after --end')

    configure_logging(level='DEBUG' if args.verbose else None)
    result = recompute_health_flags(args.start, end)

    print(f"Processed: {result.processed}")
    print(f"Errors:    {result.errors}")
    print(f"Red flags: {len(result.red_flags)}")
    return 1 if result.errors else 0


if __name__ == '__main__':
    sys.exit(main())
