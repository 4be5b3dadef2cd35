#!/usr/bin/env python3
"""
Command-line maintenance utility for the item store.

Prunes set memberships left behind by expired items and purges expired
records from on-disk stores.
"""

import argparse
import json
import sys
from pathlib import Path

# Add the repository root to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from itemstore.core.config import get_store, validate_config
from itemstore.core.errors import StoreUnavailableError
from itemstore.core.maintenance import purge_expired_records, sweep_dangling_memberships


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Item store maintenance utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --sweep                # Remove memberships of expired items
  %(prog)s --sweep --dry-run      # Only count them
  %(prog)s --purge-expired        # Delete expired records from the store
  %(prog)s --sweep --json         # Output results as JSON

Environment variables:
- STORE_BACKEND=sqlite (the in-memory store does not outlive this process)
- DB_PATH=./data/items.db (database location)
        """
    )
    parser.add_argument("--sweep", "-s", action="store_true",
                        help="Remove set members whose item no longer exists")
    parser.add_argument("--purge-expired", "-p", action="store_true",
                        help="Physically delete expired records")
    parser.add_argument("--dry-run", action="store_true",
                        help="Report dangling memberships without removing them")
    parser.add_argument("--json", "-j", action="store_true",
                        help="Output results as JSON instead of human-readable text")

    args = parser.parse_args(argv)

    if not (args.sweep or args.purge_expired):
        parser.error("Must specify at least one maintenance operation")

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"Configuration issue: {issue}", file=sys.stderr)
        return 2

    store = get_store()
    reports = []
    try:
        if args.purge_expired:
            reports.append(purge_expired_records(store))
        if args.sweep:
            reports.append(sweep_dangling_memberships(store, dry_run=args.dry_run))
    except StoreUnavailableError as e:
        print(f"Store unavailable: {e.message}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({"reports": [r.to_dict() for r in reports]}, indent=2, default=str))
    else:
        for report in reports:
            print(report.summary())

    return 1 if any(r.errors for r in reports) else 0


if __name__ == "__main__":
    sys.exit(main())
