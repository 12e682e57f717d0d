"""
Run the Microsoft Graph reconciliation jobs from a scheduler (cron, Task Scheduler).

Usage:
    python scripts/sync_graph.py [--skip-intune] [--skip-new-hires] [--skip-licenses] [--days DAYS]

Exits non-zero when a job fails outright or finishes with per-item errors.
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from opsdesk.db import SessionLocal
from opsdesk.logging import setup_logging
from opsdesk.services.graph_client import GraphClient, GraphError
from opsdesk.services.intune_sync import sync_managed_devices
from opsdesk.services.new_hire_sync import sync_new_hires
from opsdesk.services.license_sync import sync_licenses


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Sync Intune devices, Entra ID new hires and licenses into OpsDesk",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Everything
  python scripts/sync_graph.py

  # Only new hires created in the last 7 days
  python scripts/sync_graph.py --skip-intune --skip-licenses --days 7
        """
    )
    parser.add_argument("--skip-intune", action="store_true", help="Skip Intune device synchronization")
    parser.add_argument("--skip-new-hires", action="store_true", help="Skip new hire synchronization")
    parser.add_argument("--skip-licenses", action="store_true", help="Skip license synchronization")
    parser.add_argument("--days", type=int, help="New hire look-back window in days")
    args = parser.parse_args()

    setup_logging()
    try:
        client = GraphClient()
    except GraphError as e:
        print(f"[ERROR] {e}")
        return 2

    jobs = []
    if not args.skip_intune:
        jobs.append(("Intune devices", lambda db: sync_managed_devices(db, client)))
    if not args.skip_new_hires:
        jobs.append(("New hires", lambda db: sync_new_hires(db, client, days=args.days)))
    if not args.skip_licenses:
        jobs.append(("Licenses", lambda db: sync_licenses(db, client)))

    exit_code = 0
    for name, job in jobs:
        print("\n" + "=" * 70)
        print(f"Syncing {name}")
        print("=" * 70)
        db = SessionLocal()
        try:
            result = job(db)
            for key, value in result.model_dump().items():
                print(f"  {key}: {value}")
            if result.errors:
                exit_code = 1
        except GraphError as e:
            print(f"\n[ERROR] {name} sync failed: {e}")
            exit_code = 1
        finally:
            db.close()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
