#!/usr/bin/env python3
"""
Run the periodic maintenance jobs of the approval workflow.

  sweep   -- reassign (or auto-approve) every active approval whose
             approver has been deactivated.
  remind  -- notify approvers whose active approval has waited longer
             than the configured number of days.

Usage:
  python3 scripts/run_maintenance.py sweep [--database-url URL] [--config PATH]
  python3 scripts/run_maintenance.py remind [--days N]

The database URL defaults to $PROCUREMENT_DATABASE_URL.
Exit status is 1 when any sweep row failed.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from procurement_services import ProcurementWorkflow, bootstrap, shutdown
from procurement_services.runtime import DATABASE_URL_ENV, database_url_from_env


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Procurement workflow maintenance jobs")
    p.add_argument(
        "--database-url",
        default=None,
        help=f"Database URL (default: ${DATABASE_URL_ENV})",
    )
    p.add_argument("--config", default=None, help="Workflow configuration YAML")
    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("sweep", help="Repair approvals held by inactive users")
    remind = sub.add_parser("remind", help="Send reminders for stale approvals")
    remind.add_argument(
        "--days",
        type=int,
        default=None,
        help="Remind after this many days (default: from configuration)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    runtime = bootstrap(
        args.database_url or database_url_from_env(),
        config_path=args.config,
    )
    try:
        workflow = ProcurementWorkflow(runtime)
        if args.command == "sweep":
            result = workflow.sweep_inactive_approvers()
            print(f"  reassigned:    {len(result.reassigned)}")
            print(f"  auto-approved: {len(result.auto_approved)}")
            print(f"  failed:        {len(result.failed)}")
            for failure in result.failed:
                print(f"    approval {failure.approval_id}: [{failure.code}] {failure.error}")
            return 1 if result.failed else 0

        result = workflow.remind_pending_approvals(args.days)
        print(f"  reminders: {len(result.reminded_approval_ids)}")
        return 0
    finally:
        shutdown(runtime)


if __name__ == "__main__":
    sys.exit(main())
