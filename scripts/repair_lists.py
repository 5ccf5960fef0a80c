import argparse
import json

from app import app
from background_jobs import repair_all_lists
from backend.reconciler import reconcile
from models import db, TaskList


def repair_list(list_id: int, verbose: bool) -> bool:
    report = reconcile(list_id)
    summary = report.to_dict()
    if verbose:
        print(json.dumps({'list_id': list_id, **summary}, indent=2))
    else:
        print(
            f"List {list_id}: deactivated={len(report.deactivated)} restored={len(report.restored)} "
            f"purged={len(report.purged)} reindexed={report.reindexed} errors={len(report.errors)}"
        )
    return not report.errors


def main() -> int:
    parser = argparse.ArgumentParser(description="Reconcile master lists and repair their queues.")
    parser.add_argument("--list-id", type=int, default=None, help="Repair a single list (default: all lists)")
    parser.add_argument("--verbose", action="store_true", help="Print the full repair report as JSON")
    args = parser.parse_args()

    if args.list_id is None:
        reports = repair_all_lists(app)
        for list_id, report in reports.items():
            print(f"List {list_id}: changed={report.changed} errors={len(report.errors)}")
        return 0 if all(not r.errors for r in reports.values()) else 1

    with app.app_context():
        if db.session.get(TaskList, args.list_id) is None:
            raise SystemExit(f"List not found: {args.list_id}")
        return 0 if repair_list(args.list_id, args.verbose) else 1


if __name__ == "__main__":
    raise SystemExit(main())
