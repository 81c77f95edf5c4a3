"""Command-line interface for the finance ledger.

Usage:
  python -m finance_ledger.cli --key alice summary --month 3
  python -m finance_ledger.cli --key alice rename-category Leisure Entertainment
  python -m finance_ledger.cli --key alice delete-template 17 --from-month 5

Ledgers are JSON documents stored under ``--data`` (defaults to the configured
data directory), one file per ``--key``.
"""

from __future__ import annotations

import argparse
import datetime as dt
import sys
from pathlib import Path
from typing import List, Optional

from .config import AppConfig
from .errors import LedgerError
from .logging_setup import configure_logging
from .reports import (
    build_annual_report,
    build_month_report,
    export_month_csv,
    export_report_json,
    format_annual_report,
    format_text_report,
)
from .session import LedgerSession
from .storage import JsonFileStorage


def _month(value: str) -> int:
    """Accept 1-12 on the command line; the ledger uses 0-11."""
    try:
        month = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid month: {value}") from exc
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError(f"month must be 1-12, got {month}")
    return month - 1


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Monthly ledger and recurring entries")
    p.add_argument("--config", "-c", help="Path to JSON config")
    p.add_argument("--data", "-d", help="Directory holding ledger JSON documents")
    p.add_argument("--key", "-k", default="default", help="Ledger (session) key")
    p.add_argument("--year", type=int, help="Calendar year used for month lengths")
    p.add_argument("--log-level", help="Logging level (default INFO)")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("summary", help="Totals, budget alerts and breakdowns for a month")
    s.add_argument("--month", "-m", type=_month, required=True)

    s = sub.add_parser("materialize", help="Apply recurring entries to a month")
    s.add_argument("--month", "-m", type=_month, required=True)

    sub.add_parser("annual", help="Balance for every month of the year")

    s = sub.add_parser("rename-category", help="Rename a category everywhere")
    s.add_argument("old")
    s.add_argument("new")

    s = sub.add_parser("delete-template", help="Delete a recurring template by id")
    s.add_argument("template_id", type=int)
    s.add_argument("--from-month", type=_month, default=0, help="Keep entries before this month (1-12)")

    s = sub.add_parser("export", help="Export a month as CSV or JSON")
    s.add_argument("--month", "-m", type=_month, required=True)
    s.add_argument("--csv", dest="csv_out", help="Write CSV to path")
    s.add_argument("--json", dest="json_out", help="Write JSON to path")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    cfg = AppConfig.load(args.config)
    data_dir = Path(args.data) if args.data else cfg.data_dir
    session = LedgerSession(args.key, JsonFileStorage(data_dir), cfg, year=args.year or dt.date.today().year)

    try:
        if args.command == "summary":
            session.show_month(args.month)
            print(format_text_report(build_month_report(session.ledger, args.month)))
        elif args.command == "materialize":
            result = session.show_month(args.month)
            print(f"Created {len(result.created)} entr(ies); skipped {len(result.skipped)} template(s)")
            for skip in result.skipped:
                print(f"  template {skip.template_id}: {skip.reason.message}")
        elif args.command == "annual":
            print(format_annual_report(build_annual_report(session.ledger)))
        elif args.command == "rename-category":
            cat = session.store.rename_category(args.old, args.new)
            session.save()
            print(f"Renamed category to {cat.name}")
        elif args.command == "delete-template":
            template = session.store.remove_template(args.template_id, args.from_month)
            session.save()
            print(f"Deleted recurring entry {template.description!r}")
        elif args.command == "export":
            if not args.csv_out and not args.json_out:
                print("Nothing to do: pass --csv and/or --json", file=sys.stderr)
                return 2
            report = build_month_report(session.ledger, args.month)
            if args.csv_out:
                export_month_csv(report, args.csv_out)
                print(f"Saved CSV to: {args.csv_out}")
            if args.json_out:
                export_report_json(report, args.json_out)
                print(f"Saved JSON to: {args.json_out}")
    except LedgerError as exc:
        session.saver.cancel()
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
