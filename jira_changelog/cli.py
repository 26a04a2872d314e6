"""cli.py – Console entry‑point for the jira_changelog package.

Run ``jtm import --jql "project = OPS"`` to pull changelogs into SQLite, or
``jtm export --query "SELECT * FROM status_durations"`` to dump query results.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_DB_PATH, ConfigError, JiraSettings
from .exporter import FORMATS, format_rows, write_output
from .importer import run_import
from .store import ChangelogStore, StorageError

log = logging.getLogger("jira_changelog.cli")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _import(args: argparse.Namespace) -> int:
    try:
        settings = JiraSettings.resolve(url=args.url, username=args.username, token=args.token)
    except ConfigError as exc:
        log.error("%s", exc)
        return 1

    try:
        summary = run_import(
            settings,
            args.jql,
            args.db,
            batch_size=args.batch_size,
            max_concurrency=args.concurrency,
            replace=args.replace,
        )
    except StorageError as exc:
        log.error("Failed to write to DB: %s", exc)
        return 1

    print(f"Import complete for {summary.issues} issues ({summary.degraded} without changelog).")
    return 0


def _export(args: argparse.Namespace) -> int:
    if args.format not in FORMATS:
        log.error('Unsupported format: %s. Use "csv" or "json".', args.format)
        return 1
    if not Path(args.db).exists():
        log.error("Database %s does not exist; run `jtm import` first", args.db)
        return 1

    try:
        with ChangelogStore(args.db) as store:
            result = store.query(args.query)
    except StorageError as exc:
        log.error("%s", exc)
        return 1

    data = format_rows(result.rows, args.format, columns=result.columns)
    if not args.output:
        print(data)
        return 0

    try:
        write_output(data, args.output)
    except OSError as exc:
        log.error("Failed to write output file: %s", exc)
        return 1
    log.info("Wrote %s rows → %s", len(result), args.output)
    return 0


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="jtm", description="The Jira Time Machine – query and export Jira changelogs"
    )
    sub = p.add_subparsers(dest="cmd")

    imp = sub.add_parser("import", help="Import Jira changelogs into a local SQLite database")
    imp.add_argument("--jql", required=True, help="JQL query")
    imp.add_argument("--username", help="Jira username/email (overrides .env)")
    imp.add_argument("--token", help="Jira API token (overrides .env)")
    imp.add_argument("--url", help="Jira API base URL, e.g. https://x.atlassian.net/rest/api/3 (overrides .env)")
    imp.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite file")
    imp.add_argument("--batch-size", type=_positive_int, default=5000, help="Search page size")
    imp.add_argument("--concurrency", type=_positive_int, default=20, help="Max in‑flight changelog requests")
    imp.add_argument(
        "--replace",
        action="store_true",
        help="Delete earlier rows of the imported issues instead of appending duplicates",
    )

    exp = sub.add_parser("export", help="Export query results from the local DB")
    exp.add_argument("--query", required=True, help="SQL query to execute")
    exp.add_argument("--output", help="Output filename (stdout when omitted)")
    exp.add_argument("--format", default="csv", help="Output format: csv|json")
    exp.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite DB file")

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.cmd == "import":
        return _import(args)
    if args.cmd == "export":
        return _export(args)

    parser.print_help()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
