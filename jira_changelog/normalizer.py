"""normalizer.py – flatten Jira payloads into relational rows.

Nothing here talks to the network or the database, so every function is a
plain mapping from API dicts to ``Issue`` / ``ChangeRow`` objects.
"""
from __future__ import annotations

import logging
from datetime import timezone
from typing import Any, Iterable, List, Optional

from dateutil import parser as date_parser

from .models import ChangelogResult, ChangeRow, Issue

__all__ = [
    "DATE_FORMAT",
    "normalize_jira_date",
    "issue_from_api",
    "changelog_to_rows",
    "changelogs_to_rows",
]

log = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def normalize_jira_date(value: Optional[str]) -> Optional[str]:
    """Render a Jira timestamp as ``YYYY-MM-DD HH:MM:SS`` in UTC.

    ``2024-03-01T10:15:00.000+0100`` → ``2024-03-01 09:15:00``. Non-ISO
    layouts such as ``2024/03/01 10:15`` go through ``dateutil.parser.parse``.
    Naive values are taken as UTC. Anything unparseable is returned unchanged.
    """
    if not value:
        return None
    if not isinstance(value, str):
        return str(value)
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        try:
            parsed = date_parser.parse(value)
        except (ValueError, OverflowError):
            log.debug("Keeping unparseable timestamp %r", value)
            return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime(DATE_FORMAT)


def _name(obj: Any, key: str = "name") -> Optional[str]:
    return obj.get(key) if isinstance(obj, dict) else None


def issue_from_api(issue: dict[str, Any]) -> Issue:
    f = issue.get("fields") or {}
    status = f.get("status")
    labels = f.get("labels")
    return Issue(
        key=issue["key"],
        summary=f.get("summary", "") or "",
        created=normalize_jira_date(f.get("created")),
        issue_type=_name(f.get("issuetype")),
        status=_name(status),
        status_category=_name(_name(status, "statusCategory")),
        labels=[str(label) for label in labels] if isinstance(labels, list) else [],
    )


def changelog_to_rows(issue_key: str, entries: Iterable[dict[str, Any]]) -> List[ChangeRow]:
    """One row per changed field; items share their entry's date and author."""
    rows: List[ChangeRow] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        change_date = normalize_jira_date(entry.get("created"))
        author = _name(entry.get("author"), "displayName") or ""
        for item in entry.get("items") or []:
            if not isinstance(item, dict):
                continue
            rows.append(
                ChangeRow(
                    issue_key=issue_key,
                    field=item.get("field"),
                    from_value=item.get("fromString") or None,
                    to_value=item.get("toString") or None,
                    change_date=change_date,
                    author=author,
                )
            )
    return rows


def changelogs_to_rows(results: Iterable[ChangelogResult]) -> List[ChangeRow]:
    rows: List[ChangeRow] = []
    for result in results:
        rows.extend(changelog_to_rows(result.key, result.entries))
    return rows
