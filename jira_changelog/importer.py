"""importer.py – search → changelog fan-out → normalize → store.

The network half runs inside one event loop (``fetch_history``); the storage
half is synchronous and starts only after every fetch has settled.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import httpx

from .config import JiraSettings
from .crawler import ChangelogCrawler
from .jira_client import JiraClient
from .models import ChangelogResult, Issue
from .normalizer import changelogs_to_rows, issue_from_api
from .store import ChangelogStore

__all__ = ["ISSUE_FIELDS", "ImportSummary", "fetch_history", "run_import"]

log = logging.getLogger("jira_changelog.importer")

ISSUE_FIELDS = ["summary", "created", "issuetype", "status", "labels"]


@dataclass
class FetchedHistory:
    issues: List[Issue] = field(default_factory=list)
    changelogs: List[ChangelogResult] = field(default_factory=list)


@dataclass
class ImportSummary:
    issues: int
    degraded: int
    change_rows: int

    @property
    def succeeded(self) -> int:
        return self.issues - self.degraded


async def fetch_history(
    settings: JiraSettings,
    jql: str,
    *,
    batch_size: int = 5000,
    max_concurrency: int = 20,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **client_options: Any,
) -> FetchedHistory:
    """Run the network half of an import and return everything it gathered."""
    async with JiraClient(
        settings,
        max_connections=max_concurrency,
        transport=transport,
        **client_options,
    ) as client:
        raw_issues = await client.search(jql, fields=ISSUE_FIELDS, batch_size=batch_size)
        issues = [issue_from_api(raw) for raw in raw_issues if isinstance(raw, dict) and raw.get("key")]

        crawler = ChangelogCrawler(client, max_concurrency=max_concurrency)
        changelogs = await crawler.fetch_changelogs([i.key for i in issues])
    return FetchedHistory(issues, changelogs)


def run_import(
    settings: JiraSettings,
    jql: str,
    db_path: str | Path,
    *,
    batch_size: int = 5000,
    max_concurrency: int = 20,
    replace: bool = False,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **client_options: Any,
) -> ImportSummary:
    """Import every issue matching *jql* (and its changelog) into *db_path*.

    Without *replace* a rerun appends another copy of every row. With it,
    previous rows of the imported issue keys are deleted in the same
    transaction as the new inserts.

    Raises ``StorageError`` if either bulk write fails.
    """
    history = asyncio.run(
        fetch_history(
            settings,
            jql,
            batch_size=batch_size,
            max_concurrency=max_concurrency,
            transport=transport,
            **client_options,
        )
    )
    rows = changelogs_to_rows(history.changelogs)
    # A degraded fetch must not wipe the history kept from an earlier run.
    fetched_keys = [c.key for c in history.changelogs if c.ok]

    with ChangelogStore(db_path, create_dirs=True) as store:
        store.insert_issues(history.issues, replace=replace)
        log.info("Inserting %s change log rows into %s", len(rows), db_path)
        store.insert_changes(rows, replace_keys=fetched_keys if replace else None)

    summary = ImportSummary(
        issues=len(history.issues),
        degraded=sum(1 for c in history.changelogs if not c.ok),
        change_rows=len(rows),
    )
    log.info(
        "Import complete for %s issues (%s with changelog, %s degraded, %s change rows)",
        summary.issues,
        summary.succeeded,
        summary.degraded,
        summary.change_rows,
    )
    return summary
