#!/usr/bin/env python
"""
crawler.py – Fetch the changelog of many issues concurrently.

Depends on:
    • jira_changelog.jira_client.JiraClient
    • jira_changelog.models.ChangelogResult

Usage::

    async with JiraClient(settings) as client:
        crawler = ChangelogCrawler(client)
        results = await crawler.fetch_changelogs(["OPS-1", "OPS-2"])
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from .jira_client import JiraClient
from .models import ChangelogResult

__all__ = ["ChangelogCrawler"]

log = logging.getLogger("jira_changelog.crawler")


class ChangelogCrawler:
    """Fan out one changelog fetch per issue; one issue failing never stops the rest."""

    def __init__(self, client: JiraClient, *, max_concurrency: int = 20):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.client = client
        self._limit = asyncio.Semaphore(max_concurrency)

    async def fetch_changelogs(self, keys: Sequence[str]) -> List[ChangelogResult]:
        """Return one result per key, in input order, once every fetch has settled."""
        log.info("Fetching changelogs for %s issues …", len(keys))
        settled = await asyncio.gather(
            *(self._fetch_one(key) for key in keys), return_exceptions=True
        )

        results: List[ChangelogResult] = []
        for key, outcome in zip(keys, settled):
            if isinstance(outcome, ChangelogResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                log.warning("Changelog fetch for %s raised %r; using empty history", key, outcome)
                results.append(ChangelogResult(key, [], ok=False))
            else:
                raise outcome

        degraded = sum(1 for r in results if not r.ok)
        log.info("Changelogs fetched – %s ok, %s degraded", len(results) - degraded, degraded)
        return results

    async def _fetch_one(self, key: str) -> ChangelogResult:
        async with self._limit:
            entries = await self.client.get_changelog(key)
        if entries is None:
            log.warning("No changelog for %s; continuing with empty history", key)
            return ChangelogResult(key, [], ok=False)
        return ChangelogResult(key, entries)
