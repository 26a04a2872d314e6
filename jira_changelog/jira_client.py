#!/usr/bin/env python
"""jira_client.py – Async wrapper around the Jira REST API.

* Every call is a best-effort GET: jitter first, one retry after a fixed
  cooldown on HTTP 429, and an empty ``dict`` for anything that still fails.
* Handles **search pagination** (``startAt``/``maxResults``) and
  **changelog pagination** (``startAt`` until ``isLast``).

Usage::

    async with JiraClient(settings) as client:
        issues = await client.search('project = OPS', fields=["status"])
        history = await client.get_changelog("OPS-1")
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional
from collections.abc import Sequence

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from .config import JiraSettings

log = logging.getLogger(__name__)

EMPTY_RESULT: dict[str, Any] = {}


def _rate_limited(resp: httpx.Response) -> bool:
    return resp.status_code == 429


def _warn_rate_limited(state: RetryCallState) -> None:
    url = state.args[0] if state.args else "?"
    log.warning(
        "Rate limited on %s, waiting %.1f s before retry…",
        url,
        state.next_action.sleep if state.next_action else 0,
    )


def _last_response(state: RetryCallState) -> httpx.Response:
    # Hand the final 429 back to the caller instead of raising RetryError.
    return state.outcome.result()


class JiraClient:
    """Minimal Jira REST helper over ``httpx.AsyncClient``.

    Parameters
    ----------
    settings : JiraSettings
        Base URL (including the ``/rest/api/N`` prefix) and basic-auth
        credentials.
    timeout : float, default 30
        Per-request timeout in seconds.
    jitter : (float, float), default (0.2, 0.8)
        Random sleep before each request, in seconds.
    page_delay : (float, float), default (0.2, 0.7)
        Random sleep between search pages, in seconds.
    cooldown : float, default 3
        Fixed wait before the single retry of a rate-limited request.
    max_connections : int, default 20
        httpx connection-pool size.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport (tests pass ``httpx.MockTransport``).
    """

    SEARCH_ENDPOINT = "search"
    CHANGELOG_ENDPOINT = "issue/{key}/changelog"
    CHANGELOG_PAGE_SIZE = 100

    def __init__(
        self,
        settings: JiraSettings,
        *,
        timeout: float = 30.0,
        jitter: tuple[float, float] = (0.2, 0.8),
        page_delay: tuple[float, float] = (0.2, 0.7),
        cooldown: float = 3.0,
        max_connections: int = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = settings.api_url.rstrip("/")
        self.jitter = jitter
        self.page_delay = page_delay
        self.cooldown = cooldown

        self.client = httpx.AsyncClient(
            auth=httpx.BasicAuth(settings.username, settings.token),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            timeout=timeout,
            limits=httpx.Limits(max_connections=max_connections),
            transport=transport,
        )

    async def __aenter__(self) -> "JiraClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Internal GET with jitter + one rate-limit retry
    # ------------------------------------------------------------------

    async def _send(self, url: str, params: dict[str, Any]) -> httpx.Response:
        return await self.client.get(url, params=params)

    async def request(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """GET *endpoint* and return its JSON object, or ``{}`` on any failure."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        await asyncio.sleep(random.uniform(*self.jitter))

        retrying = AsyncRetrying(
            stop=stop_after_attempt(2),
            wait=wait_fixed(self.cooldown),
            retry=retry_if_result(_rate_limited),
            before_sleep=_warn_rate_limited,
            retry_error_callback=_last_response,
            sleep=asyncio.sleep,
        )
        try:
            resp: httpx.Response = await retrying(self._send, url, params or {})
        except httpx.HTTPError as exc:
            log.warning("Request to %s failed: %s", url, exc)
            return EMPTY_RESULT.copy()

        if resp.status_code == 429:
            log.warning("Retry failed for %s (%s)", url, resp.status_code)
            return EMPTY_RESULT.copy()
        if not resp.is_success:
            log.warning(
                "Fetch failed for %s: %s %s – body: %s",
                url,
                resp.status_code,
                resp.reason_phrase,
                resp.text[:800],
            )
            return EMPTY_RESULT.copy()

        try:
            data = resp.json()
        except ValueError as exc:
            log.warning("Undecodable JSON from %s: %s", url, exc)
            return EMPTY_RESULT.copy()
        if not isinstance(data, dict):
            log.warning("Unexpected %s payload from %s", type(data).__name__, url)
            return EMPTY_RESULT.copy()
        return data

    # ------------------------------------------------------------------
    # Search pagination
    # ------------------------------------------------------------------

    async def search(
        self,
        jql: str,
        *,
        fields: Optional[Sequence[str]] = None,
        batch_size: int = 5000,
    ) -> list[dict[str, Any]]:
        """Return every issue matching *jql*, page by page.

        The offset advances by the number of issues actually returned. A
        failed page ends the crawl but keeps what was already collected.
        """
        log.info('Fetching issues for JQL: "%s"', jql)
        start_at = 0
        total: Optional[int] = None
        issues: list[dict[str, Any]] = []

        while total is None or start_at < total:
            params: dict[str, Any] = {
                "jql": jql,
                "startAt": start_at,
                "maxResults": batch_size,
            }
            if fields:
                params["fields"] = ",".join(fields)

            page = await self.request(self.SEARCH_ENDPOINT, params)
            if not page:
                log.error("Search page at offset %s failed; keeping %s issues", start_at, len(issues))
                break

            batch = page.get("issues")
            if not isinstance(batch, list):
                batch = []
            reported = page.get("total")
            if isinstance(reported, int) and not isinstance(reported, bool):
                total = reported

            issues.extend(batch)
            start_at += len(batch)
            log.debug("Fetched %s issues (so far %s/%s)", len(batch), start_at, total if total is not None else "?")

            if not batch:
                break
            if total is None or start_at < total:
                await asyncio.sleep(random.uniform(*self.page_delay))

        log.info("Retrieved %s issues from Jira", len(issues))
        return issues

    # ------------------------------------------------------------------
    # Changelog
    # ------------------------------------------------------------------

    async def get_changelog(self, key: str) -> Optional[list[dict[str, Any]]]:
        """Fetch every changelog entry of *key*.

        Returns ``None`` when the first page could not be fetched; a later
        failure keeps the entries gathered so far.
        """
        endpoint = self.CHANGELOG_ENDPOINT.format(key=key)
        entries: list[dict[str, Any]] = []
        start_at = 0

        while True:
            page = await self.request(
                endpoint, {"startAt": start_at, "maxResults": self.CHANGELOG_PAGE_SIZE}
            )
            if not page:
                if start_at == 0:
                    return None
                log.warning("Changelog for %s truncated at %s entries", key, len(entries))
                break

            values = page.get("values")
            if not isinstance(values, list):
                values = []
            entries.extend(values)
            start_at += len(values)

            if not values or not _has_more(page, start_at):
                break
        return entries


def _has_more(page: dict[str, Any], start_at: int) -> bool:
    if "isLast" in page:
        return not page["isLast"]
    total = page.get("total")
    return isinstance(total, int) and start_at < total


__all__ = ["JiraClient", "EMPTY_RESULT"]
