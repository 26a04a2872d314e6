"""Test configuration ensuring local package import when editable install not active.

Also provides a fake Jira built on ``httpx.MockTransport`` and a throwaway
SQLite store.
"""

from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jira_changelog.config import JiraSettings  # noqa: E402
from jira_changelog.jira_client import JiraClient  # noqa: E402
from jira_changelog.store import ChangelogStore  # noqa: E402

API_URL = "https://jira.example.test/rest/api/3"

# Zero delays so the suite never sleeps on jitter or cooldown.
FAST = {"jitter": (0, 0), "page_delay": (0, 0), "cooldown": 0}


@pytest.fixture
def settings() -> JiraSettings:
    return JiraSettings(api_url=API_URL, username="alice@example.com", token="s3cret")


@pytest.fixture
def make_client(settings):
    """Build a JiraClient whose requests are answered by *handler*."""

    def _make(handler, **options) -> JiraClient:
        opts = {**FAST, **options}
        return JiraClient(settings, transport=httpx.MockTransport(handler), **opts)

    return _make


@pytest.fixture
def store(tmp_path):
    with ChangelogStore(tmp_path / "jira.db") as s:
        yield s


def search_page(issues, total=None):
    body = {"issues": issues}
    if total is not None:
        body["total"] = total
    return httpx.Response(200, json=body)


def make_issue(key, status="In Progress", issue_type="Task"):
    return {
        "key": key,
        "fields": {
            "summary": f"Summary of {key}",
            "created": "2024-09-01T10:00:00.000+0000",
            "issuetype": {"name": issue_type},
            "status": {"name": status, "statusCategory": {"name": "In Progress"}},
            "labels": ["backend"],
        },
    }


def status_entry(created, from_status, to_status, author="Alice"):
    return {
        "id": "1",
        "author": {"displayName": author},
        "created": created,
        "items": [{"field": "status", "fromString": from_status, "toString": to_status}],
    }
