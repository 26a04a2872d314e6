#!/usr/bin/env python
"""models.py – lightweight data structures used across the package."""

from __future__ import annotations
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

__all__ = ["Issue", "ChangeRow", "ChangelogResult"]


@dataclass
class Issue:
    """One search hit, flattened to the shape of the ``issues`` table."""

    key: str
    summary: str = ""
    created: Optional[str] = None
    issue_type: Optional[str] = None
    status: Optional[str] = None
    status_category: Optional[str] = None
    labels: List[str] = field(default_factory=list)

    def to_row(self) -> Dict[str, Any]:
        """Column → value mapping for ``ChangelogStore.insert_issues``.

        Labels are stored as a JSON array so SQLite's ``json_each`` can
        unnest them in ad-hoc queries.
        """
        return {
            "issue_key": self.key,
            "summary": self.summary,
            "created": self.created,
            "issue_type": self.issue_type,
            "status": self.status,
            "status_category": self.status_category,
            "labels": json.dumps(self.labels, ensure_ascii=False),
        }


@dataclass
class ChangeRow:
    """A single field transition, ready for the ``changelog`` table."""

    issue_key: str
    field: Optional[str]
    from_value: Optional[str]
    to_value: Optional[str]
    change_date: Optional[str]
    author: str = ""

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChangelogResult:
    """Raw changelog entries fetched for one issue.

    ``ok`` is False when the fetch degraded to an empty list.
    """

    key: str
    entries: List[Dict[str, Any]] = field(default_factory=list)
    ok: bool = True
