"""exporter.py – serialize query results as CSV or JSON."""
from __future__ import annotations

import csv
import io
import json
from pathlib import Path
from typing import Any, Mapping, Sequence

__all__ = ["FORMATS", "format_rows", "write_output"]

FORMATS = ("csv", "json")


def format_rows(
    rows: Sequence[Mapping[str, Any]],
    fmt: str,
    *,
    columns: Sequence[str] | None = None,
) -> str:
    """Render *rows* as ``csv`` or ``json``.

    An empty result becomes ``[]`` in JSON and a header-only document in CSV
    (or an empty string when no column names are known).
    """
    if fmt == "json":
        return json.dumps([dict(r) for r in rows], indent=2, ensure_ascii=False, default=str)
    if fmt == "csv":
        fieldnames = list(columns) if columns else (list(rows[0].keys()) if rows else [])
        if not fieldnames:
            return ""
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames, lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        return buf.getvalue()
    raise ValueError(f'Unsupported format: {fmt}. Use "csv" or "json".')


def write_output(data: str, path: str | Path) -> Path:
    out = Path(path)
    out.write_text(data, encoding="utf-8")
    return out
