import time

import pytest

from jira_changelog.models import ChangeRow, Issue
from jira_changelog.store import ChangelogStore, StorageError


def change(key, date, to_value, field="status", from_value=None):
    return ChangeRow(key, field, from_value, to_value, date, "Alice")


def test_schema_creation_is_idempotent(tmp_path):
    path = tmp_path / "jira.db"
    with ChangelogStore(path) as first:
        first.insert_changes([change("OPS-1", "2024-01-01 00:00:00", "Open")])
    with ChangelogStore(path) as second:
        assert second.count("changelog") == 1


def test_create_dirs_builds_missing_parent(tmp_path):
    path = tmp_path / "output" / "nested" / "jira.db"
    with ChangelogStore(path, create_dirs=True) as s:
        assert s.count("issues") == 0
    assert path.exists()


def test_insert_then_count_round_trip(store):
    rows = [change("OPS-1", f"2024-01-0{d} 00:00:00", f"S{d}") for d in range(1, 8)]

    assert store.insert_changes(rows) == 7
    assert store.query("SELECT COUNT(*) AS n FROM changelog").rows == [{"n": 7}]


def test_rerun_appends_duplicate_rows(store):
    rows = [change("OPS-1", "2024-01-01 00:00:00", "Open"), change("OPS-1", "2024-01-02 00:00:00", "Done")]
    issues = [Issue("OPS-1", "First", "2024-01-01 00:00:00", "Task", "Done", "Done", [])]

    for _ in range(2):
        store.insert_issues(issues)
        store.insert_changes(rows)

    # No dedup: a second import of the same data doubles every table.
    assert store.count("issues") == 2
    assert store.count("changelog") == 4


def test_replace_mode_swaps_previous_rows_of_the_same_keys(store):
    store.insert_issues([Issue("OPS-1", "old"), Issue("OPS-2", "other")])
    store.insert_changes([change("OPS-1", "2024-01-01 00:00:00", "Open"), change("OPS-2", "2024-01-01 00:00:00", "Open")])

    store.insert_issues([Issue("OPS-1", "new")], replace=True)
    store.insert_changes([change("OPS-1", "2024-02-01 00:00:00", "Done")], replace_keys=["OPS-1"])

    issues = store.query("SELECT issue_key, summary FROM issues ORDER BY issue_key").rows
    assert issues == [{"issue_key": "OPS-1", "summary": "new"}, {"issue_key": "OPS-2", "summary": "other"}]
    changes = store.query("SELECT issue_key, to_value FROM changelog ORDER BY issue_key").rows
    assert changes == [{"issue_key": "OPS-1", "to_value": "Done"}, {"issue_key": "OPS-2", "to_value": "Open"}]


def test_failed_batch_is_rolled_back_completely(store):
    store.insert_changes([change("OPS-1", "2024-01-01 00:00:00", "Open")])
    good = change("OPS-2", "2024-01-01 00:00:00", "Open").to_row()
    broken = {"issue_key": "OPS-3"}  # missing columns

    with pytest.raises(StorageError):
        store.bulk_insert("changelog", [good, broken], replace_keys=["OPS-1"])

    assert store.query("SELECT issue_key FROM changelog").rows == [{"issue_key": "OPS-1"}]


def test_unknown_table_is_rejected(store):
    with pytest.raises(ValueError):
        store.bulk_insert("sqlite_master", [])


def test_bad_query_raises_storage_error(store):
    with pytest.raises(StorageError):
        store.query("SELECT * FROM no_such_table")


def test_query_reports_columns_for_empty_results(store):
    result = store.query("SELECT issue_key, field FROM changelog")

    assert result.columns == ["issue_key", "field"]
    assert result.rows == []
    assert len(result) == 0


# ---------------------------------------------------------------------------
# status_durations
# ---------------------------------------------------------------------------


def test_status_durations_three_transitions(store):
    store.insert_changes(
        [
            change("OPS-1", "2024-01-03 00:00:00", "Done", from_value="In Progress"),
            change("OPS-1", "2024-01-01 00:00:00", "To Do"),
            change("OPS-1", "2024-01-02 12:00:00", "In Progress", from_value="To Do"),
            change("OPS-1", "2024-01-02 13:00:00", "Bob", field="assignee"),
            change("OPS-2", "2024-01-01 06:00:00", "To Do"),
        ]
    )

    windows = store.query(
        "SELECT * FROM status_durations WHERE issue_key = 'OPS-1' ORDER BY entered_at"
    ).rows

    assert [w["status"] for w in windows] == ["To Do", "In Progress", "Done"]
    # Closed windows are contiguous: each exit is the next entry.
    assert windows[0]["left_at"] == windows[1]["entered_at"] == "2024-01-02 12:00:00"
    assert windows[1]["left_at"] == windows[2]["entered_at"] == "2024-01-03 00:00:00"
    assert windows[0]["days_in_state"] == pytest.approx(1.5)
    assert windows[1]["days_in_state"] == pytest.approx(0.5)
    # The open window runs until now.
    assert windows[2]["left_at"] > "2024-01-03 00:00:00"
    assert windows[2]["days_in_state"] > 365


def test_open_window_grows_between_reads(store):
    store.insert_changes(
        [
            change("OPS-1", "2024-01-01 00:00:00", "To Do"),
            change("OPS-1", "2024-01-02 00:00:00", "In Progress"),
            change("OPS-1", "2024-01-03 00:00:00", "Done"),
        ]
    )
    sql = "SELECT days_in_state FROM status_durations WHERE status = 'Done'"

    first = store.query(sql).rows[0]["days_in_state"]
    time.sleep(1.1)
    second = store.query(sql).rows[0]["days_in_state"]

    assert second > first
    closed = store.query("SELECT days_in_state FROM status_durations WHERE status != 'Done'").rows
    assert [r["days_in_state"] for r in closed] == [pytest.approx(1.0), pytest.approx(1.0)]


def test_issue_without_status_rows_has_no_windows(store):
    store.insert_changes([change("OPS-1", "2024-01-01 00:00:00", "x", field="labels")])

    assert store.count("status_durations") == 0


def test_file_that_is_not_a_database_raises_storage_error(tmp_path):
    path = tmp_path / "notes.db"
    path.write_text("this is a plain text file, not SQLite " * 20)

    with pytest.raises(StorageError, match="Cannot initialise"):
        ChangelogStore(path)
