from jira_changelog.config import ConfigError, JiraSettings
from jira_changelog.models import ChangelogResult, ChangeRow, Issue
from jira_changelog.jira_client import JiraClient
from jira_changelog.crawler import ChangelogCrawler
from jira_changelog.normalizer import changelog_to_rows, issue_from_api, normalize_jira_date
from jira_changelog.store import ChangelogStore, QueryResult, StorageError
from jira_changelog.importer import ImportSummary, run_import
from jira_changelog.exporter import format_rows

__version__ = "1.0.0"

__all__ = [
    "ConfigError",
    "JiraSettings",
    "ChangelogResult",
    "ChangeRow",
    "Issue",
    "JiraClient",
    "ChangelogCrawler",
    "changelog_to_rows",
    "issue_from_api",
    "normalize_jira_date",
    "ChangelogStore",
    "QueryResult",
    "StorageError",
    "ImportSummary",
    "run_import",
    "format_rows",
]
