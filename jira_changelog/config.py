"""config.py – shared configuration, environment variables, and logging."""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# ---------------------------------------------------------------------------
# Load .env (if present)
# ---------------------------------------------------------------------------
load_dotenv(find_dotenv(usecwd=True))  # falls back gracefully if .env is missing

# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------
DEFAULT_DB_PATH: str = os.getenv("JTM_DB_PATH", "./output/jira_data.db")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    stream=sys.stdout,
)
log = logging.getLogger("jira_changelog")


class ConfigError(RuntimeError):
    """Raised when required settings are missing or invalid."""


@dataclass(frozen=True)
class JiraSettings:
    """Credentials and endpoint for one run.

    Built once at process start and handed to every stage that talks to Jira.
    """

    api_url: str
    username: str
    token: str

    @classmethod
    def resolve(
        cls,
        *,
        url: str | None = None,
        username: str | None = None,
        token: str | None = None,
    ) -> "JiraSettings":
        """Merge CLI overrides over the environment; fail fast on gaps."""
        settings = cls(
            api_url=(url or os.getenv("JIRA_API_URL", "")).rstrip("/"),
            username=username or os.getenv("JIRA_API_USER", ""),
            token=token or os.getenv("JIRA_API_TOKEN", ""),
        )
        missing = [
            name
            for name, value in (
                ("JIRA_API_URL", settings.api_url),
                ("JIRA_API_USER", settings.username),
                ("JIRA_API_TOKEN", settings.token),
            )
            if not value
        ]
        if missing:
            raise ConfigError(
                "Missing credentials or API URL: "
                + ", ".join(missing)
                + ". Set them in .env or pass --url/--username/--token."
            )
        return settings


__all__ = [
    "DEFAULT_DB_PATH",
    "LOG_LEVEL",
    "ConfigError",
    "JiraSettings",
    "log",
]
