"""
Setup validation - required environment variables and connectivity.

Runs as a Django system check (tag "setup") and backs the check_setup
management command.
"""

import logging
import os

from django.conf import settings
from django.core.checks import Error, register
from django.db import DatabaseError, connection

import httpx

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 5.0

SETUP_INSTRUCTIONS = """\
Tavola is not configured yet.

1. Copy the required variables into your environment (or .env):
     {missing}
2. Point DATABASE_URL at a reachable Postgres database.
3. Run migrations: uv run python apps/web/manage.py migrate
4. Re-run: uv run python apps/web/manage.py check_setup
"""


def missing_env_vars() -> list[str]:
    """Required variables that are unset or empty."""
    required = getattr(settings, "REQUIRED_ENV_VARS", [])
    return [name for name in required if not os.environ.get(name)]


def probe_database() -> str | None:
    """Run a trivial query. Returns an error message or None."""
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError as e:
        return str(e)
    return None


def probe_url(url: str, timeout: float = PROBE_TIMEOUT_SECONDS) -> str | None:
    """GET a URL with a timeout. Returns an error message or None."""
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
    except httpx.HTTPError as e:
        return f"{url} unreachable: {e}"
    if response.status_code >= 500:
        return f"{url} returned {response.status_code}"
    return None


@register("setup")
def check_environment(app_configs: object = None, **kwargs: object) -> list[Error]:
    """Report each required variable that is missing."""
    return [
        Error(
            f"Environment variable {name} is not set.",
            hint="See check_setup for setup instructions.",
            id="tavola.E001",
        )
        for name in missing_env_vars()
    ]


@register("setup", deploy=True)
def check_database(app_configs: object = None, **kwargs: object) -> list[Error]:
    """Report an unreachable database."""
    error = probe_database()
    if error is None:
        return []
    return [
        Error(
            f"Database connectivity probe failed: {error}",
            hint="Check DATABASE_URL.",
            id="tavola.E002",
        )
    ]
