"""
Validate environment and connectivity before serving traffic.

Usage:
    uv run python apps/web/manage.py check_setup
    uv run python apps/web/manage.py check_setup --skip-http
"""

from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.web.core.checks import (
    SETUP_INSTRUCTIONS,
    missing_env_vars,
    probe_database,
    probe_url,
)


class Command(BaseCommand):
    help = "Check required environment variables, database and site connectivity"
    requires_system_checks: list[str] = []

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--skip-http",
            action="store_true",
            help="Skip the SITE_URL connectivity probe",
        )
        parser.add_argument(
            "--timeout",
            type=float,
            default=5.0,
            help="HTTP probe timeout in seconds (default: 5)",
        )

    def handle(self, *_args: Any, **options: Any) -> None:
        problems: list[str] = []

        missing = missing_env_vars()
        if missing:
            problems.append(f"Missing environment variables: {', '.join(missing)}")

        db_error = probe_database()
        if db_error:
            problems.append(f"Database probe failed: {db_error}")

        site_url = getattr(settings, "SITE_URL", "")
        if site_url and not options["skip_http"]:
            http_error = probe_url(site_url, timeout=options["timeout"])
            if http_error:
                problems.append(http_error)

        if problems:
            for problem in problems:
                self.stderr.write(self.style.ERROR(problem))
            self.stderr.write(
                SETUP_INSTRUCTIONS.format(missing=", ".join(missing) or "(none)")
            )
            raise CommandError("Setup incomplete")

        self.stdout.write(self.style.SUCCESS("Setup OK"))
