"""
Refresh in-flight deliveries from the delivery partner.

Fallback for missed or delayed webhooks.

Usage:
    python apps/web/manage.py poll_deliveries
    python apps/web/manage.py poll_deliveries --once
    python apps/web/manage.py poll_deliveries --interval 120 --limit 50
"""

import time
from typing import Any

from django.core.management.base import BaseCommand

from apps.web.delivery.tasks import poll_deliveries_task


class Command(BaseCommand):
    help = "Refresh the status of active deliveries from the delivery partner"

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--once",
            action="store_true",
            help="Poll once and exit (default: poll every 60s)",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=60,
            help="Polling interval in seconds (default: 60)",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=200,
            help="Maximum deliveries refreshed per run (default: 200)",
        )

    def handle(self, *_args: Any, **options: Any) -> None:
        once = options["once"]
        interval = options["interval"]
        limit = options["limit"]

        self.stdout.write("Starting delivery poller...")

        while True:
            result = poll_deliveries_task(limit=limit)

            if result["total_deliveries"] or result["errors"]:
                self.stdout.write(
                    f"Polled {result['total_deliveries']} deliveries, "
                    f"{result['updated_orders']} orders updated, "
                    f"{len(result['errors'])} errors"
                )
            for error in result["errors"]:
                self.stdout.write(
                    self.style.WARNING(f"  {error['delivery_id']}: {error['error']}")
                )

            if once:
                break

            time.sleep(interval)
