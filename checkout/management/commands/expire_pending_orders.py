from __future__ import annotations

from django.core.management.base import BaseCommand

from checkout.services import expire_stale_orders, stale_order_ids


class Command(BaseCommand):
    help = "Cancel pending/processing orders that were never paid and release their coupons."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only list orders that would be cancelled.",
        )

    def handle(self, *args, **options):
        if options.get("dry_run"):
            ids = stale_order_ids()
            self.stdout.write(f"Would cancel {len(ids)} order(s): {', '.join(str(i) for i in ids) or '-'}")
            return

        n = expire_stale_orders()
        self.stdout.write(self.style.SUCCESS(f"Cancelled {n} stale order(s)."))
