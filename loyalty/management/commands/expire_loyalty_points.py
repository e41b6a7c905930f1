from __future__ import annotations

from django.core.management.base import BaseCommand

from loyalty.services import expire_points


class Command(BaseCommand):
    help = "Zero out loyalty balances whose expiry date has passed."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only count accounts that would expire.",
        )

    def handle(self, *args, **options):
        dry_run = bool(options.get("dry_run"))
        n = expire_points(dry_run=dry_run)
        if dry_run:
            self.stdout.write(f"Would expire {n} loyalty account(s).")
            return
        self.stdout.write(self.style.SUCCESS(f"Expired {n} loyalty account(s)."))
