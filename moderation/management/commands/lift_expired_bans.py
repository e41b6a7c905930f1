from __future__ import annotations

from django.core.management.base import BaseCommand

from moderation.services import lift_expired_bans


class Command(BaseCommand):
    help = "Reactivate users whose temporary ban has expired."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only count bans that would be lifted.",
        )

    def handle(self, *args, **options):
        dry_run = bool(options.get("dry_run"))
        n = lift_expired_bans(dry_run=dry_run)
        if dry_run:
            self.stdout.write(f"Would lift {n} ban(s).")
            return
        self.stdout.write(self.style.SUCCESS(f"Lifted {n} ban(s)."))
