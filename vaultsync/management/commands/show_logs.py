"""
Django management command to show or clear a vault's sync log.
"""

from django.core.management.base import BaseCommand, CommandError

from vaultsync.models import Vault
from vaultsync.sync.log import clear_events, recent_events


class Command(BaseCommand):
    help = "Show recent sync log entries for a vault"

    def add_arguments(self, parser):
        parser.add_argument(
            "vault_id",
            type=int,
            help="Vault ID",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=50,
            help="Number of entries to show (default: 50)",
        )
        parser.add_argument(
            "--clear",
            action="store_true",
            help="Delete all log entries for the vault",
        )

    def handle(self, *args, **options):
        try:
            vault = Vault.objects.get(id=options["vault_id"])
        except Vault.DoesNotExist:
            raise CommandError(f"Vault {options['vault_id']} not found")

        if options["clear"]:
            deleted = clear_events(vault)
            self.stdout.write(self.style.SUCCESS(f"Cleared {deleted} log entries"))
            return

        events = recent_events(vault, limit=options["limit"])
        if not events:
            self.stdout.write("No sync logs yet")
            return

        for event in events:
            timestamp = event.timestamp.strftime("%Y-%m-%d %H:%M:%S")
            line = f"[{timestamp}] {event.action}: {event.path}"
            if event.status == "success":
                self.stdout.write(f"{self.style.SUCCESS('✓')} {line}")
            else:
                self.stdout.write(f"{self.style.ERROR('✗')} {line} ({event.message})")
