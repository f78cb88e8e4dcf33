"""
Django management command to register a vault and its B2 application key.
"""

from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from vaultsync import secrets
from vaultsync.models import OrphanPolicy, Vault


class Command(BaseCommand):
    help = "Register a local vault directory with a B2 bucket"

    def add_arguments(self, parser):
        parser.add_argument("name", help="Display name for the vault")
        parser.add_argument("local_root", help="Path to the local vault directory")
        parser.add_argument("--bucket-id", required=True, help="B2 bucket ID")
        parser.add_argument("--bucket-name", required=True, help="B2 bucket name")
        parser.add_argument("--key-id", required=True, help="B2 application key ID")
        parser.add_argument("--key", required=True, help="B2 application key")
        parser.add_argument(
            "--orphan-policy",
            choices=OrphanPolicy.values,
            default=OrphanPolicy.SKIP,
            help="How scheduled syncs treat remote-only files (default: skip)",
        )
        parser.add_argument(
            "--auto-sync",
            action="store_true",
            help="Include this vault in scheduled syncs",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=60,
            help="Minutes between scheduled syncs (default: 60)",
        )

    def handle(self, *args, **options):
        local_root = Path(options["local_root"]).expanduser().resolve()
        if not local_root.is_dir():
            raise CommandError(f"Not a directory: {local_root}")

        vault, created = Vault.objects.update_or_create(
            bucket_name=options["bucket_name"],
            local_root=str(local_root),
            defaults={
                "name": options["name"],
                "bucket_id": options["bucket_id"],
                "orphan_policy": options["orphan_policy"],
                "auto_sync": options["auto_sync"],
                "sync_interval_minutes": options["interval"],
                "is_active": True,
            },
        )

        secrets.set_credentials(vault, options["key_id"], options["key"])

        verb = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{verb} vault {vault.id}: {vault}"))
        self.stdout.write(f"\nRun 'python manage.py verify_credentials {vault.id}' to test the key")
