"""
Django management command to list the files in a vault's bucket.
"""

import json

from django.core.management.base import BaseCommand, CommandError

from vaultsync.models import Vault
from vaultsync.sync import SyncError
from vaultsync.sync.catalog import RemoteCatalog
from vaultsync.sync.runs import authorize, build_client
from vaultsync.sync.statistics import format_bytes


class Command(BaseCommand):
    help = "List all files in a vault's B2 bucket"

    def add_arguments(self, parser):
        parser.add_argument(
            "vault_id",
            type=int,
            help="Vault ID",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

    def handle(self, *args, **options):
        vault_id = options["vault_id"]

        try:
            vault = Vault.objects.get(id=vault_id)
        except Vault.DoesNotExist:
            raise CommandError(f"Vault {vault_id} not found")

        try:
            client = build_client(vault)
            objects = RemoteCatalog(client).list(authorize(client))
        except SyncError as e:
            raise CommandError(f"Failed to list files: {e}")

        if options["json"]:
            self._output_json(objects)
            return

        if not objects:
            self.stdout.write(self.style.WARNING("No files found in bucket"))
            return

        self._output_table(objects)

    def _output_table(self, objects):
        self.stdout.write("\n" + "=" * 80)
        self.stdout.write(f"{'File Name':<50} {'Size':>10} {'Last Modified':>17}")
        self.stdout.write("=" * 80)

        for obj in objects:
            uploaded = obj.uploaded_at.strftime("%Y-%m-%d %H:%M") if obj.uploaded_at else ""
            self.stdout.write(f"{obj.path:<50} {format_bytes(obj.size):>10} {uploaded:>17}")

        self.stdout.write("=" * 80)
        self.stdout.write(f"Total: {len(objects)} file(s)\n")

    def _output_json(self, objects):
        data = [
            {
                "file_name": obj.path,
                "size": obj.size,
                "upload_timestamp": obj.uploaded_at.isoformat() if obj.uploaded_at else None,
                "fingerprint": obj.fingerprint,
            }
            for obj in objects
        ]
        self.stdout.write(json.dumps(data, indent=2))
