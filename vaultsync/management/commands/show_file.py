"""
Django management command to print a file stored in a vault's bucket.
"""

from django.core.management.base import BaseCommand, CommandError

from vaultsync.models import Vault
from vaultsync.providers.b2 import B2Error
from vaultsync.sync import SyncError
from vaultsync.sync.runs import authorize, build_client


class Command(BaseCommand):
    help = "Print the bucket copy of a vault file"

    def add_arguments(self, parser):
        parser.add_argument(
            "vault_id",
            type=int,
            help="Vault ID",
        )
        parser.add_argument(
            "path",
            help="Vault-relative path of the file, as listed by list_bucket",
        )

    def handle(self, *args, **options):
        vault_id = options["vault_id"]
        path = options["path"]

        try:
            vault = Vault.objects.get(id=vault_id)
        except Vault.DoesNotExist:
            raise CommandError(f"Vault {vault_id} not found")

        try:
            client = build_client(vault)
            content = client.download_object(authorize(client), path)
        except SyncError as e:
            raise CommandError(f"Failed to load {path}: {e}")
        except B2Error as e:
            if e.status == 404:
                raise CommandError(f"{path} is not in bucket {vault.bucket_name}")
            raise CommandError(f"Failed to load {path}: {e}")

        self.stdout.write(content.decode("utf-8", errors="replace"), ending="")
