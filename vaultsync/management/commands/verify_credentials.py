"""
Django management command to verify B2 credentials for vaults.
"""

from django.core.management.base import BaseCommand

from vaultsync import secrets
from vaultsync.models import Vault
from vaultsync.sync.exceptions import AuthorizationFailedError, ConfigurationMissingError
from vaultsync.sync.runs import authorize, build_client


class Command(BaseCommand):
    help = "Verify B2 application keys by authorizing against the API"

    def add_arguments(self, parser):
        parser.add_argument(
            "vault_id",
            nargs="?",
            type=int,
            help="Vault ID to verify (optional, verifies all if not specified)",
        )

    def handle(self, *args, **options):
        vault_id = options.get("vault_id")

        if vault_id:
            try:
                vaults = [Vault.objects.get(id=vault_id, is_active=True)]
            except Vault.DoesNotExist:
                self.stderr.write(self.style.ERROR(f"Vault {vault_id} not found or inactive"))
                return
        else:
            vaults = list(Vault.objects.filter(is_active=True).order_by("id"))

        if not vaults:
            self.stdout.write(self.style.WARNING("No active vaults found."))
            return

        self.stdout.write(f"\nVerifying {len(vaults)} vault(s)...\n")

        results = {"valid": 0, "failed": 0, "no_credentials": 0}

        for vault in vaults:
            self._verify_vault(vault, results)

        self.stdout.write("\n" + "-" * 40)
        self.stdout.write(
            f"Valid: {results['valid']}  "
            f"Failed: {results['failed']}  "
            f"No credentials: {results['no_credentials']}"
        )

        if not vault_id:
            self._report_unused_keys()

    def _report_unused_keys(self):
        """List stored keys whose bucket no vault points at."""
        buckets = set(Vault.objects.values_list("bucket_name", flat=True))
        unused = [key for key in secrets.list_buckets() if key.split(":", 1)[1] not in buckets]

        if unused:
            self.stdout.write(
                self.style.WARNING(f"\n{len(unused)} stored key(s) not used by any vault:")
            )
            for key in sorted(unused):
                self.stdout.write(f"  - {key}")

    def _verify_vault(self, vault: Vault, results: dict):
        """Verify a single vault's key."""
        prefix = f"[{vault.id}] {vault.bucket_name}"

        if not secrets.has_credentials(vault):
            self.stdout.write(f"{prefix}: " + self.style.ERROR("NO CREDENTIALS"))
            results["no_credentials"] += 1
            return

        try:
            auth = authorize(build_client(vault))
            self.stdout.write(
                f"{prefix}: " + self.style.SUCCESS(f"VALID (account {auth.account_id})")
            )
            results["valid"] += 1

        except (AuthorizationFailedError, ConfigurationMissingError) as e:
            self.stdout.write(f"{prefix}: " + self.style.ERROR(f"FAILED - {e}"))
            results["failed"] += 1
