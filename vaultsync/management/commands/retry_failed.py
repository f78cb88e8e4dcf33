"""
Django management command to retry the failed files of a sync run.
"""

from django.core.management.base import BaseCommand, CommandError

from vaultsync.models import Vault
from vaultsync.storage import VaultStorage
from vaultsync.sync import SyncEngine, SyncError
from vaultsync.sync.models import SyncSession
from vaultsync.sync.retry import failures_from_session
from vaultsync.sync.runs import build_client


class Command(BaseCommand):
    help = "Retry the failed actions of the latest partially successful sync"

    def add_arguments(self, parser):
        parser.add_argument(
            "vault_id",
            type=int,
            help="Vault ID",
        )
        parser.add_argument(
            "--session-id",
            type=int,
            help="Specific session to retry (default: latest partial session)",
        )

    def handle(self, *args, **options):
        vault_id = options["vault_id"]

        try:
            vault = Vault.objects.get(id=vault_id, is_active=True)
        except Vault.DoesNotExist:
            raise CommandError(f"Vault {vault_id} not found or inactive")

        sessions = SyncSession.objects.filter(vault=vault, status="partial")
        if options["session_id"]:
            sessions = sessions.filter(id=options["session_id"])
        session = sessions.order_by("-started_at").first()

        if session is None:
            self.stdout.write(self.style.WARNING("No failed sync runs to retry."))
            return

        failures = failures_from_session(session)
        if not failures:
            self.stdout.write(self.style.WARNING(f"Session {session.id} has no failed files."))
            return

        self.stdout.write(f"Retrying {len(failures)} file(s) from session {session.id}:")
        for failure in failures:
            self.stdout.write(f"  - {failure.action}: {failure.error_message}")

        try:
            engine = SyncEngine(
                vault=vault,
                storage=VaultStorage(vault.local_root),
                client=build_client(vault),
            )
            report = engine.retry_failed(failures, source_session=session)
        except SyncError as e:
            raise CommandError(f"Retry failed: {e}")

        succeeded = len(report.succeeded)
        self.stdout.write(
            self.style.SUCCESS(f"\n✓ {succeeded} of {len(failures)} file(s) succeeded")
        )
        for failure in report.failures:
            self.stdout.write(self.style.ERROR(f"  ✗ {failure.path}: {failure.error_message}"))
