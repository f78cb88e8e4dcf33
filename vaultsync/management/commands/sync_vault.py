"""
Django management command to sync a vault with its B2 bucket.
"""

from django.core.management.base import BaseCommand, CommandError

from vaultsync.models import Vault
from vaultsync.storage import VaultStorage
from vaultsync.sync import OrphanDecision, SyncEngine, SyncError
from vaultsync.sync.decisions import decide_all
from vaultsync.sync.models import SyncSession
from vaultsync.sync.runs import build_client
from vaultsync.sync.statistics import format_bytes


class Command(BaseCommand):
    help = "Sync a local vault with its B2 bucket"

    def add_arguments(self, parser):
        parser.add_argument(
            "vault_id",
            type=int,
            help="Vault ID to sync",
        )
        parser.add_argument(
            "--mode",
            choices=["sync", "upload", "download"],
            default="sync",
            help="Two-way sync, or push/pull every file (default: sync)",
        )
        parser.add_argument(
            "--on-orphan",
            choices=["prompt", "skip", "download", "delete"],
            default="prompt",
            help="What to do with remote files missing locally (default: prompt)",
        )
        parser.add_argument(
            "--retry",
            action="store_true",
            help="Retry failed actions once at the end of the run",
        )

    def handle(self, *args, **options):
        vault_id = options["vault_id"]

        try:
            vault = Vault.objects.get(id=vault_id, is_active=True)
        except Vault.DoesNotExist:
            raise CommandError(f"Vault {vault_id} not found or inactive")

        self.stdout.write(f"Syncing vault: {vault.name} <-> {vault.bucket_name}")

        if options["on_orphan"] == "prompt":
            decide = self._prompt_decisions
        else:
            decide = decide_all(options["on_orphan"])

        try:
            engine = SyncEngine(
                vault=vault,
                storage=VaultStorage(vault.local_root),
                client=build_client(vault),
                decide=decide,
            )

            if options["mode"] == "upload":
                report = engine.run_upload_all(on_progress=self._progress)
            elif options["mode"] == "download":
                report = engine.run_download_all(on_progress=self._progress)
            else:
                report = engine.run_sync(on_progress=self._progress)

            self._write_report(report)

            if report.failures and options["retry"]:
                self.stdout.write(self.style.WARNING("\nRetrying failed files..."))
                source = SyncSession.objects.get(id=report.session_id)
                report = engine.retry_failed(
                    report.failures, on_progress=self._progress, source_session=source
                )
                self._write_report(report)

        except SyncError as e:
            self.stdout.write(self.style.ERROR(f"\n✗ Sync failed: {e}"))
            raise CommandError(f"Sync failed: {e}")

        if report.failures:
            self.stdout.write(
                f"\nRun 'python manage.py retry_failed {vault.id}' to retry failed files"
            )
        else:
            self.stdout.write(self.style.SUCCESS("\n✓ Sync completed"))

    def _prompt_decisions(self, orphans):
        """Ask about each remote file that has no local copy."""
        self.stdout.write(
            self.style.WARNING(
                f"\n{len(orphans)} file(s) exist in the bucket but not locally:"
            )
        )
        choices = {"d": OrphanDecision.DELETE, "g": OrphanDecision.DOWNLOAD, "s": OrphanDecision.SKIP}

        decisions = {}
        for orphan in orphans:
            try:
                answer = input(
                    f"  {orphan.path} ({format_bytes(orphan.remote.size)}) "
                    f"[d]elete remote / [g]et / [s]kip? "
                ).strip().lower()
            except EOFError:
                # No terminal to answer from; the rest are skipped
                self.stdout.write(
                    self.style.WARNING("\nNo input available, skipping remaining remote-only files")
                )
                break
            decisions[orphan.path] = choices.get(answer[:1], OrphanDecision.SKIP)
        return decisions

    def _progress(self, outcome, index, total):
        mark = self.style.SUCCESS("✓") if outcome.success else self.style.ERROR("✗")
        line = f"  [{index}/{total}] {mark} {outcome.action}"
        if outcome.error_message:
            line += f" ({outcome.error_message})"
        self.stdout.write(line)

    def _write_report(self, report):
        stats = report.stats
        self.stdout.write(
            self.style.SUCCESS(
                f"\nDuration: {stats.duration:.1f}s\n"
                f"  - Files processed: {stats.files_processed}\n"
                f"  - Uploaded: {stats.files_uploaded}\n"
                f"  - Downloaded: {stats.files_downloaded}\n"
                f"  - Deleted: {stats.files_deleted}\n"
                f"  - Total data: {format_bytes(stats.total_bytes)}\n"
                f"  - Failed: {len(report.failures)}"
            )
        )

        if report.failures:
            self.stdout.write(
                self.style.WARNING(f"\n⚠ {len(report.failures)} file(s) failed to sync")
            )
            for i, failure in enumerate(report.failures[:5], 1):
                self.stdout.write(f"  {i}. {failure.path}: {failure.error_message}")
            if len(report.failures) > 5:
                self.stdout.write(f"  ... and {len(report.failures) - 5} more")
