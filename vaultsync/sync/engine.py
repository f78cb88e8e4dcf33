"""
Core sync engine for vault/bucket reconciliation.

Orchestrates a run: configuration check, authorization, remote listing,
diffing, orphan resolution, and sequential execution of the fixed
action list.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterable

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from vaultsync.sync.actions import ActionFailure, ActionKind, RemoteOrphan, SyncAction, SyncReport
from vaultsync.sync.catalog import RemoteCatalog
from vaultsync.sync.decisions import skip_all
from vaultsync.sync.exceptions import SyncInProgressError
from vaultsync.sync.executor import ActionExecutor
from vaultsync.sync.log import SyncLog
from vaultsync.sync.reconciler import ConflictResolver, Reconciler
from vaultsync.sync.retry import RetryCoordinator
from vaultsync.sync.runs import authorize, check_configuration, complete_session, fail_session, start_session
from vaultsync.sync.statistics import SyncStatistics

if TYPE_CHECKING:
    from vaultsync.models import Vault
    from vaultsync.providers.b2 import B2Authorization, B2Client
    from vaultsync.storage import VaultStorage
    from vaultsync.sync.decisions import DecisionProvider
    from vaultsync.sync.executor import ProgressCallback
    from vaultsync.sync.models import SyncSession

logger = logging.getLogger(__name__)

Plan = Callable[["B2Authorization"], "tuple[list[SyncAction], list[RemoteOrphan]]"]


def _lock_key(vault: Vault) -> str:
    return f"vaultsync:sync-lock:{vault.id}"


@contextmanager
def sync_lock(vault: Vault):
    """
    Hold the per-vault run lock for the duration of a run.

    Raises:
        SyncInProgressError: If another run holds the lock
    """
    key = _lock_key(vault)
    timeout = getattr(settings, "VAULTSYNC_LOCK_TIMEOUT", 6 * 60 * 60)
    if not cache.add(key, timezone.now().isoformat(), timeout):
        raise SyncInProgressError(f"A sync is already running for vault {vault.id}")
    try:
        yield
    finally:
        cache.delete(key)


def is_sync_running(vault: Vault) -> bool:
    return cache.get(_lock_key(vault)) is not None


class SyncEngine:
    """
    Reconciles one vault with its bucket.

    Remote files with no local counterpart are never downloaded or deleted
    on the engine's own judgement; the decision provider chooses, and
    anything it leaves out is skipped for this run.
    """

    def __init__(
        self,
        vault: Vault,
        storage: VaultStorage,
        client: B2Client,
        decide: DecisionProvider = skip_all,
    ):
        self.vault = vault
        self.storage = storage
        self.client = client
        self.decide = decide
        self.catalog = RemoteCatalog(client)
        self.reconciler = Reconciler(storage)
        self.resolver = ConflictResolver()

    def run_sync(
        self,
        on_progress: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> SyncReport:
        """
        Execute a two-way sync.

        Returns:
            SyncReport with statistics, successes and per-action failures

        Raises:
            ConfigurationMissingError: Before any network call
            AuthorizationFailedError: If B2 rejects the key
            RemoteUnavailableError: If the bucket cannot be listed
            SyncInProgressError: If the vault is already syncing
        """
        return self._run("sync", self._plan_sync, on_progress, should_stop)

    def run_upload_all(
        self,
        on_progress: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> SyncReport:
        """Upload every local file regardless of remote state."""
        return self._run("upload_all", self._plan_upload_all, on_progress, should_stop)

    def run_download_all(
        self,
        on_progress: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> SyncReport:
        """Download every remote file, overwriting local copies."""
        return self._run("download_all", self._plan_download_all, on_progress, should_stop)

    def retry_failed(
        self,
        failures: Iterable[ActionFailure | SyncAction | str],
        on_progress: ProgressCallback | None = None,
        source_session: SyncSession | None = None,
    ) -> SyncReport:
        """Run one retry pass over failures from an earlier report."""
        check_configuration(self.vault)
        with sync_lock(self.vault):
            coordinator = RetryCoordinator(self.vault, self.storage, self.client)
            return coordinator.retry(failures, on_progress=on_progress, source_session=source_session)

    def _plan_sync(self, auth: B2Authorization) -> tuple[list[SyncAction], list[RemoteOrphan]]:
        snapshot = self.catalog.snapshot(auth)
        local_files = self.storage.list_files()
        logger.info(f"Comparing {len(local_files)} local and {len(snapshot)} remote files")

        diff = self.reconciler.diff(local_files, snapshot)

        decisions = self.decide(diff.orphans) if diff.orphans else {}
        resolution = self.resolver.resolve(diff.orphans, decisions, snapshot)

        return self.reconciler.finalize(diff.actions, resolution.actions), diff.orphans

    def _plan_upload_all(self, auth: B2Authorization) -> tuple[list[SyncAction], list[RemoteOrphan]]:
        actions = [SyncAction(ActionKind.UPLOAD, f.path) for f in self.storage.iter_files()]
        return actions, []

    def _plan_download_all(self, auth: B2Authorization) -> tuple[list[SyncAction], list[RemoteOrphan]]:
        snapshot = self.catalog.snapshot(auth)
        actions = [
            SyncAction(ActionKind.DOWNLOAD, path)
            for path in sorted(snapshot)
            if not self.storage.is_ignored(path)
        ]
        return actions, []

    def _run(
        self,
        mode: str,
        plan: Plan,
        on_progress: ProgressCallback | None,
        should_stop: Callable[[], bool] | None,
    ) -> SyncReport:
        check_configuration(self.vault)

        with sync_lock(self.vault):
            stats = SyncStatistics()
            session = start_session(self.vault, mode)
            log = SyncLog(session)

            logger.info(f"Starting {mode} for {self.vault.name}")

            # Anything failing before the first action is fatal for the run
            try:
                auth = authorize(self.client)
                actions, orphans = plan(auth)
            except Exception as e:
                fail_session(session, e)
                log.log(mode, "", "error", str(e))
                logger.error(f"{mode} failed for {self.vault.name}: {e}", exc_info=True)
                raise

            if not actions:
                logger.info("Everything is up to date")

            executor = ActionExecutor(self.vault, self.storage, self.client, stats, log)
            batch = executor.apply_all(actions, auth, on_progress=on_progress, should_stop=should_stop)
            complete_session(session, stats, batch)

            self.vault.last_sync_at = stats.end_time
            self.vault.save(update_fields=["last_sync_at"])

            logger.info(f"{mode} completed: {stats.summary()}, {len(batch.failures)} failed")
            if batch.failures:
                logger.warning(
                    f"{len(batch.failures)} action(s) failed for {self.vault.name}; "
                    f"retry with retry_failed"
                )

            return SyncReport(
                stats=stats,
                succeeded=batch.succeeded,
                failures=batch.failures,
                skipped=batch.skipped,
                orphans=orphans,
                session_id=session.id,
            )
