"""
Applies sync actions against the bucket and the local vault.

Actions run one at a time in list order. A failing action is recorded
and the batch moves on; only the caller decides whether to retry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

import backoff
from django.conf import settings

from vaultsync.models import TrackedFile
from vaultsync.storage import compute_digest
from vaultsync.sync.actions import ActionFailure, ActionKind, ActionOutcome, BatchReport, SyncAction
from vaultsync.sync.exceptions import ActionFailedError, IncompleteDeleteError

if TYPE_CHECKING:
    from vaultsync.models import Vault
    from vaultsync.providers.b2 import B2Authorization, B2Client
    from vaultsync.storage import VaultStorage
    from vaultsync.sync.log import SyncLog
    from vaultsync.sync.statistics import SyncStatistics

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ActionOutcome, int, int], None]


class ActionExecutor:
    """
    Executes upload, download and delete actions for one vault.

    The executor is the only place that touches the run's counters:
    files_processed on every attempt, and the per-kind counters on
    success. Successful actions also update the vault's TrackedFile rows.
    """

    def __init__(
        self,
        vault: Vault,
        storage: VaultStorage,
        client: B2Client,
        stats: SyncStatistics,
        log: SyncLog,
    ):
        self.vault = vault
        self.storage = storage
        self.client = client
        self.stats = stats
        self.log = log
        self.verify_attempts = getattr(settings, "VAULTSYNC_DELETE_VERIFY_ATTEMPTS", 3)
        self.verify_delay = getattr(settings, "VAULTSYNC_DELETE_VERIFY_DELAY", 1.0)

    def apply_all(
        self,
        actions: list[SyncAction],
        auth: B2Authorization,
        on_progress: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> BatchReport:
        """
        Apply every action in order.

        Args:
            actions: The fixed action list for this run
            auth: Authorization used for every call in the batch
            on_progress: Called with (outcome, index, total) after each action
            should_stop: Checked before each action; when it returns True
                the remaining actions are reported as skipped

        Returns:
            BatchReport with successes and failures
        """
        report = BatchReport()
        total = len(actions)

        for index, action in enumerate(actions, 1):
            if should_stop is not None and should_stop():
                report.skipped = list(actions[index - 1:])
                logger.warning(f"Stopping after {index - 1} of {total} actions")
                break

            outcome = self.apply(action, auth)
            if outcome.success:
                report.succeeded.append(action)
            else:
                report.failures.append(ActionFailure(action, outcome.error_message))

            if on_progress is not None:
                on_progress(outcome, index, total)

        return report

    def apply(self, action: SyncAction, auth: B2Authorization) -> ActionOutcome:
        """
        Apply a single action, capturing any failure in the outcome.

        Returns:
            ActionOutcome; never raises for failures of the action itself
        """
        self.stats.files_processed += 1

        try:
            if action.kind == ActionKind.UPLOAD:
                transferred = self._upload(action.path, auth)
                self.stats.files_uploaded += 1
            elif action.kind == ActionKind.DOWNLOAD:
                transferred = self._download(action.path, auth)
                self.stats.files_downloaded += 1
            elif action.kind == ActionKind.DELETE:
                self._delete(action.path, auth)
                self.stats.files_deleted += 1
                transferred = 0
            else:
                raise ActionFailedError(action.path, f"Unknown action kind: {action.kind}")

        except Exception as e:
            error_message = e.cause if isinstance(e, ActionFailedError) else str(e)
            logger.warning(f"{str(action.kind)} failed for {action.path}: {error_message}")
            self.log.log(action.kind, action.path, "error", error_message)
            return ActionOutcome(action, success=False, error_message=error_message)

        self.stats.total_bytes += transferred
        self.log.log(action.kind, action.path, "success")
        return ActionOutcome(action, success=True, bytes_transferred=transferred)

    def _upload(self, path: str, auth: B2Authorization) -> int:
        """
        Upload a local file and refresh its modification time.

        Returns:
            Number of bytes uploaded
        """
        content = self.storage.read_bytes(path)
        digest = compute_digest(content)

        target = self.client.get_upload_target(auth)
        self.client.upload_object(target, path, content, digest)

        modified_at = self.storage.touch(path)
        self._record(path, digest, len(content), modified_at)

        logger.debug(f"Uploaded {path} ({len(content)} bytes)")
        return len(content)

    def _download(self, path: str, auth: B2Authorization) -> int:
        """
        Download a remote file into the vault.

        Returns:
            Number of bytes downloaded
        """
        content = self.client.download_object(auth, path)
        self.storage.write_bytes(path, content)

        local = self.storage.stat(path)
        self._record(path, compute_digest(content), len(content), local.modified_at)

        logger.debug(f"Downloaded {path} ({len(content)} bytes)")
        return len(content)

    def _delete(self, path: str, auth: B2Authorization) -> None:
        """
        Delete every stored version of a file and verify none remain.

        Raises:
            ActionFailedError: If the file has no versions to delete
            IncompleteDeleteError: If versions are still listed afterwards
        """
        versions = self.client.list_versions(auth, path)
        if not versions:
            raise ActionFailedError(path, f"File {path} not found in bucket")

        for version in versions:
            self.client.delete_object_version(auth, version.file_id, path)

        self._verify_deleted(path, auth)

        TrackedFile.objects.filter(vault=self.vault, path=path).delete()
        logger.debug(f"Deleted {len(versions)} version(s) of {path}")

    def _verify_deleted(self, path: str, auth: B2Authorization) -> None:
        """Re-list versions until none remain, backing off between reads."""

        def log_recheck(details):
            logger.debug(
                f"{len(details['value'])} version(s) of {path} still listed, "
                f"re-checking in {details['wait']}s"
            )

        @backoff.on_predicate(
            backoff.expo,
            lambda remaining: bool(remaining),
            max_tries=self.verify_attempts,
            jitter=None,
            on_backoff=log_recheck,
            factor=self.verify_delay,
        )
        def list_remaining():
            return self.client.list_versions(auth, path)

        remaining = list_remaining()
        if not remaining:
            return

        raise IncompleteDeleteError(
            path, f"Failed to delete all versions of {path} ({len(remaining)} remaining)"
        )

    def _record(self, path: str, digest: str, size: int, modified_at) -> None:
        TrackedFile.objects.update_or_create(
            vault=self.vault,
            path=path,
            defaults={
                "digest": digest,
                "size_bytes": size,
                "modified_at": modified_at,
            },
        )
