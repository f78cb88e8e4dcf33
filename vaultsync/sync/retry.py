"""
Resubmission of failed actions.

A retry always starts from a fresh authorization: the original batch may
have run long enough for its token to expire.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from vaultsync.sync.actions import ActionFailure, ActionKind, SyncAction, SyncReport
from vaultsync.sync.executor import ActionExecutor
from vaultsync.sync.log import SyncLog
from vaultsync.sync.runs import authorize, complete_session, fail_session, start_session
from vaultsync.sync.statistics import SyncStatistics

if TYPE_CHECKING:
    from vaultsync.models import Vault
    from vaultsync.providers.b2 import B2Client
    from vaultsync.storage import VaultStorage
    from vaultsync.sync.executor import ProgressCallback
    from vaultsync.sync.models import SyncSession

logger = logging.getLogger(__name__)


def failures_from_session(session: SyncSession) -> list[ActionFailure]:
    """
    Rebuild the failed actions of a past session from its events.

    A path that failed and later succeeded within the same session is
    not returned.
    """
    latest = {}
    for event in session.events.order_by("timestamp", "id"):
        if event.action not in ActionKind.values:
            continue
        latest[event.path] = event

    return [
        ActionFailure(SyncAction(ActionKind(event.action), event.path), event.message)
        for event in latest.values()
        if event.status == "error"
    ]


def _to_action(failure: ActionFailure | SyncAction | str) -> SyncAction:
    if isinstance(failure, ActionFailure):
        return failure.action
    if isinstance(failure, SyncAction):
        return failure
    # A bare path carries no kind; treat it as a re-upload
    return SyncAction(ActionKind.UPLOAD, failure)


def _mark_retried(session: SyncSession | None) -> None:
    if session is not None:
        session.status = "retried"
        session.save(update_fields=["status"])


class RetryCoordinator:
    """Runs one retry pass over previously failed actions."""

    def __init__(self, vault: Vault, storage: VaultStorage, client: B2Client):
        self.vault = vault
        self.storage = storage
        self.client = client

    def retry(
        self,
        failures: Iterable[ActionFailure | SyncAction | str],
        on_progress: ProgressCallback | None = None,
        source_session: SyncSession | None = None,
    ) -> SyncReport:
        """
        Re-apply failed actions, keeping each one's original kind.

        Args:
            failures: Failures from an earlier report, actions, or bare paths
            source_session: The partial session the failures came from. It is
                marked retried once the pass has run, so whatever still fails
                is only carried by the new retry session.

        Returns:
            SyncReport for the retry pass. Does not retry again on its own.

        Raises:
            AuthorizationFailedError: If re-authorization fails
        """
        actions = []
        seen = set()
        for failure in failures:
            action = _to_action(failure)
            if action.path not in seen:
                seen.add(action.path)
                actions.append(action)

        stats = SyncStatistics()
        if not actions:
            stats.finish()
            _mark_retried(source_session)
            return SyncReport(stats=stats)

        session = start_session(self.vault, "retry")
        try:
            auth = authorize(self.client)
        except Exception as e:
            fail_session(session, e)
            logger.error(f"Retry aborted for vault {self.vault.id}: {e}")
            raise

        logger.info(f"Retrying {len(actions)} failed action(s) for {self.vault.name}")
        executor = ActionExecutor(self.vault, self.storage, self.client, stats, SyncLog(session))
        batch = executor.apply_all(actions, auth, on_progress=on_progress)
        complete_session(session, stats, batch)

        _mark_retried(source_session)

        logger.info(f"Retry finished: {stats.summary()}")
        return SyncReport(
            stats=stats,
            succeeded=batch.succeeded,
            failures=batch.failures,
            session_id=session.id,
        )
