"""
Per-action sync log.

Every attempted action is written to the Python logger and, when a
session is attached, stored as a SyncEvent for the show_logs command
and for rebuilding failures on retry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vaultsync.sync.models import SyncEvent, SyncSession

if TYPE_CHECKING:
    from vaultsync.models import Vault

logger = logging.getLogger(__name__)


class SyncLog:
    def __init__(self, session: SyncSession | None = None):
        self.session = session

    def log(self, action: str, path: str, status: str, error_message: str = "") -> None:
        """
        Record one action attempt.

        Args:
            action: upload, download, delete or sync
            path: Vault-relative path, empty for run-level entries
            status: success or error
            error_message: Failure reason for errors
        """
        action = str(action)
        mark = "✓" if status == "success" else "✗"
        message = f"{mark} {action}: {path}"
        if error_message:
            message += f" ({error_message})"

        if status == "error":
            logger.error(message)
        else:
            logger.info(message)

        if self.session is not None:
            SyncEvent.objects.create(
                session=self.session,
                action=action,
                path=path,
                status=status,
                message=error_message,
            )


def recent_events(vault: "Vault", limit: int = 100) -> list[SyncEvent]:
    """Return the newest events for a vault, oldest first."""
    events = (
        SyncEvent.objects.filter(session__vault=vault)
        .select_related("session")
        .order_by("-timestamp", "-id")[:limit]
    )
    return list(reversed(events))


def clear_events(vault: "Vault") -> int:
    """
    Delete all stored events for a vault.

    Returns:
        Number of events deleted
    """
    deleted, _ = SyncEvent.objects.filter(session__vault=vault).delete()
    logger.info(f"Cleared {deleted} sync events for vault {vault.id}")
    return deleted
