"""
Helpers shared by every kind of run: configuration checks, client
construction, authorization, and SyncSession bookkeeping.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.utils import timezone

from vaultsync import secrets
from vaultsync.providers.b2 import B2AuthorizationError, B2Client
from vaultsync.sync.exceptions import AuthorizationFailedError, ConfigurationMissingError
from vaultsync.sync.models import SyncSession

if TYPE_CHECKING:
    from vaultsync.models import Vault
    from vaultsync.providers.b2 import B2Authorization
    from vaultsync.sync.actions import BatchReport
    from vaultsync.sync.statistics import SyncStatistics

logger = logging.getLogger(__name__)


def check_configuration(vault: Vault) -> dict:
    """
    Make sure a vault can talk to its bucket before any network call.

    Returns:
        The vault's credentials

    Raises:
        ConfigurationMissingError: If bucket identity or keys are missing
    """
    missing = [
        name
        for name in ("local_root", "bucket_id", "bucket_name")
        if not getattr(vault, name)
    ]
    if missing:
        raise ConfigurationMissingError(
            f"Vault {vault.id} is missing: {', '.join(missing)}"
        )

    creds = secrets.get_credentials(vault)
    if creds is None:
        raise ConfigurationMissingError(
            f"No B2 application key configured for bucket {vault.bucket_name}"
        )
    return creds


def build_client(vault: Vault) -> B2Client:
    """Create a B2Client from the vault's stored credentials."""
    creds = check_configuration(vault)
    return B2Client(
        application_key_id=creds["application_key_id"],
        application_key=creds["application_key"],
        bucket_id=vault.bucket_id,
        bucket_name=vault.bucket_name,
    )


def authorize(client: B2Client) -> B2Authorization:
    """
    Obtain a fresh authorization.

    Raises:
        AuthorizationFailedError: If B2 rejects the key
    """
    try:
        return client.authorize()
    except B2AuthorizationError as e:
        raise AuthorizationFailedError(str(e)) from e


def start_session(vault: Vault, mode: str) -> SyncSession:
    return SyncSession.objects.create(vault=vault, mode=mode)


def complete_session(session: SyncSession, stats: SyncStatistics, report: BatchReport) -> None:
    """Store final counters and mark the session completed or partial."""
    stats.finish()
    session.status = "partial" if report.failures or report.skipped else "completed"
    session.completed_at = timezone.now()
    session.files_processed = stats.files_processed
    session.files_uploaded = stats.files_uploaded
    session.files_downloaded = stats.files_downloaded
    session.files_deleted = stats.files_deleted
    session.total_bytes = stats.total_bytes
    session.save()


def fail_session(session: SyncSession, error: Exception) -> None:
    session.status = "failed"
    session.error_message = str(error)
    session.completed_at = timezone.now()
    session.save()
