"""
Celery tasks for vault sync.

Provides asynchronous tasks for scheduled syncs and for retrying the
failures of an earlier run.
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


def _report_dict(vault, report) -> dict:
    return {
        "status": "completed" if report.ok else "partial",
        "vault_id": vault.id,
        "session_id": report.session_id,
        **report.stats.as_dict(),
        "failures": [
            {"action": str(f.action.kind), "path": f.path, "error": f.error_message}
            for f in report.failures
        ],
    }


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    max_retries=3,
)
def sync_vault_task(self, vault_id: int):
    """
    Sync a vault with its bucket.

    Remote-only files are handled by the vault's orphan_policy since
    there is nobody to ask.

    Args:
        vault_id: Vault ID to sync
    """
    from vaultsync.models import Vault
    from vaultsync.storage import VaultStorage
    from vaultsync.sync import SyncEngine
    from vaultsync.sync.decisions import decide_all
    from vaultsync.sync.exceptions import ConfigurationMissingError, SyncInProgressError
    from vaultsync.sync.runs import build_client

    try:
        vault = Vault.objects.get(id=vault_id, is_active=True)
    except Vault.DoesNotExist:
        logger.warning(f"Vault {vault_id} not found or inactive")
        return {"status": "skipped", "reason": "vault_not_found"}

    try:
        client = build_client(vault)
    except ConfigurationMissingError as e:
        logger.warning(f"Vault {vault_id} is not configured: {e}")
        return {"status": "skipped", "reason": "configuration_missing"}

    engine = SyncEngine(
        vault=vault,
        storage=VaultStorage(vault.local_root),
        client=client,
        decide=decide_all(vault.orphan_policy),
    )

    try:
        report = engine.run_sync()
    except SyncInProgressError:
        logger.info(f"Sync already running for vault {vault_id}")
        return {"status": "skipped", "reason": "sync_in_progress"}

    return _report_dict(vault, report)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=2,
)
def retry_failed_task(self, vault_id: int, session_id: int | None = None):
    """
    Retry the failed actions of a vault's latest (or given) partial session.

    Args:
        vault_id: Vault ID
        session_id: Optional specific session to retry
    """
    from vaultsync.models import Vault
    from vaultsync.storage import VaultStorage
    from vaultsync.sync import SyncEngine
    from vaultsync.sync.exceptions import SyncInProgressError
    from vaultsync.sync.models import SyncSession
    from vaultsync.sync.retry import failures_from_session
    from vaultsync.sync.runs import build_client

    try:
        vault = Vault.objects.get(id=vault_id, is_active=True)
    except Vault.DoesNotExist:
        logger.warning(f"Vault {vault_id} not found or inactive")
        return {"status": "skipped", "reason": "vault_not_found"}

    sessions = SyncSession.objects.filter(vault=vault, status="partial")
    if session_id:
        sessions = sessions.filter(id=session_id)
    session = sessions.order_by("-started_at").first()
    if session is None:
        return {"status": "skipped", "reason": "no_failures"}

    failures = failures_from_session(session)
    if not failures:
        return {"status": "skipped", "reason": "no_failures"}

    engine = SyncEngine(
        vault=vault,
        storage=VaultStorage(vault.local_root),
        client=build_client(vault),
    )
    try:
        report = engine.retry_failed(failures, source_session=session)
    except SyncInProgressError:
        logger.info(f"Sync already running for vault {vault_id}")
        return {"status": "skipped", "reason": "sync_in_progress"}

    return _report_dict(vault, report)


@shared_task
def sync_due_vaults():
    """Sync auto-sync vaults whose next_sync_at has passed or was never set."""
    from django.db.models import Q

    from vaultsync.models import Vault

    now = timezone.now()

    scheduled = 0
    with transaction.atomic():
        due_vaults = Vault.objects.filter(
            Q(next_sync_at__lte=now) | Q(next_sync_at__isnull=True),
            is_active=True,
            auto_sync=True,
            sync_interval_minutes__gt=0,
        ).select_for_update(skip_locked=True)

        for vault in due_vaults:
            sync_vault_task.delay(vault.id)

            vault.next_sync_at = now + timedelta(minutes=vault.sync_interval_minutes)
            vault.save(update_fields=["next_sync_at"])
            scheduled += 1
            logger.info(f"Scheduled sync for vault {vault.id}, next at {vault.next_sync_at}")

    return {"scheduled": scheduled}
