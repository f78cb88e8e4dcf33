"""Tests for Celery tasks."""

from datetime import timedelta
from unittest.mock import patch

from django.utils import timezone

from vaultsync import secrets
from vaultsync.models import OrphanPolicy, Vault
from vaultsync.sync import SyncEngine, sync_lock
from vaultsync.sync.exceptions import ConfigurationMissingError
from vaultsync.tasks import retry_failed_task, sync_due_vaults, sync_vault_task
from vaultsync.tests.helpers import VaultTestCase


class SyncVaultTaskTests(VaultTestCase):
    def setUp(self):
        super().setUp()
        patcher = patch("vaultsync.sync.runs.build_client", return_value=self.client)
        self.mock_build_client = patcher.start()
        self.addCleanup(patcher.stop)

    def test_sync(self):
        self.write_local("a.md", b"a")

        result = sync_vault_task(self.vault.id)

        self.assertEqual(result["status"], "completed")
        self.assertEqual(result["files_uploaded"], 1)
        self.assertEqual(result["failures"], [])

    def test_uses_orphan_policy(self):
        self.vault.orphan_policy = OrphanPolicy.DOWNLOAD
        self.vault.save()
        self.client.put("remote.md", b"remote")

        result = sync_vault_task(self.vault.id)

        self.assertEqual(result["files_downloaded"], 1)
        self.assertTrue((self.vault_root / "remote.md").exists())

    def test_reports_failures(self):
        self.write_local("a.md", b"a")
        self.client.failing_paths.add("a.md")

        result = sync_vault_task(self.vault.id)

        self.assertEqual(result["status"], "partial")
        self.assertEqual(
            result["failures"], [{"action": "upload", "path": "a.md", "error": "upload rejected"}]
        )

    def test_inactive_vault(self):
        self.vault.is_active = False
        self.vault.save()

        result = sync_vault_task(self.vault.id)

        self.assertEqual(result, {"status": "skipped", "reason": "vault_not_found"})

    def test_configuration_missing(self):
        self.mock_build_client.side_effect = ConfigurationMissingError("no key")

        result = sync_vault_task(self.vault.id)

        self.assertEqual(result["reason"], "configuration_missing")

    def test_sync_in_progress(self):
        with sync_lock(self.vault):
            result = sync_vault_task(self.vault.id)

        self.assertEqual(result["reason"], "sync_in_progress")


class RetryFailedTaskTests(VaultTestCase):
    def setUp(self):
        super().setUp()
        patcher = patch("vaultsync.sync.runs.build_client", return_value=self.client)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_no_failures(self):
        result = retry_failed_task(self.vault.id)
        self.assertEqual(result["reason"], "no_failures")

    def test_retries_partial_session(self):
        self.write_local("a.md", b"a")
        self.client.failing_paths.add("a.md")
        SyncEngine(self.vault, self.storage, self.client).run_sync()
        self.client.failing_paths.clear()

        result = retry_failed_task(self.vault.id)

        self.assertEqual(result["status"], "completed")
        self.assertEqual(result["files_uploaded"], 1)


class SyncDueVaultsTests(VaultTestCase):
    @patch("vaultsync.tasks.sync_vault_task.delay")
    def test_schedules_due_vaults(self, mock_delay):
        now = timezone.now()
        self.vault.auto_sync = True
        self.vault.next_sync_at = now - timedelta(minutes=1)
        self.vault.save()

        later = Vault.objects.create(
            name="Later",
            local_root=str(self.vault_root),
            bucket_id="b2",
            bucket_name="later-bucket",
            auto_sync=True,
            next_sync_at=now + timedelta(hours=1),
        )
        never = Vault.objects.create(
            name="Manual",
            local_root=str(self.vault_root),
            bucket_id="b3",
            bucket_name="manual-bucket",
        )
        secrets.set_credentials(later, "k", "s")
        secrets.set_credentials(never, "k", "s")

        result = sync_due_vaults()

        self.assertEqual(result, {"scheduled": 1})
        mock_delay.assert_called_once_with(self.vault.id)
        self.vault.refresh_from_db()
        self.assertGreater(self.vault.next_sync_at, now)

    @patch("vaultsync.tasks.sync_vault_task.delay")
    def test_never_synced_vault_is_due(self, mock_delay):
        self.vault.auto_sync = True
        self.vault.save()

        result = sync_due_vaults()

        self.assertEqual(result, {"scheduled": 1})
