"""Shared fixtures for vaultsync tests."""

import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from django.core.cache import cache
from django.test import TestCase, override_settings

from vaultsync import secrets
from vaultsync.models import Vault
from vaultsync.providers.b2 import B2Authorization, B2RequestError, RemoteObject, UploadTarget
from vaultsync.storage import VaultStorage, compute_digest


class FakeB2Client:
    """
    In-memory stand-in for B2Client.

    Keeps every uploaded version per path, newest first, so delete
    behaviour against a versioned bucket can be exercised.
    """

    def __init__(self, bucket_name="notes-bucket"):
        self.bucket_id = "bucket123"
        self.bucket_name = bucket_name
        self.versions = {}
        self.contents = {}
        self.authorizations = []
        self.failing_paths = set()
        self.sticky_paths = set()
        self.list_error = None
        self.auth_error = None
        self.calls = []
        self._next_id = 0

    def put(self, path, content, fingerprint="auto"):
        """Store a new version of path."""
        self._next_id += 1
        file_id = f"id-{self._next_id}"
        obj = RemoteObject(
            path=path,
            fingerprint=compute_digest(content) if fingerprint == "auto" else fingerprint,
            file_id=file_id,
            size=len(content),
            uploaded_at=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
        )
        self.versions.setdefault(path, []).insert(0, obj)
        self.contents[file_id] = content
        return obj

    def authorize(self):
        if self.auth_error is not None:
            raise self.auth_error
        auth = B2Authorization(
            account_id="account1",
            api_url="https://api.example.com",
            download_url="https://f000.example.com",
            token=f"token-{len(self.authorizations) + 1}",
        )
        self.authorizations.append(auth)
        return auth

    def list_objects(self, auth):
        self.calls.append(("list_objects", auth.token))
        if self.list_error is not None:
            raise self.list_error
        return [self.versions[path][0] for path in sorted(self.versions) if self.versions[path]]

    def list_versions(self, auth, path):
        self.calls.append(("list_versions", path))
        return list(self.versions.get(path, []))

    def get_upload_target(self, auth):
        return UploadTarget(upload_url="https://upload.example.com", token="upload-token")

    def upload_object(self, target, path, content, fingerprint):
        self.calls.append(("upload", path))
        if path in self.failing_paths:
            raise B2RequestError("upload rejected", status=503)
        return self.put(path, content, fingerprint=fingerprint)

    def download_object(self, auth, path):
        self.calls.append(("download", path))
        if path in self.failing_paths or not self.versions.get(path):
            raise B2RequestError("File not present", status=404)
        return self.contents[self.versions[path][0].file_id]

    def delete_object_version(self, auth, file_id, path):
        self.calls.append(("delete_version", file_id))
        versions = self.versions.get(path, [])
        if path in self.sticky_paths and len(versions) == 1:
            return
        self.versions[path] = [v for v in versions if v.file_id != file_id]
        if not self.versions[path]:
            del self.versions[path]


class VaultTestCase(TestCase):
    """Base test case with a temp vault directory, a Vault row and credentials."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.vault_root = Path(self.temp_dir) / "vault"
        self.vault_root.mkdir()
        self.secrets_file = Path(self.temp_dir) / "test_secrets.json"

        self.settings_override = override_settings(
            SECRETS_FILE=self.secrets_file,
            VAULTSYNC_DELETE_VERIFY_DELAY=0,
        )
        self.settings_override.enable()

        self.vault = Vault.objects.create(
            name="Notes",
            local_root=str(self.vault_root),
            bucket_id="bucket123",
            bucket_name="notes-bucket",
        )
        secrets.set_credentials(self.vault, "key-id", "app-key")

        self.storage = VaultStorage(self.vault_root)
        self.client = FakeB2Client()
        cache.clear()

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_local(self, path, content):
        target = self.vault_root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return target
