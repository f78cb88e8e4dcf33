"""Tests for vault storage and fingerprints."""

import hashlib
import io
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from django.test import TestCase

from vaultsync.storage import (
    UnsafePathError,
    VaultStorage,
    compute_digest,
    normalize_path,
    parse_digest,
)


class DigestTests(TestCase):
    def test_compute_digest_bytes(self):
        data = b"hello world"
        expected = f"sha256:{hashlib.sha256(data).hexdigest()}"
        self.assertEqual(compute_digest(data), expected)

    def test_compute_digest_file_object(self):
        data = b"x" * 200000
        self.assertEqual(compute_digest(io.BytesIO(data)), compute_digest(data))

    def test_compute_digest_empty(self):
        self.assertEqual(
            compute_digest(b""),
            "sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
        )

    def test_parse_digest(self):
        digest = compute_digest(b"content")
        algo, hex_value = parse_digest(digest)
        self.assertEqual(algo, "sha256")
        self.assertEqual(len(hex_value), 64)

    def test_parse_digest_invalid(self):
        with self.assertRaises(ValueError):
            parse_digest("nocolon")
        with self.assertRaises(ValueError):
            parse_digest("md5:abc")
        with self.assertRaises(ValueError):
            parse_digest("sha256:tooshort")


class NormalizePathTests(TestCase):
    def test_normalizes_backslashes(self):
        self.assertEqual(normalize_path("notes\\daily\\a.md"), "notes/daily/a.md")

    def test_strips_current_dir(self):
        self.assertEqual(normalize_path("./notes/a.md"), "notes/a.md")

    def test_rejects_parent_traversal(self):
        with self.assertRaises(UnsafePathError):
            normalize_path("../outside.md")

    def test_rejects_absolute(self):
        with self.assertRaises(UnsafePathError):
            normalize_path("/etc/passwd")

    def test_rejects_empty(self):
        with self.assertRaises(UnsafePathError):
            normalize_path("")


class VaultStorageTests(TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir)
        self.storage = VaultStorage(self.root)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, path, content=b"data"):
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def test_iter_files_sorted(self):
        self._write("zeta.md")
        self._write("alpha/b.md")
        self._write("alpha/a.md")
        self._write("beta.md")

        paths = [f.path for f in self.storage.iter_files()]

        self.assertEqual(paths, ["alpha/a.md", "alpha/b.md", "beta.md", "zeta.md"])

    def test_iter_files_skips_hidden(self):
        self._write("note.md")
        self._write(".obsidian/workspace.json")
        self._write("sub/.hidden.md")

        paths = [f.path for f in self.storage.iter_files()]

        self.assertEqual(paths, ["note.md"])

    def test_iter_files_includes_hidden_when_requested(self):
        self._write("note.md")
        self._write(".obsidian/workspace.json")

        storage = VaultStorage(self.root, ignore_hidden=False)
        paths = [f.path for f in storage.iter_files()]

        self.assertEqual(paths, [".obsidian/workspace.json", "note.md"])

    def test_is_ignored(self):
        self.assertTrue(self.storage.is_ignored(".obsidian/app.json"))
        self.assertTrue(self.storage.is_ignored("sub/.trash/old.md"))
        self.assertFalse(self.storage.is_ignored("notes/a.md"))
        self.assertFalse(VaultStorage(self.root, ignore_hidden=False).is_ignored(".obsidian/app.json"))

    def test_iter_files_missing_root(self):
        storage = VaultStorage(self.root / "missing")
        self.assertEqual(storage.list_files(), [])

    def test_iter_files_reports_size(self):
        self._write("note.md", b"12345")

        files = self.storage.list_files()

        self.assertEqual(files[0].size, 5)
        self.assertIsNotNone(files[0].modified_at.tzinfo)

    def test_fingerprint(self):
        self._write("note.md", b"some text")
        self.assertEqual(self.storage.fingerprint("note.md"), compute_digest(b"some text"))

    def test_write_bytes_creates_parents(self):
        path = self.storage.write_bytes("deep/nested/dir/note.md", b"content")

        self.assertTrue(path.exists())
        self.assertEqual(path.read_bytes(), b"content")
        self.assertTrue(self.storage.exists("deep/nested/dir/note.md"))

    def test_write_bytes_overwrites(self):
        self._write("note.md", b"old")
        self.storage.write_bytes("note.md", b"new")
        self.assertEqual(self.storage.read_bytes("note.md"), b"new")

    def test_write_bytes_leaves_no_temp_files(self):
        self.storage.write_bytes("note.md", b"content")
        self.assertEqual(sorted(os.listdir(self.root)), ["note.md"])

    def test_write_bytes_rejects_escape(self):
        with self.assertRaises(UnsafePathError):
            self.storage.write_bytes("../escape.md", b"content")

    def test_touch_updates_mtime(self):
        self._write("note.md")
        old = datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp()
        os.utime(self.root / "note.md", (old, old))

        modified_at = self.storage.touch("note.md")

        self.assertGreater(modified_at.timestamp(), old)
        self.assertEqual(self.storage.stat("note.md").modified_at, modified_at)

    def test_stat(self):
        self._write("notes/a.md", b"abc")

        local = self.storage.stat("notes/a.md")

        self.assertEqual(local.path, "notes/a.md")
        self.assertEqual(local.size, 3)
