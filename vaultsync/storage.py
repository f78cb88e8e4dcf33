"""
Local vault tree access and content fingerprints.

All paths handed to and returned from VaultStorage are POSIX-style and
relative to the vault root, e.g. "notes/daily/2024-01-15.md".
"""

from __future__ import annotations

import hashlib
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterator


class UnsafePathError(ValueError):
    """Raised when a relative path would escape the vault root."""

    pass


def parse_digest(digest: str) -> tuple[str, str]:
    """
    Parse digest string into (algorithm, hex_value).

    Args:
        digest: Digest in format "sha256:<hex>"

    Returns:
        Tuple of (algorithm, hex_value)

    Raises:
        ValueError: If digest format is invalid
    """
    if ":" not in digest:
        raise ValueError(f"Invalid digest format: {digest}")
    algo, hex_value = digest.split(":", 1)
    if algo != "sha256":
        raise ValueError(f"Unsupported digest algorithm: {algo}")
    if len(hex_value) != 64:
        raise ValueError(f"Invalid digest length: {len(hex_value)}")
    return algo, hex_value


def compute_digest(data: bytes | BinaryIO) -> str:
    """
    Compute SHA256 digest of data.

    This is the only equality test between a local file and its remote
    copy; sizes and timestamps are never compared.

    Args:
        data: Bytes or file-like object to hash

    Returns:
        Digest string in format "sha256:<hex>"
    """
    hasher = hashlib.sha256()
    if isinstance(data, bytes):
        hasher.update(data)
    else:
        for chunk in iter(lambda: data.read(65536), b""):
            hasher.update(chunk)
    return f"sha256:{hasher.hexdigest()}"


def normalize_path(relative_path: str) -> str:
    """
    Normalize a vault-relative path to its canonical POSIX form.

    Raises:
        UnsafePathError: If the path is absolute or climbs out of the root
    """
    path = PurePosixPath(relative_path.replace("\\", "/"))
    if path.is_absolute() or ".." in path.parts:
        raise UnsafePathError(f"Path escapes vault root: {relative_path}")
    normalized = str(path)
    if normalized in ("", "."):
        raise UnsafePathError(f"Empty path: {relative_path!r}")
    return normalized


@dataclass
class LocalFile:
    """A file in the local vault tree at scan time."""

    path: str
    size: int
    modified_at: datetime


class VaultStorage:
    """
    Filesystem access for a single vault.

    Provides deterministic enumeration, atomic writes that create
    parent directories, and on-demand fingerprints.
    """

    def __init__(self, root: str | Path, ignore_hidden: bool = True):
        self.root = Path(root)
        self.ignore_hidden = ignore_hidden

    def get_path(self, relative_path: str) -> Path:
        """Get the absolute filesystem path for a vault-relative path."""
        return self.root / normalize_path(relative_path)

    def exists(self, relative_path: str) -> bool:
        return self.get_path(relative_path).is_file()

    def is_ignored(self, relative_path: str) -> bool:
        """
        Check whether a vault-relative path is excluded from syncing.

        Applies to local and remote paths alike, so a hidden file is never
        mistaken for a remote-only one.
        """
        if not self.ignore_hidden:
            return False
        return any(part.startswith(".") for part in PurePosixPath(relative_path).parts)

    def iter_files(self) -> Iterator[LocalFile]:
        """
        Yield every file in the vault, sorted by relative path.

        Hidden files and anything under a hidden directory (".obsidian",
        ".git", ...) are skipped when ignore_hidden is set.
        """
        if not self.root.exists():
            return

        found = []
        for path in self.root.rglob("*"):
            if not path.is_file():
                continue
            relative = path.relative_to(self.root).as_posix()
            if self.is_ignored(relative):
                continue
            found.append((relative, path))

        for relative, path in sorted(found):
            stat = path.stat()
            yield LocalFile(
                path=relative,
                size=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            )

    def list_files(self) -> list[LocalFile]:
        return list(self.iter_files())

    def read_bytes(self, relative_path: str) -> bytes:
        return self.get_path(relative_path).read_bytes()

    def fingerprint(self, relative_path: str) -> str:
        """Compute the content digest of a vault file."""
        with open(self.get_path(relative_path), "rb") as f:
            return compute_digest(f)

    def write_bytes(self, relative_path: str, data: bytes) -> Path:
        """
        Write content to a vault file atomically.

        Parent directories are created as needed. The content lands in a
        temp file next to the target first and is renamed into place.

        Returns:
            The absolute path of the written file
        """
        target_path = self.get_path(relative_path)
        target_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = target_path.parent / f".{target_path.name}.{uuid.uuid4().hex}.tmp"
        try:
            with open(tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target_path)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

        return target_path

    def touch(self, relative_path: str) -> datetime:
        """
        Refresh a file's modification time to now.

        Returns:
            The new modification time
        """
        path = self.get_path(relative_path)
        os.utime(path, None)
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    def stat(self, relative_path: str) -> LocalFile:
        path = self.get_path(relative_path)
        stat = path.stat()
        return LocalFile(
            path=normalize_path(relative_path),
            size=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
