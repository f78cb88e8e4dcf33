"""
Secrets manager for storing B2 application keys outside the database.

Keys are stored in a JSON file with restricted permissions (600).
This keeps sensitive credentials out of the database entirely.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from django.conf import settings

if TYPE_CHECKING:
    from vaultsync.models import Vault

logger = logging.getLogger(__name__)


class SecretsError(Exception):
    """Base exception for secrets operations."""

    pass


class SecretsFileError(SecretsError):
    """Raised when secrets file operations fail."""

    pass


def _get_secrets_path() -> Path:
    """Get the path to the secrets file."""
    return Path(settings.SECRETS_FILE)


def _get_vault_key(vault: "Vault") -> str:
    """
    Generate the key for a vault in the secrets file.

    Format: b2:{bucket_name}
    """
    return f"b2:{vault.bucket_name}"


def _load_secrets() -> dict:
    """
    Load secrets from the secrets file.

    Returns:
        Dict of vault secrets, empty dict if file doesn't exist
    """
    path = _get_secrets_path()

    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in secrets file: {e}")
        raise SecretsFileError(f"Invalid secrets file format: {e}") from e
    except OSError as e:
        logger.error(f"Failed to read secrets file: {e}")
        raise SecretsFileError(f"Failed to read secrets file: {e}") from e


def _save_secrets(data: dict) -> None:
    """
    Save secrets to the secrets file atomically.

    Uses atomic write (temp file + rename) and sets permissions to 600.
    """
    path = _get_secrets_path()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".secrets_",
            suffix=".tmp",
        )

        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)

            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)  # 600
            os.replace(tmp_path, path)

        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    except OSError as e:
        logger.error(f"Failed to save secrets file: {e}")
        raise SecretsFileError(f"Failed to save secrets file: {e}") from e


def get_credentials(vault: "Vault") -> dict | None:
    """
    Get the application key for a vault's bucket.

    Returns:
        Dict with application_key_id and application_key, or None if
        either is missing or empty
    """
    creds = _load_secrets().get(_get_vault_key(vault))
    if not creds:
        return None
    if not creds.get("application_key_id") or not creds.get("application_key"):
        return None
    return creds


def set_credentials(
    vault: "Vault",
    application_key_id: str,
    application_key: str,
) -> None:
    """
    Store the application key for a vault's bucket.

    Args:
        vault: The Vault instance
        application_key_id: B2 application key ID
        application_key: B2 application key
    """
    secrets = _load_secrets()
    key = _get_vault_key(vault)

    secrets[key] = {
        "application_key_id": application_key_id,
        "application_key": application_key,
    }

    _save_secrets(secrets)
    logger.info(f"Saved credentials for {key}")


def delete_credentials(vault: "Vault") -> bool:
    """
    Delete the stored key for a vault.

    Returns:
        True if credentials were deleted, False if not found
    """
    secrets = _load_secrets()
    key = _get_vault_key(vault)

    if key not in secrets:
        return False

    del secrets[key]
    _save_secrets(secrets)
    logger.info(f"Deleted credentials for {key}")
    return True


def has_credentials(vault: "Vault") -> bool:
    """Check if usable credentials exist for a vault."""
    return get_credentials(vault) is not None


def list_buckets() -> list[str]:
    """
    List all bucket keys in the secrets file.

    Returns:
        List of keys (format: b2:bucket_name)
    """
    return [k for k in _load_secrets().keys() if k.startswith("b2:")]
