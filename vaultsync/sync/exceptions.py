"""
Exceptions for sync operations.
"""


class SyncError(Exception):
    """Base exception for sync operations."""

    pass


class ConfigurationMissingError(SyncError):
    """Bucket identity or application key is not configured."""

    pass


class AuthorizationFailedError(SyncError):
    """B2 rejected the application key or authorization did not succeed."""

    pass


class RemoteUnavailableError(SyncError):
    """Listing or transport failure against the remote store."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class SyncInProgressError(SyncError):
    """Another sync run already holds the lock for this vault."""

    pass


class ActionFailedError(SyncError):
    """A single upload, download or delete failed."""

    def __init__(self, path: str, cause: str):
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause


class IncompleteDeleteError(ActionFailedError):
    """Versions of a deleted file were still listed after deletion."""

    pass
