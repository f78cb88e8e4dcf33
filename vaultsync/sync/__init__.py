"""
Sync engine for vault/bucket reconciliation.
"""

from vaultsync.sync.actions import (
    ActionFailure,
    ActionKind,
    ActionOutcome,
    OrphanDecision,
    RemoteOrphan,
    SyncAction,
    SyncReport,
)
from vaultsync.sync.engine import SyncEngine, sync_lock
from vaultsync.sync.exceptions import (
    ActionFailedError,
    AuthorizationFailedError,
    ConfigurationMissingError,
    IncompleteDeleteError,
    RemoteUnavailableError,
    SyncError,
    SyncInProgressError,
)
from vaultsync.sync.executor import ActionExecutor
from vaultsync.sync.models import SyncEvent, SyncSession
from vaultsync.sync.reconciler import ConflictResolver, Reconciler
from vaultsync.sync.retry import RetryCoordinator
from vaultsync.sync.statistics import SyncStatistics

__all__ = [
    "SyncEngine",
    "sync_lock",
    "Reconciler",
    "ConflictResolver",
    "ActionExecutor",
    "RetryCoordinator",
    "SyncStatistics",
    "SyncAction",
    "ActionKind",
    "ActionOutcome",
    "ActionFailure",
    "OrphanDecision",
    "RemoteOrphan",
    "SyncReport",
    "SyncSession",
    "SyncEvent",
    "SyncError",
    "ConfigurationMissingError",
    "AuthorizationFailedError",
    "RemoteUnavailableError",
    "ActionFailedError",
    "IncompleteDeleteError",
    "SyncInProgressError",
]
