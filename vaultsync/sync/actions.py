"""
Value types passed between the reconciler, resolver and executor.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from django.db import models

from vaultsync.providers.b2 import RemoteObject
from vaultsync.sync.statistics import SyncStatistics


class ActionKind(models.TextChoices):
    UPLOAD = "upload", "Upload"
    DOWNLOAD = "download", "Download"
    DELETE = "delete", "Delete"


class OrphanDecision(models.TextChoices):
    DELETE = "delete", "Delete Remote"
    DOWNLOAD = "download", "Download"
    SKIP = "skip", "Skip"


@dataclass(frozen=True)
class SyncAction:
    """One unit of work for the executor."""

    kind: ActionKind
    path: str

    def __str__(self):
        return f"{str(self.kind)} {self.path}"


@dataclass
class RemoteOrphan:
    """A remote object with no local counterpart, awaiting a decision."""

    remote: RemoteObject
    decision: OrphanDecision = OrphanDecision.SKIP

    @property
    def path(self) -> str:
        return self.remote.path


@dataclass
class ActionOutcome:
    """Result of applying a single action."""

    action: SyncAction
    success: bool
    error_message: str = ""
    bytes_transferred: int = 0

    @property
    def path(self) -> str:
        return self.action.path


@dataclass
class ActionFailure:
    """A failed action as surfaced to the caller for retry."""

    action: SyncAction
    error_message: str

    @property
    def path(self) -> str:
        return self.action.path


@dataclass
class BatchReport:
    """Outcome of applying a list of actions."""

    succeeded: list[SyncAction] = field(default_factory=list)
    failures: list[ActionFailure] = field(default_factory=list)
    skipped: list[SyncAction] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failures)


@dataclass
class SyncReport:
    """Everything a caller needs to show the result of a run."""

    stats: SyncStatistics
    succeeded: list[SyncAction] = field(default_factory=list)
    failures: list[ActionFailure] = field(default_factory=list)
    skipped: list[SyncAction] = field(default_factory=list)
    orphans: list[RemoteOrphan] = field(default_factory=list)
    session_id: int | None = None

    @property
    def ok(self) -> bool:
        return not self.failures and not self.skipped
