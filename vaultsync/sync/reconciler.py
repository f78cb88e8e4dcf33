"""
Diffing of the local tree against a remote snapshot, and resolution of
remote-only files.

Local always wins on a content mismatch. A remote file with no local
counterpart is ambiguous (deleted here, or never pulled), so it is
handed back as an orphan for the caller to decide on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Mapping

from vaultsync.sync.actions import ActionKind, OrphanDecision, RemoteOrphan, SyncAction

if TYPE_CHECKING:
    from vaultsync.providers.b2 import RemoteObject
    from vaultsync.storage import LocalFile, VaultStorage

logger = logging.getLogger(__name__)


@dataclass
class DiffResult:
    """Initial actions plus orphans awaiting a decision."""

    actions: list[SyncAction] = field(default_factory=list)
    orphans: list[RemoteOrphan] = field(default_factory=list)


@dataclass
class Resolution:
    """Actions produced by orphan decisions and the remote view after them."""

    actions: list[SyncAction] = field(default_factory=list)
    remote_view: dict[str, RemoteObject] = field(default_factory=dict)


def _as_snapshot(remote: Mapping[str, RemoteObject] | Iterable[RemoteObject]) -> dict[str, RemoteObject]:
    if isinstance(remote, Mapping):
        return dict(remote)
    return {obj.path: obj for obj in remote}


class Reconciler:
    """Computes the actions needed to bring a bucket in line with a vault."""

    def __init__(self, storage: VaultStorage):
        self.storage = storage

    def diff(
        self,
        local_files: Iterable[LocalFile],
        remote_snapshot: Mapping[str, RemoteObject] | Iterable[RemoteObject],
    ) -> DiffResult:
        """
        Compare local files against a remote snapshot.

        Both sides are walked in path order so the same inputs always give
        the same result. Remote paths the vault ignores never become
        orphans.

        Args:
            local_files: Files found in the vault
            remote_snapshot: Remote objects, as a list or keyed by path

        Returns:
            DiffResult with upload actions and remote orphans
        """
        remote = {
            path: obj
            for path, obj in _as_snapshot(remote_snapshot).items()
            if not self.storage.is_ignored(path)
        }
        local_paths = set()
        result = DiffResult()

        for local in sorted(local_files, key=lambda f: f.path):
            local_paths.add(local.path)
            remote_obj = remote.get(local.path)
            if remote_obj is None:
                result.actions.append(SyncAction(ActionKind.UPLOAD, local.path))
                continue

            fingerprint = self.storage.fingerprint(local.path)
            if remote_obj.fingerprint != fingerprint:
                logger.debug(f"Content differs for {local.path}")
                result.actions.append(SyncAction(ActionKind.UPLOAD, local.path))

        for path in sorted(remote):
            if path not in local_paths:
                result.orphans.append(RemoteOrphan(remote=remote[path]))

        logger.info(
            f"Diff: {len(result.actions)} upload(s), {len(result.orphans)} remote-only file(s)"
        )
        return result

    def finalize(
        self,
        actions: list[SyncAction],
        resolved_actions: list[SyncAction],
    ) -> list[SyncAction]:
        """
        Fix the ordered action list for a run.

        Local-scan actions come first, then actions from resolved orphans.

        Raises:
            ValueError: If two actions target the same path
        """
        final = list(actions) + list(resolved_actions)
        seen = set()
        for action in final:
            if action.path in seen:
                raise ValueError(f"Multiple actions for {action.path}")
            seen.add(action.path)
        return final


class ConflictResolver:
    """Folds caller decisions about remote orphans into the action list."""

    def resolve(
        self,
        orphans: list[RemoteOrphan],
        decisions: Mapping[str, OrphanDecision | str],
        remote_view: Mapping[str, RemoteObject] | Iterable[RemoteObject] | None = None,
    ) -> Resolution:
        """
        Apply a decision to every orphan.

        delete drops the path from the remote view and queues a delete;
        download keeps it and queues a download; skip drops it with no
        action, so the next run sees it as an orphan again. Orphans without
        a decision are skipped.

        Args:
            orphans: Orphans from Reconciler.diff()
            decisions: Decision per path
            remote_view: Working remote snapshot; not modified

        Returns:
            Resolution with the new actions and updated remote view

        Raises:
            ValueError: If a decision is not delete, download or skip
        """
        view = _as_snapshot(remote_view or {})
        # Validate everything up front so resolution is all or nothing
        chosen = [(orphan, OrphanDecision(decisions.get(orphan.path, OrphanDecision.SKIP))) for orphan in orphans]

        resolution = Resolution(remote_view=view)
        for orphan, decision in chosen:
            orphan.decision = decision
            if decision == OrphanDecision.DELETE:
                resolution.actions.append(SyncAction(ActionKind.DELETE, orphan.path))
                view.pop(orphan.path, None)
            elif decision == OrphanDecision.DOWNLOAD:
                resolution.actions.append(SyncAction(ActionKind.DOWNLOAD, orphan.path))
                view.setdefault(orphan.path, orphan.remote)
            else:
                view.pop(orphan.path, None)

        logger.info(
            f"Resolved {len(orphans)} orphan(s) into {len(resolution.actions)} action(s)"
        )
        return resolution
