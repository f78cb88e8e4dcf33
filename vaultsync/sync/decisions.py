"""
Decision providers for remote orphans.

A decision provider is any callable taking the orphan list and returning
a mapping of path to OrphanDecision. Paths left out are skipped.
"""

from __future__ import annotations

from typing import Callable, Mapping

from vaultsync.sync.actions import OrphanDecision, RemoteOrphan

DecisionProvider = Callable[[list[RemoteOrphan]], Mapping[str, OrphanDecision]]


def skip_all(orphans: list[RemoteOrphan]) -> dict[str, OrphanDecision]:
    return {}


def decide_all(decision: OrphanDecision | str) -> DecisionProvider:
    """Apply the same decision to every orphan."""
    decision = OrphanDecision(decision)

    def provider(orphans: list[RemoteOrphan]) -> dict[str, OrphanDecision]:
        return {orphan.path: decision for orphan in orphans}

    return provider


def static_decisions(decisions: Mapping[str, OrphanDecision | str]) -> DecisionProvider:
    """Return canned decisions, e.g. collected ahead of time by a UI."""
    fixed = {path: OrphanDecision(d) for path, d in decisions.items()}

    def provider(orphans: list[RemoteOrphan]) -> dict[str, OrphanDecision]:
        return {orphan.path: fixed[orphan.path] for orphan in orphans if orphan.path in fixed}

    return provider
