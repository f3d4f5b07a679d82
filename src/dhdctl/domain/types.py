"""Enums shared across the domain, engine and service layers."""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum


class CheckOutcome(StrEnum):
    """Result of an atom's side-effect-free probe."""

    ALREADY_SATISFIED = "already_satisfied"
    NEEDS_CHANGE = "needs_change"


class NodeState(StrEnum):
    """Lifecycle of a graph node during execution."""

    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    SATISFIED = "satisfied"
    CHANGED = "changed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL

    @property
    def succeeded(self) -> bool:
        return self in (NodeState.SATISFIED, NodeState.CHANGED)


_TERMINAL = frozenset(
    {NodeState.SATISFIED, NodeState.CHANGED, NodeState.FAILED, NodeState.SKIPPED}
)

# Worst first: a module reports the most severe state among its nodes.
_SEVERITY: dict[NodeState, int] = {
    NodeState.FAILED: 3,
    NodeState.SKIPPED: 2,
    NodeState.CHANGED: 1,
    NodeState.SATISFIED: 0,
}


def worst_state(states: Iterable[NodeState]) -> NodeState:
    """Aggregate terminal states: FAILED > SKIPPED > CHANGED > SATISFIED."""
    worst = NodeState.SATISFIED
    for state in states:
        if _SEVERITY[state] > _SEVERITY[worst]:
            worst = state
    return worst


class ExecutionMode(StrEnum):
    APPLY = "apply"
    DRY_RUN = "dry_run"


class Operator(StrEnum):
    """Comparison operators for system property conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class Scope(StrEnum):
    """systemd unit scope."""

    USER = "user"
    SYSTEM = "system"


class GitScope(StrEnum):
    GLOBAL = "global"
    SYSTEM = "system"
    LOCAL = "local"


class SystemdOperation(StrEnum):
    ENABLE = "enable"
    DISABLE = "disable"
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    RELOAD = "reload"
    ENABLE_NOW = "enable-now"
    DISABLE_NOW = "disable-now"
