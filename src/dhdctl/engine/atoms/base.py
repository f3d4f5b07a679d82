"""Atom — the smallest idempotent unit of change.

INVARIANT: ``check()`` never mutates the system and is always called
before ``apply()``. ``apply()`` raises on failure and must be safe to run
after a partially completed previous run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from dhdctl.domain.types import CheckOutcome

SATISFIED = CheckOutcome.ALREADY_SATISFIED
NEEDS_CHANGE = CheckOutcome.NEEDS_CHANGE


def outcome(satisfied: bool) -> CheckOutcome:
    return SATISFIED if satisfied else NEEDS_CHANGE


class Atom(ABC):
    """One narrowly scoped, idempotent change."""

    kind: ClassVar[str] = "atom"

    @abstractmethod
    def describe(self) -> str: ...

    @abstractmethod
    def check(self) -> CheckOutcome:
        """Probe current state without side effects."""

    @abstractmethod
    def apply(self) -> None:
        """Bring the system to the desired state; raise on failure."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.describe()}>"
