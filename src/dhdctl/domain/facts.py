"""FactProvider — the read-only view of the host that conditions consult."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a probe command run on behalf of a condition."""

    returncode: int
    stdout: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class FactProvider(Protocol):
    """Host facts queried by condition leaves.

    Implementations may raise; the evaluator degrades the affected leaf to
    false and records the error.
    """

    def property(self, path: str) -> str | None:
        """Dotted system property such as ``os.distro``; None when unknown."""
        ...

    def command_exists(self, command: str) -> bool: ...

    def run_probe(self, command: str, args: Sequence[str] = ()) -> ProbeResult: ...

    def file_exists(self, path: str) -> bool: ...

    def directory_exists(self, path: str) -> bool: ...

    def env(self, name: str) -> str | None: ...
