"""Shared pytest fixtures and fakes for dhdctl tests."""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from dhdctl.domain.errors import CommandError
from dhdctl.domain.facts import ProbeResult
from dhdctl.domain.modules import Module
from dhdctl.domain.platform import PlatformInfo
from dhdctl.domain.types import CheckOutcome
from dhdctl.engine.atoms.base import Atom
from dhdctl.engine.lowering import LoweringContext
from dhdctl.infrastructure.process import CommandResult

UBUNTU = PlatformInfo(os="linux", distro="ubuntu", family="debian", version="24.04", arch="x86_64")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeFacts:
    """In-memory FactProvider that records every query."""

    properties: dict[str, str | None] = field(default_factory=dict)
    commands: set[str] = field(default_factory=set)
    probes: dict[tuple[str, ...], ProbeResult | Exception] = field(default_factory=dict)
    files: set[str] = field(default_factory=set)
    directories: set[str] = field(default_factory=set)
    environment: dict[str, str] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)

    def property(self, path: str) -> str | None:
        self.calls.append(("property", path))
        return self.properties.get(path)

    def command_exists(self, command: str) -> bool:
        self.calls.append(("command_exists", command))
        return command in self.commands

    def run_probe(self, command: str, args: Sequence[str] = ()) -> ProbeResult:
        self.calls.append(("run_probe", command))
        outcome = self.probes.get((command, *args), ProbeResult(127, ""))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def file_exists(self, path: str) -> bool:
        self.calls.append(("file_exists", path))
        return path in self.files

    def directory_exists(self, path: str) -> bool:
        self.calls.append(("directory_exists", path))
        return path in self.directories

    def env(self, name: str) -> str | None:
        self.calls.append(("env", name))
        return self.environment.get(name)


def ubuntu_facts(**kwargs: Any) -> FakeFacts:
    props = {
        "os.name": "linux",
        "os.distro": "ubuntu",
        "os.family": "debian",
        "os.version": "24.04",
        "os.arch": "x86_64",
        "user.name": "alice",
        "user.home": "/home/alice",
    }
    props.update(kwargs.pop("properties", {}))
    return FakeFacts(properties=props, **kwargs)


Responder = CommandResult | Callable[[list[str]], CommandResult]


class RecordingRunner:
    """CommandRunner stand-in: records argv and answers from a prefix table.

    Unmatched commands succeed with empty output. ``which`` answers from
    *binaries*.
    """

    def __init__(
        self,
        responses: Mapping[tuple[str, ...], Responder] | None = None,
        *,
        binaries: set[str] | None = None,
    ) -> None:
        self.responses = dict(responses or {})
        self.binaries = binaries or set()
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.binaries else None

    def escalation_prefix(self) -> list[str]:
        return ["sudo"]

    @property
    def argvs(self) -> list[list[str]]:
        return [call["args"] for call in self.calls]

    def run(
        self,
        args: Sequence[str],
        *,
        privileged: bool = False,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        timeout: float | None = None,
        check: bool = False,
    ) -> CommandResult:
        argv = list(args)
        with self._lock:
            self.calls.append(
                {"args": argv, "privileged": privileged, "cwd": cwd, "input": input_text}
            )
        result = CommandResult(tuple(argv), 0, "", "")
        best = -1
        for prefix, responder in self.responses.items():
            if tuple(argv[: len(prefix)]) == prefix and len(prefix) > best:
                best = len(prefix)
                result = responder(argv) if callable(responder) else responder
        if check and not result.ok:
            msg = f"'{' '.join(argv)}' exited with {result.returncode}"
            raise CommandError(argv, msg, returncode=result.returncode, stderr=result.stderr)
        return result


def result(returncode: int = 0, stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult((), returncode, stdout, stderr)


class FakeAtom(Atom):
    """Atom with scripted check/apply behavior and a shared event log."""

    kind = "fake"

    def __init__(
        self,
        name: str,
        log: list[tuple[str, str]] | None = None,
        *,
        satisfied: bool = False,
        fail_check: bool = False,
        fail_apply: bool = False,
        delay: float = 0.0,
        on_apply: Callable[[], None] | None = None,
    ) -> None:
        self.name = name
        self.log = log if log is not None else []
        self.satisfied = satisfied
        self.fail_check = fail_check
        self.fail_apply = fail_apply
        self.delay = delay
        self.on_apply = on_apply
        self.applied = 0

    def describe(self) -> str:
        return self.name

    def check(self) -> CheckOutcome:
        self.log.append(("check", self.name))
        if self.fail_check:
            msg = f"cannot probe {self.name}"
            raise RuntimeError(msg)
        if self.satisfied:
            return CheckOutcome.ALREADY_SATISFIED
        return CheckOutcome.NEEDS_CHANGE

    def apply(self) -> None:
        self.log.append(("start", self.name))
        if self.delay:
            time.sleep(self.delay)
        if self.on_apply is not None:
            self.on_apply()
        if self.fail_apply:
            msg = f"{self.name} broke"
            raise RuntimeError(msg)
        self.applied += 1
        self.satisfied = True
        self.log.append(("end", self.name))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def lowering_ctx(tmp_path: Path, runner: RecordingRunner) -> LoweringContext:
    """Lowering context rooted in a temporary home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return LoweringContext(
        runner=runner,  # type: ignore[arg-type]
        platform=UBUNTU,
        home=home,
        config_home=home / ".config",
        state_dir=home / ".local" / "state" / "dhdctl",
        stamp="20260101_120000",
        base_dir=tmp_path / "modules",
    )


def module(name: str, **kwargs: Any) -> Module:
    """Build a Module from python values, validating actions and conditions."""
    return Module.model_validate({"name": name, **kwargs})


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's DHD_* variables and user config out of settings under test."""
    for name in list(os.environ):
        if name.startswith("DHD_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("XDG_CONFIG_HOME", "/nonexistent/dhdctl-tests/config")
