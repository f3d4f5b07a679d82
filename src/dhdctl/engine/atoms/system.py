"""Service-manager and desktop-settings atoms: systemd, git config, dconf."""

from __future__ import annotations

import configparser
from pathlib import Path
from typing import TYPE_CHECKING

from dhdctl.domain.errors import CommandError
from dhdctl.domain.types import CheckOutcome, GitScope, Scope, SystemdOperation
from dhdctl.engine.atoms.base import NEEDS_CHANGE, SATISFIED, Atom, outcome
from dhdctl.engine.atoms.files import WriteFile

if TYPE_CHECKING:
    from dhdctl.infrastructure.process import CommandRunner


def systemctl(scope: Scope, *args: str) -> list[str]:
    if scope == Scope.USER:
        return ["systemctl", "--user", *args]
    return ["systemctl", *args]


class WriteUnitFile(WriteFile):
    """Write a unit file, then ``daemon-reload`` the owning manager."""

    kind = "systemd_unit"

    def __init__(
        self, path: Path, content: bytes, *, scope: Scope, runner: CommandRunner
    ) -> None:
        super().__init__(
            path, content, mode=0o644, privileged=scope == Scope.SYSTEM, runner=runner
        )
        self.scope = scope

    def apply(self) -> None:
        super().apply()
        self._runner.run(
            systemctl(self.scope, "daemon-reload"),
            privileged=self.scope == Scope.SYSTEM,
            check=True,
        )


class SystemctlOperation(Atom):
    kind = "systemctl"

    def __init__(
        self, unit: str, operation: SystemdOperation, *, scope: Scope, runner: CommandRunner
    ) -> None:
        self.unit = unit
        self.operation = operation
        self.scope = scope
        self._runner = runner

    def describe(self) -> str:
        user = " --user" if self.scope == Scope.USER else ""
        return f"systemctl{user} {self.operation} {self.unit}"

    def _query(self, verb: str) -> bool:
        return self._runner.run(systemctl(self.scope, verb, "--quiet", self.unit)).ok

    def check(self) -> CheckOutcome:
        match self.operation:
            case SystemdOperation.ENABLE:
                return outcome(self._query("is-enabled"))
            case SystemdOperation.DISABLE:
                return outcome(not self._query("is-enabled"))
            case SystemdOperation.START:
                return outcome(self._query("is-active"))
            case SystemdOperation.STOP:
                return outcome(not self._query("is-active"))
            case SystemdOperation.ENABLE_NOW:
                return outcome(self._query("is-enabled") and self._query("is-active"))
            case SystemdOperation.DISABLE_NOW:
                return outcome(not self._query("is-enabled") and not self._query("is-active"))
        return NEEDS_CHANGE

    def apply(self) -> None:
        if self.operation == SystemdOperation.ENABLE_NOW:
            args = ("enable", "--now", self.unit)
        elif self.operation == SystemdOperation.DISABLE_NOW:
            args = ("disable", "--now", self.unit)
        else:
            args = (str(self.operation), self.unit)
        self._runner.run(
            systemctl(self.scope, *args), privileged=self.scope == Scope.SYSTEM, check=True
        )


class GitConfigValue(Atom):
    """Set (or unset) every value of one git config key in one scope."""

    kind = "git_config"

    def __init__(
        self,
        key: str,
        values: tuple[str, ...],
        *,
        scope: GitScope = GitScope.GLOBAL,
        unset: bool = False,
        runner: CommandRunner,
    ) -> None:
        self.key = key
        self.values = values
        self.scope = scope
        self.unset = unset
        self._runner = runner

    def _git(self, *args: str) -> list[str]:
        return ["git", "config", f"--{self.scope}", *args]

    @property
    def _privileged(self) -> bool:
        return self.scope == GitScope.SYSTEM

    def describe(self) -> str:
        if self.unset:
            return f"git config --{self.scope} --unset-all {self.key}"
        return f"git config --{self.scope} {self.key}={'|'.join(self.values)}"

    def check(self) -> CheckOutcome:
        result = self._runner.run(self._git("--get-all", self.key))
        current = result.stdout.splitlines() if result.ok else []
        if self.unset:
            return outcome(not current)
        return outcome(current == list(self.values))

    def apply(self) -> None:
        if self.unset:
            argv = self._git("--unset-all", self.key)
            result = self._runner.run(argv, privileged=self._privileged)
            # Exit code 5: the key was not set.
            if result.returncode not in (0, 5):
                msg = f"git config --unset-all {self.key} exited with {result.returncode}"
                raise CommandError(argv, msg, returncode=result.returncode, stderr=result.stderr)
            return
        first, *rest = self.values
        self._runner.run(
            self._git("--replace-all", self.key, first), privileged=self._privileged, check=True
        )
        for value in rest:
            self._runner.run(
                self._git("--add", self.key, value), privileged=self._privileged, check=True
            )


def parse_keyfile(text: str) -> dict[tuple[str, str], str]:
    """Flatten a dconf keyfile into ``{(section, key): value}``."""
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    parser.read_string(text)
    return {
        (section, key): value.strip()
        for section in parser.sections()
        for key, value in parser.items(section)
    }


class DconfLoad(Atom):
    """Load a keyfile into a dconf directory; satisfied when every key matches."""

    kind = "dconf_load"

    def __init__(self, source: Path, path: str, *, runner: CommandRunner) -> None:
        self.source = source
        self.path = path
        self._runner = runner

    def describe(self) -> str:
        return f"dconf load {self.path} < {self.source}"

    def check(self) -> CheckOutcome:
        wanted = parse_keyfile(self.source.read_text(encoding="utf-8"))
        dump = self._runner.run(["dconf", "dump", self.path], check=True).stdout
        current = parse_keyfile(dump)
        return outcome(all(current.get(key) == value for key, value in wanted.items()))

    def apply(self) -> None:
        self._runner.run(
            ["dconf", "load", self.path],
            input_text=self.source.read_text(encoding="utf-8"),
            check=True,
        )


class DconfBackup(Atom):
    """Dump the current dconf directory before a load would change it.

    The dump for this run is written once; later checks see it and stop.
    """

    kind = "dconf_backup"

    def __init__(self, load: DconfLoad, destination: Path, *, runner: CommandRunner) -> None:
        self.load = load
        self.destination = destination
        self._runner = runner

    def describe(self) -> str:
        return f"dconf dump {self.load.path} > {self.destination}"

    def check(self) -> CheckOutcome:
        if self.destination.exists():
            return SATISFIED
        return self.load.check()

    def apply(self) -> None:
        dump = self._runner.run(["dconf", "dump", self.load.path], check=True).stdout
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        self.destination.write_text(dump, encoding="utf-8")
