"""Command-running atoms: arbitrary commands, packages, groups."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import TYPE_CHECKING

from dhdctl.domain.types import CheckOutcome
from dhdctl.engine.atoms.base import NEEDS_CHANGE, Atom, outcome
from dhdctl.infrastructure.packages import binary_name

if TYPE_CHECKING:
    from dhdctl.infrastructure.packages import PackageManager
    from dhdctl.infrastructure.process import CommandRunner


class RunCommand(Atom):
    """Run a command; satisfied only when its ``creates`` path exists."""

    kind = "run_command"

    def __init__(
        self,
        command: str,
        args: tuple[str, ...] = (),
        *,
        shell: str | None = None,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        privileged: bool = False,
        creates: Path | None = None,
        runner: CommandRunner,
    ) -> None:
        self.command = command
        self.args = args
        self.shell = shell
        self.cwd = cwd
        self.env = env or {}
        self.privileged = privileged
        self.creates = creates
        self._runner = runner

    @property
    def argv(self) -> list[str]:
        if self.shell:
            script = " ".join([self.command, *(shlex.quote(a) for a in self.args)])
            return [self.shell, "-c", script]
        return [self.command, *self.args]

    def describe(self) -> str:
        suffix = " (privileged)" if self.privileged else ""
        return f"{shlex.join(self.argv)}{suffix}"

    def check(self) -> CheckOutcome:
        if self.creates is None:
            return NEEDS_CHANGE
        return outcome(self.creates.exists())

    def apply(self) -> None:
        self._runner.run(
            self.argv,
            privileged=self.privileged,
            cwd=str(self.cwd) if self.cwd else None,
            env=self.env,
            check=True,
        )


class InstallPackage(Atom):
    kind = "install_package"

    def __init__(self, manager: PackageManager, package: str, *, runner: CommandRunner) -> None:
        self.manager = manager
        self.package = package
        self._runner = runner

    def describe(self) -> str:
        return f"{self.manager.name}: install {self.package}"

    def check(self) -> CheckOutcome:
        if self.manager.probe_binary:
            return outcome(self._runner.which(binary_name(self.package)) is not None)
        result = self._runner.run(self.manager.query_command(self.package))
        expected = self.manager.expected_output(self.package)
        if expected is None:
            return outcome(result.ok)
        return outcome(result.ok and expected in result.stdout)

    def apply(self) -> None:
        self._runner.run(
            self.manager.install_command(self.package),
            privileged=self.manager.privileged,
            check=True,
        )


class AddUserToGroups(Atom):
    kind = "user_groups"

    def __init__(
        self, user: str, groups: tuple[str, ...], *, append: bool = True, runner: CommandRunner
    ) -> None:
        self.user = user
        self.groups = groups
        self.append = append
        self._runner = runner

    def describe(self) -> str:
        return f"usermod {self.user}: groups {','.join(self.groups)}"

    def check(self) -> CheckOutcome:
        current = self._runner.run(["id", "-nG", self.user], check=True).stdout.split()
        return outcome(set(self.groups) <= set(current))

    def apply(self) -> None:
        flag = "-aG" if self.append else "-G"
        self._runner.run(
            ["usermod", flag, ",".join(self.groups), self.user], privileged=True, check=True
        )
