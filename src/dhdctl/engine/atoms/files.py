"""Filesystem atoms: writes, copies, directories, symlinks and backups.

Unprivileged writes go through a temporary sibling and ``os.replace`` so a
half-written file is never observed. Privileged writes stage the bytes in a
temporary file and hand them to ``install`` through the escalation prefix.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from dhdctl.domain.types import CheckOutcome
from dhdctl.engine.atoms.base import NEEDS_CHANGE, SATISFIED, Atom, outcome

if TYPE_CHECKING:
    from dhdctl.infrastructure.process import CommandRunner


def read_bytes(path: Path, *, privileged: bool, runner: CommandRunner) -> bytes | None:
    """Current contents of *path*, or None when it does not exist."""
    if not path.is_file():
        return None
    try:
        return path.read_bytes()
    except PermissionError:
        if not privileged:
            raise
        return runner.run(["cat", str(path)], privileged=True, check=True).stdout.encode()


def mode_matches(path: Path, mode: int | None) -> bool:
    return mode is None or (path.stat().st_mode & 0o7777) == mode


def place_file(
    staged: Path,
    destination: Path,
    *,
    mode: int | None,
    privileged: bool,
    runner: CommandRunner,
) -> None:
    """Move a staged file into place, consuming *staged*."""
    if privileged:
        try:
            runner.run(["mkdir", "-p", str(destination.parent)], privileged=True, check=True)
            install_mode = f"{mode if mode is not None else 0o644:o}"
            runner.run(
                ["install", "-m", install_mode, str(staged), str(destination)],
                privileged=True,
                check=True,
            )
        finally:
            staged.unlink(missing_ok=True)
        return
    try:
        if mode is not None:
            staged.chmod(mode)
        os.replace(staged, destination)
    finally:
        staged.unlink(missing_ok=True)


def stage_bytes(data: bytes, directory: Path | None = None) -> Path:
    """Write *data* to a new temporary file (in *directory* when given)."""
    fd, name = tempfile.mkstemp(prefix=".dhd-", dir=directory)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)
    return Path(name)


def _staging_dir(destination: Path, privileged: bool) -> Path | None:
    if privileged:
        return None
    destination.parent.mkdir(parents=True, exist_ok=True)
    return destination.parent


class WriteFile(Atom):
    kind = "write_file"

    def __init__(
        self,
        path: Path,
        content: bytes,
        *,
        mode: int | None = None,
        privileged: bool = False,
        runner: CommandRunner,
    ) -> None:
        self.path = path
        self.content = content
        self.mode = mode
        self.privileged = privileged
        self._runner = runner

    def describe(self) -> str:
        mode = f" (mode {self.mode:o})" if self.mode is not None else ""
        return f"write {self.path}{mode}"

    def check(self) -> CheckOutcome:
        current = read_bytes(self.path, privileged=self.privileged, runner=self._runner)
        return outcome(current == self.content and mode_matches(self.path, self.mode))

    def apply(self) -> None:
        staged = stage_bytes(self.content, _staging_dir(self.path, self.privileged))
        place_file(
            staged, self.path, mode=self.mode, privileged=self.privileged, runner=self._runner
        )


class CopyFile(Atom):
    kind = "copy_file"

    def __init__(
        self,
        source: Path,
        destination: Path,
        *,
        mode: int | None = None,
        privileged: bool = False,
        runner: CommandRunner,
    ) -> None:
        self.source = source
        self.destination = destination
        self.mode = mode
        self.privileged = privileged
        self._runner = runner

    def describe(self) -> str:
        return f"copy {self.source} -> {self.destination}"

    def check(self) -> CheckOutcome:
        wanted = self.source.read_bytes()
        current = read_bytes(self.destination, privileged=self.privileged, runner=self._runner)
        return outcome(current == wanted and mode_matches(self.destination, self.mode))

    def apply(self) -> None:
        staged = stage_bytes(
            self.source.read_bytes(), _staging_dir(self.destination, self.privileged)
        )
        mode = self.mode if self.mode is not None else self.source.stat().st_mode & 0o7777
        place_file(
            staged, self.destination, mode=mode, privileged=self.privileged, runner=self._runner
        )


class CreateDirectory(Atom):
    kind = "create_directory"

    def __init__(
        self,
        path: Path,
        *,
        mode: int | None = None,
        privileged: bool = False,
        runner: CommandRunner,
    ) -> None:
        self.path = path
        self.mode = mode
        self.privileged = privileged
        self._runner = runner

    def describe(self) -> str:
        return f"mkdir {self.path}"

    def check(self) -> CheckOutcome:
        return outcome(self.path.is_dir() and mode_matches(self.path, self.mode))

    def apply(self) -> None:
        if self.privileged:
            self._runner.run(["mkdir", "-p", str(self.path)], privileged=True, check=True)
            if self.mode is not None:
                self._runner.run(
                    ["chmod", f"{self.mode:o}", str(self.path)], privileged=True, check=True
                )
            return
        self.path.mkdir(parents=True, exist_ok=True)
        if self.mode is not None:
            self.path.chmod(self.mode)


class CreateSymlink(Atom):
    """Point *target* at *source*.

    An existing wrong symlink is replaced; an existing regular file or
    directory is only removed with *force*.
    """

    kind = "symlink"

    def __init__(self, source: Path, target: Path, *, force: bool = False) -> None:
        self.source = source
        self.target = target
        self.force = force

    def describe(self) -> str:
        return f"symlink {self.target} -> {self.source}"

    def check(self) -> CheckOutcome:
        if not self.target.is_symlink():
            return NEEDS_CHANGE
        return outcome(Path(os.readlink(self.target)) == self.source)

    def apply(self) -> None:
        if not self.source.exists():
            msg = f"link source does not exist: {self.source}"
            raise FileNotFoundError(msg)
        self.target.parent.mkdir(parents=True, exist_ok=True)
        if self.target.is_symlink():
            self.target.unlink()
        elif self.target.exists():
            if not self.force:
                msg = f"{self.target} exists and is not a symlink (use force or backup)"
                raise FileExistsError(msg)
            if self.target.is_dir():
                shutil.rmtree(self.target)
            else:
                self.target.unlink()
        self.target.symlink_to(self.source, target_is_directory=self.source.is_dir())


class BackupFile(Atom):
    """Preserve an existing file as ``<path>.backup.<stamp>`` before it changes.

    Satisfied when there is nothing to preserve: the path is absent, already
    holds *expected_content*, or already links to *expected_link*. A copy is
    also satisfied once this run's backup exists. With *move* the original
    is moved aside rather than copied.
    """

    kind = "backup"

    def __init__(
        self,
        path: Path,
        stamp: str,
        *,
        expected_content: bytes | None = None,
        expected_link: Path | None = None,
        move: bool = False,
        privileged: bool = False,
        runner: CommandRunner,
    ) -> None:
        self.path = path
        self.backup_path = path.with_name(f"{path.name}.backup.{stamp}")
        self.expected_content = expected_content
        self.expected_link = expected_link
        self.move = move
        self.privileged = privileged
        self._runner = runner

    def describe(self) -> str:
        return f"back up {self.path} to {self.backup_path.name}"

    def check(self) -> CheckOutcome:
        if self._backed_up() or not self._present():
            return SATISFIED
        if self.expected_link is not None and self.path.is_symlink():
            return outcome(Path(os.readlink(self.path)) == self.expected_link)
        if self.expected_content is not None and self.path.is_file():
            current = read_bytes(self.path, privileged=self.privileged, runner=self._runner)
            return outcome(current == self.expected_content)
        return NEEDS_CHANGE

    def apply(self) -> None:
        if self._backed_up() or not self._present():
            return
        if self.privileged:
            verb = "mv" if self.move else "cp"
            args = [verb, str(self.path), str(self.backup_path)]
            if not self.move:
                args.insert(1, "-a")
            self._runner.run(args, privileged=True, check=True)
        elif self.move:
            os.replace(self.path, self.backup_path)
        elif self.path.is_dir():
            shutil.copytree(self.path, self.backup_path, symlinks=True)
        else:
            shutil.copy2(self.path, self.backup_path, follow_symlinks=False)

    def _present(self) -> bool:
        return self.path.exists() or self.path.is_symlink()

    def _backed_up(self) -> bool:
        if self.move:
            return False
        return self.backup_path.exists() or self.backup_path.is_symlink()
