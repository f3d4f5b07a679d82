"""Action → atom lowering.

One lowering function per action kind, registered with :func:`lowers`.
Each returns the ordered atoms the action expands to; the planner chains
them in that order. ``conditional`` actions are unwrapped by the planner
before reaching this table.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeAlias

from dhdctl.domain.actions import (
    CopyFile,
    DconfImport,
    Directory,
    ExecuteCommand,
    FileWrite,
    GitConfig,
    HttpDownload,
    Link,
    PackageInstall,
    SystemdManage,
    SystemdService,
    SystemdSocket,
    UserGroup,
)
from dhdctl.domain.errors import LoweringError
from dhdctl.domain.platform import PlatformInfo, select_for_platform
from dhdctl.domain.types import SystemdOperation
from dhdctl.engine.atoms import commands, download, files, system
from dhdctl.infrastructure.packages import default_manager, get_manager
from dhdctl.infrastructure.units import render_service, render_socket, unit_dir, unit_name

if TYPE_CHECKING:
    import httpx

    from dhdctl.engine.atoms.base import Atom
    from dhdctl.infrastructure.process import CommandRunner

Lowerer: TypeAlias = "Callable[[Any, LoweringContext], list[Atom]]"

_LOWERERS: dict[str, Lowerer] = {}


@dataclass(frozen=True)
class LoweringContext:
    """Host collaborators and path anchors shared by every lowering call."""

    runner: CommandRunner
    platform: PlatformInfo
    home: Path
    config_home: Path
    state_dir: Path
    stamp: str
    base_dir: Path | None = None
    download_timeout: float = 60.0
    transport: httpx.BaseTransport | None = field(default=None, repr=False)

    def expand(self, path: str) -> Path:
        """Expand ``~`` (against :attr:`home`) and environment variables."""
        path = os.path.expandvars(path)
        if path == "~":
            return self.home
        if path.startswith("~/"):
            return self.home / path[2:]
        return Path(path)

    def source_path(self, path: str) -> Path:
        """Relative sources resolve against the module's directory."""
        resolved = self.expand(path)
        if resolved.is_absolute():
            return resolved
        return (self.base_dir or Path.cwd()) / resolved


def lowers(kind: str) -> Callable[[Lowerer], Lowerer]:
    def register(func: Lowerer) -> Lowerer:
        _LOWERERS[kind] = func
        return func

    return register


def lower_action(action: Any, ctx: LoweringContext) -> list[Atom]:
    """Expand *action* into atoms.

    Raises:
        LoweringError: No lowering is registered, or the action cannot be
            realized on this platform.
    """
    lowerer = _LOWERERS.get(action.kind)
    if lowerer is None:
        msg = f"no lowering registered for action kind '{action.kind}'"
        raise LoweringError(msg)
    return lowerer(action, ctx)


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


@lowers("package_install")
def _package_install(action: PackageInstall, ctx: LoweringContext) -> list[Atom]:
    names: Any = action.names
    if isinstance(names, dict):
        names = select_for_platform(names, ctx.platform)
    if names is None:
        return []
    if isinstance(names, str):
        names = [names]
    if not isinstance(names, list | tuple) or not all(isinstance(n, str) for n in names):
        msg = f"package names must be strings, got {names!r}"
        raise LoweringError(msg)
    manager = get_manager(action.manager) if action.manager else default_manager(ctx.platform)
    return [
        commands.InstallPackage(manager, name, runner=ctx.runner)
        for name in dict.fromkeys(names)
    ]


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@lowers("file_write")
def _file_write(action: FileWrite, ctx: LoweringContext) -> list[Atom]:
    destination = ctx.expand(action.destination)
    content = action.content.encode("utf-8")
    atoms: list[Atom] = []
    if action.backup:
        atoms.append(
            files.BackupFile(
                destination,
                ctx.stamp,
                expected_content=content,
                privileged=action.privileged,
                runner=ctx.runner,
            )
        )
    atoms.append(
        files.WriteFile(
            destination,
            content,
            mode=action.mode,
            privileged=action.privileged,
            runner=ctx.runner,
        )
    )
    return atoms


@lowers("copy_file")
def _copy_file(action: CopyFile, ctx: LoweringContext) -> list[Atom]:
    source = ctx.source_path(action.source)
    destination = ctx.expand(action.destination)
    atoms: list[Atom] = []
    if action.backup:
        atoms.append(
            files.BackupFile(
                destination,
                ctx.stamp,
                expected_content=source.read_bytes() if source.is_file() else None,
                privileged=action.privileged,
                runner=ctx.runner,
            )
        )
    atoms.append(
        files.CopyFile(
            source,
            destination,
            mode=action.mode,
            privileged=action.privileged,
            runner=ctx.runner,
        )
    )
    return atoms


@lowers("directory")
def _directory(action: Directory, ctx: LoweringContext) -> list[Atom]:
    return [
        files.CreateDirectory(
            ctx.expand(action.path),
            mode=action.mode,
            privileged=action.privileged,
            runner=ctx.runner,
        )
    ]


@lowers("link")
def _link(action: Link, ctx: LoweringContext) -> list[Atom]:
    source = ctx.source_path(action.source)
    target_spec = action.target or action.source
    target = ctx.expand(target_spec)
    if not target.is_absolute():
        if action.target is None and Path(action.source).is_absolute():
            msg = f"link target is required for absolute source {action.source}"
            raise LoweringError(msg)
        anchor = ctx.home if action.variant == "dotfile" else ctx.config_home
        target = anchor / target
    elif action.target is None:
        msg = f"link target is required for absolute source {action.source}"
        raise LoweringError(msg)

    atoms: list[Atom] = []
    if action.backup:
        atoms.append(
            files.BackupFile(
                target, ctx.stamp, expected_link=source, move=True, runner=ctx.runner
            )
        )
    atoms.append(files.CreateSymlink(source, target, force=action.force))
    return atoms


@lowers("dconf_import")
def _dconf_import(action: DconfImport, ctx: LoweringContext) -> list[Atom]:
    load = system.DconfLoad(ctx.source_path(action.source), action.path, runner=ctx.runner)
    if not action.backup:
        return [load]
    slug = action.path.strip("/").replace("/", "-") or "root"
    destination = ctx.state_dir / "backups" / f"dconf-{slug}.{ctx.stamp}.ini"
    return [system.DconfBackup(load, destination, runner=ctx.runner), load]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@lowers("execute_command")
def _execute_command(action: ExecuteCommand, ctx: LoweringContext) -> list[Atom]:
    return [
        commands.RunCommand(
            action.command,
            action.args,
            shell=action.shell,
            cwd=ctx.expand(action.cwd) if action.cwd else None,
            env=dict(action.environment),
            privileged=action.privileged,
            creates=ctx.expand(action.creates) if action.creates else None,
            runner=ctx.runner,
        )
    ]


@lowers("git_config")
def _git_config(action: GitConfig, ctx: LoweringContext) -> list[Atom]:
    keys: dict[str, list[str]] = {}
    multi: set[str] = set()
    for entry in action.entries:
        values = keys.setdefault(entry.key, [])
        if entry.add:
            multi.add(entry.key)
        if entry.value != "":
            values.append(entry.value)

    atoms: list[Atom] = []
    for key, values in keys.items():
        if action.unset:
            atoms.append(
                system.GitConfigValue(key, (), scope=action.scope, unset=True, runner=ctx.runner)
            )
            continue
        if not values:
            continue
        wanted = tuple(values) if key in multi else (values[-1],)
        atoms.append(system.GitConfigValue(key, wanted, scope=action.scope, runner=ctx.runner))
    return atoms


@lowers("http_download")
def _http_download(action: HttpDownload, ctx: LoweringContext) -> list[Atom]:
    checksum = (action.checksum.algorithm, action.checksum.value) if action.checksum else None
    return [
        download.DownloadFile(
            action.url,
            ctx.expand(action.destination),
            checksum=checksum,
            mode=action.mode,
            privileged=action.privileged,
            timeout=ctx.download_timeout,
            transport=ctx.transport,
            runner=ctx.runner,
        )
    ]


@lowers("user_group")
def _user_group(action: UserGroup, ctx: LoweringContext) -> list[Atom]:
    return [
        commands.AddUserToGroups(
            action.user, action.groups, append=action.append, runner=ctx.runner
        )
    ]


# ---------------------------------------------------------------------------
# systemd
# ---------------------------------------------------------------------------


def _unit_atoms(
    unit: str, content: str, action: SystemdService | SystemdSocket, ctx: LoweringContext
) -> list[Atom]:
    path = unit_dir(action.scope, ctx.home) / unit
    atoms: list[Atom] = [
        system.WriteUnitFile(path, content.encode("utf-8"), scope=action.scope, runner=ctx.runner)
    ]
    if action.enable:
        atoms.append(
            system.SystemctlOperation(
                unit, SystemdOperation.ENABLE, scope=action.scope, runner=ctx.runner
            )
        )
    if action.start:
        atoms.append(
            system.SystemctlOperation(
                unit, SystemdOperation.START, scope=action.scope, runner=ctx.runner
            )
        )
    return atoms


@lowers("systemd_service")
def _systemd_service(action: SystemdService, ctx: LoweringContext) -> list[Atom]:
    return _unit_atoms(unit_name(action.name, "service"), render_service(action), action, ctx)


@lowers("systemd_socket")
def _systemd_socket(action: SystemdSocket, ctx: LoweringContext) -> list[Atom]:
    return _unit_atoms(unit_name(action.name, "socket"), render_socket(action), action, ctx)


@lowers("systemd_manage")
def _systemd_manage(action: SystemdManage, ctx: LoweringContext) -> list[Atom]:
    return [
        system.SystemctlOperation(
            unit_name(action.name, "service"),
            action.operation,
            scope=action.scope,
            runner=ctx.runner,
        )
    ]
