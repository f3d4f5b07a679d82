"""Tests for action → atom lowering."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

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
from dhdctl.domain.platform import PlatformInfo
from dhdctl.domain.types import Scope, SystemdOperation
from dhdctl.engine.atoms import commands, download, files, system
from dhdctl.engine.lowering import LoweringContext, lower_action


class TestContextPaths:
    def test_expand_home(self, lowering_ctx: LoweringContext) -> None:
        assert lowering_ctx.expand("~") == lowering_ctx.home
        assert lowering_ctx.expand("~/.zshrc") == lowering_ctx.home / ".zshrc"
        assert lowering_ctx.expand("/etc/hosts") == Path("/etc/hosts")

    def test_expand_env(
        self, lowering_ctx: LoweringContext, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DHD_TEST_DIR", "/opt/things")
        assert lowering_ctx.expand("$DHD_TEST_DIR/x") == Path("/opt/things/x")

    def test_source_path_relative_to_module(self, lowering_ctx: LoweringContext) -> None:
        assert lowering_ctx.source_path("zshrc") == lowering_ctx.base_dir / "zshrc"
        assert lowering_ctx.source_path("/abs") == Path("/abs")


class TestPackages:
    def test_default_manager_per_name(self, lowering_ctx: LoweringContext) -> None:
        atoms = lower_action(PackageInstall(names=("git", "curl", "git")), lowering_ctx)
        assert [type(a) for a in atoms] == [commands.InstallPackage] * 2
        assert [a.package for a in atoms] == ["git", "curl"]
        assert atoms[0].manager.name == "apt"

    def test_explicit_manager(self, lowering_ctx: LoweringContext) -> None:
        (atom,) = lower_action(PackageInstall(names=("ripgrep",), manager="cargo"), lowering_ctx)
        assert atom.describe() == "cargo: install ripgrep"

    def test_platform_selection(self, lowering_ctx: LoweringContext) -> None:
        action = PackageInstall.model_validate(
            {"names": {"linux": {"debian": ["fd-find"]}, "mac": ["fd"]}}
        )
        (atom,) = lower_action(action, lowering_ctx)
        assert atom.package == "fd-find"

    def test_selection_without_match_is_empty(self, lowering_ctx: LoweringContext) -> None:
        action = PackageInstall.model_validate({"names": {"mac": ["fd"]}})
        assert lower_action(action, lowering_ctx) == []

    def test_no_default_manager(self, lowering_ctx: LoweringContext) -> None:
        ctx = replace(lowering_ctx, platform=PlatformInfo(os="linux", distro="gentoo"))
        with pytest.raises(LoweringError, match="no default package manager for gentoo"):
            lower_action(PackageInstall(names=("x",)), ctx)

    def test_non_string_names(self, lowering_ctx: LoweringContext) -> None:
        action = PackageInstall.model_validate({"names": {"linux": [1, 2]}})
        with pytest.raises(LoweringError, match="must be strings"):
            lower_action(action, lowering_ctx)


class TestFiles:
    def test_file_write_with_backup(self, lowering_ctx: LoweringContext) -> None:
        action = FileWrite(destination="~/.gitignore", content="*.pyc\n", mode="600", backup=True)
        backup, write = lower_action(action, lowering_ctx)
        assert isinstance(backup, files.BackupFile)
        assert backup.expected_content == b"*.pyc\n"
        assert isinstance(write, files.WriteFile)
        assert write.path == lowering_ctx.home / ".gitignore"
        assert write.mode == 0o600

    def test_copy_file(self, lowering_ctx: LoweringContext) -> None:
        (atom,) = lower_action(CopyFile(source="a.conf", destination="/etc/a.conf"), lowering_ctx)
        assert isinstance(atom, files.CopyFile)
        assert atom.source == lowering_ctx.base_dir / "a.conf"

    def test_directory(self, lowering_ctx: LoweringContext) -> None:
        (atom,) = lower_action(Directory(path="~/src", mode=0o700), lowering_ctx)
        assert isinstance(atom, files.CreateDirectory)
        assert atom.path == lowering_ctx.home / "src"

    def test_link_relative_target_under_config_home(self, lowering_ctx: LoweringContext) -> None:
        (atom,) = lower_action(Link(source="nvim"), lowering_ctx)
        assert isinstance(atom, files.CreateSymlink)
        assert atom.source == lowering_ctx.base_dir / "nvim"
        assert atom.target == lowering_ctx.config_home / "nvim"

    def test_dotfile_target_under_home(self, lowering_ctx: LoweringContext) -> None:
        action = Link(variant="dotfile", source="zshrc", target=".zshrc", backup=True)
        backup, link = lower_action(action, lowering_ctx)
        assert isinstance(backup, files.BackupFile)
        assert backup.move
        assert link.target == lowering_ctx.home / ".zshrc"

    def test_absolute_source_requires_target(self, lowering_ctx: LoweringContext) -> None:
        with pytest.raises(LoweringError, match="link target is required"):
            lower_action(Link(source="/etc/nanorc"), lowering_ctx)

    def test_dconf_backup_in_state_dir(self, lowering_ctx: LoweringContext) -> None:
        action = DconfImport(source="terminal.ini", path="/org/gnome/terminal/", backup=True)
        backup, load = lower_action(action, lowering_ctx)
        assert isinstance(backup, system.DconfBackup)
        assert isinstance(load, system.DconfLoad)
        assert backup.destination == (
            lowering_ctx.state_dir / "backups" / "dconf-org-gnome-terminal.20260101_120000.ini"
        )


class TestCommands:
    def test_execute_command(self, lowering_ctx: LoweringContext) -> None:
        action = ExecuteCommand(command="make", args=("install",), cwd="~/src", creates="~/bin/x")
        (atom,) = lower_action(action, lowering_ctx)
        assert isinstance(atom, commands.RunCommand)
        assert atom.argv == ["make", "install"]
        assert atom.cwd == lowering_ctx.home / "src"
        assert atom.creates == lowering_ctx.home / "bin" / "x"

    def test_git_config_groups_keys(self, lowering_ctx: LoweringContext) -> None:
        action = GitConfig.model_validate(
            {
                "entries": [
                    {"key": "user.name", "value": "Old"},
                    {"key": "user.name", "value": "Alice"},
                    {"key": "url.x.insteadOf", "value": "a", "add": True},
                    {"key": "url.x.insteadOf", "value": "b", "add": True},
                    {"key": "core.pager", "value": ""},
                ]
            }
        )
        atoms = lower_action(action, lowering_ctx)
        assert [(a.key, a.values) for a in atoms] == [
            ("user.name", ("Alice",)),
            ("url.x.insteadOf", ("a", "b")),
        ]

    def test_git_config_unset(self, lowering_ctx: LoweringContext) -> None:
        action = GitConfig.model_validate(
            {"entries": [{"key": "core.pager", "value": ""}], "unset": True}
        )
        (atom,) = lower_action(action, lowering_ctx)
        assert atom.unset

    def test_http_download(self, lowering_ctx: LoweringContext) -> None:
        action = HttpDownload.model_validate(
            {
                "url": "https://example.com/x.tar.gz",
                "destination": "~/Downloads/x.tar.gz",
                "checksum": {"value": "abc"},
            }
        )
        (atom,) = lower_action(action, lowering_ctx)
        assert isinstance(atom, download.DownloadFile)
        assert atom.checksum == ("sha256", "abc")
        assert atom.timeout == 60.0

    def test_user_group(self, lowering_ctx: LoweringContext) -> None:
        (atom,) = lower_action(UserGroup(user="alice", groups=("docker",)), lowering_ctx)
        assert isinstance(atom, commands.AddUserToGroups)


class TestSystemd:
    def test_user_service(self, lowering_ctx: LoweringContext) -> None:
        action = SystemdService(
            name="syncthing",
            description="Sync",
            exec_start="/usr/bin/syncthing",
            enable=True,
            start=True,
        )
        unit, enable, start = lower_action(action, lowering_ctx)
        assert isinstance(unit, system.WriteUnitFile)
        assert unit.path == (
            lowering_ctx.home / ".config" / "systemd" / "user" / "syncthing.service"
        )
        assert b"ExecStart=/usr/bin/syncthing" in unit.content
        assert enable.operation == SystemdOperation.ENABLE
        assert start.operation == SystemdOperation.START
        assert enable.scope == Scope.USER

    def test_system_socket(self, lowering_ctx: LoweringContext) -> None:
        action = SystemdSocket(
            name="echo.socket", description="Echo", listen_stream="7777", scope=Scope.SYSTEM
        )
        (unit,) = lower_action(action, lowering_ctx)
        assert unit.path == Path("/etc/systemd/system/echo.socket")
        assert unit.privileged

    def test_manage(self, lowering_ctx: LoweringContext) -> None:
        (atom,) = lower_action(
            SystemdManage(name="docker", operation=SystemdOperation.RESTART), lowering_ctx
        )
        assert atom.describe() == "systemctl restart docker.service"
