"""Tests for process running, host facts, discovery, packages and units."""

from __future__ import annotations

from pathlib import Path

import pytest

from dhdctl.domain.actions import SystemdService, SystemdSocket
from dhdctl.domain.errors import CommandError, LoweringError
from dhdctl.domain.platform import PlatformInfo
from dhdctl.domain.types import Scope
from dhdctl.infrastructure import process
from dhdctl.infrastructure.discovery import find_sources, load_sources
from dhdctl.infrastructure.facts import SystemFactProvider, parse_os_release
from dhdctl.infrastructure.packages import (
    MANAGERS,
    binary_name,
    default_manager,
    get_manager,
)
from dhdctl.infrastructure.process import CommandRunner
from dhdctl.infrastructure.units import render_service, render_socket, unit_dir, unit_name
from tests.conftest import RecordingRunner, result


class TestCommandRunner:
    def test_captures_output(self) -> None:
        res = CommandRunner().run(["sh", "-c", "echo out; echo err >&2; exit 3"])
        assert res.returncode == 3
        assert res.stdout == "out\n"
        assert res.stderr == "err\n"
        assert not res.ok

    def test_check_raises_with_stderr(self) -> None:
        with pytest.raises(CommandError, match="exited with 2: bad thing") as info:
            CommandRunner().run(["sh", "-c", "echo bad thing >&2; exit 2"], check=True)
        assert info.value.returncode == 2

    def test_missing_program(self) -> None:
        with pytest.raises(CommandError, match="command not found"):
            CommandRunner().run(["dhdctl-definitely-not-a-program"])

    def test_timeout(self) -> None:
        with pytest.raises(CommandError, match="timed out"):
            CommandRunner().run(["sleep", "5"], timeout=0.1)

    def test_input_and_env(self) -> None:
        res = CommandRunner().run(
            ["sh", "-c", 'cat; printf "%s" "$DHD_X"'], input_text="in:", env={"DHD_X": "y"}
        )
        assert res.stdout == "in:y"

    def test_escalation_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(process.os, "geteuid", lambda: 1000)
        runner = CommandRunner(candidates=("doas", "sudo"))
        monkeypatch.setattr(
            runner, "which", lambda name: "/usr/bin/sudo" if name == "sudo" else None
        )
        assert runner.escalation_prefix() == ["sudo"]

    def test_explicit_escalation(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(process.os, "geteuid", lambda: 1000)
        assert CommandRunner(escalation_command="run0").escalation_prefix() == ["run0"]

    def test_root_needs_no_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(process.os, "geteuid", lambda: 0)
        assert CommandRunner().escalation_prefix() == []

    def test_no_escalation_available(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(process.os, "geteuid", lambda: 1000)
        runner = CommandRunner(candidates=("nope",))
        monkeypatch.setattr(runner, "which", lambda name: None)
        with pytest.raises(CommandError, match="no privilege escalation command"):
            runner.run(["true"], privileged=True)


class TestSystemFacts:
    OS_RELEASE = """
# comment
NAME="Pop!_OS"
ID=pop
ID_LIKE="ubuntu debian"
VERSION_ID="22.04"
VERSION_CODENAME=jammy
"""

    def test_parse_os_release(self) -> None:
        fields = parse_os_release(self.OS_RELEASE)
        assert fields["NAME"] == "Pop!_OS"
        assert fields["ID_LIKE"] == "ubuntu debian"
        assert "# comment" not in fields

    def test_snapshot_from_os_release(self, tmp_path: Path, monkeypatch) -> None:
        release = tmp_path / "os-release"
        release.write_text(self.OS_RELEASE)
        monkeypatch.setattr("dhdctl.infrastructure.facts._os_name", lambda: "linux")
        runner = RecordingRunner(
            {("lspci",): result(0, "01:00.0 VGA compatible controller: NVIDIA Corporation")},
            binaries={"lspci"},
        )
        facts = SystemFactProvider(runner, os_release=release)
        assert facts.property("os.distro") == "pop"
        assert facts.property("os.family") == "debian"
        assert facts.property("os.version") == "22.04"
        assert facts.property("os.codename") == "jammy"
        assert facts.property("hardware.gpu_vendor") == "nvidia"
        assert facts.property("hardware.fingerprint") == "false"
        assert facts.property("no.such.thing") is None
        assert facts.platform_info().distro == "pop"

    def test_snapshot_is_cached(self, tmp_path: Path) -> None:
        runner = RecordingRunner(binaries={"lspci", "lsusb"})
        facts = SystemFactProvider(runner, os_release=tmp_path / "missing")
        facts.property("os.name")
        calls = len(runner.calls)
        facts.property("user.name")
        facts.properties()
        assert len(runner.calls) == calls

    def test_probe_and_paths(self, tmp_path: Path, monkeypatch) -> None:
        runner = RecordingRunner({("uname",): result(0, "Linux\n")}, binaries={"uname"})
        facts = SystemFactProvider(runner, probe_timeout=2.0)
        probe = facts.run_probe("uname", ["-s"])
        assert probe.ok
        assert probe.stdout == "Linux\n"
        assert facts.command_exists("uname")
        assert not facts.command_exists("nope")

        (tmp_path / "f").touch()
        monkeypatch.setenv("DHD_TMP", str(tmp_path))
        assert facts.file_exists("$DHD_TMP/f")
        assert facts.directory_exists("$DHD_TMP")
        assert facts.env("DHD_TMP") == str(tmp_path)


class TestDiscovery:
    def test_find_sources(self, tmp_path: Path) -> None:
        for rel in (
            "base.ts",
            "dev/git.ts",
            "dev/types.d.ts",
            "node_modules/pkg/index.ts",
            ".hidden/x.ts",
            "vendor/y.ts",
            "notes.md",
        ):
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("")
        found = find_sources(tmp_path, exclude_dirs=["vendor"])
        assert [p.relative_to(tmp_path).as_posix() for p in found] == ["base.ts", "dev/git.ts"]

    def test_single_file_and_missing(self, tmp_path: Path) -> None:
        source = tmp_path / "one.ts"
        source.write_text("")
        assert find_sources(source) == [source]
        assert find_sources(tmp_path / "missing") == []

    def test_load_sources(self, tmp_path: Path) -> None:
        (tmp_path / "a.ts").write_text('export default defineModule("a");')
        (source,) = load_sources(tmp_path)
        assert source.origin == str(tmp_path / "a.ts")
        assert source.base_dir == tmp_path
        assert "defineModule" in source.text


class TestPackages:
    def test_default_managers(self) -> None:
        assert default_manager(PlatformInfo(os="linux", family="arch")).name == "pacman"
        assert default_manager(PlatformInfo(os="mac")).name == "brew"
        with pytest.raises(LoweringError):
            default_manager(PlatformInfo(os="linux", distro="nixos"))

    def test_get_manager(self) -> None:
        assert get_manager("flatpak") is MANAGERS["flatpak"]
        with pytest.raises(LoweringError):
            get_manager("emerge")

    def test_commands(self) -> None:
        cargo = MANAGERS["cargo"]
        assert cargo.install_command("zellij") == ["cargo", "install", "zellij"]
        assert cargo.expected_output("zellij") == "zellij v"
        assert not cargo.privileged
        assert MANAGERS["pacman"].privileged

    def test_binary_name(self) -> None:
        assert binary_name("golang.org/x/tools/gopls@latest") == "gopls"
        assert binary_name("ripgrep") == "ripgrep"


class TestUnits:
    def test_unit_name(self) -> None:
        assert unit_name("docker", "service") == "docker.service"
        assert unit_name("echo.socket", "service") == "echo.socket"

    def test_unit_dir(self) -> None:
        assert unit_dir(Scope.SYSTEM, Path("/home/a")) == Path("/etc/systemd/system")
        assert unit_dir(Scope.USER, Path("/home/a")) == Path("/home/a/.config/systemd/user")

    def test_render_service(self) -> None:
        action = SystemdService(
            name="web",
            description="Web",
            exec_start="/usr/bin/web --port 80",
            restart="on-failure",
            restart_sec=5,
            environment={"B": "2", "A": "1"},
            scope=Scope.SYSTEM,
        )
        assert render_service(action) == (
            "[Unit]\nDescription=Web\n\n"
            "[Service]\nType=simple\nExecStart=/usr/bin/web --port 80\n"
            "Restart=on-failure\nRestartSec=5\nEnvironment=A=1\nEnvironment=B=2\n\n"
            "[Install]\nWantedBy=multi-user.target\n"
        )

    def test_render_socket(self) -> None:
        text = render_socket(SystemdSocket(name="s", description="S", listen_stream="/run/s.sock"))
        assert "ListenStream=/run/s.sock" in text
        assert text.endswith("WantedBy=sockets.target\n")
