"""SystemFactProvider — host facts backed by the running system.

Properties are computed once and cached, so one run sees one snapshot of
the host. Command probes go through the shared :class:`CommandRunner`.
"""

from __future__ import annotations

import getpass
import logging
import os
import platform
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from dhdctl.domain.errors import CommandError
from dhdctl.domain.facts import ProbeResult
from dhdctl.domain.platform import PlatformInfo, family_for

if TYPE_CHECKING:
    from dhdctl.infrastructure.process import CommandRunner

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")
_GPU_VENDORS = ("nvidia", "amd", "intel")


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``KEY=value`` lines of an os-release file."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        fields[key.strip()] = value.strip().strip('"').strip("'")
    return fields


def _os_name() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        return "mac"
    if sys.platform.startswith("win"):
        return "windows"
    return sys.platform


class SystemFactProvider:
    """FactProvider reading /etc/os-release, lspci, lsusb and the environment."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        probe_timeout: float = 10.0,
        os_release: Path = OS_RELEASE,
    ) -> None:
        self._runner = runner
        self._timeout = probe_timeout
        self._os_release = os_release
        self._properties: dict[str, str | None] | None = None

    # -- FactProvider -----------------------------------------------------------

    def property(self, path: str) -> str | None:
        return self._snapshot().get(path)

    def command_exists(self, command: str) -> bool:
        return self._runner.which(command) is not None

    def run_probe(self, command: str, args: Sequence[str] = ()) -> ProbeResult:
        result = self._runner.run([command, *args], timeout=self._timeout)
        return ProbeResult(result.returncode, result.stdout)

    def file_exists(self, path: str) -> bool:
        return _expand(path).is_file()

    def directory_exists(self, path: str) -> bool:
        return _expand(path).is_dir()

    def env(self, name: str) -> str | None:
        return os.environ.get(name)

    # -- snapshot ---------------------------------------------------------------

    def platform_info(self) -> PlatformInfo:
        props = self._snapshot()
        return PlatformInfo(
            os=props["os.name"] or "linux",
            distro=props["os.distro"],
            family=props["os.family"],
            version=props["os.version"],
            arch=props["os.arch"],
        )

    def properties(self) -> dict[str, str | None]:
        return dict(self._snapshot())

    def _snapshot(self) -> dict[str, str | None]:
        if self._properties is None:
            self._properties = self._collect()
        return self._properties

    def _collect(self) -> dict[str, str | None]:
        os_name = _os_name()
        release: dict[str, str] = {}
        if os_name == "linux" and self._os_release.is_file():
            release = parse_os_release(self._os_release.read_text(encoding="utf-8"))
        distro = release.get("ID", "").lower() or None
        if os_name == "linux":
            family = family_for(distro, release.get("ID_LIKE"))
        else:
            family = os_name
        return {
            "os.name": os_name,
            "os.distro": distro,
            "os.family": family,
            "os.version": release.get("VERSION_ID") or platform.release() or None,
            "os.codename": release.get("VERSION_CODENAME") or None,
            "os.arch": platform.machine() or None,
            "hardware.gpu_vendor": self._gpu_vendor(),
            "hardware.tpm": _bool(Path("/sys/class/tpm/tpm0").exists()),
            "hardware.fingerprint": _bool(self._has_fingerprint_reader()),
            "user.name": getpass.getuser(),
            "user.home": str(Path.home()),
            "user.shell": os.environ.get("SHELL"),
        }

    def _probe_output(self, args: list[str]) -> str:
        if self._runner.which(args[0]) is None:
            return ""
        try:
            result = self._runner.run(args, timeout=self._timeout)
        except CommandError:
            logger.debug("Probe %s failed", args[0], exc_info=True)
            return ""
        return result.stdout if result.ok else ""

    def _gpu_vendor(self) -> str | None:
        for line in self._probe_output(["lspci"]).lower().splitlines():
            if "vga" not in line and "3d controller" not in line:
                continue
            for vendor in _GPU_VENDORS:
                if vendor in line:
                    return vendor
        return None

    def _has_fingerprint_reader(self) -> bool:
        return "fingerprint" in self._probe_output(["lsusb"]).lower()


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _expand(path: str) -> Path:
    return Path(os.path.expandvars(path)).expanduser()
