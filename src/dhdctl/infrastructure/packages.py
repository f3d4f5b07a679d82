"""Package manager command table.

Each manager knows how to ask whether one package is installed and how to
install it. Language-level managers (cargo, go, npm, ...) run unprivileged;
system managers escalate.
"""

from __future__ import annotations

from dataclasses import dataclass

from dhdctl.domain.errors import LoweringError
from dhdctl.domain.platform import PlatformInfo


@dataclass(frozen=True)
class PackageManager:
    """Command templates for one package manager.

    ``{package}`` in a template is replaced by the package name. When
    ``query_contains`` is set the query must also print that text; when
    ``probe_binary`` is set the package counts as installed once its
    binary is on ``PATH``.
    """

    name: str
    install: tuple[str, ...]
    query: tuple[str, ...] = ()
    query_contains: str | None = None
    privileged: bool = False
    probe_binary: bool = False

    def install_command(self, package: str) -> list[str]:
        return _fill(self.install, package)

    def query_command(self, package: str) -> list[str]:
        return _fill(self.query, package)

    def expected_output(self, package: str) -> str | None:
        if self.query_contains is None:
            return None
        return self.query_contains.format(package=package)


def _fill(template: tuple[str, ...], package: str) -> list[str]:
    return [part.format(package=package) for part in template]


def binary_name(package: str) -> str:
    """Executable a ``go install``-style package path produces."""
    name = package.rsplit("@", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    return name


MANAGERS: dict[str, PackageManager] = {
    manager.name: manager
    for manager in (
        PackageManager(
            "apt",
            install=("apt-get", "install", "-y", "{package}"),
            query=("dpkg-query", "-W", "-f=${{Status}}", "{package}"),
            query_contains="install ok installed",
            privileged=True,
        ),
        PackageManager(
            "dnf",
            install=("dnf", "install", "-y", "{package}"),
            query=("rpm", "-q", "{package}"),
            privileged=True,
        ),
        PackageManager(
            "pacman",
            install=("pacman", "-S", "--noconfirm", "--needed", "{package}"),
            query=("pacman", "-Q", "{package}"),
            privileged=True,
        ),
        PackageManager(
            "paru",
            install=("paru", "-S", "--noconfirm", "--needed", "{package}"),
            query=("paru", "-Q", "{package}"),
        ),
        PackageManager(
            "yay",
            install=("yay", "-S", "--noconfirm", "--needed", "{package}"),
            query=("yay", "-Q", "{package}"),
        ),
        PackageManager(
            "zypper",
            install=("zypper", "--non-interactive", "install", "{package}"),
            query=("rpm", "-q", "{package}"),
            privileged=True,
        ),
        PackageManager(
            "brew",
            install=("brew", "install", "{package}"),
            query=("brew", "list", "--versions", "{package}"),
        ),
        PackageManager(
            "flatpak",
            install=("flatpak", "install", "-y", "--noninteractive", "flathub", "{package}"),
            query=("flatpak", "info", "{package}"),
        ),
        PackageManager(
            "snap",
            install=("snap", "install", "{package}"),
            query=("snap", "list", "{package}"),
            privileged=True,
        ),
        PackageManager(
            "cargo",
            install=("cargo", "install", "{package}"),
            query=("cargo", "install", "--list"),
            query_contains="{package} v",
        ),
        PackageManager(
            "npm",
            install=("npm", "install", "-g", "{package}"),
            query=("npm", "list", "-g", "--depth=0", "{package}"),
        ),
        PackageManager(
            "bun",
            install=("bun", "add", "-g", "{package}"),
            query=("bun", "pm", "ls", "-g"),
            query_contains="{package}@",
        ),
        PackageManager(
            "go",
            install=("go", "install", "{package}"),
            probe_binary=True,
        ),
        PackageManager(
            "pipx",
            install=("pipx", "install", "{package}"),
            query=("pipx", "list", "--short"),
            query_contains="{package} ",
        ),
        PackageManager(
            "winget",
            install=("winget", "install", "-e", "--silent", "--id", "{package}"),
            query=("winget", "list", "-e", "--id", "{package}"),
        ),
    )
}

# Family (or OS) -> default system package manager.
DEFAULT_MANAGERS: dict[str, str] = {
    "debian": "apt",
    "redhat": "dnf",
    "arch": "pacman",
    "suse": "zypper",
    "mac": "brew",
    "windows": "winget",
}


def get_manager(name: str) -> PackageManager:
    try:
        return MANAGERS[name]
    except KeyError:
        msg = f"unknown package manager: {name}"
        raise LoweringError(msg) from None


def default_manager(platform: PlatformInfo) -> PackageManager:
    """System package manager for *platform*.

    Raises:
        LoweringError: When the platform has no known default.
    """
    key = platform.family if platform.os == "linux" else platform.os
    name = DEFAULT_MANAGERS.get(key or "")
    if name is None:
        label = platform.distro or platform.os
        msg = f"no default package manager for {label}; set 'manager' explicitly"
        raise LoweringError(msg)
    return MANAGERS[name]
