"""Platform identity and platform-keyed value selection.

A *platform selection* is a plain mapping such as::

    {
        "default": "htop",
        "mac": "htop",
        "linux": {"distro": {"arch": "htop-git"}, "family": {"debian": "btop"}},
    }

Resolution order: the branch for the current OS; inside a ``linux`` branch
the distro entry wins over the family entry, which wins over the branch's
own ``default``/``all``; finally the top-level ``default``/``all``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

# Distro ID -> family, following /etc/os-release conventions.
DISTRO_FAMILIES: dict[str, str] = {
    "ubuntu": "debian",
    "debian": "debian",
    "linuxmint": "debian",
    "mint": "debian",
    "pop": "debian",
    "elementary": "debian",
    "raspbian": "debian",
    "fedora": "redhat",
    "rhel": "redhat",
    "centos": "redhat",
    "rocky": "redhat",
    "almalinux": "redhat",
    "arch": "arch",
    "manjaro": "arch",
    "endeavouros": "arch",
    "garuda": "arch",
    "opensuse": "suse",
    "opensuse-leap": "suse",
    "opensuse-tumbleweed": "suse",
    "sles": "suse",
}

# Alternate spellings accepted for a family key inside a selection.
FAMILY_ALIASES: dict[str, tuple[str, ...]] = {
    "redhat": ("redhat", "fedora", "rhel"),
    "suse": ("suse", "opensuse"),
}

OS_KEYS: dict[str, tuple[str, ...]] = {
    "linux": ("linux",),
    "mac": ("mac", "macos", "darwin"),
    "windows": ("windows", "win32"),
}

_DEFAULT_KEYS = ("default", "all")
_MISSING = object()


class PlatformInfo(BaseModel):
    """Operating system identity used for selection and lowering."""

    model_config = {"frozen": True}

    os: str = "linux"
    distro: str | None = None
    family: str | None = None
    version: str | None = None
    arch: str | None = None


def family_for(distro: str | None, id_like: str | None = None) -> str | None:
    """Map a distro ID (falling back to ``ID_LIKE`` entries) to its family."""
    candidates = [distro or ""]
    if id_like:
        candidates.extend(id_like.split())
    for candidate in candidates:
        family = DISTRO_FAMILIES.get(candidate.lower())
        if family:
            return family
    return None


def is_platform_selection(value: Any) -> bool:
    """Whether *value* is a mapping keyed by OS names or defaults."""
    if not isinstance(value, Mapping) or not value:
        return False
    known = {key for keys in OS_KEYS.values() for key in keys} | set(_DEFAULT_KEYS)
    return all(isinstance(key, str) and key in known for key in value)


def select_for_platform(options: Mapping[str, Any], platform: PlatformInfo) -> Any:
    """Resolve a platform selection; ``None`` when nothing matches."""
    branch = _first(options, OS_KEYS.get(platform.os, (platform.os,)))
    if branch is not _MISSING:
        if platform.os == "linux" and isinstance(branch, Mapping):
            branch = _resolve_linux(branch, platform)
        if branch is not _MISSING:
            return branch
    default = _first(options, _DEFAULT_KEYS)
    return None if default is _MISSING else default


def _resolve_linux(branch: Mapping[str, Any], platform: PlatformInfo) -> Any:
    distros = branch.get("distro")
    families = branch.get("family")
    if not isinstance(distros, Mapping) and not isinstance(families, Mapping):
        # Shorthand: distro and family keys directly under ``linux``.
        distros = families = branch

    if isinstance(distros, Mapping) and platform.distro:
        found = _first(distros, (platform.distro,))
        if found is not _MISSING:
            return found
    if isinstance(families, Mapping) and platform.family:
        found = _first(families, FAMILY_ALIASES.get(platform.family, (platform.family,)))
        if found is not _MISSING:
            return found
    return _first(branch, _DEFAULT_KEYS)


def _first(options: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in options:
            return options[key]
    return _MISSING
