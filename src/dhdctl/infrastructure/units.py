"""systemd unit file rendering and placement."""

from __future__ import annotations

from pathlib import Path

from dhdctl.domain.actions import SystemdService, SystemdSocket
from dhdctl.domain.types import Scope

SYSTEM_UNIT_DIR = Path("/etc/systemd/system")


def unit_name(name: str, suffix: str) -> str:
    """Append ``.service``/``.socket`` unless *name* already carries a suffix."""
    if "." in name.rsplit("/", 1)[-1]:
        return name
    return f"{name}.{suffix}"


def unit_dir(scope: Scope, home: Path) -> Path:
    if scope == Scope.SYSTEM:
        return SYSTEM_UNIT_DIR
    return home / ".config" / "systemd" / "user"


def _default_target(scope: Scope) -> str:
    return "multi-user.target" if scope == Scope.SYSTEM else "default.target"


def _render(sections: list[tuple[str, list[tuple[str, str]]]]) -> str:
    blocks = []
    for header, entries in sections:
        lines = [f"[{header}]", *(f"{key}={value}" for key, value in entries)]
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


def render_service(action: SystemdService) -> str:
    service: list[tuple[str, str]] = [
        ("Type", action.service_type),
        ("ExecStart", action.exec_start),
    ]
    if action.restart:
        service.append(("Restart", action.restart))
    if action.restart_sec is not None:
        service.append(("RestartSec", str(action.restart_sec)))
    for key, value in sorted(action.environment.items()):
        service.append(("Environment", f"{key}={value}"))
    return _render(
        [
            ("Unit", [("Description", action.description)]),
            ("Service", service),
            ("Install", [("WantedBy", action.wanted_by or _default_target(action.scope))]),
        ]
    )


def render_socket(action: SystemdSocket) -> str:
    return _render(
        [
            ("Unit", [("Description", action.description)]),
            ("Socket", [("ListenStream", action.listen_stream)]),
            ("Install", [("WantedBy", action.wanted_by or "sockets.target")]),
        ]
    )
