"""BaseService — shared foundation for dhdctl services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dhdctl.infrastructure.host import Host


class BaseService:
    """Services receive the :class:`Host` whose collaborators they drive."""

    def __init__(self, host: Host) -> None:
        self._host = host

    def _dispatch_hook(self, hook_name: str, warnings: list[str], **payload: Any) -> None:
        """Notify plugins of an event; a failing plugin only adds a warning."""
        plugins = self._host.plugins
        if plugins is None:
            return
        for name in plugins.notify(hook_name, **payload):
            warnings.append(f"Plugin {name} failed in {hook_name}")
