"""Plugin loading and failure-isolated hook dispatch.

Plugins come from the ``dhdctl.plugins`` entry-point group or are
registered directly. :meth:`PluginManager.notify` calls every
implementation of a hook separately so one broken plugin cannot keep
the others from seeing an event.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable
from typing import Any

import pluggy

from dhdctl.plugins.hookspecs import DhdctlHookSpec

PROJECT_NAME = "dhdctl"
ENTRY_POINT_GROUP = "dhdctl.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Wraps a :class:`pluggy.PluginManager` bound to the dhdctl hookspecs."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(DhdctlHookSpec)
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def discover_and_load(self, *, blocked: Iterable[str] = ()) -> list[str]:
        """Load entry-point plugins, skipping any named in *blocked*."""
        for name in blocked:
            self._pm.set_blocked(name)
        count = self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        for plugin in list(self._pm.get_plugins()):
            if inspect.isclass(plugin):
                self._instantiate(plugin)
        self._loaded = True
        names = self.list_plugin_names()
        logger.debug("Loaded %d entry-point plugin(s): %s", count, ", ".join(names) or "-")
        return names

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        name = name or type(plugin).__name__
        self._pm.register(plugin, name=name)
        logger.debug("Registered plugin %s", name)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    def list_plugin_names(self) -> list[str]:
        return [self._name_of(p) for p in self._pm.get_plugins()]

    def notify(self, hook_name: str, **payload: Any) -> list[str]:
        """Deliver *payload* to each implementation of *hook_name*.

        Returns the names of plugins whose implementation raised.
        """
        caller = getattr(self._pm.hook, hook_name)
        failed: list[str] = []
        for impl in caller.get_hookimpls():
            args = {name: payload[name] for name in impl.argnames if name in payload}
            try:
                impl.function(**args)
            except Exception:
                logger.debug("Plugin %s failed in %s", impl.plugin_name, hook_name, exc_info=True)
                failed.append(impl.plugin_name)
        return failed

    def _name_of(self, plugin: object) -> str:
        return self._pm.get_name(plugin) or type(plugin).__name__

    def _instantiate(self, plugin_cls: type) -> None:
        # An entry point naming a class would dispatch with ``self`` unbound.
        name = self._name_of(plugin_cls)
        self._pm.unregister(plugin_cls)
        try:
            instance = plugin_cls()
        except Exception:
            logger.warning("Failed to instantiate plugin %s", name, exc_info=True)
            return
        self._pm.register(instance, name=name)
