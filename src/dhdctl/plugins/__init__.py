"""Extension layer — plugin system via pluggy.

Discovery: entry points in the ``dhdctl.plugins`` group.
INVARIANT: Plugin failures are warnings, never errors.
"""

from dhdctl.plugins.hookspecs import hookimpl
from dhdctl.plugins.manager import PluginManager

__all__ = ["PluginManager", "hookimpl"]
