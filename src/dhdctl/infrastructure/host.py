"""Host — wires settings to the concrete collaborators of one run.

Constructed once per CLI invocation from :class:`DhdSettings` and handed
to every service. Collaborators are built on first use, and tests can
inject fakes for any of them.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from dhdctl.domain.platform import PlatformInfo
from dhdctl.engine.lowering import LoweringContext
from dhdctl.engine.planner import Planner
from dhdctl.extraction.extractor import ConfigSource, ExtractionContext
from dhdctl.infrastructure.discovery import load_sources
from dhdctl.infrastructure.facts import SystemFactProvider
from dhdctl.infrastructure.process import CommandRunner

if TYPE_CHECKING:
    import httpx

    from dhdctl.config.settings import DhdSettings
    from dhdctl.domain.facts import FactProvider
    from dhdctl.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

STAMP_FORMAT = "%Y%m%d_%H%M%S"


class Host:
    """The machine being configured, as seen through its collaborators."""

    def __init__(
        self,
        settings: DhdSettings,
        *,
        runner: CommandRunner | None = None,
        facts: FactProvider | None = None,
        transport: httpx.BaseTransport | None = None,
        plugins: PluginManager | None = None,
        stamp: str | None = None,
    ) -> None:
        self._settings = settings
        self._runner = runner
        self._facts = facts
        self._transport = transport
        self._plugins = plugins
        self._plugins_ready = plugins is not None
        self.stamp = stamp or datetime.now().strftime(STAMP_FORMAT)

    @property
    def settings(self) -> DhdSettings:
        return self._settings

    @property
    def runner(self) -> CommandRunner:
        if self._runner is None:
            escalation = self._settings.escalation
            self._runner = CommandRunner(
                candidates=escalation.candidates,
                escalation_command=escalation.command,
            )
        return self._runner

    @property
    def facts(self) -> FactProvider:
        if self._facts is None:
            self._facts = SystemFactProvider(
                self.runner, probe_timeout=self._settings.probes.timeout
            )
        return self._facts

    @property
    def plugins(self) -> PluginManager | None:
        """Entry-point plugins, or None when ``[plugins] enabled = false``."""
        if not self._plugins_ready:
            self._plugins_ready = True
            if self._settings.plugins.enabled:
                from dhdctl.plugins.manager import PluginManager

                pm = PluginManager()
                names = pm.discover_and_load(blocked=self._settings.plugins.blocked)
                logger.debug("Loaded plugins: %s", ", ".join(names) or "none")
                self._plugins = pm
        return self._plugins

    # -- paths ------------------------------------------------------------------

    @property
    def home(self) -> Path:
        home = self.facts.property("user.home")
        return Path(home) if home else Path.home()

    @property
    def config_home(self) -> Path:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        return Path(xdg) if xdg else self.home / ".config"

    @property
    def state_dir(self) -> Path:
        configured = self._settings.execution.state_dir
        if configured:
            return Path(configured).expanduser()
        xdg = os.environ.get("XDG_STATE_HOME")
        base = Path(xdg) if xdg else self.home / ".local" / "state"
        return base / "dhdctl"

    # -- derived collaborators --------------------------------------------------

    def platform(self) -> PlatformInfo:
        facts = self.facts
        return PlatformInfo(
            os=facts.property("os.name") or "linux",
            distro=facts.property("os.distro"),
            family=facts.property("os.family"),
            version=facts.property("os.version"),
            arch=facts.property("os.arch"),
        )

    def extraction_context(self) -> ExtractionContext:
        return ExtractionContext(
            user=self.facts.property("user.name") or "user",
            home=str(self.home),
            platform=self.platform(),
        )

    def sources(self) -> list[ConfigSource]:
        root = self._settings.resolved_modules_path
        return load_sources(root, exclude_dirs=self._settings.modules.exclude_dirs)

    def lowering_context(self) -> LoweringContext:
        return LoweringContext(
            runner=self.runner,
            platform=self.platform(),
            home=self.home,
            config_home=self.config_home,
            state_dir=self.state_dir,
            stamp=self.stamp,
            download_timeout=self._settings.download.timeout,
            transport=self._transport,
        )

    def planner(self) -> Planner:
        return Planner(self.facts, self.lowering_context())
