"""AppContext: the object every dhdctl command receives via ``@click.pass_obj``.

It owns settings, builds the :class:`Host` on first use, and decides
where results and progress go. Results go to stdout and everything
else to stderr. A failed result exits 1.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import click

from dhdctl.output.console import style_for_state
from dhdctl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from dhdctl.config.settings import DhdSettings
    from dhdctl.domain.types import NodeState
    from dhdctl.engine.executor import TransitionCallback
    from dhdctl.engine.graph import GraphNode
    from dhdctl.infrastructure.host import Host
    from dhdctl.services.result import ServiceResult


class AppContext:
    """Per-invocation state. The host is created lazily, so ``--help`` never probes."""

    def __init__(self, settings: DhdSettings, *, host: Host | None = None) -> None:
        self.settings = settings
        self._host = host
        self._echo_lock = threading.Lock()

        from dhdctl.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            from dhdctl.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def host(self) -> Host:
        if self._host is None:
            from dhdctl.infrastructure.host import Host

            self._host = Host(self.settings)
        return self._host

    @property
    def output_settings(self) -> OutputSettings:
        return OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )

    def progress(self) -> TransitionCallback | None:
        """Live per-atom progress on stderr for ``-v`` runs in human mode."""
        settings = self.output_settings
        if not settings.verbose or settings.json_output or settings.quiet:
            return None

        def report(node: GraphNode, state: NodeState) -> None:
            if node.is_gate or not state.terminal:
                return
            line = click.style(f"{state:>9}", fg=_PROGRESS_COLORS.get(style_for_state(state)))
            with self._echo_lock:
                click.echo(f"{line}  [{node.module}] {node.describe()}", err=True)

        return report

    def emit(self, result: ServiceResult) -> None:
        """Print *result*; warnings go to stderr, and failure exits with status 1."""
        settings = self.output_settings
        text = format_result(result, settings=settings)
        if not result.ok:
            click.echo(text, err=True)
            raise SystemExit(1)

        click.echo(text)
        # JSON output already carries the warnings.
        if not settings.json_output:
            for warning in result.warnings:
                click.echo(f"WARNING: {warning}", err=True)


_PROGRESS_COLORS = {
    "dhd.state.changed": "yellow",
    "dhd.state.satisfied": "green",
    "dhd.state.failed": "red",
    "dhd.state.skipped": "bright_black",
}
