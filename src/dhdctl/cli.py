"""Root CLI group for dhdctl with global flags and command registration."""

from __future__ import annotations

from pathlib import Path

import click

from dhdctl import __version__
from dhdctl.commands import register_commands
from dhdctl.commands._base import DhdGroup
from dhdctl.commands._context import AppContext
from dhdctl.config.settings import DhdSettings


@click.group(cls=DhdGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="dhdctl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and timing telemetry.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.option(
    "-p",
    "--modules-path",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding module sources (overrides [modules] path).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
    modules_path: Path | None,
) -> None:
    """dhdctl — declarative home deployments."""
    ctx.ensure_object(dict)
    # Unset flags are passed as None so DHD_* env vars and dhd.toml still apply.
    settings = DhdSettings.from_cli(
        config_path=config_path,
        json_output=json_output or None,
        quiet=quiet or None,
        verbose=verbose or None,
        log_json=log_json or None,
        modules_path=modules_path.resolve() if modules_path else None,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
