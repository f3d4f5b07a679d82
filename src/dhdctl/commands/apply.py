"""``dhdctl apply`` — bring the host to the declared state."""

from __future__ import annotations

import click

from dhdctl.commands._base import DhdCommand, selection_options
from dhdctl.commands._context import AppContext

_EXAMPLES = """\
  dhdctl apply --dry-run
  dhdctl apply -m git -m neovim
  dhdctl apply -t dev -j 8
  dhdctl -v apply -t desktop"""


@click.command("apply", cls=DhdCommand, examples=_EXAMPLES)
@selection_options
@click.option("--dry-run", is_flag=True, help="Check every atom but change nothing.")
@click.option(
    "-j",
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Atoms to run in parallel (default from [execution] concurrency).",
)
@click.pass_obj
def apply(
    app: AppContext,
    modules: tuple[str, ...],
    tags: tuple[str, ...],
    all_tags: bool,
    dry_run: bool,
    concurrency: int | None,
) -> None:
    """Apply the selected modules (all modules when nothing is selected)."""
    from dhdctl.engine.planner import Selection
    from dhdctl.services.deploy import DeployService

    selection = Selection(modules=modules, tags=tags, all_tags=all_tags)
    result = DeployService(app.host).apply(
        selection, dry_run=dry_run, concurrency=concurrency, on_transition=app.progress()
    )
    app.emit(result)
