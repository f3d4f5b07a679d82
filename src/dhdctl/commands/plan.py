"""``dhdctl plan`` — preview what apply would do, without probing atoms."""

from __future__ import annotations

import click

from dhdctl.commands._base import DhdCommand, selection_options
from dhdctl.commands._context import AppContext

_EXAMPLES = """\
  dhdctl plan
  dhdctl plan -m neovim
  dhdctl plan -t desktop -t gnome --all-tags"""


@click.command("plan", cls=DhdCommand, examples=_EXAMPLES)
@selection_options
@click.pass_obj
def plan(
    app: AppContext, modules: tuple[str, ...], tags: tuple[str, ...], all_tags: bool
) -> None:
    """Show the modules, actions and atoms a selection lowers to."""
    from dhdctl.engine.planner import Selection
    from dhdctl.services.deploy import DeployService

    selection = Selection(modules=modules, tags=tags, all_tags=all_tags)
    app.emit(DeployService(app.host).plan(selection))
