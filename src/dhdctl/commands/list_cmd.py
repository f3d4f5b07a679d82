"""``dhdctl list`` — show discovered modules."""

from __future__ import annotations

import click

from dhdctl.commands._base import DhdCommand
from dhdctl.commands._context import AppContext

_EXAMPLES = """\
  dhdctl list
  dhdctl list -t desktop
  dhdctl --json list"""


@click.command("list", cls=DhdCommand, examples=_EXAMPLES)
@click.option("-t", "--tag", "tags", multiple=True, help="Only modules carrying this tag.")
@click.pass_obj
def list_cmd(app: AppContext, tags: tuple[str, ...]) -> None:
    """List configuration modules found under the modules path."""
    from dhdctl.services.deploy import DeployService

    app.emit(DeployService(app.host).list_modules(tags=tags))
