"""Subcommand modules for dhdctl.

register_commands() defers imports so ``dhdctl --help`` stays fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the standalone commands on the root CLI group."""
    from dhdctl.commands.apply import apply
    from dhdctl.commands.list_cmd import list_cmd
    from dhdctl.commands.plan import plan

    cli.add_command(list_cmd)
    cli.add_command(plan)
    cli.add_command(apply)
