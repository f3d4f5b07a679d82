"""Click command classes and option bundles shared by dhdctl commands.

Commands accept ``examples=...``; the text is shown by an eager
``--examples`` flag so ``--help`` stays short.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import click

_F = TypeVar("_F", bound=Callable[..., Any])


def _print_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    command = ctx.command
    click.echo(f"Examples for '{ctx.command_path}':\n")
    click.echo(getattr(command, "examples", "") or "")
    ctx.exit(0)


class _ExamplesMixin:
    """Adds ``--examples`` to any Click command that was given example text."""

    examples: str | None

    def _register_examples(self, examples: str | None) -> None:
        self.examples = examples
        if not examples:
            return
        params: list[click.Parameter] = self.params  # type: ignore[attr-defined]
        params.append(
            click.Option(
                ["--examples"],
                is_flag=True,
                expose_value=False,
                is_eager=True,
                callback=_print_examples,
                help="Show usage examples.",
            )
        )


class DhdCommand(_ExamplesMixin, click.Command):
    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._register_examples(examples)


class DhdGroup(_ExamplesMixin, click.Group):
    """Group whose subcommands are :class:`DhdCommand` by default."""

    command_class = DhdCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._register_examples(examples)


def selection_options(func: _F) -> _F:
    """``-m/--module``, ``-t/--tag`` and ``--all-tags``, shared by plan and apply."""
    options = (
        click.option("-m", "--module", "modules", multiple=True, help="Select a module by name."),
        click.option("-t", "--tag", "tags", multiple=True, help="Select modules with this tag."),
        click.option("--all-tags", is_flag=True, help="Require every given tag instead of any."),
    )
    for option in reversed(options):
        func = option(func)
    return func
