"""Pluggy hook specifications for dhdctl deployment events.

Hooks are called synchronously by :class:`~dhdctl.services.deploy.DeployService`
after the corresponding step completes. Payloads are plain JSON-friendly
values so plugins never depend on engine internals.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("dhdctl")
hookimpl = pluggy.HookimplMarker("dhdctl")


class DhdctlHookSpec:
    """Hook specifications for the dhdctl plugin system."""

    @hookspec
    def post_plan(self, summary: dict[str, Any]) -> None:
        """Called after a plan is built (``plan`` and ``apply``)."""

    @hookspec
    def post_module(self, name: str, status: str) -> None:
        """Called once per module after execution, with its final state."""

    @hookspec
    def post_apply(self, report: dict[str, Any]) -> None:
        """Called after execution with the serialized ExecutionReport."""
