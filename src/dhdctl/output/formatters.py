"""Select the output mode for a ServiceResult: JSON, quiet or Rich."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

from dhdctl.output.renderers import render_quiet, render_result

if TYPE_CHECKING:
    from dhdctl.services.result import ServiceResult


class OutputSettings(BaseModel):
    """Output-related global flags."""

    model_config = {"frozen": True}

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False


def format_result(result: ServiceResult, *, settings: OutputSettings | None = None) -> str:
    """Format *result* for display.

    JSON wins over quiet, which wins over the Rich renderers.
    """
    settings = settings or OutputSettings()
    if settings.json_output:
        return result.model_dump_json(indent=2)
    if settings.quiet:
        return render_quiet(result)
    return render_result(result, verbose=settings.verbose)
