"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, ``dhd.toml`` only contains
overrides. An empty file (or none at all) is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from dhdctl.infrastructure.process import DEFAULT_ESCALATION

# --- dhd.toml sections ---


class ModulesConfig(BaseModel):
    """[modules] section."""

    model_config = {"frozen": True}

    path: str = "."
    exclude_dirs: list[str] = Field(default_factory=list)


class ExecutionConfig(BaseModel):
    """[execution] section."""

    model_config = {"frozen": True}

    concurrency: int = Field(default=4, ge=1)
    # Backups of dconf dumps land here; defaults to $XDG_STATE_HOME/dhdctl.
    state_dir: str | None = None


class EscalationConfig(BaseModel):
    """[escalation] section.

    ``command`` pins the privilege-escalation program; otherwise the first
    of ``candidates`` found on ``PATH`` is used.
    """

    model_config = {"frozen": True}

    command: str | None = None
    candidates: list[str] = Field(default_factory=lambda: list(DEFAULT_ESCALATION))


class ProbesConfig(BaseModel):
    """[probes] section."""

    model_config = {"frozen": True}

    timeout: float = Field(default=10.0, gt=0)


class DownloadConfig(BaseModel):
    """[download] section."""

    model_config = {"frozen": True}

    timeout: float = Field(default=60.0, gt=0)


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    blocked: list[str] = Field(default_factory=list)
