"""Module — a named, tagged unit of configuration with ordered actions."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from dhdctl.domain.actions import Action
from dhdctl.domain.conditions import Condition


class Module(BaseModel):
    """One declared configuration module.

    Produced once by the extractor per declaration and immutable thereafter.
    ``base_dir`` is the directory relative action paths resolve against.
    """

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    description: str | None = None
    tags: frozenset[str] = frozenset()
    dependencies: tuple[str, ...] = ()
    condition: Condition | None = None
    actions: tuple[Action, ...] = ()
    origin: str = "<memory>"
    base_dir: Path | None = None

    @field_validator("dependencies")
    @classmethod
    def _dedupe(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(value))

    def summary(self) -> dict[str, object]:
        """JSON-friendly overview used by ``dhdctl list``."""
        return {
            "name": self.name,
            "description": self.description,
            "tags": sorted(self.tags),
            "dependencies": list(self.dependencies),
            "condition": self.condition.describe() if self.condition else None,
            "actions": len(self.actions),
            "origin": self.origin,
        }
