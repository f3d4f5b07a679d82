"""ExecutionReport — module → action → atom outcomes of one run."""

from __future__ import annotations

from pydantic import BaseModel, Field

from dhdctl.domain.types import ExecutionMode, NodeState


class AtomOutcome(BaseModel):
    model_config = {"frozen": True}

    node: int
    kind: str
    description: str
    state: NodeState
    reason: str | None = None
    error: str | None = None
    error_code: str | None = None
    duration_ms: float = 0.0


class ActionOutcome(BaseModel):
    model_config = {"frozen": True}

    index: int
    description: str
    state: NodeState
    skip_reason: str | None = None
    atoms: list[AtomOutcome] = Field(default_factory=list)


class ModuleOutcome(BaseModel):
    """Aggregated result of one module: the worst state among its nodes."""

    model_config = {"frozen": True}

    name: str
    state: NodeState
    reason: str | None = None
    error: str | None = None
    actions: list[ActionOutcome] = Field(default_factory=list)
    duration_ms: float = 0.0


class ExecutionReport(BaseModel):
    model_config = {"frozen": True}

    mode: ExecutionMode
    modules: list[ModuleOutcome] = Field(default_factory=list)
    totals: dict[str, int] = Field(default_factory=dict)
    atom_totals: dict[str, int] = Field(default_factory=dict)
    cancelled: bool = False
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed_modules

    @property
    def failed_modules(self) -> list[str]:
        return [m.name for m in self.modules if m.state == NodeState.FAILED]

    def module(self, name: str) -> ModuleOutcome:
        for outcome in self.modules:
            if outcome.name == name:
                return outcome
        raise KeyError(name)
