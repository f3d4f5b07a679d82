"""Planner — selection, dependency validation, condition gating, lowering.

The planner never touches the system beyond the fact provider's probes:
it turns extracted modules into a :class:`~dhdctl.engine.graph.DependencyGraph`
of atoms plus diagnostics. Dependency validation runs before any condition
is evaluated, so a broken configuration fails without probing the host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Literal

import networkx as nx
from pydantic import BaseModel

from dhdctl.domain.actions import Conditional
from dhdctl.domain.errors import (
    ConditionEvaluationError,
    DependencyCycleError,
    LoweringError,
    UnknownDependencyError,
)
from dhdctl.domain.evaluator import ConditionEvaluator
from dhdctl.engine.graph import DependencyGraph
from dhdctl.engine.lowering import lower_action

if TYPE_CHECKING:
    from dhdctl.domain.facts import FactProvider
    from dhdctl.domain.modules import Module
    from dhdctl.engine.atoms.base import Atom
    from dhdctl.engine.lowering import LoweringContext

logger = logging.getLogger(__name__)


class Selection(BaseModel):
    """Which modules to plan. Empty means every module."""

    model_config = {"frozen": True}

    modules: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    all_tags: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.modules and not self.tags

    def matches(self, module: Module) -> bool:
        if self.is_empty or module.name in self.modules:
            return True
        if not self.tags:
            return False
        if self.all_tags:
            return all(tag in module.tags for tag in self.tags)
        return any(tag in module.tags for tag in self.tags)


class Diagnostic(BaseModel):
    model_config = {"frozen": True}

    level: Literal["info", "warning", "error"]
    code: str
    message: str
    module: str | None = None


@dataclass
class ActionPlan:
    index: int
    description: str
    nodes: list[int] = field(default_factory=list)
    skip_reason: str | None = None


@dataclass
class ModulePlan:
    """Planned shape of one module: its actions and the graph nodes they own."""

    name: str
    origin: str
    dependencies: tuple[str, ...] = ()
    included_as_dependency: bool = False
    skip_reason: str | None = None
    failure: str | None = None
    actions: list[ActionPlan] = field(default_factory=list)
    nodes: list[int] = field(default_factory=list)

    @property
    def head(self) -> int:
        return self.nodes[0]

    @property
    def tail(self) -> int:
        return self.nodes[-1]


@dataclass
class Plan:
    graph: DependencyGraph
    modules: list[ModulePlan]
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def module(self, name: str) -> ModulePlan:
        for plan in self.modules:
            if plan.name == name:
                return plan
        raise KeyError(name)

    def summary(self) -> dict[str, Any]:
        """JSON-friendly view used by ``dhdctl plan`` and the ``post_plan`` hook."""
        graph = self.graph
        return {
            "modules": [
                {
                    "name": m.name,
                    "origin": m.origin,
                    "dependencies": list(m.dependencies),
                    "included_as_dependency": m.included_as_dependency,
                    "skip_reason": m.skip_reason,
                    "failure": m.failure,
                    "actions": [
                        {
                            "index": a.index,
                            "description": a.description,
                            "skip_reason": a.skip_reason,
                            "atoms": [graph.node(i).describe() for i in a.nodes],
                        }
                        for a in m.actions
                    ],
                }
                for m in self.modules
            ],
            "nodes": len(graph),
            "edges": len(graph.edges()),
            "diagnostics": [d.model_dump() for d in self.diagnostics],
        }


class Planner:
    def __init__(self, facts: FactProvider, lowering_context: LoweringContext) -> None:
        self._evaluator = ConditionEvaluator(facts)
        self._lowering = lowering_context

    def plan(self, modules: list[Module], selection: Selection | None = None) -> Plan:
        """Build the execution graph for the modules *selection* picks.

        Raises:
            UnknownDependencyError: A selected module depends on a name no
                module declares.
            DependencyCycleError: The selected modules depend on each other
                in a loop.
        """
        selection = selection or Selection()
        diagnostics: list[Diagnostic] = []
        by_name = {m.name: m for m in modules}

        chosen, pulled_in = self._select(modules, by_name, selection)
        if not chosen:
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    code="empty_selection",
                    message="selection matched no modules",
                )
            )
        for name in selection.modules:
            if name not in by_name:
                diagnostics.append(
                    Diagnostic(
                        level="warning",
                        code="unknown_module",
                        message=f"no module named '{name}'",
                        module=name,
                    )
                )
        for name in sorted(pulled_in):
            diagnostics.append(
                Diagnostic(
                    level="info",
                    code="included_as_dependency",
                    message="included as a dependency of the selection",
                    module=name,
                )
            )

        order = self._order(chosen, modules)

        graph = DependencyGraph()
        plans: dict[str, ModulePlan] = {}
        for name in order:
            module = by_name[name]
            plan = self._plan_module(module, graph, diagnostics)
            plan.included_as_dependency = name in pulled_in
            plans[name] = plan

        for name in order:
            plan = plans[name]
            for dependency in plan.dependencies:
                graph.add_edge(plans[dependency].tail, plan.head)

        logger.debug("Planned %d modules into %d nodes", len(order), len(graph))
        return Plan(graph=graph, modules=[plans[n] for n in order], diagnostics=diagnostics)

    # -- selection & ordering -------------------------------------------

    @staticmethod
    def _select(
        modules: list[Module], by_name: dict[str, Module], selection: Selection
    ) -> tuple[set[str], set[str]]:
        direct = {m.name for m in modules if selection.matches(m)}
        chosen = set(direct)
        queue = [m.name for m in modules if m.name in direct]
        while queue:
            module = by_name[queue.pop(0)]
            for dependency in module.dependencies:
                if dependency not in by_name:
                    raise UnknownDependencyError(module.name, dependency)
                if dependency not in chosen:
                    chosen.add(dependency)
                    queue.append(dependency)
        return chosen, chosen - direct

    @staticmethod
    def _order(chosen: set[str], modules: list[Module]) -> list[str]:
        position = {m.name: i for i, m in enumerate(modules)}
        requires: nx.DiGraph = nx.DiGraph()
        requires.add_nodes_from(chosen)
        for module in modules:
            if module.name in chosen:
                for dependency in module.dependencies:
                    requires.add_edge(module.name, dependency)

        try:
            cycle = nx.find_cycle(requires)
        except nx.NetworkXNoCycle:
            pass
        else:
            path = [edge[0] for edge in cycle]
            raise DependencyCycleError([*path, path[0]])

        return list(
            nx.lexicographical_topological_sort(requires.reverse(), key=position.__getitem__)
        )

    # -- per module -----------------------------------------------------

    def _record_errors(
        self, errors: list[ConditionEvaluationError], module: str, diagnostics: list[Diagnostic]
    ) -> None:
        for error in errors:
            diagnostics.append(
                Diagnostic(
                    level="warning", code="condition_error", message=error.message, module=module
                )
            )

    def _holds(
        self, conditional: Conditional, module: str, diagnostics: list[Diagnostic]
    ) -> bool:
        results: list[bool] = []
        for condition in conditional.conditions:
            evaluation = self._evaluator.evaluate_traced(condition)
            self._record_errors(evaluation.errors, module, diagnostics)
            if evaluation.undetermined:
                return False
            results.append(evaluation.result)
        if conditional.skip_on_success:
            return not any(results)
        return all(results)

    def _plan_module(
        self, module: Module, graph: DependencyGraph, diagnostics: list[Diagnostic]
    ) -> ModulePlan:
        plan = ModulePlan(name=module.name, origin=module.origin, dependencies=module.dependencies)

        evaluation = self._evaluator.evaluate_traced(module.condition)
        self._record_errors(evaluation.errors, module.name, diagnostics)
        if not evaluation.result:
            assert module.condition is not None
            verdict = "could not be evaluated" if evaluation.undetermined else "not met"
            plan.skip_reason = f"condition {verdict}: {module.condition.describe()}"
            diagnostics.append(
                Diagnostic(
                    level="info",
                    code="condition_false",
                    message=plan.skip_reason,
                    module=module.name,
                )
            )
            plan.nodes.append(graph.add_node(module.name, skip_reason=plan.skip_reason))
            return plan

        ctx = replace(self._lowering, base_dir=module.base_dir)
        lowered: list[tuple[ActionPlan, list[Atom]]] = []
        try:
            for index, action in enumerate(module.actions):
                action_plan = ActionPlan(index=index, description=action.describe())
                inner: Any = action
                while isinstance(inner, Conditional):
                    if not self._holds(inner, module.name, diagnostics):
                        action_plan.skip_reason = f"conditions not met: {inner.describe()}"
                        break
                    inner = inner.action
                atoms = [] if action_plan.skip_reason else lower_action(inner, ctx)
                if action_plan.skip_reason:
                    diagnostics.append(
                        Diagnostic(
                            level="info",
                            code="action_skipped",
                            message=action_plan.skip_reason,
                            module=module.name,
                        )
                    )
                lowered.append((action_plan, atoms))
        except LoweringError as exc:
            plan.failure = exc.message
            diagnostics.append(
                Diagnostic(level="error", code=exc.code, message=exc.message, module=module.name)
            )
            plan.nodes.append(graph.add_node(module.name, failure=exc.message))
            return plan

        for action_plan, atoms in lowered:
            for atom in atoms:
                node = graph.add_node(module.name, atom, action_index=action_plan.index)
                if plan.nodes:
                    graph.add_edge(plan.nodes[-1], node)
                action_plan.nodes.append(node)
                plan.nodes.append(node)
            plan.actions.append(action_plan)

        if not plan.nodes:
            plan.nodes.append(graph.add_node(module.name))
        return plan
