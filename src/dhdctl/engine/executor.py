"""Executor — bounded-parallel walk of a planned DependencyGraph.

Only the coordinating thread moves nodes between states; workers run one
atom's ``check()``/``apply()`` and hand the outcome back through a future.
A node becomes READY once every predecessor succeeded; a FAILED or SKIPPED
node marks all of its descendants SKIPPED.
"""

from __future__ import annotations

import threading
import time
from collections import Counter, deque
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

import structlog

from dhdctl.domain.errors import AtomApplyError, AtomCheckError, AtomError
from dhdctl.domain.types import CheckOutcome, ExecutionMode, NodeState, worst_state
from dhdctl.engine.report import ActionOutcome, AtomOutcome, ExecutionReport, ModuleOutcome

if TYPE_CHECKING:
    from dhdctl.engine.graph import GraphNode
    from dhdctl.engine.planner import ModulePlan, Plan

log = structlog.get_logger(__name__)

TransitionCallback: TypeAlias = "Callable[[GraphNode, NodeState], None]"

CANCELLED = "cancelled"


@dataclass
class _Settled:
    state: NodeState
    error: AtomError | None = None
    duration_ms: float = 0.0


class Executor:
    """Run a :class:`~dhdctl.engine.planner.Plan` on a fixed-size thread pool."""

    def __init__(
        self, concurrency: int = 4, on_transition: TransitionCallback | None = None
    ) -> None:
        if concurrency < 1:
            msg = f"concurrency must be at least 1, got {concurrency}"
            raise ValueError(msg)
        self.concurrency = concurrency
        self._on_transition = on_transition
        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._states: dict[int, NodeState] = {}
        self._reasons: dict[int, str] = {}
        self._errors: dict[int, AtomError] = {}
        self._durations: dict[int, float] = {}

    def cancel(self) -> None:
        """Stop dispatching; in-flight atoms finish and are recorded."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def snapshot(self) -> dict[int, NodeState]:
        with self._lock:
            return dict(self._states)

    # -- run --------------------------------------------------------------

    def execute(self, plan: Plan, mode: ExecutionMode = ExecutionMode.APPLY) -> ExecutionReport:
        graph = plan.graph
        started = time.perf_counter()
        with self._lock:
            self._states = {node.index: NodeState.PENDING for node in graph}
            self._reasons.clear()
            self._errors.clear()
            self._durations.clear()

        waiting = {node.index: graph.in_degree(node.index) for node in graph}
        ready: deque[int] = deque()
        for index in graph.roots():
            self._transition(graph.node(index), NodeState.READY)
            ready.append(index)

        futures: dict[Future[_Settled], int] = {}
        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="dhdctl-atom"
        ) as pool:
            try:
                while ready or futures:
                    while ready and not self.cancelled:
                        node = graph.node(ready.popleft())
                        if node.is_gate:
                            self._settle_gate(node, plan, waiting, ready)
                            continue
                        self._transition(node, NodeState.RUNNING)
                        futures[pool.submit(self._run, node, mode)] = node.index
                    if not futures:
                        break
                    done, _ = wait(futures, return_when=FIRST_COMPLETED)
                    for future in done:
                        index = futures.pop(future)
                        self._settle(plan, index, future.result(), waiting, ready)
            except KeyboardInterrupt:
                log.warning("execution_interrupted", in_flight=len(futures))
                self.cancel()
                for future, index in list(futures.items()):
                    self._settle(plan, index, future.result(), waiting, ready)
                futures.clear()

        if self.cancelled:
            for node in graph:
                if not self._states[node.index].terminal:
                    self._reasons[node.index] = CANCELLED
                    self._transition(node, NodeState.SKIPPED)

        return self._report(plan, mode, (time.perf_counter() - started) * 1000)

    def _run(self, node: GraphNode, mode: ExecutionMode) -> _Settled:
        """Worker body: check, then apply unless satisfied or dry-running."""
        atom = node.atom
        assert atom is not None
        started = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000

        try:
            outcome = atom.check()
        except Exception as exc:
            return _Settled(NodeState.FAILED, AtomCheckError(atom.describe(), exc), elapsed())
        if outcome == CheckOutcome.ALREADY_SATISFIED:
            return _Settled(NodeState.SATISFIED, duration_ms=elapsed())
        if mode == ExecutionMode.DRY_RUN:
            return _Settled(NodeState.CHANGED, duration_ms=elapsed())
        try:
            atom.apply()
        except Exception as exc:
            return _Settled(NodeState.FAILED, AtomApplyError(atom.describe(), exc), elapsed())
        return _Settled(NodeState.CHANGED, duration_ms=elapsed())

    # -- state transitions (coordinating thread only) ---------------------

    def _transition(self, node: GraphNode, state: NodeState) -> None:
        with self._lock:
            self._states[node.index] = state
        if state.terminal:
            log.debug(
                "node_settled",
                module=node.module,
                node=node.index,
                atom=node.describe(),
                state=str(state),
                reason=self._reasons.get(node.index),
            )
        if self._on_transition is not None:
            self._on_transition(node, state)

    def _settle_gate(
        self, node: GraphNode, plan: Plan, waiting: dict[int, int], ready: deque[int]
    ) -> None:
        if node.failure is not None:
            self._reasons[node.index] = node.failure
            self._settle(plan, node.index, _Settled(NodeState.FAILED), waiting, ready)
        elif node.skip_reason is not None:
            self._reasons[node.index] = node.skip_reason
            self._settle(plan, node.index, _Settled(NodeState.SKIPPED), waiting, ready)
        else:
            self._settle(plan, node.index, _Settled(NodeState.SATISFIED), waiting, ready)

    def _settle(
        self,
        plan: Plan,
        index: int,
        settled: _Settled,
        waiting: dict[int, int],
        ready: deque[int],
    ) -> None:
        graph = plan.graph
        node = graph.node(index)
        self._durations[index] = settled.duration_ms
        if settled.error is not None:
            self._errors[index] = settled.error
            log.warning(
                "atom_failed", module=node.module, atom=node.describe(), error=settled.error.message
            )
        self._transition(node, settled.state)

        if settled.state.succeeded:
            for successor in graph.successors(index):
                waiting[successor] -= 1
                if waiting[successor] == 0 and self._states[successor] == NodeState.PENDING:
                    self._transition(graph.node(successor), NodeState.READY)
                    ready.append(successor)
            return

        verb = "failed" if settled.state == NodeState.FAILED else "skipped"
        reason = f"dependency {verb}: {node.describe()}"
        for descendant in sorted(graph.descendants(index)):
            if self._states[descendant] == NodeState.PENDING:
                self._reasons[descendant] = reason
                self._transition(graph.node(descendant), NodeState.SKIPPED)

    # -- report -------------------------------------------------------------

    def _atom_outcome(self, node: GraphNode) -> AtomOutcome:
        error = self._errors.get(node.index)
        return AtomOutcome(
            node=node.index,
            kind=node.atom.kind if node.atom is not None else "gate",
            description=node.describe(),
            state=self._states[node.index],
            reason=self._reasons.get(node.index),
            error=error.message if error else None,
            error_code=error.code if error else None,
            duration_ms=round(self._durations.get(node.index, 0.0), 2),
        )

    def _module_outcome(self, plan: Plan, module: ModulePlan) -> ModuleOutcome:
        graph = plan.graph
        states = [self._states[i] for i in module.nodes]
        state = worst_state(states)

        actions: list[ActionOutcome] = []
        for action in module.actions:
            atoms = [self._atom_outcome(graph.node(i)) for i in action.nodes]
            if atoms:
                action_state = worst_state(a.state for a in atoms)
            elif action.skip_reason:
                action_state = NodeState.SKIPPED
            else:
                action_state = NodeState.SATISFIED
            actions.append(
                ActionOutcome(
                    index=action.index,
                    description=action.description,
                    state=action_state,
                    skip_reason=action.skip_reason,
                    atoms=atoms,
                )
            )

        reason = module.skip_reason or module.failure
        if reason is None:
            reason = next(
                (
                    self._reasons[i]
                    for i in module.nodes
                    if self._states[i] == state and i in self._reasons
                ),
                None,
            )
        error = next(
            (self._errors[i].message for i in module.nodes if i in self._errors), module.failure
        )
        return ModuleOutcome(
            name=module.name,
            state=state,
            reason=reason,
            error=error,
            actions=actions,
            duration_ms=round(sum(self._durations.get(i, 0.0) for i in module.nodes), 2),
        )

    def _report(self, plan: Plan, mode: ExecutionMode, duration_ms: float) -> ExecutionReport:
        modules = [self._module_outcome(plan, m) for m in plan.modules]
        atom_states = Counter(
            str(self._states[node.index]) for node in plan.graph if not node.is_gate
        )
        return ExecutionReport(
            mode=mode,
            modules=modules,
            totals=dict(Counter(str(m.state) for m in modules)),
            atom_totals=dict(atom_states),
            cancelled=self.cancelled,
            duration_ms=round(duration_ms, 2),
        )
