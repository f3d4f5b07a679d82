"""DependencyGraph — an index arena of nodes over a networkx DiGraph.

Nodes are atoms, plus one *gate* node for each module that lowers to no
atoms (empty, condition false, or every action skipped). Edges point from
prerequisite to dependent. The graph is built once by the planner and is
read-only during execution.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

import networkx as nx

if TYPE_CHECKING:
    from dhdctl.engine.atoms.base import Atom

_Graph: TypeAlias = nx.DiGraph


@dataclass(frozen=True)
class GraphNode:
    """One schedulable unit.

    A gate node has no atom; it settles immediately as SATISFIED, or as
    SKIPPED / FAILED when ``skip_reason`` / ``failure`` is preset.
    """

    index: int
    module: str
    atom: Atom | None = None
    action_index: int | None = None
    skip_reason: str | None = None
    failure: str | None = None

    @property
    def is_gate(self) -> bool:
        return self.atom is None

    def describe(self) -> str:
        if self.atom is not None:
            return self.atom.describe()
        return f"module {self.module}"


class DependencyGraph:
    def __init__(self) -> None:
        self._nodes: list[GraphNode] = []
        self._graph: _Graph = nx.DiGraph()

    def add_node(
        self,
        module: str,
        atom: Atom | None = None,
        *,
        action_index: int | None = None,
        skip_reason: str | None = None,
        failure: str | None = None,
    ) -> int:
        index = len(self._nodes)
        self._nodes.append(
            GraphNode(index, module, atom, action_index, skip_reason, failure)
        )
        self._graph.add_node(index)
        return index

    def add_edge(self, before: int, after: int) -> None:
        """Require node *before* to settle before node *after* may start."""
        if before == after:
            msg = f"self-edge on node {before}"
            raise ValueError(msg)
        self._graph.add_edge(before, after)

    def node(self, index: int) -> GraphNode:
        return self._nodes[index]

    @property
    def nodes(self) -> list[GraphNode]:
        return list(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self._nodes)

    def predecessors(self, index: int) -> list[int]:
        return sorted(self._graph.predecessors(index))

    def successors(self, index: int) -> list[int]:
        return sorted(self._graph.successors(index))

    def descendants(self, index: int) -> set[int]:
        return nx.descendants(self._graph, index)

    def in_degree(self, index: int) -> int:
        return self._graph.in_degree(index)

    def roots(self) -> list[int]:
        return [i for i in range(len(self._nodes)) if self._graph.in_degree(i) == 0]

    def has_edge(self, before: int, after: int) -> bool:
        return self._graph.has_edge(before, after)

    def edges(self) -> list[tuple[int, int]]:
        return sorted(self._graph.edges())

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self._graph)

    def topological_order(self) -> list[int]:
        return list(nx.lexicographical_topological_sort(self._graph))
