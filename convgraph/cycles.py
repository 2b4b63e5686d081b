"""
Cycle checks for conversation graphs.

Conversation graphs are expected to stay acyclic. `would_create_cycle` guards
edge insertion, and `detect_cycles` validates a whole adjacency list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from convgraph.types import AdjacencyList, NodeId

_VISITING = 1
_VISITED = 2
_EXHAUSTED = object()


@dataclass(frozen=True)
class CycleCheckResult:
    """
    Outcome of a whole-graph cycle check.

    Attributes:
        has_cycle: Whether any cycle was found.
        cycle_nodes: Nodes of the first cycle found, in path order.
    """

    has_cycle: bool
    cycle_nodes: Tuple[NodeId, ...] = ()


def would_create_cycle(adjacency: AdjacencyList, source: NodeId, target: NodeId) -> bool:
    """
    Check whether adding the edge source -> target would close a cycle.

    A cycle is closed when target can already reach source. Self-loops always
    count as cycles.
    """
    if source == target:
        return True

    visited: Set[NodeId] = set()
    stack: List[NodeId] = [target]
    while stack:
        current = stack.pop()
        if current == source:
            return True
        if current in visited:
            continue
        visited.add(current)
        for child in adjacency.get(current) or ():
            if child not in visited:
                stack.append(child)
    return False


def detect_cycles(adjacency: AdjacencyList) -> CycleCheckResult:
    """
    Validate that an adjacency list describes a DAG.

    Runs an iterative depth-first search from every node (keys first, then
    nodes only referenced as children) and stops at the first back edge.

    Returns:
        CycleCheckResult with the nodes of the cycle that was found.
    """
    state: Dict[NodeId, int] = {}

    roots: List[NodeId] = list(adjacency.keys())
    seen_roots = set(roots)
    for children in adjacency.values():
        for child in children or ():
            if child not in seen_roots:
                seen_roots.add(child)
                roots.append(child)

    for root in roots:
        if root in state:
            continue
        cycle = _dfs_find_cycle(adjacency, root, state)
        if cycle is not None:
            return CycleCheckResult(has_cycle=True, cycle_nodes=cycle)
    return CycleCheckResult(has_cycle=False)


def _dfs_find_cycle(
    adjacency: AdjacencyList,
    root: NodeId,
    state: Dict[NodeId, int],
) -> Optional[Tuple[NodeId, ...]]:
    path: List[NodeId] = [root]
    iterators: List[Iterator[NodeId]] = [iter(adjacency.get(root) or ())]
    state[root] = _VISITING

    while iterators:
        child = next(iterators[-1], _EXHAUSTED)
        if child is _EXHAUSTED:
            iterators.pop()
            state[path.pop()] = _VISITED
            continue
        child_state = state.get(child)
        if child_state == _VISITED:
            continue
        if child_state == _VISITING:
            start = path.index(child)
            return tuple(path[start:])
        state[child] = _VISITING
        path.append(child)
        iterators.append(iter(adjacency.get(child) or ()))
    return None
