"""
Topological ordering of a node subset of a conversation graph.

The adjacency list may describe a larger graph than the nodes being ordered.
Only edges whose endpoints are both in the requested node set constrain the
result; every other edge is ignored.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, Iterable, List, Sequence, Tuple

from convgraph.types import AdjacencyList, NodeId


class CycleDetected(ValueError):
    """
    Raised when the requested node set contains a cycle.

    Attributes:
        nodes: Nodes that could not be placed, in input order. This covers the
            nodes on the cycle and any node reachable only through it.
    """

    def __init__(self, nodes: Iterable[NodeId]) -> None:
        self.nodes: Tuple[NodeId, ...] = tuple(nodes)
        listed = ", ".join(repr(n) for n in self.nodes)
        super().__init__(f"Graph has at least one cycle among nodes: {listed}")


def _dedupe(nodes: Sequence[NodeId]) -> Dict[NodeId, int]:
    """Map each node to the position of its first occurrence."""
    position: Dict[NodeId, int] = {}
    for node in nodes:
        if node not in position:
            position[node] = len(position)
    return position


def topological_order(adjacency: AdjacencyList, nodes: Sequence[NodeId]) -> List[NodeId]:
    """
    Kahn topological sort restricted to `nodes`.

    Roots are taken in first-appearance order in `nodes`; children released by
    the same parent follow the parent's adjacency order. Identical inputs
    therefore always give identical output. Duplicate ids in `nodes` count
    once. A node with no adjacency entry has no outgoing edges.

    Args:
        adjacency: Mapping from a node to its direct children.
        nodes: Nodes to order.

    Returns:
        The deduplicated nodes, parents before children.

    Raises:
        CycleDetected: If the edges among `nodes` contain a cycle.
    """
    position = _dedupe(nodes)

    # In-set children are resolved once so each edge is visited twice at most.
    children: Dict[NodeId, List[NodeId]] = {}
    in_degree: Dict[NodeId, int] = {n: 0 for n in position}
    for n in position:
        kept = [c for c in (adjacency.get(n) or ()) if c in position]
        children[n] = kept
        for c in kept:
            in_degree[c] += 1

    ready: Deque[NodeId] = deque(n for n in position if in_degree[n] == 0)
    out: List[NodeId] = []
    while ready:
        n = ready.popleft()
        out.append(n)
        for c in children[n]:
            in_degree[c] -= 1
            if in_degree[c] == 0:
                ready.append(c)

    if len(out) != len(position):
        placed = set(out)
        raise CycleDetected(n for n in position if n not in placed)
    return out
