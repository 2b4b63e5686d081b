"""
Layered layout for conversation graphs.

Nodes are assigned to ranks by their longest distance from a root, ranks are
stacked along the layout direction, and nodes sharing a rank are placed side
by side around a common centre line.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from convgraph.adjacency import compute_adjacency_lists
from convgraph.toposort import topological_order
from convgraph.types import ConversationEdge, ConversationNode, NodeId, node_ids

LAYOUT_DIRECTIONS: Tuple[str, ...] = ("TB", "BT", "LR", "RL")


@dataclass(frozen=True)
class LayoutOptions:
    """
    Geometry of a layered layout.

    Attributes:
        direction: Rank direction: "TB" (top to bottom), "BT", "LR" or "RL".
        node_width: Width of each node box.
        node_height: Height of each node box.
        node_spacing: Gap between neighbouring nodes within a rank.
        rank_spacing: Gap between consecutive ranks.
    """

    direction: str = "TB"
    node_width: float = 300.0
    node_height: float = 150.0
    node_spacing: float = 50.0
    rank_spacing: float = 100.0

    def __post_init__(self) -> None:
        direction = str(self.direction).strip().upper()
        if direction not in LAYOUT_DIRECTIONS:
            raise ValueError(f"Unknown layout direction: {self.direction!r}")
        object.__setattr__(self, "direction", direction)
        if float(self.node_width) <= 0 or float(self.node_height) <= 0:
            raise ValueError("node_width and node_height must be positive")
        if float(self.node_spacing) < 0 or float(self.rank_spacing) < 0:
            raise ValueError("node_spacing and rank_spacing must be non-negative")


def compute_ranks(order: Sequence[NodeId], adjacency: Dict[NodeId, List[NodeId]]) -> Dict[NodeId, int]:
    """
    Longest-path rank of each node given a topological `order`.
    """
    members = set(order)
    rank: Dict[NodeId, int] = {n: 0 for n in order}
    for n in order:
        for child in adjacency.get(n, ()):
            if child in members and rank[child] < rank[n] + 1:
                rank[child] = rank[n] + 1
    return rank


def apply_layered_layout(
    nodes: Sequence[ConversationNode],
    edges: Sequence[ConversationEdge],
    options: Optional[LayoutOptions] = None,
) -> Dict[NodeId, Tuple[float, float]]:
    """
    Compute node centre positions for a layered drawing.

    Edges pointing at nodes that are not in `nodes` are ignored. The bounding
    box of all node boxes starts at (0, 0).

    Args:
        nodes: Nodes to place.
        edges: Conversation edges.
        options: Layout geometry; defaults to LayoutOptions().

    Returns:
        Mapping from node id to (x, y) centre coordinates.

    Raises:
        CycleDetected: If the edges among `nodes` contain a cycle.
    """
    opts = options or LayoutOptions()
    if not nodes:
        return {}

    adjacency, _ = compute_adjacency_lists(edges)
    order = topological_order(adjacency, node_ids(nodes))
    rank = compute_ranks(order, adjacency)

    by_rank: Dict[int, List[NodeId]] = {}
    for n in order:
        by_rank.setdefault(rank[n], []).append(n)

    horizontal = opts.direction in ("LR", "RL")
    along = float(opts.node_height if not horizontal else opts.node_width)
    across = float(opts.node_width if not horizontal else opts.node_height)
    rank_step = along + float(opts.rank_spacing)
    slot_step = across + float(opts.node_spacing)

    ids: List[NodeId] = []
    coords = np.zeros((len(order), 2), dtype=float)
    row = 0
    for r in sorted(by_rank):
        members = by_rank[r]
        offsets = (np.arange(len(members), dtype=float) - (len(members) - 1) / 2.0) * slot_step
        for node_id, offset in zip(members, offsets):
            ids.append(node_id)
            coords[row] = (offset, r * rank_step)
            row += 1

    if opts.direction in ("BT", "RL"):
        coords[:, 1] = -coords[:, 1]

    # Shift so the outermost box edges touch the axes.
    coords[:, 0] += across / 2.0 - coords[:, 0].min()
    coords[:, 1] += along / 2.0 - coords[:, 1].min()

    if horizontal:
        coords = coords[:, ::-1]

    return {node_id: (float(x), float(y)) for node_id, (x, y) in zip(ids, coords)}


def layout_nodes(
    nodes: Sequence[ConversationNode],
    edges: Sequence[ConversationEdge],
    options: Optional[LayoutOptions] = None,
) -> List[ConversationNode]:
    """
    Return copies of `nodes` with positions from apply_layered_layout().
    """
    positions = apply_layered_layout(nodes, edges, options)
    out: List[ConversationNode] = []
    for node in nodes:
        pos = positions.get(node.id)
        out.append(dataclasses.replace(node, position=pos) if pos is not None else node)
    return out
