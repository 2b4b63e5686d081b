"""
Adjacency list construction for conversation graphs.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from convgraph.types import AdjacencyList, ConversationEdge, NodeId, ReverseAdjacencyList


def compute_adjacency_lists(
    edges: Sequence[ConversationEdge],
) -> Tuple[Dict[NodeId, List[NodeId]], Dict[NodeId, List[NodeId]]]:
    """
    Build forward and reverse adjacency lists from edges.

    Edges are applied in (created_at, id) order so children and parents are
    listed oldest first regardless of the order edges were loaded in.

    Args:
        edges: Conversation edges (source is the parent, target the child).

    Returns:
        Tuple of (adjacency, reverse_adjacency) where adjacency maps a node to
        its children and reverse_adjacency maps a node to its parents.
    """
    adjacency: Dict[NodeId, List[NodeId]] = {}
    reverse: Dict[NodeId, List[NodeId]] = {}
    for edge in sorted(edges, key=lambda e: (float(e.created_at), str(e.id))):
        adjacency.setdefault(edge.source, []).append(edge.target)
        reverse.setdefault(edge.target, []).append(edge.source)
    return adjacency, reverse


def get_children(node_id: NodeId, adjacency: AdjacencyList) -> List[NodeId]:
    return list(adjacency.get(node_id) or ())


def get_parents(node_id: NodeId, reverse_adjacency: ReverseAdjacencyList) -> List[NodeId]:
    return list(reverse_adjacency.get(node_id) or ())
