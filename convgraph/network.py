"""
Network analysis tools for conversation graphs.

This module converts conversation nodes and edges into networkx graphs and
computes structural summaries such as branch points and thread depth.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from convgraph.toposort import topological_order
from convgraph.types import ConversationEdge, ConversationNode, NodeId, node_ids

try:
    import networkx as nx
except ImportError as exc:  # pragma: no cover
    raise ImportError(
        "Network analysis requires networkx. Install with: pip install networkx"
    ) from exc


class ConversationGraphBuilder:
    """
    Builds networkx graphs from conversation nodes and edges.

    Nodes keep their id; edges run from parent to child.
    """

    def __init__(
        self,
        nodes: Sequence[ConversationNode],
        edges: Sequence[ConversationEdge],
    ) -> None:
        self.nodes = list(nodes)
        self.edges = list(edges)

    def build(self) -> nx.DiGraph:
        """
        Build a directed graph of the conversation.

        Node attributes are "label", "n_messages" and "created_at". Edge
        attributes are "edge_id" and "created_at". Edges that reference nodes
        not in the conversation are skipped.

        Returns:
            Directed graph with one node per conversation node.
        """
        graph = nx.DiGraph()
        for node in self.nodes:
            graph.add_node(
                node.id,
                label=node.label if node.label else str(node.id),
                n_messages=len(node.messages),
                created_at=float(node.created_at),
            )

        for edge in sorted(self.edges, key=lambda e: (float(e.created_at), str(e.id))):
            if edge.source not in graph or edge.target not in graph:
                continue
            graph.add_edge(
                edge.source,
                edge.target,
                edge_id=edge.id,
                created_at=float(edge.created_at),
            )
        return graph


class ConversationNetworkAnalyzer:
    """
    Structural summaries of a conversation graph.
    """

    def __init__(
        self,
        nodes: Sequence[ConversationNode],
        edges: Sequence[ConversationEdge],
    ) -> None:
        self.nodes = list(nodes)
        self._graph = ConversationGraphBuilder(nodes, edges).build()

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph

    def _adjacency(self) -> Dict[NodeId, List[NodeId]]:
        return {n: list(self._graph.successors(n)) for n in self._graph.nodes()}

    def find_branch_points(self) -> List[NodeId]:
        """
        Nodes with more than one child, parents before children.

        Raises:
            CycleDetected: If the conversation graph has a cycle.
        """
        order = topological_order(self._adjacency(), node_ids(self.nodes))
        return [n for n in order if self._graph.out_degree(n) > 1]

    def compute_network_metrics(self) -> Dict[str, float]:
        """
        Compute overall conversation structure metrics.

        Returns:
            Dictionary with n_nodes, n_edges, n_roots, n_leaves,
            n_branch_points, max_depth (longest root-to-leaf path in edges,
            0.0 for cyclic graphs) and is_dag (1.0 or 0.0).
        """
        graph = self._graph
        is_dag = nx.is_directed_acyclic_graph(graph)
        metrics: Dict[str, float] = {
            "n_nodes": float(graph.number_of_nodes()),
            "n_edges": float(graph.number_of_edges()),
            "n_roots": float(sum(1 for n in graph.nodes() if graph.in_degree(n) == 0)),
            "n_leaves": float(sum(1 for n in graph.nodes() if graph.out_degree(n) == 0)),
            "n_branch_points": float(
                sum(1 for n in graph.nodes() if graph.out_degree(n) > 1)
            ),
            "is_dag": 1.0 if is_dag else 0.0,
        }
        if is_dag and graph.number_of_nodes() > 0:
            metrics["max_depth"] = float(nx.dag_longest_path_length(graph))
        else:
            metrics["max_depth"] = 0.0
        return metrics
