"""
Visualization tools for conversation graphs.

This module draws conversation graphs with matplotlib using the layered
layout, optionally highlighting a subset of nodes such as a context path.
"""

from __future__ import annotations

from typing import Collection, Dict, Optional, Sequence, Tuple

import matplotlib.pyplot as plt

from convgraph.layout import LayoutOptions, apply_layered_layout
from convgraph.network import ConversationGraphBuilder
from convgraph.types import ConversationEdge, ConversationNode, NodeId

MAX_PLOTTED_NODES = 250


class GraphVisualizer:
    """
    Visualizes conversation graphs.
    """

    @staticmethod
    def plot_conversation_graph(
        nodes: Sequence[ConversationNode],
        edges: Sequence[ConversationEdge],
        ax: Optional[plt.Axes] = None,
        *,
        options: Optional[LayoutOptions] = None,
        highlight: Optional[Collection[NodeId]] = None,
    ) -> plt.Axes:
        """
        Plot a conversation graph with a layered layout.

        Args:
            nodes: Conversation nodes.
            edges: Conversation edges (parent to child).
            ax: Matplotlib axes to plot on. If None, creates new figure.
            options: Layout geometry passed to apply_layered_layout().
            highlight: Node ids drawn in the highlight colour.

        Returns:
            Matplotlib axes object.

        Raises:
            ValueError: If nodes is empty.
            CycleDetected: If the conversation graph has a cycle.
        """
        import networkx as nx

        if not nodes:
            raise ValueError("nodes cannot be empty")

        if ax is None:
            _, ax = plt.subplots(figsize=(10, 8))

        if len(nodes) > MAX_PLOTTED_NODES:
            ax.text(
                0.5,
                0.5,
                f"{len(nodes)} nodes\n"
                f"Conversation graph is limited to ≤{MAX_PLOTTED_NODES} nodes by default.",
                ha="center",
                va="center",
                fontsize=12,
            )
            ax.set_title("Conversation Graph")
            ax.axis("off")
            return ax

        graph = ConversationGraphBuilder(nodes, edges).build()
        positions = apply_layered_layout(nodes, edges, options)
        # Screen coordinates grow downwards; matplotlib's y axis grows upwards.
        pos: Dict[NodeId, Tuple[float, float]] = {
            n: (x, -y) for n, (x, y) in positions.items()
        }

        marked = set(highlight or ())
        colors = ["#e67e22" if n in marked else "#3498db" for n in graph.nodes()]
        sizes = [300.0 + 60.0 * float(graph.nodes[n]["n_messages"]) for n in graph.nodes()]

        nx.draw_networkx_nodes(graph, pos, node_color=colors, node_size=sizes, ax=ax)
        nx.draw_networkx_edges(
            graph,
            pos,
            edge_color="#95a5a6",
            arrows=True,
            arrowsize=10,
            alpha=0.8,
            ax=ax,
        )
        labels = {n: str(graph.nodes[n]["label"]) for n in graph.nodes()}
        nx.draw_networkx_labels(graph, pos, labels=labels, font_size=8, ax=ax)

        ax.set_title(f"Conversation Graph ({graph.number_of_nodes()} nodes)")
        ax.axis("off")
        return ax
