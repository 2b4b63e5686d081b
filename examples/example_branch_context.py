#!/usr/bin/env python3
"""
Example: Context Ordering in a Branching Conversation

The following is demonstrated:
- Building adjacency lists from conversation edges
- Guarding edge insertion against cycles
- Ordering a node subset topologically
- Computing the model context for a branch, with and without a primary thread
- Laying out and plotting the conversation graph
"""

import sys
import os

# The parent directory is added to the import path.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import matplotlib

matplotlib.use("Agg")

from convgraph import (
    ConversationEdge,
    ConversationNode,
    CycleDetected,
    Message,
    compute_adjacency_lists,
    compute_context,
    layout_nodes,
    node_ids,
    nodes_by_id,
    topological_order,
    would_create_cycle,
)
from convgraph.network import ConversationNetworkAnalyzer
from convgraph.visualization import GraphVisualizer


def make_node(node_id, text, created_at, parent=None):
    message = Message(
        id=f"m-{node_id}", node_id=node_id, role="user", content=text, created_at=created_at
    )
    return ConversationNode(
        id=node_id,
        conversation_id="demo",
        messages=(message,),
        created_at=created_at,
        parent_node_id=parent,
    )


def main():
    print("=" * 60)
    print("Example: Context Ordering in a Branching Conversation")
    print("=" * 60)

    # A root question branches into two answers that are later merged.
    nodes = [
        make_node("root", "How do I sort a DAG?", 1),
        make_node("kahn", "Use Kahn's algorithm.", 2, parent="root"),
        make_node("dfs", "Use depth-first search.", 3, parent="root"),
        make_node("merge", "Compare both approaches.", 4, parent="kahn"),
    ]
    edges = [
        ConversationEdge(id="e1", source="root", target="kahn", created_at=1),
        ConversationEdge(id="e2", source="root", target="dfs", created_at=2),
        ConversationEdge(id="e3", source="kahn", target="merge", created_at=3),
        ConversationEdge(id="e4", source="dfs", target="merge", created_at=4),
    ]
    adjacency, reverse = compute_adjacency_lists(edges)
    by_id = nodes_by_id(nodes)

    print(f"\nAdjacency: {adjacency}")
    print(f"Adding merge -> root closes a cycle: {would_create_cycle(adjacency, 'merge', 'root')}")

    # Only edges between requested nodes matter.
    subset = ["merge", "dfs", "root"]
    print(f"\nOrder of {subset}: {topological_order(adjacency, subset)}")

    try:
        topological_order({"a": ["b"], "b": ["a"]}, ["a", "b"])
    except CycleDetected as exc:
        print(f"Cycle reported for nodes: {list(exc.nodes)}")

    full = compute_context("merge", by_id, reverse, adjacency, system_prompt="Be concise.")
    print("\nFull ancestry context:")
    for message in full.messages:
        print(f"  [{message.role}] {message.content}")
    print(f"  ~{full.token_estimate} tokens")

    thread = compute_context("merge", by_id, reverse, adjacency, root_node_id="root")
    print("\nPrimary thread context:")
    for message in thread.messages:
        print(f"  [{message.role}] {message.content}")

    metrics = ConversationNetworkAnalyzer(nodes, edges).compute_network_metrics()
    print(f"\nGraph metrics: {metrics}")

    for node in layout_nodes(nodes, edges):
        print(f"  {node.id}: {node.position}")

    ax = GraphVisualizer.plot_conversation_graph(
        nodes, edges, highlight=node_ids(thread.nodes)
    )
    ax.figure.savefig("branch_context.png", dpi=100, bbox_inches="tight")
    print("\nSaved plot to branch_context.png")


if __name__ == "__main__":
    main()
