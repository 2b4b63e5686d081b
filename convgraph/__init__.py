"""
Branching conversation graphs.

The central piece is `topological_order`, a Kahn sort restricted to a node
subset of a larger graph. Adjacency construction, cycle checks, context
computation, layout and tool settings normalization are built around it.
"""

from convgraph.types import (
    ConversationEdge,
    ConversationNode,
    Message,
    node_ids,
    nodes_by_id,
)
from convgraph.toposort import CycleDetected, topological_order
from convgraph.adjacency import compute_adjacency_lists, get_children, get_parents
from convgraph.cycles import CycleCheckResult, detect_cycles, would_create_cycle
from convgraph.context import (
    ComputedContext,
    ContextSettings,
    CustomInstructions,
    compute_context,
    estimate_tokens,
    get_ancestors,
    get_descendants,
    get_path_to_node,
    get_primary_path,
)
from convgraph.layout import LayoutOptions, apply_layered_layout, layout_nodes
from convgraph.settings import (
    ToolSettings,
    get_default_tool_settings,
    is_sensitive_tool_name,
    normalize_tool_settings,
)

__version__ = "0.1.0"

__all__ = [
    "ConversationEdge",
    "ConversationNode",
    "Message",
    "node_ids",
    "nodes_by_id",
    "CycleDetected",
    "topological_order",
    "compute_adjacency_lists",
    "get_children",
    "get_parents",
    "CycleCheckResult",
    "detect_cycles",
    "would_create_cycle",
    "ComputedContext",
    "ContextSettings",
    "CustomInstructions",
    "compute_context",
    "estimate_tokens",
    "get_ancestors",
    "get_descendants",
    "get_path_to_node",
    "get_primary_path",
    "LayoutOptions",
    "apply_layered_layout",
    "layout_nodes",
    "ToolSettings",
    "get_default_tool_settings",
    "is_sensitive_tool_name",
    "normalize_tool_settings",
]
