"""
Core data model for branching conversation graphs.

A conversation is a directed graph of nodes. Each node holds an ordered run
of messages, and edges point from a parent node to the child that branched
from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

NodeId = Hashable
EdgeId = str

AdjacencyList = Mapping[NodeId, Sequence[NodeId]]
ReverseAdjacencyList = Mapping[NodeId, Sequence[NodeId]]

MESSAGE_ROLES: Tuple[str, ...] = ("user", "assistant", "system")
NODE_STATUSES: Tuple[str, ...] = ("idle", "streaming", "error", "cancelled")


@dataclass(frozen=True)
class Message:
    """
    One message inside a conversation node.

    Attributes:
        id: Message identifier.
        node_id: Identifier of the owning node.
        role: One of "user", "assistant" or "system".
        content: Message text.
        created_at: Creation timestamp used for ordering within a node.
        is_attachment_context: System message carrying attachment context.
        is_project_attachment_context: Attachment context scoped to a project.
    """

    id: str
    node_id: NodeId
    role: str
    content: str
    created_at: float
    is_streaming: bool = False
    model: Optional[str] = None
    token_count: Optional[int] = None
    is_attachment_context: bool = False
    is_custom_instruction: bool = False
    is_project_instruction: bool = False
    is_project_attachment_context: bool = False

    def __post_init__(self) -> None:
        if self.role not in MESSAGE_ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")


@dataclass(frozen=True)
class ConversationNode:
    """
    A node in the conversation graph.

    `parent_node_id` names the canonical parent on the active thread when a
    node has several parents.
    """

    id: NodeId
    conversation_id: str
    messages: Tuple[Message, ...] = ()
    created_at: float = 0.0
    updated_at: float = 0.0
    status: str = "idle"
    position: Tuple[float, float] = (0.0, 0.0)
    is_collapsed: bool = False
    label: Optional[str] = None
    parent_node_id: Optional[NodeId] = None
    is_reply: bool = False
    model: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status not in NODE_STATUSES:
            raise ValueError(f"Unknown node status: {self.status!r}")
        object.__setattr__(self, "messages", tuple(self.messages))
        x, y = self.position
        object.__setattr__(self, "position", (float(x), float(y)))


@dataclass(frozen=True)
class ConversationEdge:
    """
    Directed edge from a parent node (`source`) to a child node (`target`).
    """

    id: EdgeId
    source: NodeId
    target: NodeId
    conversation_id: str = ""
    created_at: float = 0.0


def nodes_by_id(nodes: Sequence[ConversationNode]) -> Dict[NodeId, ConversationNode]:
    """Index nodes by id; a later duplicate replaces an earlier one."""
    return {node.id: node for node in nodes}


def node_ids(nodes: Sequence[ConversationNode]) -> List[NodeId]:
    return [node.id for node in nodes]
