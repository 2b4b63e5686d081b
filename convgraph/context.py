"""
Context computation for branching conversations.

The context of a node is the message history a model sees when replying at
that node: synthetic instruction messages first, then the messages of every
ancestor node in topological order, then the node's own messages.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, FrozenSet, List, Mapping, Optional, Sequence, Set, Tuple

from convgraph.toposort import topological_order
from convgraph.types import (
    AdjacencyList,
    ConversationNode,
    Message,
    NodeId,
    ReverseAdjacencyList,
)

logger = logging.getLogger(__name__)

SYSTEM_NODE_ID = "system"


@dataclass(frozen=True)
class ContextSettings:
    """
    Per-conversation switches controlling what enters the context.

    Attributes:
        excluded_node_ids: Nodes whose messages are left out. The nodes still
            take part in ordering.
        include_system_prompt: Include the conversation system prompt.
        include_custom_instructions: Include the user profile and response style.
        include_project_instructions: Include project profile and response style.
        include_attachment_context: Include attachment context messages.
        include_project_attachment_context: Include project attachment context.
    """

    excluded_node_ids: FrozenSet[NodeId] = frozenset()
    include_system_prompt: bool = True
    include_custom_instructions: bool = True
    include_project_instructions: bool = True
    include_attachment_context: bool = True
    include_project_attachment_context: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "excluded_node_ids", frozenset(self.excluded_node_ids))

    @staticmethod
    def from_mapping(raw: Optional[Mapping[str, Any]]) -> "ContextSettings":
        """
        Build settings from a partial mapping.

        Only real booleans override a flag; absent, null or non-boolean
        values keep the default.
        """
        raw = raw or {}
        defaults = ContextSettings()
        flags = {}
        for name in (
            "include_system_prompt",
            "include_custom_instructions",
            "include_project_instructions",
            "include_attachment_context",
            "include_project_attachment_context",
        ):
            value = raw.get(name)
            flags[name] = value if isinstance(value, bool) else getattr(defaults, name)
        return ContextSettings(
            excluded_node_ids=frozenset(raw.get("excluded_node_ids") or ()),
            **flags,
        )


@dataclass(frozen=True)
class CustomInstructions:
    profile: Optional[str] = None
    response_style: Optional[str] = None
    project_profile: Optional[str] = None
    project_response_style: Optional[str] = None


@dataclass(frozen=True)
class ComputedContext:
    """
    Result of context computation.

    Attributes:
        nodes: Context nodes in topological order (excluded nodes included).
        messages: Flattened messages sent to the model.
        token_estimate: Rough token count of `messages`.
    """

    nodes: Tuple[ConversationNode, ...]
    messages: Tuple[Message, ...]
    token_estimate: int = 0


def get_ancestors(node_id: NodeId, reverse_adjacency: ReverseAdjacencyList) -> Set[NodeId]:
    """Collect every node that can reach `node_id`, excluding the node itself."""
    ancestors: Set[NodeId] = set()
    queue: Deque[NodeId] = deque([node_id])
    while queue:
        current = queue.popleft()
        for parent in reverse_adjacency.get(current) or ():
            if parent not in ancestors:
                ancestors.add(parent)
                queue.append(parent)
    ancestors.discard(node_id)
    return ancestors


def get_descendants(node_id: NodeId, adjacency: AdjacencyList) -> Set[NodeId]:
    """Collect every node reachable from `node_id`, excluding the node itself."""
    descendants: Set[NodeId] = set()
    queue: Deque[NodeId] = deque([node_id])
    while queue:
        current = queue.popleft()
        for child in adjacency.get(current) or ():
            if child not in descendants:
                descendants.add(child)
                queue.append(child)
    descendants.discard(node_id)
    return descendants


def get_path_to_node(
    node_id: NodeId,
    root_node_id: NodeId,
    reverse_adjacency: ReverseAdjacencyList,
) -> List[NodeId]:
    """
    Return the linear path from the root to `node_id` following first parents.

    The walk stops at the root or at a node without parents, so the first
    element is not guaranteed to be the root for detached nodes.
    """
    return _walk_to_root(
        node_id,
        root_node_id,
        lambda current: next(iter(reverse_adjacency.get(current) or ()), None),
    )


def get_primary_path(
    node_id: NodeId,
    root_node_id: NodeId,
    nodes_by_id: Mapping[NodeId, ConversationNode],
    reverse_adjacency: ReverseAdjacencyList,
) -> List[NodeId]:
    """
    Return the active thread from the root to `node_id`.

    At each step the node's `parent_node_id` is followed when it is one of its
    actual parents. Otherwise the oldest parent wins, by (created_at, id);
    parents missing from `nodes_by_id` sort after known ones.
    """

    def _choose(current: NodeId) -> Optional[NodeId]:
        parents = list(reverse_adjacency.get(current) or ())
        if not parents:
            return None
        node = nodes_by_id.get(current)
        if node is not None and node.parent_node_id in parents:
            return node.parent_node_id
        return min(parents, key=lambda p: _parent_sort_key(p, nodes_by_id))

    return _walk_to_root(node_id, root_node_id, _choose)


def _parent_sort_key(
    parent: NodeId, nodes_by_id: Mapping[NodeId, ConversationNode]
) -> Tuple[int, float, str]:
    node = nodes_by_id.get(parent)
    if node is None:
        return (1, 0.0, str(parent))
    return (0, float(node.created_at), str(parent))


def _walk_to_root(node_id: NodeId, root_node_id: NodeId, choose_parent) -> List[NodeId]:
    path: List[NodeId] = []
    seen: Set[NodeId] = set()
    current: Optional[NodeId] = node_id
    while current is not None and current not in seen:
        seen.add(current)
        path.append(current)
        if current == root_node_id:
            break
        current = choose_parent(current)
    path.reverse()
    return path


def estimate_tokens(messages: Sequence[Message]) -> int:
    """
    Estimate tokens as one per four characters, rounded up.
    """
    total_chars = sum(len(m.content) for m in messages)
    return int(math.ceil(total_chars / 4))


def _instruction_message(message_id: str, content: str, **flags: bool) -> Message:
    return Message(
        id=message_id,
        node_id=SYSTEM_NODE_ID,
        role="system",
        content=content,
        created_at=0,
        **flags,
    )


def _instruction_messages(
    system_prompt: Optional[str],
    instructions: CustomInstructions,
    settings: ContextSettings,
) -> List[Message]:
    out: List[Message] = []

    def _clean(text: Optional[str]) -> str:
        return (text or "").strip()

    if settings.include_custom_instructions:
        profile = _clean(instructions.profile)
        if profile:
            out.append(
                _instruction_message(
                    "custom-profile", f"User profile:\n{profile}", is_custom_instruction=True
                )
            )
        style = _clean(instructions.response_style)
        if style:
            out.append(
                _instruction_message(
                    "custom-response-style",
                    f"Response style:\n{style}",
                    is_custom_instruction=True,
                )
            )

    if settings.include_project_instructions:
        project_profile = _clean(instructions.project_profile)
        if project_profile:
            out.append(
                _instruction_message(
                    "project-profile",
                    f"Project context:\n{project_profile}",
                    is_project_instruction=True,
                )
            )
        project_style = _clean(instructions.project_response_style)
        if project_style:
            out.append(
                _instruction_message(
                    "project-response-style",
                    f"Project response style:\n{project_style}",
                    is_project_instruction=True,
                )
            )

    if settings.include_system_prompt and system_prompt:
        out.append(_instruction_message("system-prompt", system_prompt))
    return out


def _is_visible(message: Message, settings: ContextSettings) -> bool:
    # Node-level system messages only pass as attachment context.
    if message.role != "system":
        return True
    if not message.is_attachment_context:
        return False
    if message.is_project_attachment_context:
        return settings.include_project_attachment_context
    return settings.include_attachment_context


def compute_context(
    node_id: NodeId,
    nodes_by_id: Mapping[NodeId, ConversationNode],
    reverse_adjacency: ReverseAdjacencyList,
    adjacency: AdjacencyList,
    *,
    system_prompt: Optional[str] = None,
    custom_instructions: Optional[CustomInstructions] = None,
    settings: Optional[ContextSettings] = None,
    root_node_id: Optional[NodeId] = None,
) -> ComputedContext:
    """
    Compute the model context for a node.

    Args:
        node_id: Node the context is computed for.
        nodes_by_id: All known nodes keyed by id.
        reverse_adjacency: Mapping from a node to its parents.
        adjacency: Mapping from a node to its children.
        system_prompt: Conversation-level system prompt.
        custom_instructions: User and project instructions.
        settings: Inclusion switches; defaults include everything.
        root_node_id: When given, only the primary thread from this root is
            used instead of every ancestor.

    Returns:
        ComputedContext with ordered nodes, messages and a token estimate.

    Raises:
        CycleDetected: If the collected nodes contain a cycle.
    """
    settings = settings or ContextSettings()
    instructions = custom_instructions or CustomInstructions()

    if root_node_id is not None:
        scope = get_primary_path(node_id, root_node_id, nodes_by_id, reverse_adjacency)
    else:
        # BFS order fixes the tie-break order of the ancestors.
        scope = [node_id]
        seen = {node_id}
        queue: Deque[NodeId] = deque([node_id])
        while queue:
            current = queue.popleft()
            for parent in reverse_adjacency.get(current) or ():
                if parent not in seen:
                    seen.add(parent)
                    scope.append(parent)
                    queue.append(parent)

    ordered = topological_order(adjacency, scope)

    context_nodes: List[ConversationNode] = []
    for nid in ordered:
        node = nodes_by_id.get(nid)
        if node is None:
            logger.debug("Context node %r is not loaded; skipping", nid)
            continue
        context_nodes.append(node)

    messages = _instruction_messages(system_prompt, instructions, settings)
    for node in context_nodes:
        if node.id in settings.excluded_node_ids:
            continue
        for message in sorted(node.messages, key=lambda m: m.created_at):
            if _is_visible(message, settings):
                messages.append(message)

    return ComputedContext(
        nodes=tuple(context_nodes),
        messages=tuple(messages),
        token_estimate=estimate_tokens(messages),
    )
