"""
Unit tests for context computation.

Small conversation trees are built by hand to check node ordering, message
filtering, instruction messages and primary thread selection.
"""

from typing import Dict, Optional

import pytest

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
from convgraph.toposort import CycleDetected
from convgraph.types import ConversationNode, Message


def _message(message_id: str, node_id: str, content: str, **kwargs) -> Message:
    kwargs.setdefault("role", "user")
    kwargs.setdefault("created_at", 1)
    return Message(id=message_id, node_id=node_id, content=content, **kwargs)


def _node(
    node_id: str,
    content: str,
    created_at: float = 1,
    parent_node_id: Optional[str] = None,
) -> ConversationNode:
    return ConversationNode(
        id=node_id,
        conversation_id="c1",
        messages=(_message(f"m-{node_id}", node_id, content),),
        created_at=created_at,
        updated_at=created_at,
        parent_node_id=parent_node_id,
    )


def _contents(context: ComputedContext):
    return [m.content for m in context.messages]


class TestComputeContext:
    """Test suite for compute_context."""

    def test_includes_attachment_context_system_messages(self) -> None:
        """Node system messages pass only as attachment context."""
        node = ConversationNode(
            id="n1",
            conversation_id="c1",
            messages=(
                _message("m1", "n1", "system prompt", role="system"),
                _message(
                    "m2", "n1", "attachment summary", role="system", is_attachment_context=True
                ),
                _message("m3", "n1", "question"),
            ),
        )
        context = compute_context("n1", {"n1": node}, {}, {})

        assert "attachment summary" in _contents(context)
        assert "system prompt" not in _contents(context)

    def test_excluded_nodes(self) -> None:
        """Excluded nodes keep their place but contribute no messages."""
        nodes = {"n1": _node("n1", "first"), "n2": _node("n2", "second", created_at=2)}
        context = compute_context(
            "n2",
            nodes,
            {"n2": ["n1"]},
            {"n1": ["n2"]},
            settings=ContextSettings(excluded_node_ids={"n1"}),
        )

        assert _contents(context) == ["second"]
        assert [n.id for n in context.nodes] == ["n1", "n2"]

    def test_attachment_flags(self) -> None:
        """Attachment and project attachment context are gated separately."""
        node = ConversationNode(
            id="n1",
            conversation_id="c1",
            messages=(
                _message(
                    "m1", "n1", "attachment", role="system", is_attachment_context=True
                ),
                _message(
                    "m2",
                    "n1",
                    "project attachment",
                    role="system",
                    is_attachment_context=True,
                    is_project_attachment_context=True,
                ),
                _message("m3", "n1", "hello"),
            ),
        )
        settings = ContextSettings(
            include_attachment_context=False, include_project_attachment_context=True
        )
        contents = _contents(compute_context("n1", {"n1": node}, {}, {}, settings=settings))

        assert "attachment" not in contents
        assert "project attachment" in contents

    def test_ancestors_in_topological_order(self) -> None:
        """Every ancestor contributes, parents before children."""
        nodes: Dict[str, ConversationNode] = {
            "root": _node("root", "root", 1),
            "a": _node("a", "thread-a", 2),
            "b": _node("b", "side", 3),
            "target": _node("target", "target", 4),
        }
        adjacency = {"root": ["a", "b"], "a": ["target"], "b": ["target"]}
        reverse = {"a": ["root"], "b": ["root"], "target": ["a", "b"]}

        context = compute_context("target", nodes, reverse, adjacency)
        order = [n.id for n in context.nodes]

        assert order[0] == "root"
        assert order[-1] == "target"
        assert set(order) == {"root", "a", "b", "target"}

    def test_primary_thread_path(self) -> None:
        """With a root, only the canonical thread is used."""
        nodes = {
            "root": _node("root", "root", 1),
            "a": _node("a", "thread-a", 2, parent_node_id="root"),
            "b": _node("b", "side-parent", 3, parent_node_id="root"),
            "target": _node("target", "target", 4, parent_node_id="a"),
        }
        adjacency = {"root": ["a", "b"], "a": ["target"], "b": ["target"]}
        reverse = {"a": ["root"], "b": ["root"], "target": ["a", "b"]}

        context = compute_context("target", nodes, reverse, adjacency, root_node_id="root")

        assert _contents(context) == ["root", "thread-a", "target"]

    def test_primary_path_falls_back_to_oldest_parent(self) -> None:
        """Without parent_node_id the oldest parent is followed."""
        nodes = {
            "root": _node("root", "root", 1),
            "older": _node("older", "older-parent", 2),
            "newer": _node("newer", "newer-parent", 10),
            "target": _node("target", "target", 11),
        }
        adjacency = {"root": ["older", "newer"], "older": ["target"], "newer": ["target"]}
        reverse = {"older": ["root"], "newer": ["root"], "target": ["newer", "older"]}

        contents = _contents(
            compute_context("target", nodes, reverse, adjacency, root_node_id="root")
        )

        assert "older-parent" in contents
        assert "newer-parent" not in contents

    def test_instruction_messages_first(self) -> None:
        """Instructions and the system prompt precede node messages."""
        nodes = {"n1": _node("n1", "hello")}
        instructions = CustomInstructions(
            profile="  engineer ",
            response_style="terse",
            project_profile="graph library",
            project_response_style="",
        )
        context = compute_context(
            "n1", nodes, {}, {}, system_prompt="be helpful", custom_instructions=instructions
        )

        assert _contents(context) == [
            "User profile:\nengineer",
            "Response style:\nterse",
            "Project context:\ngraph library",
            "be helpful",
            "hello",
        ]
        assert context.messages[0].is_custom_instruction is True
        assert context.messages[2].is_project_instruction is True
        assert all(m.role == "system" for m in context.messages[:4])

    def test_instruction_flags(self) -> None:
        """Disabled instruction groups are left out."""
        nodes = {"n1": _node("n1", "hello")}
        settings = ContextSettings(
            include_system_prompt=False,
            include_custom_instructions=False,
            include_project_instructions=True,
        )
        context = compute_context(
            "n1",
            nodes,
            {},
            {},
            system_prompt="be helpful",
            custom_instructions=CustomInstructions(profile="p", project_profile="proj"),
            settings=settings,
        )
        assert _contents(context) == ["Project context:\nproj", "hello"]

    def test_messages_sorted_within_node(self) -> None:
        """Messages inside a node are ordered by creation time."""
        node = ConversationNode(
            id="n1",
            conversation_id="c1",
            messages=(
                _message("m2", "n1", "answer", role="assistant", created_at=5),
                _message("m1", "n1", "question", created_at=2),
            ),
        )
        assert _contents(compute_context("n1", {"n1": node}, {}, {})) == ["question", "answer"]

    def test_missing_nodes_are_skipped(self) -> None:
        """Ancestors that are not loaded are left out of the context."""
        nodes = {"child": _node("child", "child")}
        context = compute_context("child", nodes, {"child": ["ghost"]}, {"ghost": ["child"]})

        assert [n.id for n in context.nodes] == ["child"]

    def test_token_estimate(self) -> None:
        """The estimate rounds total characters over four upwards."""
        nodes = {"n1": _node("n1", "x" * 9)}
        context = compute_context("n1", nodes, {}, {})
        assert context.token_estimate == 3

    def test_cycle_propagates(self) -> None:
        """Cyclic ancestry raises CycleDetected."""
        nodes = {"a": _node("a", "a"), "b": _node("b", "b")}
        with pytest.raises(CycleDetected):
            compute_context("a", nodes, {"a": ["b"], "b": ["a"]}, {"a": ["b"], "b": ["a"]})


class TestContextSettings:
    """Test suite for ContextSettings."""

    def test_from_mapping_defaults(self) -> None:
        """Missing and null keys keep defaults."""
        settings = ContextSettings.from_mapping(
            {"include_system_prompt": None, "excluded_node_ids": ["a", "a"]}
        )
        assert settings.include_system_prompt is True
        assert settings.excluded_node_ids == frozenset({"a"})

    def test_from_mapping_overrides(self) -> None:
        """Provided flags win."""
        settings = ContextSettings.from_mapping({"include_attachment_context": False})
        assert settings.include_attachment_context is False
        assert ContextSettings.from_mapping(None) == ContextSettings()

    def test_from_mapping_ignores_non_boolean_flags(self) -> None:
        """Strings and numbers do not override flags."""
        settings = ContextSettings.from_mapping(
            {"include_system_prompt": "false", "include_custom_instructions": 0}
        )
        assert settings.include_system_prompt is True
        assert settings.include_custom_instructions is True


class TestGraphWalks:
    """Test suite for ancestor, descendant and path helpers."""

    def test_ancestors_and_descendants(self) -> None:
        """Walks exclude the start node."""
        adjacency = {"r": ["a", "b"], "a": ["c"], "b": ["c"]}
        reverse = {"a": ["r"], "b": ["r"], "c": ["a", "b"]}

        assert get_ancestors("c", reverse) == {"a", "b", "r"}
        assert get_descendants("r", adjacency) == {"a", "b", "c"}
        assert get_ancestors("r", reverse) == set()

    def test_path_to_node_follows_first_parent(self) -> None:
        """The path follows the first listed parent."""
        reverse = {"a": ["r"], "b": ["r"], "c": ["b", "a"]}
        assert get_path_to_node("c", "r", reverse) == ["r", "b", "c"]

    def test_path_stops_at_detached_node(self) -> None:
        """A node without parents ends the walk."""
        assert get_path_to_node("x", "r", {}) == ["x"]

    def test_path_guards_against_cycles(self) -> None:
        """Revisiting a node stops the walk."""
        reverse = {"a": ["b"], "b": ["a"]}
        assert get_path_to_node("a", "r", reverse) == ["b", "a"]

    def test_primary_path_ignores_foreign_parent_node_id(self) -> None:
        """A parent_node_id that is not an actual parent is ignored."""
        nodes = {
            "r": _node("r", "r", 1),
            "p1": _node("p1", "p1", 5),
            "p2": _node("p2", "p2", 2),
            "t": _node("t", "t", 9, parent_node_id="elsewhere"),
        }
        reverse = {"p1": ["r"], "p2": ["r"], "t": ["p1", "p2"]}
        assert get_primary_path("t", "r", nodes, reverse) == ["r", "p2", "t"]


def test_estimate_tokens_empty() -> None:
    assert estimate_tokens([]) == 0
