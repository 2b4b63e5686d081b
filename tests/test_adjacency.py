"""
Unit tests for adjacency construction and cycle checks.
"""

from convgraph.adjacency import compute_adjacency_lists, get_children, get_parents
from convgraph.cycles import CycleCheckResult, detect_cycles, would_create_cycle
from convgraph.types import ConversationEdge


def _edge(edge_id: str, source: str, target: str, created_at: float) -> ConversationEdge:
    return ConversationEdge(
        id=edge_id, source=source, target=target, conversation_id="c1", created_at=created_at
    )


class TestComputeAdjacencyLists:
    """Test suite for compute_adjacency_lists."""

    def test_forward_and_reverse(self) -> None:
        """Build both directions from edges."""
        edges = [_edge("e1", "root", "a", 1), _edge("e2", "a", "b", 2)]
        adjacency, reverse = compute_adjacency_lists(edges)

        assert adjacency == {"root": ["a"], "a": ["b"]}
        assert reverse == {"a": ["root"], "b": ["a"]}

    def test_orders_by_creation_then_id(self) -> None:
        """Children are listed oldest first, ids break ties."""
        edges = [
            _edge("e3", "root", "late", 5),
            _edge("e2", "root", "tie-b", 1),
            _edge("e1", "root", "tie-a", 1),
        ]
        adjacency, _ = compute_adjacency_lists(edges)
        assert adjacency["root"] == ["tie-a", "tie-b", "late"]

    def test_empty(self) -> None:
        """No edges give empty mappings."""
        assert compute_adjacency_lists([]) == ({}, {})

    def test_get_children_and_parents(self) -> None:
        """Lookups return copies and default to empty."""
        adjacency, reverse = compute_adjacency_lists([_edge("e1", "a", "b", 1)])

        children = get_children("a", adjacency)
        children.append("z")
        assert adjacency["a"] == ["b"]
        assert get_children("missing", adjacency) == []
        assert get_parents("b", reverse) == ["a"]
        assert get_parents("a", reverse) == []


class TestWouldCreateCycle:
    """Test suite for would_create_cycle."""

    def test_self_loop(self) -> None:
        """Self-loops always close a cycle."""
        assert would_create_cycle({}, "a", "a") is True

    def test_back_edge(self) -> None:
        """An edge back to an ancestor closes a cycle."""
        adjacency = {"a": ["b"], "b": ["c"]}
        assert would_create_cycle(adjacency, "c", "a") is True

    def test_forward_edge(self) -> None:
        """A shortcut edge keeps the graph acyclic."""
        adjacency = {"a": ["b"], "b": ["c"]}
        assert would_create_cycle(adjacency, "a", "c") is False

    def test_unrelated_nodes(self) -> None:
        """Edges between unknown nodes are safe."""
        assert would_create_cycle({"a": ["b"]}, "x", "y") is False


class TestDetectCycles:
    """Test suite for detect_cycles."""

    def test_dag(self) -> None:
        """A DAG has no cycle."""
        adjacency = {"a": ["b", "c"], "b": ["d"], "c": ["d"]}
        result = detect_cycles(adjacency)

        assert isinstance(result, CycleCheckResult)
        assert result.has_cycle is False
        assert result.cycle_nodes == ()

    def test_reports_cycle_members(self) -> None:
        """Report only the nodes on the cycle, in path order."""
        adjacency = {"root": ["a"], "a": ["b"], "b": ["c"], "c": ["a"]}
        result = detect_cycles(adjacency)

        assert result.has_cycle is True
        assert result.cycle_nodes == ("a", "b", "c")

    def test_self_loop(self) -> None:
        """A self-loop is a one-node cycle."""
        result = detect_cycles({"a": ["a"]})
        assert result.has_cycle is True
        assert result.cycle_nodes == ("a",)

    def test_deep_chain_does_not_recurse(self) -> None:
        """Long chains are handled without recursion limits."""
        adjacency = {i: [i + 1] for i in range(5000)}
        assert detect_cycles(adjacency).has_cycle is False

    def test_empty(self) -> None:
        """An empty graph has no cycle."""
        assert detect_cycles({}).has_cycle is False
