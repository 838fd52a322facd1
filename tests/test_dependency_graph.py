"""Tests for DependencyGraph and graph algorithms."""

import pytest

from nodecraft._graph import DependencyGraph, find_cycle, topological_sort


class TestTopologicalSort:
    """Tests for the topological_sort algorithm."""

    def test_empty_graph(self) -> None:
        result = topological_sort({})
        assert result == []

    def test_single_node(self) -> None:
        result = topological_sort({"a": []})
        assert result == ["a"]

    def test_linear_chain(self) -> None:
        # a -> b -> c (c depends on b, b depends on a)
        result = topological_sort({"a": ["b"], "b": ["c"], "c": []})
        assert result == ["a", "b", "c"]

    def test_diamond_dependency(self) -> None:
        # a -> b, a -> c, b -> d, c -> d
        result = topological_sort({"a": ["b", "c"], "b": ["d"], "c": ["d"], "d": []})
        assert result[0] == "a"
        assert result[-1] == "d"
        assert result.index("b") < result.index("d")
        assert result.index("c") < result.index("d")

    def test_cycle_detection(self) -> None:
        with pytest.raises(ValueError, match="Cycle"):
            topological_sort({"a": ["b"], "b": ["a"]})

    def test_self_loop_detection(self) -> None:
        with pytest.raises(ValueError, match="Cycle"):
            topological_sort({"a": ["a"]})

    def test_ties_follow_insertion_order_without_key(self) -> None:
        result = topological_sort({3: [], 1: [], 2: []})
        assert result == [3, 1, 2]

    def test_ties_broken_by_key(self) -> None:
        result = topological_sort({3: [], 1: [], 2: []}, key=lambda n: n)
        assert result == [1, 2, 3]

    def test_key_never_overrides_dependencies(self) -> None:
        # 5 -> 1: 1 has the smallest key but must wait for 5
        result = topological_sort({5: [1], 1: [], 2: []}, key=lambda n: n)
        assert result == [2, 5, 1]

    def test_same_input_same_order(self) -> None:
        successors = {4: [7], 2: [7], 9: [4], 7: []}
        assert topological_sort(successors, key=int) == topological_sort(dict(successors), key=int)


class TestFindCycle:
    """Tests for the iterative cycle search."""

    def test_no_cycle(self) -> None:
        deps = {"c": ["b"], "b": ["a"], "a": []}
        assert find_cycle("c", lambda n: deps[n]) is None

    def test_two_node_cycle(self) -> None:
        deps = {"a": ["b"], "b": ["a"]}
        assert find_cycle("a", lambda n: deps[n]) == ["a", "b", "a"]

    def test_self_loop(self) -> None:
        deps = {"a": ["a"]}
        assert find_cycle("a", lambda n: deps[n]) == ["a", "a"]

    def test_cycle_not_through_start(self) -> None:
        # d depends on c, which sits on the cycle b -> c -> b
        deps = {"d": ["c"], "c": ["b"], "b": ["c"]}
        assert find_cycle("d", lambda n: deps[n]) == ["c", "b", "c"]

    def test_diamond_is_not_a_cycle(self) -> None:
        deps = {"d": ["b", "c"], "b": ["a"], "c": ["a"], "a": []}
        assert find_cycle("d", lambda n: deps[n]) is None

    def test_unreachable_cycle_is_ignored(self) -> None:
        deps = {"a": [], "x": ["y"], "y": ["x"]}
        assert find_cycle("a", lambda n: deps[n]) is None

    def test_deep_chain_does_not_recurse(self) -> None:
        depth = 10_000
        assert find_cycle(depth, lambda n: [n - 1] if n > 0 else []) is None


class TestDependencyGraphConstruction:
    """Tests for DependencyGraph construction."""

    def test_empty_graph(self) -> None:
        graph = DependencyGraph.from_edges([])
        assert graph.nodes == frozenset()
        assert len(graph) == 0

    def test_single_edge(self) -> None:
        graph = DependencyGraph.from_edges([(1, 2)])
        assert graph.nodes == frozenset({1, 2})
        assert len(graph) == 2

    def test_isolated_nodes(self) -> None:
        graph = DependencyGraph.from_edges([(1, 2)], nodes=[3])
        assert graph.nodes == frozenset({1, 2, 3})
        assert graph.predecessors(3) == frozenset()

    def test_contains(self) -> None:
        graph = DependencyGraph.from_edges([(1, 2)])
        assert 1 in graph
        assert 2 in graph
        assert 3 not in graph


class TestDependencyGraphQueries:
    """Tests for DependencyGraph query methods."""

    def test_predecessors(self) -> None:
        graph = DependencyGraph.from_edges([(1, 3), (2, 3)])
        assert graph.predecessors(3) == frozenset({1, 2})
        assert graph.predecessors(1) == frozenset()

    def test_predecessors_nonexistent_node(self) -> None:
        graph = DependencyGraph.from_edges([(1, 2)])
        assert graph.predecessors(99) == frozenset()

    def test_successors(self) -> None:
        graph = DependencyGraph.from_edges([(1, 2), (1, 3)])
        assert graph.successors(1) == frozenset({2, 3})
        assert graph.successors(2) == frozenset()


class TestDependencyGraphTransitiveQueries:
    """Tests for transitive dependency queries (ancestors/descendants)."""

    def test_ancestors_diamond(self) -> None:
        # 1 -> 2 -> 4, 1 -> 3 -> 4
        graph = DependencyGraph.from_edges([(1, 2), (1, 3), (2, 4), (3, 4)])
        assert graph.ancestors(4) == frozenset({1, 2, 3})
        assert graph.ancestors(1) == frozenset()

    def test_descendants_simple(self) -> None:
        graph = DependencyGraph.from_edges([(1, 2), (2, 3)])
        assert graph.descendants(1) == frozenset({2, 3})
        assert graph.descendants(3) == frozenset()

    def test_descendants_exclude_siblings(self) -> None:
        # 1 -> 2, 1 -> 3: invalidating 2 must not reach 3
        graph = DependencyGraph.from_edges([(1, 2), (1, 3)])
        assert graph.descendants(2) == frozenset()


class TestDependencyGraphTopologicalOrder:
    """Tests for topological ordering of the graph."""

    def test_topological_order_linear(self) -> None:
        graph = DependencyGraph.from_edges([(1, 2), (2, 3)])
        assert graph.topological_order() == [1, 2, 3]

    def test_topological_order_with_key(self) -> None:
        graph = DependencyGraph.from_edges([(5, 9), (2, 9)], nodes=[7])
        assert graph.topological_order(key=int) == [2, 5, 7, 9]
