"""Tests for compiling document graphs into proto graphs."""

import pytest

from nodecraft._compiler import compile_graph
from nodecraft._document import Connection, DocumentGraph, NodeId
from nodecraft._errors import CyclicGraph, DanglingReference, OutputNotFound, TypeMismatch
from nodecraft._proto import LiteralArgument, NodeArgument, ProtoGraph, ProtoNode
from nodecraft._registry import default_registry
from nodecraft._types import NUMBER, STRING


@pytest.fixture
def graph() -> DocumentGraph:
    return DocumentGraph(default_registry())


def _compile(graph: DocumentGraph, output: NodeId) -> ProtoGraph:
    return compile_graph(graph.snapshot(), default_registry(), output)


class TestConstantFolding:
    """Tests for compile-time evaluation of literal-only nodes."""

    def test_fully_folded_graph(self, graph: DocumentGraph) -> None:
        a = graph.add_node("value", inputs={"value": 2})
        b = graph.add_node("value", inputs={"value": 3})
        c = graph.add_node("add", inputs={"a": Connection(a), "b": Connection(b)})

        proto = _compile(graph, c)

        assert len(proto) == 1
        assert proto.output_node.folded
        assert proto.output_node.node_id == c
        assert proto.output_node.kind == "add"
        assert proto.output_node.constant == 5.0

    def test_folded_sources_become_literal_arguments(self, graph: DocumentGraph) -> None:
        a = graph.add_node("value", inputs={"value": 2})
        x = graph.add_node("input_value", inputs={"value": 1})
        c = graph.add_node("add", inputs={"a": Connection(a), "b": Connection(x)})

        proto = _compile(graph, c)

        assert proto.node_ids() == [x, c]
        assert proto.node_for(c).arguments == (LiteralArgument(2.0, NUMBER), NodeArgument(0))

    def test_input_values_are_never_folded(self, graph: DocumentGraph) -> None:
        x = graph.add_node("input_value", inputs={"value": 3})
        proto = _compile(graph, x)
        assert not proto.output_node.folded
        assert proto.output_node.computation is not None

    def test_failing_fold_is_left_for_runtime(self, graph: DocumentGraph) -> None:
        node = graph.add_node("divide", inputs={"a": 1, "b": 0})
        proto = _compile(graph, node)
        assert len(proto) == 1
        assert not proto.output_node.folded

    def test_folded_coercion(self, graph: DocumentGraph) -> None:
        a = graph.add_node("value", inputs={"value": 4})
        x = graph.add_node("input_value")
        text = graph.add_node("concat", inputs={"a": Connection(a), "b": Connection(x)})

        proto = _compile(graph, text)

        arguments = proto.node_for(text).arguments
        assert arguments[0] == LiteralArgument("4", STRING)
        assert isinstance(arguments[1], NodeArgument)
        assert arguments[1].coercion_name == "number->string"


class TestOrderingAndElimination:
    """Tests for reachability and deterministic ordering."""

    def test_unreachable_nodes_are_eliminated(self, graph: DocumentGraph) -> None:
        x = graph.add_node("input_value")
        y = graph.add_node("double", inputs={"x": Connection(x)})
        unused = graph.add_node("input_value")
        graph.add_node("double", inputs={"x": Connection(unused)})

        proto = _compile(graph, y)

        assert proto.node_ids() == [x, y]
        assert unused not in proto

    def test_dependencies_come_first(self, graph: DocumentGraph) -> None:
        out = graph.add_node("add")
        a = graph.add_node("input_value")
        b = graph.add_node("input_value")
        graph.set_input(out, "a", Connection(b))
        graph.set_input(out, "b", Connection(a))

        proto = _compile(graph, out)

        # Independent nodes keep document order; the output comes after both
        assert proto.node_ids() == [a, b, out]
        assert proto.output_node.arguments == (NodeArgument(1), NodeArgument(0))

    def test_compilation_is_deterministic(self, graph: DocumentGraph) -> None:
        x = graph.add_node("input_value")
        left = graph.add_node("double", inputs={"x": Connection(x)})
        right = graph.add_node("negate", inputs={"x": Connection(x)})
        out = graph.add_node("add", inputs={"a": Connection(left), "b": Connection(right)})

        first = _compile(graph, out)
        second = _compile(graph, out)

        assert first.signature() == second.signature()
        assert first.node_ids() == [x, left, right, out]

    def test_dependents(self, graph: DocumentGraph) -> None:
        x = graph.add_node("input_value")
        left = graph.add_node("double", inputs={"x": Connection(x)})
        right = graph.add_node("negate", inputs={"x": Connection(x)})
        out = graph.add_node("add", inputs={"a": Connection(left), "b": Connection(right)})

        proto = _compile(graph, out)

        assert proto.dependents(x) == frozenset({left, right, out})
        assert proto.dependents(left) == frozenset({out})
        assert proto.dependents(out) == frozenset()


class TestStructuralErrors:
    """Tests for graphs that cannot be compiled."""

    def test_output_not_found(self, graph: DocumentGraph) -> None:
        with pytest.raises(OutputNotFound):
            _compile(graph, NodeId(99))

    def test_cycle(self, graph: DocumentGraph) -> None:
        a = graph.add_node("double")
        b = graph.add_node("double", inputs={"x": Connection(a)})
        graph.set_input(a, "x", Connection(b))

        with pytest.raises(CyclicGraph) as exc_info:
            _compile(graph, b)

        assert set(exc_info.value.cycle) == {a, b}
        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]

    def test_self_loop(self, graph: DocumentGraph) -> None:
        a = graph.add_node("double")
        graph.set_input(a, "x", Connection(a))
        with pytest.raises(CyclicGraph):
            _compile(graph, a)

    def test_unreachable_cycle_does_not_fail(self, graph: DocumentGraph) -> None:
        a = graph.add_node("double")
        b = graph.add_node("double", inputs={"x": Connection(a)})
        graph.set_input(a, "x", Connection(b))
        out = graph.add_node("input_value")

        assert len(_compile(graph, out)) == 1

    def test_dangling_reference(self, graph: DocumentGraph) -> None:
        a = graph.add_node("input_value")
        b = graph.add_node("double", inputs={"x": Connection(a)})
        graph.remove_node(a)

        with pytest.raises(DanglingReference) as exc_info:
            _compile(graph, b)

        assert (exc_info.value.node, exc_info.value.slot, exc_info.value.source) == (b, "x", a)

    def test_dirty_graph_fails_before_output_check(self, graph: DocumentGraph) -> None:
        a = graph.add_node("input_value")
        graph.add_node("double", inputs={"x": Connection(a)})
        graph.remove_node(a)

        with pytest.raises(DanglingReference):
            _compile(graph, NodeId(99))

    def test_type_mismatch_in_snapshot(self, graph: DocumentGraph) -> None:
        a = graph.add_node("input_value")
        b = graph.add_node("double", inputs={"x": Connection(a)})
        # Changing the source's kind keeps the downstream connection
        graph.set_kind(a, "concat")

        with pytest.raises(TypeMismatch) as exc_info:
            _compile(graph, b)

        assert exc_info.value.node == b
        assert exc_info.value.expected == NUMBER
        assert exc_info.value.actual == STRING


class TestProtoGraphInvariants:
    """Tests for the invariants checked by ProtoGraph."""

    def test_forward_reference_rejected(self) -> None:
        node = ProtoNode(
            ordinal=0,
            node_id=NodeId(1),
            kind="double",
            input_types=(NUMBER,),
            output_type=NUMBER,
            arguments=(NodeArgument(0),),
        )
        with pytest.raises(ValueError, match="not before it"):
            ProtoGraph(nodes=(node,), output=0)

    def test_ordinal_must_match_position(self) -> None:
        node = ProtoNode(
            ordinal=1,
            node_id=NodeId(1),
            kind="value",
            input_types=(NUMBER,),
            output_type=NUMBER,
            arguments=(LiteralArgument(1.0, NUMBER),),
        )
        with pytest.raises(ValueError, match="ordinal"):
            ProtoGraph(nodes=(node,), output=0)

    def test_constant_of_runtime_node(self, graph: DocumentGraph) -> None:
        x = graph.add_node("input_value")
        with pytest.raises(ValueError, match="not a folded constant"):
            _ = _compile(graph, x).output_node.constant
