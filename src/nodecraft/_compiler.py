"""Compilation of document graph snapshots into proto graphs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ._document import Connection, Literal
from ._errors import (
    COMPUTATION_ERRORS,
    CyclicGraph,
    DanglingReference,
    OutputNotFound,
    TypeMismatch,
)
from ._graph import DependencyGraph, find_cycle
from ._proto import LiteralArgument, NodeArgument, ProtoGraph, ProtoNode
from ._registry import OUTPUT_NAME
from ._types import conforms, default_value, infer_type, normalize

if TYPE_CHECKING:
    from ._document import GraphSnapshot, NodeId, NodeView
    from ._proto import Argument
    from ._registry import InputSignature, NodeDescriptor, NodeRegistry
    from ._types import DataType

logger = logging.getLogger(__name__)

_NOT_FOLDED: Any = object()


def _sources(snapshot: GraphSnapshot, node_id: NodeId) -> list[NodeId]:
    view = snapshot.nodes[node_id]
    sources: list[NodeId] = []
    for slot, connection in view.connections():
        if connection.source not in snapshot.nodes:
            raise DanglingReference(node_id, slot, connection.source)
        sources.append(connection.source)
    return sources


def _reachable(snapshot: GraphSnapshot, output: NodeId) -> DependencyGraph[NodeId]:
    """Collect the nodes the output transitively depends on.

    Raises:
        CyclicGraph: If a cycle is reachable from the output.

    """
    cycle = find_cycle(output, lambda node_id: _sources(snapshot, node_id))
    if cycle is not None:
        raise CyclicGraph(cycle)

    visited: set[NodeId] = set()
    edges: list[tuple[NodeId, NodeId]] = []
    stack = [output]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        for source in _sources(snapshot, current):
            edges.append((source, current))
            stack.append(source)
    return DependencyGraph.from_edges(edges, nodes=visited)


def _literal_argument(
    node_id: NodeId,
    signature: InputSignature,
    value: Any,
    registry: NodeRegistry,
) -> LiteralArgument:
    expected = signature.type
    if conforms(value, expected):
        return LiteralArgument(normalize(value, expected), expected)
    actual = infer_type(value)
    coercion = registry.coercion(actual, expected) if actual is not None else None
    if coercion is None:
        raise TypeMismatch(
            expected,
            actual if actual is not None else type(value).__name__,
            node=node_id,
            slot=signature.name,
        )
    return LiteralArgument(normalize(coercion(normalize(value, actual)), expected), expected)


def _resolve_arguments(
    view: NodeView,
    descriptor: NodeDescriptor,
    snapshot: GraphSnapshot,
    registry: NodeRegistry,
    constants: dict[NodeId, Any],
    ordinals: dict[NodeId, int],
) -> tuple[Argument, ...]:
    """Resolve each input binding into a literal or a back-reference.

    Connections from folded nodes become literals; all other connections
    become references to already-emitted proto-nodes.
    """
    arguments: list[Argument] = []
    for signature in descriptor.inputs:
        binding = view.inputs.get(signature.name)
        if binding is None:
            arguments.append(LiteralArgument(normalize(default_value(signature.type), signature.type), signature.type))
            continue
        if isinstance(binding, Literal):
            arguments.append(_literal_argument(view.id, signature, binding.value, registry))
            continue

        assert isinstance(binding, Connection)  # noqa: S101
        if binding.output != OUTPUT_NAME:
            raise TypeMismatch(signature.type, f"unknown output '{binding.output}'", node=view.id, slot=signature.name)
        source_type = registry.lookup(snapshot.nodes[binding.source].kind).output_type
        coercion = None
        if source_type != signature.type:
            coercion = registry.coercion(source_type, signature.type)
            if coercion is None:
                raise TypeMismatch(signature.type, source_type, node=view.id, slot=signature.name)

        if binding.source in constants:
            value = constants[binding.source]
            if coercion is not None:
                value = normalize(coercion(value), signature.type)
            arguments.append(LiteralArgument(value, signature.type))
        else:
            arguments.append(
                NodeArgument(
                    ordinal=ordinals[binding.source],
                    coercion=coercion,
                    coercion_name=None if coercion is None else str(coercion),
                ),
            )
    return tuple(arguments)


def _try_fold(view: NodeView, descriptor: NodeDescriptor, computation: Any, arguments: tuple[Argument, ...]) -> Any:
    """Evaluate a literal-only node at compile time.

    Returns:
        The folded value, or the ``_NOT_FOLDED`` sentinel if the node cannot
        be folded.

    """
    if not descriptor.foldable or not all(isinstance(arg, LiteralArgument) for arg in arguments):
        return _NOT_FOLDED
    try:
        value = computation(*(arg.value for arg in arguments))  # type: ignore[union-attr]
    except COMPUTATION_ERRORS as e:
        logger.debug("Not folding node %d (%s): %s", view.id, view.kind, e)
        return _NOT_FOLDED
    if not conforms(value, descriptor.output_type):
        logger.debug("Not folding node %d (%s): result does not match %s", view.id, view.kind, descriptor.output_type)
        return _NOT_FOLDED
    return normalize(value, descriptor.output_type)


def _folded_node(ordinal: int, view: NodeView, output_type: DataType, value: Any) -> ProtoNode:
    return ProtoNode(
        ordinal=ordinal,
        node_id=view.id,
        kind=view.kind,
        input_types=(output_type,),
        output_type=output_type,
        arguments=(LiteralArgument(value, output_type),),
        revision=view.revision,
        computation=None,
        folded=True,
    )


def compile_graph(snapshot: GraphSnapshot, registry: NodeRegistry, output: NodeId) -> ProtoGraph:
    """Compile a document graph snapshot for one requested output.

    The compiler:
    1. Rejects dirty snapshots (dangling references) and missing outputs
    2. Collects the nodes reachable backward from the output, rejecting cycles
    3. Checks every edge's type, attaching registered coercions where needed
    4. Folds nodes whose inputs are all literals into constants
    5. Emits the remaining nodes in topological order, breaking ties by
       document insertion order

    Args:
        snapshot: Immutable snapshot of the document graph.
        registry: The node registry used to resolve kinds and coercions.
        output: Identity of the node whose value is requested.

    Returns:
        The compiled ProtoGraph.

    Raises:
        DanglingReference: If the snapshot has dangling inputs.
        OutputNotFound: If ``output`` is not in the snapshot.
        CyclicGraph: If a cycle is reachable from the output.
        UnknownNodeKind: If a reachable node has an unregistered kind.
        TypeMismatch: If an edge or literal does not match its slot type.

    Example:
        >>> graph = DocumentGraph(default_registry())
        >>> a = graph.add_node("value", inputs={"value": 2})
        >>> b = graph.add_node("value", inputs={"value": 3})
        >>> c = graph.add_node("add", inputs={"a": Connection(a), "b": Connection(b)})
        >>> proto = compile_graph(graph.snapshot(), default_registry(), c)
        >>> len(proto), proto.output_node.constant
        (1, 5.0)

    """
    if snapshot.is_dirty:
        first = snapshot.dangling[0]
        raise DanglingReference(first.node, first.slot, first.source)
    if output not in snapshot.nodes:
        raise OutputNotFound(output)

    dependencies = _reachable(snapshot, output)
    order = dependencies.topological_order(key=int)
    logger.debug("Compiling output %d: %d of %d nodes reachable", output, len(order), len(snapshot))

    constants: dict[NodeId, Any] = {}
    ordinals: dict[NodeId, int] = {}
    nodes: list[ProtoNode] = []

    for node_id in order:
        view = snapshot.nodes[node_id]
        descriptor = registry.lookup(view.kind)
        arguments = _resolve_arguments(view, descriptor, snapshot, registry, constants, ordinals)
        input_types = descriptor.input_types()
        computation = descriptor.build(input_types)

        folded = _try_fold(view, descriptor, computation, arguments)
        if folded is not _NOT_FOLDED:
            constants[node_id] = folded
            continue

        ordinals[node_id] = len(nodes)
        nodes.append(
            ProtoNode(
                ordinal=len(nodes),
                node_id=node_id,
                kind=view.kind,
                input_types=input_types,
                output_type=descriptor.output_type,
                arguments=arguments,
                revision=view.revision,
                computation=computation,
            ),
        )

    if output in constants:
        output_type = registry.lookup(snapshot.nodes[output].kind).output_type
        ordinals[output] = len(nodes)
        nodes.append(_folded_node(len(nodes), snapshot.nodes[output], output_type, constants[output]))

    logger.debug("Compiled %d proto-nodes (%d folded constants)", len(nodes), len(constants))
    return ProtoGraph(nodes=tuple(nodes), output=ordinals[output], source_version=snapshot.version)
