"""The compiled, immutable executable form of a document graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ._graph import DependencyGraph

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._document import NodeId
    from ._registry import Coercion, Computation
    from ._types import DataType


@dataclass(frozen=True, slots=True)
class LiteralArgument:
    """An argument inlined as a constant of its slot's type."""

    value: Any
    type: DataType


@dataclass(frozen=True, slots=True)
class NodeArgument:
    """An argument taken from the output of an earlier proto-node.

    Attributes:
        ordinal: Position of the producing proto-node. Always smaller than the
            position of the consuming proto-node.
        coercion: Conversion applied to the produced value, when the producer's
            output type differs from the slot type.

    """

    ordinal: int
    coercion: Coercion | None = field(default=None, compare=False)
    coercion_name: str | None = None


type Argument = LiteralArgument | NodeArgument


@dataclass(frozen=True, slots=True)
class ProtoNode:
    """A single step of a compiled graph.

    Attributes:
        ordinal: Position in the proto graph.
        node_id: Identity of the document node this step was compiled from.
        kind: Resolved node kind.
        input_types: Declared types of the arguments, in order.
        output_type: Type of the produced value.
        arguments: Argument sources, in signature order.
        revision: Document revision of the node, used as cache generation.
        computation: The runtime computation built for the concrete types.
        folded: True if this step is a constant produced at compile time. A
            folded step has a single literal argument holding its value.

    """

    ordinal: int
    node_id: NodeId
    kind: str
    input_types: tuple[DataType, ...]
    output_type: DataType
    arguments: tuple[Argument, ...]
    revision: int = 0
    computation: Computation | None = field(default=None, compare=False, repr=False)
    folded: bool = False

    @property
    def dependencies(self) -> tuple[int, ...]:
        """Ordinals of the proto-nodes this one reads from."""
        return tuple(arg.ordinal for arg in self.arguments if isinstance(arg, NodeArgument))

    @property
    def constant(self) -> Any:
        """The value of a folded step."""
        if not self.folded:
            msg = f"Proto-node {self.ordinal} ({self.kind}) is not a folded constant"
            raise ValueError(msg)
        argument = self.arguments[0]
        assert isinstance(argument, LiteralArgument)  # noqa: S101
        return argument.value


@dataclass(frozen=True, slots=True)
class ProtoGraph:
    """An ordered, type-resolved sequence of proto-nodes.

    Invariants, checked on construction:
    - the ordinal of each proto-node equals its position,
    - every node argument points strictly backward,
    - the output ordinal is a valid position.

    Attributes:
        nodes: Proto-nodes in topological order.
        output: Ordinal of the requested output.
        source_version: Version of the document snapshot it was compiled from.

    """

    nodes: tuple[ProtoNode, ...]
    output: int
    source_version: int = 0
    _ordinals: dict[NodeId, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for position, node in enumerate(self.nodes):
            if node.ordinal != position:
                msg = f"Proto-node at position {position} has ordinal {node.ordinal}"
                raise ValueError(msg)
            for dependency in node.dependencies:
                if not 0 <= dependency < position:
                    msg = f"Proto-node {position} ({node.kind}) references ordinal {dependency}, which is not before it"
                    raise ValueError(msg)
            self._ordinals[node.node_id] = position
        if not 0 <= self.output < len(self.nodes):
            msg = f"Output ordinal {self.output} is out of range for {len(self.nodes)} proto-nodes"
            raise ValueError(msg)

    @property
    def output_node(self) -> ProtoNode:
        return self.nodes[self.output]

    def ordinal_of(self, node_id: NodeId) -> int:
        """Position of the proto-node compiled from ``node_id``.

        Raises:
            KeyError: If the node was eliminated or folded away.

        """
        return self._ordinals[node_id]

    def node_for(self, node_id: NodeId) -> ProtoNode:
        return self.nodes[self.ordinal_of(node_id)]

    def node_ids(self) -> list[NodeId]:
        return [node.node_id for node in self.nodes]

    def dependency_graph(self) -> DependencyGraph[NodeId]:
        """Dependencies between the document nodes that appear in this graph."""
        return DependencyGraph.from_edges(
            ((self.nodes[dep].node_id, node.node_id) for node in self.nodes for dep in node.dependencies),
            nodes=self.node_ids(),
        )

    def dependents(self, node_id: NodeId) -> frozenset[NodeId]:
        """Every node forward-reachable from ``node_id``, excluding itself."""
        if node_id not in self._ordinals:
            return frozenset()
        return self.dependency_graph().descendants(node_id)

    def signature(self) -> tuple[tuple[Any, ...], ...]:
        """A structural summary used to compare two compilations."""
        return tuple(
            (node.node_id, node.kind, node.folded, node.arguments, node.output_type) for node in self.nodes
        )

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[ProtoNode]:
        return iter(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._ordinals
