"""The editable, user-facing document graph."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, NewType

from pydantic import BaseModel, ConfigDict, Field

from ._errors import (
    DanglingReference,
    NodeNotFound,
    StructuralError,
    TypeMismatch,
    UnknownInputSlot,
)
from ._registry import OUTPUT_NAME
from ._types import conforms, default_value, infer_type, normalize

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from ._registry import InputSignature, NodeDescriptor, NodeRegistry

logger = logging.getLogger(__name__)

NodeId = NewType("NodeId", int)
"""Stable node identity. Assigned once, never reused after deletion."""


@dataclass(frozen=True, slots=True)
class Literal:
    """An input bound to a constant value of the slot's declared type."""

    value: Any


@dataclass(frozen=True, slots=True)
class Connection:
    """An input bound to the output of another node."""

    source: NodeId
    output: str = OUTPUT_NAME


type Binding = Literal | Connection


class NodeMetadata(BaseModel):
    """Editor-only information about a node. Never affects execution."""

    model_config = ConfigDict(frozen=True)

    display_name: str = ""
    position: tuple[float, float] = (0.0, 0.0)
    extra: dict[str, Any] = Field(default_factory=dict)


@dataclass(slots=True)
class _DocumentNode:
    id: NodeId
    kind: str
    inputs: dict[str, Binding]
    metadata: NodeMetadata
    revision: int = 0

    def view(self) -> NodeView:
        return NodeView(
            id=self.id,
            kind=self.kind,
            inputs=MappingProxyType(dict(self.inputs)),
            metadata=self.metadata,
            revision=self.revision,
        )


@dataclass(frozen=True, slots=True)
class NodeView:
    """Read-only view of a document node.

    Attributes:
        id: The node identity.
        kind: The registered node kind.
        inputs: Slot name to binding, in signature order.
        metadata: Editor metadata.
        revision: Incremented whenever the node's kind changes. Cached outputs
            produced under an older revision are stale.

    """

    id: NodeId
    kind: str
    inputs: Mapping[str, Binding]
    metadata: NodeMetadata
    revision: int

    def connections(self) -> Iterator[tuple[str, Connection]]:
        for slot, binding in self.inputs.items():
            if isinstance(binding, Connection):
                yield slot, binding


@dataclass(frozen=True, slots=True)
class DanglingInput:
    node: NodeId
    slot: str
    source: NodeId


@dataclass(frozen=True, slots=True)
class GraphSnapshot:
    """Immutable copy of a document graph taken at one version.

    The compiler only ever works on snapshots, so the live graph may keep
    changing while a snapshot is being compiled or evaluated.
    """

    nodes: Mapping[NodeId, NodeView]
    dangling: tuple[DanglingInput, ...] = ()
    version: int = 0

    @property
    def is_dirty(self) -> bool:
        return len(self.dangling) > 0

    def __contains__(self, node: NodeId) -> bool:
        return node in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)


class DocumentGraph:
    """Mutable graph of nodes addressed by stable identity.

    Every edit is validated before anything is changed: a rejected edit
    leaves the graph exactly as it was.

    Example:
        >>> graph = DocumentGraph(default_registry())
        >>> a = graph.add_node("value", inputs={"value": 2})
        >>> b = graph.add_node("double")
        >>> graph.set_input(b, "x", Connection(a))

    """

    def __init__(self, registry: NodeRegistry) -> None:
        self._registry = registry
        self._nodes: dict[NodeId, _DocumentNode] = {}
        self._dangling: dict[tuple[NodeId, str], NodeId] = {}
        self._next_id = 1
        self._version = 0
        self._lock = threading.RLock()

    @property
    def registry(self) -> NodeRegistry:
        return self._registry

    @property
    def version(self) -> int:
        """Number of successful edits applied so far."""
        return self._version

    @property
    def is_dirty(self) -> bool:
        """True while some input references a removed node."""
        return len(self._dangling) > 0

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _require(self, node: NodeId) -> _DocumentNode:
        try:
            return self._nodes[node]
        except KeyError:
            raise NodeNotFound(node) from None

    def _check_binding(self, node: NodeId, signature: InputSignature, binding: Binding) -> Binding:
        """Validate a binding against a slot and return it in canonical form.

        Raises:
            TypeMismatch: If the binding's type is not assignable to the slot.
            DanglingReference: If a connection names a node that does not exist.

        """
        expected = signature.type
        if isinstance(binding, Literal):
            if conforms(binding.value, expected):
                return Literal(normalize(binding.value, expected))
            actual = infer_type(binding.value)
            coercion = self._registry.coercion(actual, expected) if actual is not None else None
            if coercion is None:
                raise TypeMismatch(
                    expected,
                    actual if actual is not None else type(binding.value).__name__,
                    node=node,
                    slot=signature.name,
                )
            return Literal(normalize(coercion(normalize(binding.value, actual)), expected))

        source = self._nodes.get(binding.source)
        if source is None:
            raise DanglingReference(node, signature.name, binding.source)
        if binding.output != OUTPUT_NAME:
            raise TypeMismatch(expected, f"unknown output '{binding.output}'", node=node, slot=signature.name)
        actual = self._registry.lookup(source.kind).output_type
        if not self._registry.is_assignable(actual, expected):
            raise TypeMismatch(expected, actual, node=node, slot=signature.name)
        return binding

    @staticmethod
    def _default_binding(signature: InputSignature) -> Literal:
        value = signature.default if signature.default is not None else default_value(signature.type)
        return Literal(normalize(value, signature.type))

    def _resolve_inputs(
        self,
        node: NodeId,
        descriptor: NodeDescriptor,
        inputs: Mapping[str, Binding | Any],
    ) -> dict[str, Binding]:
        for slot in inputs:
            if descriptor.input(slot) is None:
                raise UnknownInputSlot(node, slot)
        resolved: dict[str, Binding] = {}
        for signature in descriptor.inputs:
            if signature.name not in inputs:
                resolved[signature.name] = self._default_binding(signature)
                continue
            binding = inputs[signature.name]
            if not isinstance(binding, Literal | Connection):
                binding = Literal(binding)
            resolved[signature.name] = self._check_binding(node, signature, binding)
        return resolved

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def add_node(
        self,
        kind: str,
        metadata: NodeMetadata | None = None,
        inputs: Mapping[str, Binding | Any] | None = None,
    ) -> NodeId:
        """Add a node and return its new identity.

        Args:
            kind: A kind registered in the node registry.
            metadata: Editor metadata.
            inputs: Initial bindings. Plain values are treated as literals.
                Slots not given are bound to their default literal.

        Raises:
            UnknownNodeKind: If ``kind`` is not registered.
            UnknownInputSlot, TypeMismatch, DanglingReference: If an initial
                binding is invalid. No node is added in that case.

        """
        with self._lock:
            descriptor = self._registry.lookup(kind)
            node_id = NodeId(self._next_id)
            resolved = self._resolve_inputs(node_id, descriptor, inputs or {})
            self._nodes[node_id] = _DocumentNode(
                id=node_id,
                kind=kind,
                inputs=resolved,
                metadata=metadata or NodeMetadata(),
            )
            self._next_id += 1
            self._version += 1
        logger.debug("Added node %d (%s)", node_id, kind)
        return node_id

    def remove_node(self, node: NodeId) -> None:
        """Remove a node.

        Inputs of other nodes that were connected to it are left dangling and
        the graph becomes dirty until they are rebound or their owners removed.
        """
        with self._lock:
            self._require(node)
            del self._nodes[node]
            self._dangling = {key: src for key, src in self._dangling.items() if key[0] != node}
            for other in self._nodes.values():
                for slot, binding in other.inputs.items():
                    if isinstance(binding, Connection) and binding.source == node:
                        self._dangling[other.id, slot] = node
            self._version += 1
        logger.debug("Removed node %d (%d dangling inputs)", node, len(self._dangling))

    def set_input(self, node: NodeId, slot: str, binding: Binding | Any) -> None:
        """Rebind one input slot.

        The binding's type is checked against the slot's declared type, using
        the registry's coercions. Literals are stored already converted to the
        declared type.

        Raises:
            NodeNotFound: If ``node`` does not exist.
            UnknownInputSlot: If the node's kind has no such slot.
            TypeMismatch: If the binding is not assignable to the slot.
            DanglingReference: If a connection names a missing node.

        """
        with self._lock:
            target = self._require(node)
            signature = self._registry.lookup(target.kind).input(slot)
            if signature is None:
                raise UnknownInputSlot(node, slot)
            if not isinstance(binding, Literal | Connection):
                binding = Literal(binding)
            target.inputs[slot] = self._check_binding(node, signature, binding)
            self._dangling.pop((node, slot), None)
            self._version += 1

    def set_kind(self, node: NodeId, kind: str) -> None:
        """Change a node's kind.

        Bindings of slots that exist in the new kind and still type-check are
        kept; all others are reset to defaults. Any cached output of the node
        becomes stale.
        """
        with self._lock:
            target = self._require(node)
            descriptor = self._registry.lookup(kind)
            inputs: dict[str, Binding] = {}
            for signature in descriptor.inputs:
                previous = target.inputs.get(signature.name)
                if previous is None:
                    inputs[signature.name] = self._default_binding(signature)
                elif (node, signature.name) in self._dangling:
                    inputs[signature.name] = previous
                else:
                    try:
                        inputs[signature.name] = self._check_binding(node, signature, previous)
                    except StructuralError:
                        inputs[signature.name] = self._default_binding(signature)
            for slot in target.inputs:
                if slot not in inputs:
                    self._dangling.pop((node, slot), None)
            target.kind = kind
            target.inputs = inputs
            target.revision += 1
            self._version += 1
        logger.debug("Changed kind of node %d to %s", node, kind)

    def set_metadata(self, node: NodeId, metadata: NodeMetadata) -> None:
        with self._lock:
            self._require(node).metadata = metadata
            self._version += 1

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, node: NodeId) -> NodeView:
        with self._lock:
            return self._require(node).view()

    def node_ids(self) -> list[NodeId]:
        """All node identities in insertion order."""
        with self._lock:
            return list(self._nodes)

    def dangling_references(self) -> list[DanglingInput]:
        with self._lock:
            return [DanglingInput(node, slot, source) for (node, slot), source in sorted(self._dangling.items())]

    def snapshot(self) -> GraphSnapshot:
        """Take an immutable copy of the graph for compilation."""
        with self._lock:
            return GraphSnapshot(
                nodes=MappingProxyType({node_id: node.view() for node_id, node in self._nodes.items()}),
                dangling=tuple(self.dangling_references()),
                version=self._version,
            )

    def __contains__(self, node: object) -> bool:
        return node in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)


# =============================================================================
# Edit mutations
# =============================================================================


@dataclass(frozen=True, slots=True)
class AddNode:
    kind: str
    metadata: NodeMetadata | None = None
    inputs: Mapping[str, Binding | Any] = field(default_factory=dict)

    def apply(self, graph: DocumentGraph) -> NodeId:
        return graph.add_node(self.kind, self.metadata, self.inputs)


@dataclass(frozen=True, slots=True)
class RemoveNode:
    node: NodeId

    def apply(self, graph: DocumentGraph) -> None:
        graph.remove_node(self.node)


@dataclass(frozen=True, slots=True)
class SetInput:
    node: NodeId
    slot: str
    binding: Binding | Any

    def apply(self, graph: DocumentGraph) -> None:
        graph.set_input(self.node, self.slot, self.binding)


@dataclass(frozen=True, slots=True)
class SetKind:
    node: NodeId
    kind: str

    def apply(self, graph: DocumentGraph) -> None:
        graph.set_kind(self.node, self.kind)


@dataclass(frozen=True, slots=True)
class SetMetadata:
    node: NodeId
    metadata: NodeMetadata

    def apply(self, graph: DocumentGraph) -> None:
        graph.set_metadata(self.node, self.metadata)


type Mutation = AddNode | RemoveNode | SetInput | SetKind | SetMetadata
