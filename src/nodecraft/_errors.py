"""Exception hierarchy for graph editing, compilation and evaluation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ._document import NodeId
    from ._types import DataType


class NodeGraphError(Exception):
    """Base class for every error raised by nodecraft."""


# =============================================================================
# Structural errors (edit and compile time)
# =============================================================================


class StructuralError(NodeGraphError):
    """The document graph is malformed. Raised before any computation runs."""


class UnknownNodeKind(StructuralError):  # noqa: N818
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unknown node kind '{kind}'")


class TypeMismatch(StructuralError):  # noqa: N818
    """A binding's type is neither identical nor coercible to the slot type."""

    def __init__(
        self,
        expected: DataType | str,
        actual: DataType | str,
        *,
        node: NodeId | None = None,
        slot: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        self.node = node
        self.slot = slot
        location = f" for input '{slot}' of node {node}" if slot is not None else ""
        super().__init__(f"Type mismatch{location}: expected {expected}, got {actual}")


class DanglingReference(StructuralError):  # noqa: N818
    def __init__(self, node: NodeId, slot: str, source: NodeId) -> None:
        self.node = node
        self.slot = slot
        self.source = source
        super().__init__(f"Input '{slot}' of node {node} references missing node {source}")


class CyclicGraph(StructuralError):  # noqa: N818
    def __init__(self, cycle: Sequence[NodeId]) -> None:
        self.cycle = tuple(cycle)
        path = " -> ".join(str(n) for n in self.cycle)
        super().__init__(f"Cycle detected in graph: {path}")


class OutputNotFound(StructuralError):  # noqa: N818
    def __init__(self, node: NodeId) -> None:
        self.node = node
        super().__init__(f"Requested output node {node} does not exist")


class NodeNotFound(StructuralError):  # noqa: N818
    def __init__(self, node: NodeId) -> None:
        self.node = node
        super().__init__(f"Node {node} does not exist")


class UnknownInputSlot(StructuralError):  # noqa: N818
    def __init__(self, node: NodeId, slot: str) -> None:
        self.node = node
        self.slot = slot
        super().__init__(f"Node {node} has no input named '{slot}'")


class RegistryFrozen(NodeGraphError):  # noqa: N818
    """The node registry no longer accepts registrations."""


# =============================================================================
# Evaluation errors
# =============================================================================


class EvaluationError(NodeGraphError):
    """Evaluation of a requested output was aborted."""


class NodeEvaluationError(EvaluationError):
    """A node computation failed. Nothing downstream of it was produced."""

    def __init__(self, node: NodeId, kind: str, message: str) -> None:
        self.node = node
        self.kind = kind
        self.message = message
        super().__init__(f"Node {node} ({kind}) failed: {message}")


class NodeComputationError(Exception):
    """Raised by a node computation for a value outside its domain."""


COMPUTATION_ERRORS = (NodeComputationError, ArithmeticError, ValueError, TypeError, IndexError, KeyError)
"""Exceptions a node computation may raise for bad input values.

The executor reports them as `NodeEvaluationError`; the compiler leaves a
node that raises one while folding for the executor to report.
"""
