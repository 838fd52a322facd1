"""Evaluation of proto graphs with memoization."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ._errors import COMPUTATION_ERRORS, NodeEvaluationError
from ._fingerprint import DEFAULT_FLOAT_DIGITS, fingerprint_node, fingerprint_value
from ._proto import LiteralArgument
from ._types import conforms, normalize

if TYPE_CHECKING:
    from ._cache import EvaluationCache
    from ._document import NodeId
    from ._proto import ProtoGraph, ProtoNode
    from ._types import DataType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Result of evaluating a proto graph.

    Attributes:
        value: The value of the requested output.
        output_type: The type of ``value``.
        computed: Nodes whose computation ran during this evaluation, in order.
        reused: Nodes whose value came from the cache.
        fingerprints: Input fingerprint of every evaluated node.

    """

    value: Any
    output_type: DataType
    computed: tuple[NodeId, ...] = ()
    reused: tuple[NodeId, ...] = ()
    fingerprints: dict[NodeId, str] = field(default_factory=dict)

    @property
    def fully_cached(self) -> bool:
        """True if no computation ran."""
        return len(self.computed) == 0


def _run(node: ProtoNode, arguments: list[Any]) -> Any:
    if node.computation is None:
        msg = f"Proto-node {node.ordinal} ({node.kind}) has no computation"
        raise NodeEvaluationError(node.node_id, node.kind, msg)
    try:
        value = node.computation(*arguments)
    except COMPUTATION_ERRORS as e:
        raise NodeEvaluationError(node.node_id, node.kind, str(e)) from e
    if not conforms(value, node.output_type):
        msg = f"produced {type(value).__name__}, expected {node.output_type}"
        raise NodeEvaluationError(node.node_id, node.kind, msg)
    return normalize(value, node.output_type)


def evaluate(
    proto_graph: ProtoGraph,
    cache: EvaluationCache,
    *,
    float_digits: int = DEFAULT_FLOAT_DIGITS,
) -> EvaluationResult:
    """Evaluate a proto graph, reusing cached outputs where inputs are unchanged.

    Proto-nodes are visited in their stored (topological) order. For each one:
    1. Its input fingerprint is derived from its literal arguments and the
       fingerprints of the proto-nodes it reads from
    2. The cache is consulted with the node identity and fingerprint
    3. On a miss the computation runs and its result is cached

    Folded constants are neither computed nor cached.

    Args:
        proto_graph: The compiled graph.
        cache: The shared cache.
        float_digits: Significant digits of floats in fingerprints.

    Returns:
        EvaluationResult for the requested output.

    Raises:
        NodeEvaluationError: If a node computation fails. Nothing is cached
            for the failing node and no partial result is returned.

    """
    values: list[Any] = [None] * len(proto_graph)
    digests: list[str] = [""] * len(proto_graph)
    computed: list[NodeId] = []
    reused: list[NodeId] = []

    logger.debug("Evaluating proto graph with %d nodes", len(proto_graph))

    with cache.pinned(proto_graph.node_ids()):
        for node in proto_graph:
            if node.folded:
                values[node.ordinal] = node.constant
                digests[node.ordinal] = fingerprint_value(node.constant, float_digits=float_digits)
                continue

            arguments: list[Any] = []
            argument_digests: list[str] = []
            for argument in node.arguments:
                if isinstance(argument, LiteralArgument):
                    arguments.append(argument.value)
                    argument_digests.append(fingerprint_value(argument.value, float_digits=float_digits))
                    continue
                value = values[argument.ordinal]
                digest = digests[argument.ordinal]
                if argument.coercion is not None:
                    value = argument.coercion(value)
                    digest = f"{digest}:{argument.coercion_name}"
                arguments.append(value)
                argument_digests.append(digest)

            fingerprint = fingerprint_node(node.kind, node.revision, node.output_type, argument_digests)
            digests[node.ordinal] = fingerprint

            entry = cache.lookup(node.node_id, fingerprint, node.revision)
            if entry is not None:
                values[node.ordinal] = entry.value
                reused.append(node.node_id)
                continue

            logger.debug("Computing node %d (%s)", node.node_id, node.kind)
            result = _run(node, arguments)
            cache.put(node.node_id, fingerprint, result, node.revision)
            values[node.ordinal] = result
            computed.append(node.node_id)

    logger.debug("Evaluation finished: %d computed, %d reused", len(computed), len(reused))
    return EvaluationResult(
        value=values[proto_graph.output],
        output_type=proto_graph.output_node.output_type,
        computed=tuple(computed),
        reused=tuple(reused),
        fingerprints={node.node_id: digests[node.ordinal] for node in proto_graph},
    )
