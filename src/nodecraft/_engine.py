"""The editor-facing session tying the document, compiler, executor and cache together."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from ._cache import EvaluationCache
from ._compiler import compile_graph
from ._config import EngineSettings
from ._document import DocumentGraph
from ._executor import EvaluationResult, evaluate
from ._registry import default_registry

if TYPE_CHECKING:
    from ._document import Mutation, NodeId
    from ._proto import ProtoGraph
    from ._registry import NodeRegistry

logger = logging.getLogger(__name__)


class Engine:
    """A document graph together with its compiled forms and output cache.

    Edits go through :meth:`edit` (or directly through :attr:`graph`).
    :meth:`request_render` compiles an immutable snapshot of the current
    graph and evaluates it against the shared cache, so only nodes whose
    inputs changed since the previous evaluation are recomputed.

    Renders may be requested from several threads at once; they share only
    the cache, which serializes its own operations.

    Example:
        >>> engine = Engine()
        >>> x = engine.edit(AddNode("input_value", inputs={"value": 3}))
        >>> y = engine.edit(AddNode("double", inputs={"x": Connection(x)}))
        >>> engine.request_render(y)
        6.0

    """

    def __init__(
        self,
        registry: NodeRegistry | None = None,
        cache: EvaluationCache | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.registry = registry if registry is not None else default_registry()
        self.graph = DocumentGraph(self.registry)
        self.cache = cache if cache is not None else EvaluationCache(
            max_entries=self.settings.cache_max_entries,
            max_bytes=self.settings.cache_max_bytes,
        )
        self._compiled: dict[NodeId, ProtoGraph] = {}
        self._compiled_version = -1
        self._lock = threading.Lock()

    def edit(self, mutation: Mutation) -> Any:
        """Apply a single mutation to the document graph.

        Returns:
            Whatever the mutation returns (the new identity for AddNode).

        Raises:
            StructuralError: If the edit is rejected. The graph is unchanged.

        """
        result = mutation.apply(self.graph)
        logger.debug("Applied %s (document version %d)", type(mutation).__name__, self.graph.version)
        return result

    def compile(self, output: NodeId) -> ProtoGraph:
        """Compile the current document for ``output``.

        Compiled graphs are reused until the document changes.
        """
        snapshot = self.graph.snapshot()
        with self._lock:
            if self._compiled_version == snapshot.version and output in self._compiled:
                return self._compiled[output]

        proto_graph = compile_graph(snapshot, self.registry, output)
        self.cache.retain(snapshot.nodes)

        with self._lock:
            if self._compiled_version != snapshot.version:
                self._compiled = {}
                self._compiled_version = snapshot.version
            self._compiled[output] = proto_graph
        logger.debug("Compiled output %d at document version %d", output, snapshot.version)
        return proto_graph

    def evaluate(self, output: NodeId) -> EvaluationResult:
        """Compile and evaluate ``output``, returning the full result.

        Raises:
            StructuralError: If the document cannot be compiled.
            EvaluationError: If a node computation fails.

        """
        proto_graph = self.compile(output)
        return evaluate(proto_graph, self.cache, float_digits=self.settings.float_digits)

    def request_render(self, output: NodeId) -> Any:
        """Compute the value of ``output``, ready to hand to the renderer."""
        return self.evaluate(output).value

    def invalidate(self, node: NodeId, *, transitive: bool = False) -> None:
        """Drop cached outputs of a node, and optionally of everything downstream of it.

        Use this for nodes whose computation reads external state the
        fingerprint cannot see.
        """
        if not transitive:
            self.cache.invalidate(node)
            return
        for proto_graph in self._compiled_snapshot():
            self.cache.invalidate_transitive(node, proto_graph)
        self.cache.invalidate(node)

    def _compiled_snapshot(self) -> list[ProtoGraph]:
        with self._lock:
            return list(self._compiled.values())
