"""Immutable dependency graph over node identities."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ._algorithms import topological_sort


def _closure[T](start: Iterable[T], step: Callable[[T], Iterable[T]]) -> frozenset[T]:
    reached: set[T] = set()
    pending = list(start)
    while pending:
        node = pending.pop()
        if node in reached:
            continue
        reached.add(node)
        pending.extend(step(node))
    return frozenset(reached)


@dataclass(frozen=True, slots=True)
class DependencyGraph[T]:
    """Producer/consumer edges between nodes, indexed in both directions.

    An edge `(producer, consumer)` means the consumer reads the producer's
    output. The compiler builds one per compilation from the nodes reachable
    from the requested output; the proto graph builds one to answer
    "which nodes must be recomputed if this one changes".

    """

    _producers: dict[T, frozenset[T]] = field(default_factory=dict)
    _consumers: dict[T, frozenset[T]] = field(default_factory=dict)

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[T, T]], nodes: Iterable[T] = ()) -> DependencyGraph[T]:
        """Index `(producer, consumer)` edges.

        Args:
            edges: Producer/consumer pairs. Duplicates collapse.
            nodes: Nodes to include even when no edge touches them.

        Example:
            >>> graph = DependencyGraph.from_edges([(1, 2), (2, 3)], nodes=[4])
            >>> sorted(graph.descendants(1))
            [2, 3]

        """
        producers: defaultdict[T, set[T]] = defaultdict(set)
        consumers: defaultdict[T, set[T]] = defaultdict(set)
        for node in nodes:
            producers.setdefault(node, set())
            consumers.setdefault(node, set())
        for producer, consumer in edges:
            producers[consumer].add(producer)
            consumers[producer].add(consumer)
            producers.setdefault(producer, set())
            consumers.setdefault(consumer, set())

        return cls(
            _producers={node: frozenset(found) for node, found in producers.items()},
            _consumers={node: frozenset(found) for node, found in consumers.items()},
        )

    @property
    def nodes(self) -> frozenset[T]:
        return frozenset(self._producers)

    def predecessors(self, node: T) -> frozenset[T]:
        """Nodes whose outputs `node` reads directly."""
        return self._producers.get(node, frozenset())

    def successors(self, node: T) -> frozenset[T]:
        """Nodes that read the output of `node` directly."""
        return self._consumers.get(node, frozenset())

    def ancestors(self, node: T) -> frozenset[T]:
        return _closure(self.predecessors(node), self.predecessors)

    def descendants(self, node: T) -> frozenset[T]:
        """Every node downstream of `node`, excluding `node` itself."""
        return _closure(self.successors(node), self.successors)

    def topological_order(self, key: Callable[[T], Any] | None = None) -> list[T]:
        """Order nodes so producers precede their consumers.

        Args:
            key: Orders nodes that are ready at the same time. Without it the
                order among independent nodes is unspecified.

        Raises:
            ValueError: If the edges form a cycle.

        """
        return topological_sort(dict(self._consumers), key=key)

    def __len__(self) -> int:
        return len(self._producers)

    def __contains__(self, node: T) -> bool:
        return node in self._producers
