"""Ordering and cycle search over dependency graphs."""

import heapq
from collections import defaultdict
from collections.abc import Callable, Collection, Hashable, Mapping
from typing import Any


def topological_sort[T: Hashable](
    successors: Mapping[T, Collection[T]],
    key: Callable[[T], Any] | None = None,
) -> list[T]:
    """Order the nodes of ``successors`` so every node precedes its successors.

    Kahn's algorithm over a min-heap. Ready nodes leave the heap smallest
    ``key`` first, so two calls over the same graph agree on the order even
    when the mapping was built in a different order. Without ``key`` ready
    nodes leave in order of first appearance in ``successors``.

    Args:
        successors: Maps each node to the nodes that consume it.
        key: Ranks nodes that are ready at the same time.

    Raises:
        ValueError: If some nodes can never become ready (a cycle).

    Example:
        >>> topological_sort({3: [1], 2: [1], 1: []}, key=int)
        [2, 3, 1]

    """
    indegree: defaultdict[T, int] = defaultdict(int)
    for node, consumers in successors.items():
        indegree[node] = indegree.get(node, 0)
        for consumer in consumers:
            indegree[consumer] += 1

    # Rank by key if given, else by first appearance
    rank: dict[T, Any] = {node: (key(node) if key else i) for i, node in enumerate(indegree)}
    heap = [(rank[node], i, node) for i, node in enumerate(indegree) if indegree[node] == 0]
    heapq.heapify(heap)
    position = {node: i for i, node in enumerate(indegree)}
    order: list[T] = []

    while heap:
        _, _, node = heapq.heappop(heap)
        order.append(node)
        for successor in successors.get(node, []):
            indegree[successor] -= 1
            if indegree[successor] == 0:
                heapq.heappush(heap, (rank[successor], position[successor], successor))

    if len(order) != len(indegree):
        msg = "Cycle detected in graph"
        raise ValueError(msg)

    return order


_EXHAUSTED: Any = object()


def find_cycle[T: Hashable](
    start: T,
    predecessors: Callable[[T], Collection[T]],
) -> list[T] | None:
    """Find a cycle reachable backward from ``start``.

    Performs an iterative depth-first search over ``predecessors`` while
    keeping the set of nodes on the current path. Reaching a node that is
    already on the path closes a cycle.

    Args:
        start: The node to start the traversal from.
        predecessors: Function returning the direct dependencies of a node.

    Returns:
        The cycle as a list of nodes (first node repeated at the end),
        or None if no cycle is reachable.

    Example:
        >>> deps = {"a": ["b"], "b": ["a"]}
        >>> find_cycle("a", lambda n: deps[n])
        ['a', 'b', 'a']

    """
    done: set[T] = set()
    path: list[T] = [start]
    on_path: set[T] = {start}
    stack = [iter(predecessors(start))]

    while stack:
        child = next(stack[-1], _EXHAUSTED)
        if child is _EXHAUSTED:
            stack.pop()
            node = path.pop()
            on_path.discard(node)
            done.add(node)
            continue
        if child in on_path:
            return [*path[path.index(child) :], child]
        if child in done:
            continue
        path.append(child)
        on_path.add(child)
        stack.append(iter(predecessors(child)))

    return None
