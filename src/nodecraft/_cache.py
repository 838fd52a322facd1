"""Memoization of node outputs across evaluations."""

from __future__ import annotations

import logging
import threading
from collections import Counter, OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._types import estimate_size

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Iterator

    from ._document import NodeId
    from ._proto import ProtoGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """The most recent output of one node.

    Attributes:
        node_id: The document node that produced the value.
        fingerprint: Fingerprint of the inputs that produced the value.
        value: The produced value.
        generation: Document revision of the node when it was produced.
        size: Estimated size of the value in bytes.

    """

    node_id: NodeId
    fingerprint: str
    value: Any
    generation: int = 0
    size: int = 0


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    invalidations: int = 0

    def reset(self) -> None:
        self.hits = self.misses = self.evictions = self.invalidations = 0


class EvaluationCache:
    """Thread-safe, size-bounded, least-recently-used cache of node outputs.

    Keeps at most one entry per node identity: the latest output together
    with the fingerprint of the inputs that produced it. A lookup hits only
    when the stored fingerprint equals the requested one.

    All operations are serialized on a single lock. Nodes pinned by an
    in-flight evaluation are never evicted.

    Args:
        max_entries: Maximum number of entries kept.
        max_bytes: Maximum total estimated size of cached values. None means
            no size bound.

    """

    def __init__(self, max_entries: int = 1024, max_bytes: int | None = None) -> None:
        if max_entries <= 0:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)
        if max_bytes is not None and max_bytes <= 0:
            msg = f"max_bytes must be positive, got {max_bytes}"
            raise ValueError(msg)
        self.max_entries = max_entries
        self.max_bytes = max_bytes
        self._entries: OrderedDict[NodeId, CacheEntry] = OrderedDict()
        self._pins: Counter[NodeId] = Counter()
        self._total_bytes = 0
        self._lock = threading.RLock()
        self.stats = CacheStats()

    def get(self, node_id: NodeId, fingerprint: str, generation: int | None = None) -> Any | None:
        """Look up a cached value.

        An entry stored under a different generation is stale: it is evicted
        and the lookup misses.

        Returns:
            The cached value, or None on a miss.

        """
        entry = self.lookup(node_id, fingerprint, generation)
        return None if entry is None else entry.value

    def lookup(self, node_id: NodeId, fingerprint: str, generation: int | None = None) -> CacheEntry | None:
        """Like :meth:`get`, but return the entry so that cached None values are distinguishable."""
        with self._lock:
            entry = self._entries.get(node_id)
            if entry is not None and generation is not None and entry.generation != generation:
                logger.debug("Evicting stale entry for node %d (generation %d)", node_id, entry.generation)
                self._remove(node_id)
                self.stats.evictions += 1
                entry = None
            if entry is None or entry.fingerprint != fingerprint:
                self.stats.misses += 1
                return None
            self._entries.move_to_end(node_id)
            self.stats.hits += 1
            return entry

    def put(self, node_id: NodeId, fingerprint: str, value: Any, generation: int = 0) -> None:
        """Store the latest output of a node, replacing any previous one."""
        entry = CacheEntry(node_id, fingerprint, value, generation, estimate_size(value))
        with self._lock:
            self._remove(node_id)
            self._entries[node_id] = entry
            self._total_bytes += entry.size
            self._evict()

    def invalidate(self, node_id: NodeId) -> bool:
        """Remove the entry of one node. Returns whether there was one."""
        with self._lock:
            removed = self._remove(node_id)
            if removed:
                self.stats.invalidations += 1
            return removed

    def invalidate_transitive(self, node_id: NodeId, proto_graph: ProtoGraph) -> set[NodeId]:
        """Remove the entries of a node and of every node forward-reachable from it.

        Returns:
            The identities whose entries were removed.

        """
        targets = {node_id, *proto_graph.dependents(node_id)}
        with self._lock:
            removed = {target for target in targets if self._remove(target)}
            self.stats.invalidations += len(removed)
        logger.debug("Invalidated %d entries downstream of node %d", len(removed), node_id)
        return removed

    def retain(self, node_ids: Iterable[NodeId]) -> int:
        """Drop the unpinned entries of every node not in ``node_ids``. Returns the number dropped."""
        keep = set(node_ids)
        with self._lock:
            # In-flight entries survive until their evaluation unpins them.
            stale = [node_id for node_id in self._entries if node_id not in keep and self._pins[node_id] == 0]
            for node_id in stale:
                self._remove(node_id)
            self.stats.evictions += len(stale)
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._total_bytes = 0

    @contextmanager
    def pinned(self, node_ids: Collection[NodeId]) -> Iterator[None]:
        """Protect the entries of ``node_ids`` from eviction for the duration of the block."""
        with self._lock:
            self._pins.update(node_ids)
        try:
            yield
        finally:
            with self._lock:
                self._pins.subtract(node_ids)
                self._pins = +self._pins
                self._evict()

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    def _remove(self, node_id: NodeId) -> bool:
        entry = self._entries.pop(node_id, None)
        if entry is None:
            return False
        self._total_bytes -= entry.size
        return True

    def _over_capacity(self) -> bool:
        if len(self._entries) > self.max_entries:
            return True
        return self.max_bytes is not None and self._total_bytes > self.max_bytes

    def _evict(self) -> None:
        # Oldest first; pinned entries are skipped and may keep the cache over capacity.
        for node_id in list(self._entries):
            if not self._over_capacity():
                break
            if self._pins[node_id] > 0:
                continue
            self._remove(node_id)
            self.stats.evictions += 1
            logger.debug("Evicted node %d from cache", node_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._entries
