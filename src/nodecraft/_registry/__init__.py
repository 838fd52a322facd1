"""Node registry module.

The registry maps node kinds to their descriptors (input signatures, output
type and computation factory) and holds the coercion rules between types.

Key types:
- NodeRegistry: Catalog of node kinds and coercions
- NodeDescriptor / InputSignature: Static description of a node kind
- Coercion: Explicit conversion between two types
- default_registry: The process-wide builtin registry
"""

import threading

from ._builtin import BUILTIN_NODES, MAX_REPEAT, builtin_coercions, populate
from ._registry import OUTPUT_NAME, Coercion, Computation, InputSignature, NodeDescriptor, NodeRegistry

__all__ = [
    "BUILTIN_NODES",
    "MAX_REPEAT",
    "OUTPUT_NAME",
    "Coercion",
    "Computation",
    "InputSignature",
    "NodeDescriptor",
    "NodeRegistry",
    "builtin_coercions",
    "create_builtin_registry",
    "default_registry",
]

_default: NodeRegistry | None = None
_default_lock = threading.Lock()


def create_builtin_registry(*, freeze: bool = True) -> NodeRegistry:
    """Create a new registry holding the builtin node kinds.

    Args:
        freeze: Whether to freeze the registry. Pass False to register
            additional kinds before freezing it yourself.

    """
    registry = populate(NodeRegistry())
    if freeze:
        registry.freeze()
    return registry


def default_registry() -> NodeRegistry:
    """Return the process-wide, frozen builtin registry.

    The registry is built on first use and never mutated afterwards.
    """
    global _default  # noqa: PLW0603
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = create_builtin_registry()
    return _default
