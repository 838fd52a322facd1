"""Node descriptors, coercion rules and the registry that holds them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nodecraft._errors import RegistryFrozen, UnknownNodeKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from nodecraft._types import DataType

logger = logging.getLogger(__name__)

type Computation = Callable[..., Any]
"""A runtime computation. Called with the concrete argument values positionally."""

OUTPUT_NAME = "output"
"""Every node kind exposes a single output under this name."""


@dataclass(frozen=True, slots=True)
class InputSignature:
    """Declaration of a single input slot.

    Attributes:
        name: Slot name, unique within the node kind.
        type: Declared type of the slot.
        default: Literal bound to the slot when a node is created. None means
            the zero value of ``type``.

    """

    name: str
    type: DataType
    default: Any = None


@dataclass(frozen=True, slots=True)
class NodeDescriptor:
    """Everything the engine knows about a node kind.

    Attributes:
        kind: Identifier of the node kind.
        inputs: Input slot signatures, in argument order.
        output_type: Type of the single output.
        build: Factory producing the runtime computation, given the concrete
            input types resolved by the compiler.
        foldable: Whether a node of this kind may be evaluated at compile time
            when all of its inputs are literals. Kinds whose literals are edited
            live (editor inputs) are not foldable, so that they stay cacheable
            runtime nodes.
        description: Human readable summary.

    """

    kind: str
    inputs: tuple[InputSignature, ...]
    output_type: DataType
    build: Callable[[tuple[DataType, ...]], Computation]
    foldable: bool = True
    description: str = ""

    def input(self, name: str) -> InputSignature | None:
        return next((sig for sig in self.inputs if sig.name == name), None)

    @property
    def input_names(self) -> tuple[str, ...]:
        return tuple(sig.name for sig in self.inputs)

    def input_types(self) -> tuple[DataType, ...]:
        return tuple(sig.type for sig in self.inputs)


@dataclass(frozen=True, slots=True)
class Coercion:
    """An explicit conversion from one type to another."""

    source: DataType
    target: DataType
    convert: Callable[[Any], Any]
    name: str = ""

    def __call__(self, value: Any) -> Any:
        return self.convert(value)

    def __str__(self) -> str:
        return self.name or f"{self.source}->{self.target}"


@dataclass(slots=True)
class NodeRegistry:
    """Catalog of node kinds and type coercions.

    A registry is populated once and then frozen; a frozen registry is
    read-only and safe to share between threads.
    """

    _descriptors: dict[str, NodeDescriptor] = field(default_factory=dict)
    _coercions: dict[tuple[DataType, DataType], Coercion] = field(default_factory=dict)
    _frozen: bool = False

    def _check_mutable(self) -> None:
        if self._frozen:
            msg = "Cannot modify a frozen node registry"
            raise RegistryFrozen(msg)

    def register(self, descriptor: NodeDescriptor) -> None:
        """Register a node kind.

        Raises:
            RegistryFrozen: If the registry was frozen.
            KeyError: If the kind is already registered.

        """
        self._check_mutable()
        if descriptor.kind in self._descriptors:
            msg = f"Node kind '{descriptor.kind}' is already registered."
            raise KeyError(msg)
        self._descriptors[descriptor.kind] = descriptor

    def register_coercion(self, coercion: Coercion) -> None:
        self._check_mutable()
        self._coercions[coercion.source, coercion.target] = coercion

    def freeze(self) -> None:
        self._frozen = True
        logger.debug("Froze node registry with %d kinds and %d coercions", len(self), len(self._coercions))

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, kind: str) -> NodeDescriptor:
        """Get the descriptor of a node kind.

        Raises:
            UnknownNodeKind: If the kind is not registered.

        """
        try:
            return self._descriptors[kind]
        except KeyError:
            raise UnknownNodeKind(kind) from None

    def find(self, kind: str) -> NodeDescriptor | None:
        return self._descriptors.get(kind)

    def kinds(self) -> list[str]:
        return sorted(self._descriptors)

    def coercion(self, source: DataType, target: DataType) -> Coercion | None:
        """Get the registered coercion from ``source`` to ``target``, if any."""
        return self._coercions.get((source, target))

    def is_assignable(self, source: DataType, target: DataType) -> bool:
        """Check if a value of type ``source`` can bind to a slot of type ``target``."""
        return source == target or (source, target) in self._coercions

    def coercions(self) -> list[Coercion]:
        return list(self._coercions.values())

    def __contains__(self, kind: str) -> bool:
        return kind in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[NodeDescriptor]:
        return iter(self._descriptors.values())
