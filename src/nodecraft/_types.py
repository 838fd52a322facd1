"""Domain value types carried along node graph edges."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum, auto
from typing import TYPE_CHECKING, Any, Self

from .geometry import ManipulatorGroup, Subpath, Vec2

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = [
    "BOOLEAN",
    "COLOR",
    "IMAGE",
    "NUMBER",
    "PATH",
    "STRING",
    "VEC2",
    "Color",
    "DataType",
    "ImageBuffer",
    "TypeKind",
    "Vec2",
    "conforms",
    "default_value",
    "estimate_size",
    "normalize",
]


class TypeKind(StrEnum):
    """The closed set of value kinds a slot can declare."""

    NUMBER = auto()
    BOOLEAN = auto()
    STRING = auto()
    VEC2 = auto()
    COLOR = auto()
    PATH = auto()
    IMAGE = auto()
    LIST = auto()
    OPTIONAL = auto()


_CONTAINER_KINDS = frozenset({TypeKind.LIST, TypeKind.OPTIONAL})


@dataclass(frozen=True, slots=True)
class DataType:
    """A structural type.

    Container kinds (LIST, OPTIONAL) carry an item type; scalar kinds do not.
    Two types are equal only if they are structurally identical.

    Example:
        >>> str(DataType.list_of(NUMBER))
        'list[number]'

    """

    kind: TypeKind
    item: DataType | None = None

    def __post_init__(self) -> None:
        if self.kind in _CONTAINER_KINDS and self.item is None:
            msg = f"Type kind '{self.kind}' requires an item type"
            raise ValueError(msg)
        if self.kind not in _CONTAINER_KINDS and self.item is not None:
            msg = f"Type kind '{self.kind}' does not take an item type"
            raise ValueError(msg)

    @classmethod
    def list_of(cls, item: DataType) -> Self:
        return cls(TypeKind.LIST, item)

    @classmethod
    def optional_of(cls, item: DataType) -> Self:
        return cls(TypeKind.OPTIONAL, item)

    def __str__(self) -> str:
        if self.item is None:
            return str(self.kind)
        return f"{self.kind}[{self.item}]"


NUMBER = DataType(TypeKind.NUMBER)
BOOLEAN = DataType(TypeKind.BOOLEAN)
STRING = DataType(TypeKind.STRING)
VEC2 = DataType(TypeKind.VEC2)
COLOR = DataType(TypeKind.COLOR)
PATH = DataType(TypeKind.PATH)
IMAGE = DataType(TypeKind.IMAGE)


@dataclass(frozen=True, slots=True)
class Color:
    """Straight (non-premultiplied) RGBA color with channels in [0, 1]."""

    r: float
    g: float
    b: float
    a: float = 1.0

    def to_rgba8(self) -> bytes:
        return bytes(round(min(max(c, 0.0), 1.0) * 255) for c in (self.r, self.g, self.b, self.a))

    @classmethod
    def from_rgba8(cls, data: bytes) -> Self:
        r, g, b, a = (c / 255 for c in data)
        return cls(r, g, b, a)


@dataclass(frozen=True, slots=True)
class ImageBuffer:
    """A row-major RGBA8 raster handed to the render backend unmodified."""

    width: int
    height: int
    pixels: bytes = b""

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            msg = f"Image dimensions must be non-negative, got {self.width}x{self.height}"
            raise ValueError(msg)
        if len(self.pixels) != self.width * self.height * 4:
            msg = f"Expected {self.width * self.height * 4} bytes of RGBA8 data, got {len(self.pixels)}"
            raise ValueError(msg)

    @classmethod
    def filled(cls, width: int, height: int, color: Color) -> Self:
        return cls(width, height, color.to_rgba8() * (width * height))

    def pixel(self, x: int, y: int) -> Color:
        offset = (y * self.width + x) * 4
        return Color.from_rgba8(self.pixels[offset : offset + 4])


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def conforms(value: Any, dtype: DataType) -> bool:  # noqa: PLR0911
    """Check whether a Python value structurally matches a type.

    Args:
        value: The value to check.
        dtype: The declared type.

    Returns:
        True if the value can be used where ``dtype`` is expected without coercion.

    """
    match dtype.kind:
        case TypeKind.NUMBER:
            return _is_number(value)
        case TypeKind.BOOLEAN:
            return isinstance(value, bool)
        case TypeKind.STRING:
            return isinstance(value, str)
        case TypeKind.VEC2:
            return isinstance(value, Vec2)
        case TypeKind.COLOR:
            return isinstance(value, Color)
        case TypeKind.PATH:
            return isinstance(value, Subpath)
        case TypeKind.IMAGE:
            return isinstance(value, ImageBuffer)
        case TypeKind.LIST:
            assert dtype.item is not None  # noqa: S101
            return isinstance(value, list | tuple) and all(conforms(v, dtype.item) for v in value)
        case TypeKind.OPTIONAL:
            assert dtype.item is not None  # noqa: S101
            return value is None or conforms(value, dtype.item)
    return False


def infer_type(value: Any) -> DataType | None:
    """Infer the type of a literal value.

    Lists infer their item type from the first element; empty lists and
    ``None`` cannot be inferred and yield None.
    """
    if isinstance(value, bool):
        return BOOLEAN
    if _is_number(value):
        return NUMBER
    for dtype, cls in ((STRING, str), (VEC2, Vec2), (COLOR, Color), (PATH, Subpath), (IMAGE, ImageBuffer)):
        if isinstance(value, cls):
            return dtype
    if isinstance(value, list | tuple) and value:
        item = infer_type(value[0])
        if item is not None and all(conforms(v, item) for v in value):
            return DataType.list_of(item)
    return None


def normalize(value: Any, dtype: DataType) -> Any:
    """Return the canonical form of a conforming value (ints become floats, tuples become lists)."""
    match dtype.kind:
        case TypeKind.NUMBER:
            return float(value)
        case TypeKind.LIST:
            assert dtype.item is not None  # noqa: S101
            return [normalize(v, dtype.item) for v in value]
        case TypeKind.OPTIONAL:
            assert dtype.item is not None  # noqa: S101
            return None if value is None else normalize(value, dtype.item)
    return value


def default_value(dtype: DataType) -> Any:  # noqa: PLR0911
    """Return the zero value of a type."""
    match dtype.kind:
        case TypeKind.NUMBER:
            return 0.0
        case TypeKind.BOOLEAN:
            return False
        case TypeKind.STRING:
            return ""
        case TypeKind.VEC2:
            return Vec2(0.0, 0.0)
        case TypeKind.COLOR:
            return Color(0.0, 0.0, 0.0, 0.0)
        case TypeKind.PATH:
            return Subpath(())
        case TypeKind.IMAGE:
            return ImageBuffer(0, 0)
        case TypeKind.LIST:
            return []
        case TypeKind.OPTIONAL:
            return None
    msg = f"No default value for type {dtype}"
    raise TypeError(msg)


def _iter_groups_size(groups: Iterable[ManipulatorGroup]) -> int:
    return sum(48 + 16 * ((g.in_handle is not None) + (g.out_handle is not None)) for g in groups)


def estimate_size(value: Any) -> int:
    """Roughly estimate the memory footprint of a value in bytes."""
    if isinstance(value, ImageBuffer):
        return 64 + len(value.pixels)
    if isinstance(value, Subpath):
        return 64 + _iter_groups_size(value.groups)
    if isinstance(value, str):
        return 49 + len(value)
    if isinstance(value, list | tuple):
        return 56 + sum(8 + estimate_size(v) for v in value)
    return 32
