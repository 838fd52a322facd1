"""The builtin node kinds and coercion table."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from nodecraft._errors import NodeComputationError
from nodecraft._types import (
    BOOLEAN,
    COLOR,
    IMAGE,
    NUMBER,
    PATH,
    STRING,
    VEC2,
    Color,
    DataType,
    ImageBuffer,
)
from nodecraft.geometry import Affine, Subpath, Vec2

from ._registry import Coercion, InputSignature, NodeDescriptor, NodeRegistry

if TYPE_CHECKING:
    from collections.abc import Callable

MAX_REPEAT = 1000
"""Upper bound on copies produced by the repeat construct."""

MAX_POLYGON_SIDES = 1000
MAX_IMAGE_SIDE = 4096


def _node(
    kind: str,
    inputs: list[tuple[str, DataType] | tuple[str, DataType, Any]],
    output_type: DataType,
    func: Callable[..., Any],
    *,
    foldable: bool = True,
    description: str = "",
) -> NodeDescriptor:
    """Describe a node kind whose computation does not depend on the concrete input types."""
    return NodeDescriptor(
        kind=kind,
        inputs=tuple(InputSignature(*signature) for signature in inputs),
        output_type=output_type,
        build=lambda _input_types: func,
        foldable=foldable,
        description=description or (func.__doc__ or "").strip(),
    )


def _as_count(value: float, name: str, limit: int) -> int:
    if not math.isfinite(value) or value != int(value):
        msg = f"{name} must be a whole number, got {value}"
        raise NodeComputationError(msg)
    count = int(value)
    if count < 0:
        msg = f"{name} must not be negative, got {count}"
        raise NodeComputationError(msg)
    return min(count, limit)


# =============================================================================
# Numbers and logic
# =============================================================================


def _identity(value: Any) -> Any:
    """Pass its input through unchanged."""
    return value


def _divide(a: float, b: float) -> float:
    """Divide a by b."""
    if b == 0:
        msg = "Division by zero"
        raise NodeComputationError(msg)
    return a / b


def _sqrt(x: float) -> float:
    """Square root of x."""
    if x < 0:
        msg = f"Cannot take the square root of negative number {x}"
        raise NodeComputationError(msg)
    return math.sqrt(x)


def _power(base: float, exponent: float) -> float:
    """Raise base to exponent."""
    try:
        return math.pow(base, exponent)
    except (ValueError, OverflowError) as e:
        msg = f"Cannot raise {base} to {exponent}: {e}"
        raise NodeComputationError(msg) from e


def _clamp(x: float, low: float, high: float) -> float:
    """Clamp x into [low, high]."""
    if low > high:
        msg = f"Empty clamp range [{low}, {high}]"
        raise NodeComputationError(msg)
    return min(max(x, low), high)


def _format_number(x: float, precision: float) -> str:
    """Format x with a fixed number of decimals."""
    digits = _as_count(precision, "precision", 17)
    return f"{x:.{digits}f}"


# =============================================================================
# Vectors and colors
# =============================================================================


def _color(r: float, g: float, b: float, a: float) -> Color:
    """Build a color from channels in [0, 1]."""
    for name, channel in (("r", r), ("g", g), ("b", b), ("a", a)):
        if not 0.0 <= channel <= 1.0:
            msg = f"Color channel {name}={channel} is outside [0, 1]"
            raise NodeComputationError(msg)
    return Color(r, g, b, a)


def _color_mix(a: Color, b: Color, t: float) -> Color:
    """Linearly interpolate between two colors."""
    return Color(
        a.r + (b.r - a.r) * t,
        a.g + (b.g - a.g) * t,
        a.b + (b.b - a.b) * t,
        a.a + (b.a - a.a) * t,
    )


# =============================================================================
# Geometry
# =============================================================================


def _path_line(start: Vec2, end: Vec2) -> Subpath:
    """Straight line segment from start to end."""
    return Subpath.line(start, end)


def _path_polygon(center: Vec2, radius: float, sides: float) -> Subpath:
    """Closed regular polygon."""
    n = _as_count(sides, "sides", MAX_POLYGON_SIDES)
    if n < 3:  # noqa: PLR2004
        msg = f"A polygon needs at least 3 sides, got {n}"
        raise NodeComputationError(msg)
    points = (
        Vec2(center.x + radius * math.cos(2 * math.pi * i / n), center.y + radius * math.sin(2 * math.pi * i / n))
        for i in range(n)
    )
    return Subpath.from_points(points, closed=True)


def _path_transform(path: Subpath, translation: Vec2, scale: Vec2, rotation: float) -> Subpath:
    """Scale, then rotate (radians), then translate a path."""
    transform = Affine.translate(translation) @ Affine.rotate(rotation) @ Affine.scale(scale)
    return path.transform(transform)


def _path_split(path: Subpath, t: float) -> list[Subpath]:
    """Split a path at parametric t into one or two paths."""
    try:
        first, second = path.split(t)
    except ValueError as e:
        raise NodeComputationError(str(e)) from e
    return [first] if second is None else [first, second]


def _path_evaluate(path: Subpath, t: float) -> Vec2:
    """Point on a path at parametric t."""
    try:
        return path.evaluate(t)
    except ValueError as e:
        raise NodeComputationError(str(e)) from e


def _path_repeat(path: Subpath, count: float, offset: Vec2) -> list[Subpath]:
    """Repeat a path count times, shifting each copy by offset."""
    n = _as_count(count, "count", MAX_REPEAT)
    return [path.transform(Affine.translate(offset * i)) for i in range(n)]


# =============================================================================
# Images
# =============================================================================


def _image_fill(width: float, height: float, color: Color) -> ImageBuffer:
    """Image of the given size filled with a color."""
    w = _as_count(width, "width", MAX_IMAGE_SIDE)
    h = _as_count(height, "height", MAX_IMAGE_SIDE)
    return ImageBuffer.filled(w, h, color)


def _image_composite(background: ImageBuffer, foreground: ImageBuffer, opacity: float) -> ImageBuffer:
    """Draw foreground over background using source-over blending."""
    if (background.width, background.height) != (foreground.width, foreground.height):
        msg = (
            f"Cannot composite a {foreground.width}x{foreground.height} image"
            f" over a {background.width}x{background.height} image"
        )
        raise NodeComputationError(msg)
    opacity = min(max(opacity, 0.0), 1.0)
    out = bytearray(len(background.pixels))
    bg, fg = background.pixels, foreground.pixels
    for offset in range(0, len(bg), 4):
        src_a = fg[offset + 3] / 255 * opacity
        dst_a = bg[offset + 3] / 255
        out_a = src_a + dst_a * (1 - src_a)
        for channel in range(3):
            src = fg[offset + channel] / 255
            dst = bg[offset + channel] / 255
            value = (src * src_a + dst * dst_a * (1 - src_a)) / out_a if out_a > 0 else 0.0
            out[offset + channel] = round(value * 255)
        out[offset + 3] = round(out_a * 255)
    return ImageBuffer(background.width, background.height, bytes(out))


# =============================================================================
# Lists and optionals
# =============================================================================


def _list_get(items: list[float], index: float) -> float | None:
    """Item at index, or nothing when out of range."""
    i = _as_count(index, "index", len(items))
    return items[i] if i < len(items) else None


def _unwrap_or(value: float | None, fallback: float) -> float:
    """The value if present, otherwise the fallback."""
    return fallback if value is None else value


NUMBER_LIST = DataType.list_of(NUMBER)
PATH_LIST = DataType.list_of(PATH)
OPTIONAL_NUMBER = DataType.optional_of(NUMBER)

BUILTIN_NODES: tuple[NodeDescriptor, ...] = (
    _node("value", [("value", NUMBER)], NUMBER, _identity, description="A constant number."),
    _node(
        "input_value",
        [("value", NUMBER)],
        NUMBER,
        _identity,
        foldable=False,
        description="A number edited live from the editor. Never folded at compile time.",
    ),
    _node("add", [("a", NUMBER), ("b", NUMBER)], NUMBER, lambda a, b: a + b, description="Sum of a and b."),
    _node("subtract", [("a", NUMBER), ("b", NUMBER)], NUMBER, lambda a, b: a - b, description="a minus b."),
    _node("multiply", [("a", NUMBER), ("b", NUMBER, 1.0)], NUMBER, lambda a, b: a * b, description="a times b."),
    _node("divide", [("a", NUMBER), ("b", NUMBER, 1.0)], NUMBER, _divide),
    _node("double", [("x", NUMBER)], NUMBER, lambda x: 2 * x, description="Twice x."),
    _node("negate", [("x", NUMBER)], NUMBER, lambda x: -x, description="Negation of x."),
    _node("sqrt", [("x", NUMBER)], NUMBER, _sqrt),
    _node("power", [("base", NUMBER), ("exponent", NUMBER, 1.0)], NUMBER, _power),
    _node("clamp", [("x", NUMBER), ("low", NUMBER, 0.0), ("high", NUMBER, 1.0)], NUMBER, _clamp),
    _node("greater_than", [("a", NUMBER), ("b", NUMBER)], BOOLEAN, lambda a, b: a > b, description="Whether a > b."),
    _node("and", [("a", BOOLEAN), ("b", BOOLEAN)], BOOLEAN, lambda a, b: a and b, description="Logical and."),
    _node("not", [("x", BOOLEAN)], BOOLEAN, lambda x: not x, description="Logical negation."),
    _node(
        "select",
        [("condition", BOOLEAN), ("if_true", NUMBER), ("if_false", NUMBER)],
        NUMBER,
        lambda condition, if_true, if_false: if_true if condition else if_false,
        description="Pick one of two numbers.",
    ),
    _node("concat", [("a", STRING), ("b", STRING)], STRING, lambda a, b: a + b, description="Join two strings."),
    _node("format_number", [("x", NUMBER), ("precision", NUMBER, 2.0)], STRING, _format_number),
    _node("vec2", [("x", NUMBER), ("y", NUMBER)], VEC2, Vec2, description="Vector from components."),
    _node("vec2_add", [("a", VEC2), ("b", VEC2)], VEC2, lambda a, b: a + b, description="Vector sum."),
    _node(
        "vec2_scale",
        [("v", VEC2), ("factor", NUMBER, 1.0)],
        VEC2,
        lambda v, factor: v * factor,
        description="Scale a vector.",
    ),
    _node("vec2_length", [("v", VEC2)], NUMBER, lambda v: v.length(), description="Euclidean length."),
    _node(
        "color",
        [("r", NUMBER), ("g", NUMBER), ("b", NUMBER), ("a", NUMBER, 1.0)],
        COLOR,
        _color,
    ),
    _node("color_mix", [("a", COLOR), ("b", COLOR), ("t", NUMBER, 0.5)], COLOR, _color_mix),
    _node("path_line", [("start", VEC2), ("end", VEC2, Vec2(1.0, 0.0))], PATH, _path_line),
    _node("path_polygon", [("center", VEC2), ("radius", NUMBER, 1.0), ("sides", NUMBER, 6.0)], PATH, _path_polygon),
    _node(
        "path_transform",
        [("path", PATH), ("translation", VEC2), ("scale", VEC2, Vec2(1.0, 1.0)), ("rotation", NUMBER)],
        PATH,
        _path_transform,
    ),
    _node("path_split", [("path", PATH), ("t", NUMBER, 0.5)], PATH_LIST, _path_split),
    _node("path_evaluate", [("path", PATH), ("t", NUMBER, 0.5)], VEC2, _path_evaluate),
    _node(
        "path_repeat",
        [("path", PATH), ("count", NUMBER, 2.0), ("offset", VEC2, Vec2(1.0, 0.0))],
        PATH_LIST,
        _path_repeat,
    ),
    _node(
        "image_fill",
        [("width", NUMBER, 1.0), ("height", NUMBER, 1.0), ("color", COLOR, Color(0.0, 0.0, 0.0, 1.0))],
        IMAGE,
        _image_fill,
    ),
    _node(
        "image_composite",
        [("background", IMAGE), ("foreground", IMAGE), ("opacity", NUMBER, 1.0)],
        IMAGE,
        _image_composite,
    ),
    _node("list_sum", [("items", NUMBER_LIST)], NUMBER, lambda items: float(sum(items)), description="Sum of items."),
    _node(
        "list_length",
        [("items", NUMBER_LIST)],
        NUMBER,
        lambda items: float(len(items)),
        description="Number of items.",
    ),
    _node("list_get", [("items", NUMBER_LIST), ("index", NUMBER)], OPTIONAL_NUMBER, _list_get),
    _node("unwrap_or", [("value", OPTIONAL_NUMBER), ("fallback", NUMBER)], NUMBER, _unwrap_or),
)


def _format_scalar(value: float) -> str:
    return f"{value:g}"


def builtin_coercions() -> list[Coercion]:
    """Return the coercion table.

    Every scalar type coerces into an optional or a single-item list of itself.
    """
    coercions = [
        Coercion(BOOLEAN, NUMBER, lambda b: 1.0 if b else 0.0, "boolean->number"),
        Coercion(NUMBER, BOOLEAN, lambda x: x != 0, "number->boolean"),
        Coercion(NUMBER, STRING, _format_scalar, "number->string"),
        Coercion(BOOLEAN, STRING, lambda b: "true" if b else "false", "boolean->string"),
        Coercion(NUMBER, VEC2, lambda x: Vec2(x, x), "number->vec2"),
    ]
    for dtype in (NUMBER, BOOLEAN, STRING, VEC2, COLOR, PATH, IMAGE):
        coercions.append(Coercion(dtype, DataType.optional_of(dtype), _identity, f"{dtype}->optional"))
        coercions.append(Coercion(dtype, DataType.list_of(dtype), lambda v: [v], f"{dtype}->list"))
    return coercions


def populate(registry: NodeRegistry) -> NodeRegistry:
    """Register every builtin node kind and coercion into ``registry``."""
    for descriptor in BUILTIN_NODES:
        registry.register(descriptor)
    for coercion in builtin_coercions():
        registry.register_coercion(coercion)
    return registry
