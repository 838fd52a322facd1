"""Deterministic content fingerprints for cache keys.

A fingerprint never depends on object identity, insertion order of dicts or
wall-clock time. Discrete values are encoded exactly; floats are rounded to a
configurable number of significant digits so that numeric noise below that
precision does not cause recomputation.
"""

import hashlib
import math
from collections.abc import Iterable
from typing import Any

from ._types import Color, DataType, ImageBuffer
from .geometry import ManipulatorGroup, Subpath, Vec2

DEFAULT_FLOAT_DIGITS = 12


def _float_token(value: float, digits: int) -> str:
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == 0:
        return "0"  # folds -0.0 into 0.0
    return f"{value:.{digits}g}"


def _encode(value: Any, digits: int) -> Iterable[str]:  # noqa: C901, PLR0912
    """Yield a canonical token stream for a value."""
    match value:
        case None:
            yield "N"
        case bool():
            yield "T" if value else "F"
        case int() | float():
            yield "f:" + _float_token(float(value), digits)
        case str():
            yield f"s{len(value)}:{value}"
        case bytes():
            yield f"b{len(value)}:" + hashlib.blake2b(value, digest_size=16).hexdigest()
        case Vec2(x, y):
            yield "v2"
            yield from _encode(x, digits)
            yield from _encode(y, digits)
        case Color(r, g, b, a):
            yield "c"
            for channel in (r, g, b, a):
                yield from _encode(channel, digits)
        case ImageBuffer(width, height, pixels):
            yield f"img{width}x{height}"
            yield from _encode(pixels, digits)
        case ManipulatorGroup(anchor, in_handle, out_handle):
            yield "mg"
            for point in (anchor, in_handle, out_handle):
                yield from _encode(point, digits)
        case Subpath(groups, closed):
            yield f"path{len(groups)}:{'closed' if closed else 'open'}"
            for group in groups:
                yield from _encode(group, digits)
        case DataType():
            yield f"t:{value}"
        case list() | tuple():
            yield f"[{len(value)}"
            for item in value:
                yield from _encode(item, digits)
            yield "]"
        case dict():
            yield f"{{{len(value)}"
            for key in sorted(value, key=str):
                yield from _encode(str(key), digits)
                yield from _encode(value[key], digits)
            yield "}"
        case _:
            msg = f"Cannot fingerprint value of type {type(value).__name__}"
            raise TypeError(msg)


def fingerprint_value(value: Any, *, float_digits: int = DEFAULT_FLOAT_DIGITS) -> str:
    """Compute the fingerprint of a single value.

    Example:
        >>> fingerprint_value(1.0) == fingerprint_value(1)
        True
        >>> fingerprint_value(0.0) == fingerprint_value(-0.0)
        True

    """
    h = hashlib.blake2b(digest_size=16)
    for token in _encode(value, float_digits):
        h.update(token.encode())
        h.update(b"\x1f")
    return h.hexdigest()


def fingerprint_node(
    kind: str,
    revision: int,
    output_type: DataType,
    argument_digests: Iterable[str],
) -> str:
    """Compute a node's input fingerprint.

    Args:
        kind: The node kind.
        revision: The document revision of the node.
        output_type: The node's resolved output type.
        argument_digests: One digest per argument, in order: the value
            fingerprint for literal arguments, and the producing node's
            fingerprint for node arguments.

    """
    h = hashlib.blake2b(digest_size=16)
    h.update(f"{kind}\x1f{revision}\x1f{output_type}\x1f".encode())
    for digest in argument_digests:
        h.update(digest.encode())
        h.update(b"\x1f")
    return h.hexdigest()
