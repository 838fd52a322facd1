"""Bezier subpaths consumed by path node kinds.

Node computations treat :class:`Subpath` as an opaque value and only call its
public operations (:meth:`Subpath.evaluate`, :meth:`Subpath.split` and
:meth:`Subpath.transform`).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

__all__ = ["Affine", "ManipulatorGroup", "Subpath", "Vec2"]


@dataclass(frozen=True, slots=True)
class Vec2:
    x: float
    y: float

    def __add__(self, other: Vec2) -> Vec2:
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Vec2) -> Vec2:
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> Vec2:
        return Vec2(self.x * factor, self.y * factor)

    def lerp(self, other: Vec2, t: float) -> Vec2:
        return Vec2(self.x + (other.x - self.x) * t, self.y + (other.y - self.y) * t)

    def length(self) -> float:
        return math.hypot(self.x, self.y)


@dataclass(frozen=True, slots=True)
class Affine:
    """2D affine transform ``(x, y) -> (a*x + c*y + e, b*x + d*y + f)``."""

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def translate(cls, offset: Vec2) -> Self:
        return cls(e=offset.x, f=offset.y)

    @classmethod
    def scale(cls, factor: Vec2) -> Self:
        return cls(a=factor.x, d=factor.y)

    @classmethod
    def rotate(cls, angle: float) -> Self:
        """Rotation by ``angle`` radians, counter-clockwise."""
        cos, sin = math.cos(angle), math.sin(angle)
        return cls(a=cos, b=sin, c=-sin, d=cos)

    def __matmul__(self, other: Affine) -> Affine:
        """Compose so that ``(self @ other).apply(p) == self.apply(other.apply(p))``."""
        return Affine(
            a=self.a * other.a + self.c * other.b,
            b=self.b * other.a + self.d * other.b,
            c=self.a * other.c + self.c * other.d,
            d=self.b * other.c + self.d * other.d,
            e=self.a * other.e + self.c * other.f + self.e,
            f=self.b * other.e + self.d * other.f + self.f,
        )

    def apply(self, point: Vec2) -> Vec2:
        return Vec2(
            self.a * point.x + self.c * point.y + self.e,
            self.b * point.x + self.d * point.y + self.f,
        )


@dataclass(frozen=True, slots=True)
class ManipulatorGroup:
    """An anchor point with optional incoming and outgoing bezier handles."""

    anchor: Vec2
    in_handle: Vec2 | None = None
    out_handle: Vec2 | None = None

    def transformed(self, transform: Affine) -> ManipulatorGroup:
        return ManipulatorGroup(
            anchor=transform.apply(self.anchor),
            in_handle=None if self.in_handle is None else transform.apply(self.in_handle),
            out_handle=None if self.out_handle is None else transform.apply(self.out_handle),
        )


type _Cubic = tuple[Vec2, Vec2, Vec2, Vec2]


def _split_cubic(curve: _Cubic, t: float) -> tuple[_Cubic, _Cubic]:
    p0, p1, p2, p3 = curve
    q0, q1, q2 = p0.lerp(p1, t), p1.lerp(p2, t), p2.lerp(p3, t)
    r0, r1 = q0.lerp(q1, t), q1.lerp(q2, t)
    s = r0.lerp(r1, t)
    return (p0, q0, r0, s), (s, r1, q2, p3)


@dataclass(frozen=True, slots=True)
class Subpath:
    """A sequence of cubic bezier segments joined at manipulator groups.

    A closed subpath has an extra segment from its last group back to the first.
    """

    groups: tuple[ManipulatorGroup, ...]
    closed: bool = False

    @classmethod
    def from_points(cls, points: Iterable[Vec2], *, closed: bool = False) -> Self:
        return cls(tuple(ManipulatorGroup(p) for p in points), closed=closed)

    @classmethod
    def line(cls, start: Vec2, end: Vec2) -> Self:
        return cls.from_points((start, end))

    @property
    def is_empty(self) -> bool:
        return len(self.groups) == 0

    def len_segments(self) -> int:
        if len(self.groups) < 2:  # noqa: PLR2004
            return 0
        return len(self.groups) if self.closed else len(self.groups) - 1

    def _ring(self) -> list[ManipulatorGroup]:
        groups = list(self.groups)
        if self.closed and groups:
            groups.append(groups[0])
        return groups

    def segments(self) -> list[_Cubic]:
        ring = self._ring()
        return [
            (
                start.anchor,
                start.out_handle or start.anchor,
                end.in_handle or end.anchor,
                end.anchor,
            )
            for start, end in zip(ring[:-1], ring[1:], strict=True)
        ][: self.len_segments()]

    def _locate(self, t: float) -> tuple[int, float]:
        if not 0.0 <= t <= 1.0:
            msg = f"Parametric t must be within [0, 1], got {t}"
            raise ValueError(msg)
        n = self.len_segments()
        if n == 0:
            msg = "Cannot evaluate a subpath without segments"
            raise ValueError(msg)
        scaled = t * n
        index = min(math.floor(scaled), n - 1)
        return index, scaled - index

    def evaluate(self, t: float) -> Vec2:
        """Return the point at parametric ``t`` across the whole subpath."""
        index, local_t = self._locate(t)
        first, _ = _split_cubic(self.segments()[index], local_t)
        return first[3]

    def split(self, t: float) -> tuple[Subpath, Subpath | None]:
        """Split at parametric ``t``.

        Open subpaths yield two open subpaths. Closed subpaths yield a single
        open subpath that starts and ends at the split point.
        """
        index, local_t = self._locate(t)
        ring = self._ring()
        first_curve, second_curve = _split_cubic(self.segments()[index], local_t)

        if local_t == 0.0:
            first = [*ring[:index], replace(ring[index], out_handle=None)]
            second = [replace(ring[index], in_handle=None), *ring[index + 1 :]]
        elif local_t == 1.0:
            first = [*ring[:-1], replace(ring[-1], out_handle=None)]
            second = [replace(ring[-1], in_handle=None)]
        else:
            first = [
                *ring[:index],
                replace(ring[index], out_handle=first_curve[1]),
                ManipulatorGroup(anchor=first_curve[3], in_handle=first_curve[2]),
            ]
            second = [
                ManipulatorGroup(anchor=second_curve[0], out_handle=second_curve[1]),
                replace(ring[index + 1], in_handle=second_curve[2]),
                *ring[index + 2 :],
            ]

        if self.closed:
            # The last group of `second` and the first group of `first` share the start anchor.
            joint = replace(second[-1], out_handle=first[0].out_handle) if len(second) > 1 else second[-1]
            merged = [*second[:-1], joint, *first[1:]] if len(second) > 1 else [*second, *first[1:]]
            return Subpath(tuple(merged)), None
        return Subpath(tuple(first)), Subpath(tuple(second))

    def transform(self, transform: Affine) -> Subpath:
        return Subpath(tuple(g.transformed(transform) for g in self.groups), closed=self.closed)

    def anchors(self) -> Sequence[Vec2]:
        return [g.anchor for g in self.groups]
