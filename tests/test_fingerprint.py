"""Tests for value and node fingerprints."""

import pytest

from nodecraft._fingerprint import fingerprint_node, fingerprint_value
from nodecraft._types import NUMBER, STRING, Color, ImageBuffer
from nodecraft.geometry import Subpath, Vec2


class TestFingerprintValue:
    """Tests for fingerprint_value()."""

    def test_stable(self) -> None:
        assert fingerprint_value([1.0, "a", Vec2(1, 2)]) == fingerprint_value([1.0, "a", Vec2(1, 2)])

    def test_ints_and_floats_agree(self) -> None:
        assert fingerprint_value(1) == fingerprint_value(1.0)

    def test_negative_zero(self) -> None:
        assert fingerprint_value(-0.0) == fingerprint_value(0.0)

    def test_float_precision(self) -> None:
        assert fingerprint_value(0.1 + 0.2) == fingerprint_value(0.3)
        assert fingerprint_value(1.0) != fingerprint_value(1.0001)

    def test_configurable_precision(self) -> None:
        assert fingerprint_value(1.0, float_digits=3) == fingerprint_value(1.0001, float_digits=3)

    def test_booleans_are_not_numbers(self) -> None:
        assert fingerprint_value(True) != fingerprint_value(1.0)  # noqa: FBT003

    def test_strings_are_exact(self) -> None:
        assert fingerprint_value("a") != fingerprint_value("a ")

    def test_structure_matters(self) -> None:
        assert fingerprint_value(["ab", "c"]) != fingerprint_value(["a", "bc"])
        assert fingerprint_value([[1.0], 2.0]) != fingerprint_value([1.0, [2.0]])

    def test_domain_values(self) -> None:
        assert fingerprint_value(Color(1, 0, 0)) != fingerprint_value(Color(0, 1, 0))
        line = Subpath.line(Vec2(0, 0), Vec2(1, 0))
        assert fingerprint_value(line) != fingerprint_value(Subpath(line.groups, closed=True))
        black = ImageBuffer.filled(2, 2, Color(0, 0, 0))
        white = ImageBuffer.filled(2, 2, Color(1, 1, 1))
        assert fingerprint_value(black) != fingerprint_value(white)

    def test_dict_order_does_not_matter(self) -> None:
        assert fingerprint_value({"a": 1, "b": 2}) == fingerprint_value({"b": 2, "a": 1})

    def test_unsupported_value(self) -> None:
        with pytest.raises(TypeError, match="Cannot fingerprint"):
            fingerprint_value(object())


class TestFingerprintNode:
    """Tests for fingerprint_node()."""

    def test_depends_on_every_component(self) -> None:
        base = fingerprint_node("add", 0, NUMBER, ["x", "y"])
        assert base == fingerprint_node("add", 0, NUMBER, ["x", "y"])
        assert base != fingerprint_node("subtract", 0, NUMBER, ["x", "y"])
        assert base != fingerprint_node("add", 1, NUMBER, ["x", "y"])
        assert base != fingerprint_node("add", 0, STRING, ["x", "y"])
        assert base != fingerprint_node("add", 0, NUMBER, ["y", "x"])
