"""Tests for loading documents from TOML and exporting results."""

import tomllib
from pathlib import Path

import pytest
from pydantic import ValidationError

from nodecraft._cache import EvaluationCache
from nodecraft._compiler import compile_graph
from nodecraft._document import Connection, Literal
from nodecraft._errors import UnknownNodeKind
from nodecraft._executor import EvaluationResult, evaluate
from nodecraft._io import (
    DocumentFileError,
    decode_literal,
    document_from_dict,
    export_result_to_toml,
    load_document_from_toml,
    to_plain,
)
from nodecraft._registry import default_registry
from nodecraft._types import COLOR, IMAGE, NUMBER, PATH, VEC2, Color, DataType, ImageBuffer
from nodecraft.geometry import Subpath, Vec2

DOCUMENT = """
[nodes.area]
kind = "multiply"
display_name = "Area"
inputs = { a = { from = "width" }, b = { from = "height" } }

[nodes.width]
kind = "input_value"
inputs = { value = 3 }

[nodes.height]
kind = "input_value"
inputs = { value = 4.5 }
"""


class TestDecodeLiteral:
    """Tests for decode_literal()."""

    def test_vectors(self) -> None:
        assert decode_literal([1, 2], VEC2) == Vec2(1, 2)
        assert decode_literal({"x": 1, "y": 2}, VEC2) == Vec2(1, 2)

    def test_colors(self) -> None:
        assert decode_literal("#ff0000", COLOR) == Color(1.0, 0.0, 0.0, 1.0)
        assert decode_literal({"r": 0, "g": 1, "b": 0}, COLOR) == Color(0, 1, 0, 1.0)

    def test_paths(self) -> None:
        path = decode_literal({"points": [[0, 0], [1, 0]], "closed": True}, PATH)
        assert isinstance(path, Subpath)
        assert path.closed
        assert path.anchors() == [Vec2(0, 0), Vec2(1, 0)]

    def test_images(self) -> None:
        image = decode_literal({"width": 2, "height": 1, "color": "#0000ff"}, IMAGE)
        assert image == ImageBuffer.filled(2, 1, Color(0.0, 0.0, 1.0, 1.0))

    def test_containers(self) -> None:
        assert decode_literal([[0, 0], [1, 1]], DataType.list_of(VEC2)) == [Vec2(0, 0), Vec2(1, 1)]
        assert decode_literal([1, 2], DataType.optional_of(VEC2)) == Vec2(1, 2)

    def test_undecodable_values_pass_through(self) -> None:
        assert decode_literal("text", NUMBER) == "text"


class TestToPlain:
    """Tests for to_plain()."""

    def test_domain_values(self) -> None:
        assert to_plain(Vec2(1, 2)) == {"x": 1, "y": 2}
        assert to_plain([Subpath.line(Vec2(0, 0), Vec2(1, 0))]) == [{"points": [[0, 0], [1, 0]], "closed": False}]

    def test_images_are_summarized(self) -> None:
        plain = to_plain(ImageBuffer.filled(1, 1, Color(0, 0, 0)))
        assert plain["width"] == 1
        assert plain["checksum"].startswith("sha256:")

    def test_absent_list_items_keep_their_position(self) -> None:
        assert to_plain([1.0, None, 2.0]) == [1.0, {}, 2.0]


class TestDocumentFromDict:
    """Tests for building document graphs from TOML data."""

    def test_load(self) -> None:
        loaded = document_from_dict(tomllib.loads(DOCUMENT), default_registry())

        area = loaded.node("area")
        view = loaded.graph.get(area)
        assert view.kind == "multiply"
        assert view.metadata.display_name == "Area"
        assert view.inputs["a"] == Connection(loaded.node("width"))
        assert loaded.graph.get(loaded.node("height")).inputs["value"] == Literal(4.5)

    def test_loaded_document_evaluates(self) -> None:
        loaded = document_from_dict(tomllib.loads(DOCUMENT), default_registry())
        proto = compile_graph(loaded.graph.snapshot(), default_registry(), loaded.node("area"))
        assert evaluate(proto, EvaluationCache()).value == 13.5

    def test_name_of(self) -> None:
        loaded = document_from_dict(tomllib.loads(DOCUMENT), default_registry())
        assert loaded.name_of(loaded.node("width")) == "width"

    def test_unknown_node_name(self) -> None:
        loaded = document_from_dict(tomllib.loads(DOCUMENT), default_registry())
        with pytest.raises(DocumentFileError, match="No node named"):
            loaded.node("depth")

    def test_connection_to_unknown_node(self) -> None:
        contents = {"nodes": {"y": {"kind": "double", "inputs": {"x": {"from": "missing"}}}}}
        with pytest.raises(DocumentFileError, match="unknown node 'missing'"):
            document_from_dict(contents, default_registry())

    def test_unknown_kind(self) -> None:
        contents = {"nodes": {"y": {"kind": "nope"}}}
        with pytest.raises(UnknownNodeKind):
            document_from_dict(contents, default_registry())

    def test_schema_violation(self) -> None:
        contents = {"nodes": {"y": {"kind": "double", "colour": "red"}}}
        with pytest.raises(ValidationError):
            document_from_dict(contents, default_registry())


class TestFiles:
    """Tests for reading and writing TOML files."""

    def test_load_document_from_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.toml"
        path.write_text(DOCUMENT)
        loaded = load_document_from_toml(path, default_registry())
        assert len(loaded.graph) == 3

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.toml"
        path.write_text("[nodes.x\n")
        with pytest.raises(DocumentFileError, match="Invalid TOML"):
            load_document_from_toml(path, default_registry())

    def test_export_result(self, tmp_path: Path) -> None:
        loaded = document_from_dict(tomllib.loads(DOCUMENT), default_registry())
        proto = compile_graph(loaded.graph.snapshot(), default_registry(), loaded.node("area"))
        result = evaluate(proto, EvaluationCache())
        output = tmp_path / "result.toml"

        export_result_to_toml("area", result, output)

        with output.open("rb") as f:
            data = tomllib.load(f)
        assert data == {"output": "area", "type": "number", "computed": 3, "reused": 0, "value": 13.5}

    def test_export_list_with_absent_items(self, tmp_path: Path) -> None:
        items = DataType.list_of(DataType.optional_of(NUMBER))
        result = EvaluationResult(value=[1.0, None, 3.0], output_type=items)
        output = tmp_path / "result.toml"

        export_result_to_toml("items", result, output)

        with output.open("rb") as f:
            data = tomllib.load(f)
        assert data["value"] == [1.0, {}, 3.0]
