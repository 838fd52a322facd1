"""Loading document graphs from TOML and exporting evaluation results.

This is host-side tooling used by the CLI. The engine core only ever sees
in-memory document graphs.

Document file layout::

    [nodes.width]
    kind = "input_value"
    inputs = { value = 3 }

    [nodes.area]
    kind = "multiply"
    display_name = "Area"
    inputs = { a = { from = "width" }, b = { from = "width" } }

"""

import hashlib
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field

from ._document import Connection, DocumentGraph, Literal, NodeId, NodeMetadata
from ._executor import EvaluationResult
from ._registry import OUTPUT_NAME, NodeRegistry
from ._types import Color, DataType, ImageBuffer, TypeKind
from .geometry import Subpath, Vec2

logger = logging.getLogger(__name__)


class DocumentFileError(Exception):
    """A document file is malformed or references unknown nodes."""


# =============================================================================
# File schema
# =============================================================================


class ConnectionSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    source: str = Field(alias="from")
    output: str = OUTPUT_NAME


class NodeSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: str
    display_name: str = ""
    position: tuple[float, float] = (0.0, 0.0)
    inputs: dict[str, Any] = Field(default_factory=dict)


class DocumentFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    nodes: dict[str, NodeSpec] = Field(default_factory=dict)


@dataclass(slots=True)
class LoadedDocument:
    """A document graph together with the names its nodes had in the file."""

    graph: DocumentGraph
    names: dict[str, NodeId] = field(default_factory=dict)

    def node(self, name: str) -> NodeId:
        try:
            return self.names[name]
        except KeyError:
            msg = f"No node named '{name}' in the document"
            raise DocumentFileError(msg) from None

    def name_of(self, node_id: NodeId) -> str:
        return next((name for name, nid in self.names.items() if nid == node_id), str(node_id))


# =============================================================================
# Literal decoding
# =============================================================================


def decode_literal(raw: Any, dtype: DataType) -> Any:  # noqa: C901, PLR0911
    """Convert a TOML value into a domain value of ``dtype``.

    Values that cannot be decoded are returned unchanged, so that binding them
    reports a type mismatch against the slot.
    """
    match dtype.kind, raw:
        case TypeKind.VEC2, {"x": x, "y": y}:
            return Vec2(x, y)
        case TypeKind.VEC2, [x, y]:
            return Vec2(x, y)
        case TypeKind.COLOR, {"r": r, "g": g, "b": b, **rest}:
            return Color(r, g, b, rest.get("a", 1.0))
        case TypeKind.COLOR, str() if raw.startswith("#") and len(raw) in (7, 9):
            channels = bytes.fromhex(raw[1:])
            return Color.from_rgba8(channels if len(channels) == 4 else channels + b"\xff")  # noqa: PLR2004
        case TypeKind.PATH, {"points": list(points), **rest}:
            return Subpath.from_points((Vec2(*p) for p in points), closed=rest.get("closed", False))
        case TypeKind.IMAGE, {"width": int(width), "height": int(height), **rest}:
            color = decode_literal(rest.get("color", "#000000"), DataType(TypeKind.COLOR))
            return ImageBuffer.filled(width, height, color)
        case TypeKind.LIST, list(items):
            assert dtype.item is not None  # noqa: S101
            return [decode_literal(item, dtype.item) for item in items]
        case TypeKind.OPTIONAL, _:
            assert dtype.item is not None  # noqa: S101
            return decode_literal(raw, dtype.item)
    return raw


def to_plain(value: Any) -> Any:  # noqa: PLR0911
    """Convert a domain value into TOML-native data.

    TOML has no null, so an absent item of a list keeps its position as an
    empty table.
    """
    match value:
        case Vec2(x, y):
            return {"x": x, "y": y}
        case Color(r, g, b, a):
            return {"r": r, "g": g, "b": b, "a": a}
        case Subpath(groups, closed):
            return {"points": [[g.anchor.x, g.anchor.y] for g in groups], "closed": closed}
        case ImageBuffer(width, height, pixels):
            return {"width": width, "height": height, "checksum": f"sha256:{hashlib.sha256(pixels).hexdigest()}"}
        case list() | tuple():
            return [{} if item is None else to_plain(item) for item in value]
    return value


# =============================================================================
# Loading and exporting
# =============================================================================


def document_from_dict(contents: dict[str, Any], registry: NodeRegistry) -> LoadedDocument:
    """Build a document graph from parsed TOML contents.

    Nodes are added in file order with their literal inputs first, then all
    connections are bound, so a node may refer to nodes defined after it.

    Raises:
        pydantic.ValidationError: If the contents do not follow the file schema.
        DocumentFileError: If a connection names an unknown node.
        StructuralError: If a node kind, slot or binding is invalid.

    """
    document = DocumentFile.model_validate(contents)
    graph = DocumentGraph(registry)
    loaded = LoadedDocument(graph=graph)

    pending: list[tuple[NodeId, str, ConnectionSpec]] = []
    for name, entry in document.nodes.items():
        descriptor = registry.lookup(entry.kind)
        literals: dict[str, Literal] = {}
        connections: dict[str, ConnectionSpec] = {}
        for slot, raw in entry.inputs.items():
            if isinstance(raw, dict) and "from" in raw:
                connections[slot] = ConnectionSpec.model_validate(raw)
                continue
            signature = descriptor.input(slot)
            literals[slot] = Literal(decode_literal(raw, signature.type) if signature is not None else raw)
        node_id = graph.add_node(
            entry.kind,
            NodeMetadata(display_name=entry.display_name or name, position=entry.position),
            literals,
        )
        loaded.names[name] = node_id
        pending.extend((node_id, slot, conn) for slot, conn in connections.items())

    for node_id, slot, conn in pending:
        if conn.source not in loaded.names:
            msg = f"Input '{slot}' of node '{loaded.name_of(node_id)}' references unknown node '{conn.source}'"
            raise DocumentFileError(msg)
        graph.set_input(node_id, slot, Connection(loaded.names[conn.source], conn.output))

    logger.debug("Loaded document with %d nodes", len(graph))
    return loaded


def load_document_from_toml(path: Path | str, registry: NodeRegistry) -> LoadedDocument:
    """Load a document graph from a TOML file."""
    path = Path(path)
    with path.open("rb") as f:
        try:
            contents = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {path}: {e}"
            raise DocumentFileError(msg) from e
    logger.debug("Read document file %s", path)
    return document_from_dict(contents, registry)


def export_result_to_toml(name: str, result: EvaluationResult, output_path: Path | str) -> None:
    """Write an evaluation result to a TOML file.

    Args:
        name: Name of the requested output node.
        result: The evaluation result.
        output_path: Path to the output TOML file.

    """
    data: dict[str, Any] = {
        "output": name,
        "type": str(result.output_type),
        "computed": len(result.computed),
        "reused": len(result.reused),
    }
    if result.value is not None:
        data["value"] = to_plain(result.value)

    output_path = Path(output_path)
    with output_path.open("wb") as f:
        tomli_w.dump(data, f)

    logger.debug("Exported result to %s", output_path)
