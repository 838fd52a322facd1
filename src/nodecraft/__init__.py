"""Node-graph compilation and execution engine."""

__all__ = [
    "BOOLEAN",
    "COLOR",
    "IMAGE",
    "NUMBER",
    "OUTPUT_NAME",
    "PATH",
    "STRING",
    "VEC2",
    "AddNode",
    "CacheEntry",
    "CacheStats",
    "Coercion",
    "Color",
    "ConfigError",
    "Connection",
    "CyclicGraph",
    "DanglingInput",
    "DanglingReference",
    "DataType",
    "DependencyGraph",
    "DocumentFileError",
    "DocumentGraph",
    "Engine",
    "EngineSettings",
    "EvaluationCache",
    "EvaluationError",
    "EvaluationResult",
    "GraphSnapshot",
    "ImageBuffer",
    "InputSignature",
    "Literal",
    "LiteralArgument",
    "LoadedDocument",
    "Mutation",
    "NodeArgument",
    "NodeComputationError",
    "NodeDescriptor",
    "NodeEvaluationError",
    "NodeGraphError",
    "NodeId",
    "NodeMetadata",
    "NodeNotFound",
    "NodeRegistry",
    "NodeView",
    "OutputNotFound",
    "ProtoGraph",
    "ProtoNode",
    "RegistryFrozen",
    "RemoveNode",
    "SetInput",
    "SetKind",
    "SetMetadata",
    "StructuralError",
    "TypeKind",
    "TypeMismatch",
    "UnknownInputSlot",
    "UnknownNodeKind",
    "compile_graph",
    "create_builtin_registry",
    "default_registry",
    "evaluate",
    "export_result_to_toml",
    "fingerprint_node",
    "fingerprint_value",
    "get_settings",
    "load_config",
    "load_document_from_toml",
]

from ._cache import CacheEntry, CacheStats, EvaluationCache
from ._compiler import compile_graph
from ._config import ConfigError, EngineSettings, get_settings, load_config
from ._document import (
    AddNode,
    Connection,
    DanglingInput,
    DocumentGraph,
    GraphSnapshot,
    Literal,
    Mutation,
    NodeId,
    NodeMetadata,
    NodeView,
    RemoveNode,
    SetInput,
    SetKind,
    SetMetadata,
)
from ._engine import Engine
from ._errors import (
    CyclicGraph,
    DanglingReference,
    EvaluationError,
    NodeComputationError,
    NodeEvaluationError,
    NodeGraphError,
    NodeNotFound,
    OutputNotFound,
    RegistryFrozen,
    StructuralError,
    TypeMismatch,
    UnknownInputSlot,
    UnknownNodeKind,
)
from ._executor import EvaluationResult, evaluate
from ._fingerprint import fingerprint_node, fingerprint_value
from ._graph import DependencyGraph
from ._io import DocumentFileError, LoadedDocument, export_result_to_toml, load_document_from_toml
from ._proto import LiteralArgument, NodeArgument, ProtoGraph, ProtoNode
from ._registry import (
    OUTPUT_NAME,
    Coercion,
    InputSignature,
    NodeDescriptor,
    NodeRegistry,
    create_builtin_registry,
    default_registry,
)
from ._types import BOOLEAN, COLOR, IMAGE, NUMBER, PATH, STRING, VEC2, Color, DataType, ImageBuffer, TypeKind
