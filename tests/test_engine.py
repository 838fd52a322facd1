"""Tests for the Engine session."""

import threading

import pytest

from nodecraft._cache import EvaluationCache
from nodecraft._config import EngineSettings
from nodecraft._document import AddNode, Connection, RemoveNode, SetInput
from nodecraft._engine import Engine
from nodecraft._errors import CyclicGraph, NodeEvaluationError, TypeMismatch
from nodecraft._registry import NodeRegistry


class TestEngine:
    """Tests for editing, compiling and rendering through an Engine."""

    def test_request_render(self) -> None:
        engine = Engine()
        x = engine.edit(AddNode("input_value", inputs={"value": 3}))
        y = engine.edit(AddNode("double", inputs={"x": Connection(x)}))
        assert engine.request_render(y) == 6.0

    def test_incremental_rerender(self) -> None:
        engine = Engine()
        a = engine.edit(AddNode("input_value", inputs={"value": 3}))
        b = engine.edit(AddNode("double", inputs={"x": Connection(a)}))
        c = engine.edit(AddNode("double", inputs={"x": Connection(b)}))

        assert engine.request_render(c) == 12.0
        engine.edit(SetInput(a, "value", 4))
        result = engine.evaluate(c)

        assert result.value == 16.0
        assert result.computed == (a, b, c)

    def test_compile_is_reused_until_edit(self) -> None:
        engine = Engine()
        x = engine.edit(AddNode("input_value"))
        first = engine.compile(x)
        assert engine.compile(x) is first

        engine.edit(SetInput(x, "value", 1))
        assert engine.compile(x) is not first

    def test_rejected_edit_propagates(self) -> None:
        engine = Engine()
        x = engine.edit(AddNode("input_value"))
        with pytest.raises(TypeMismatch):
            engine.edit(SetInput(x, "value", "text"))

    def test_structural_errors_surface_on_render(self) -> None:
        engine = Engine()
        a = engine.edit(AddNode("double"))
        b = engine.edit(AddNode("double", inputs={"x": Connection(a)}))
        engine.edit(SetInput(a, "x", Connection(b)))
        with pytest.raises(CyclicGraph):
            engine.request_render(b)

    def test_evaluation_errors_surface_on_render(self) -> None:
        engine = Engine()
        x = engine.edit(AddNode("input_value", inputs={"value": -1}))
        root = engine.edit(AddNode("sqrt", inputs={"x": Connection(x)}))
        with pytest.raises(NodeEvaluationError):
            engine.request_render(root)

    def test_removed_nodes_leave_the_cache(self) -> None:
        engine = Engine()
        x = engine.edit(AddNode("input_value"))
        y = engine.edit(AddNode("input_value"))
        engine.request_render(x)
        engine.request_render(y)
        assert x in engine.cache

        engine.edit(RemoveNode(x))
        engine.request_render(y)

        assert x not in engine.cache

    def test_invalidate_forces_recomputation(self) -> None:
        engine = Engine()
        a = engine.edit(AddNode("input_value", inputs={"value": 1}))
        b = engine.edit(AddNode("double", inputs={"x": Connection(a)}))
        engine.request_render(b)

        engine.invalidate(a, transitive=True)
        result = engine.evaluate(b)

        assert result.computed == (a, b)

    def test_settings_configure_cache(self) -> None:
        engine = Engine(settings=EngineSettings(cache_max_entries=3, cache_max_bytes=4096))
        assert engine.cache.max_entries == 3
        assert engine.cache.max_bytes == 4096

    def test_shared_cache(self) -> None:
        cache = EvaluationCache()
        engine = Engine(cache=cache)
        assert engine.cache is cache
        x = engine.edit(AddNode("input_value"))
        engine.request_render(x)
        assert x in cache

    def test_cache_outlives_engine(self) -> None:
        cache = EvaluationCache()
        first = Engine(cache=cache)
        # The same document rebuilt in a new session
        second = Engine(cache=cache)
        x = first.edit(AddNode("input_value", inputs={"value": 2}))
        first.request_render(x)

        y = second.edit(AddNode("input_value", inputs={"value": 2}))
        result = second.evaluate(y)

        assert second.cache is first.cache
        assert x == y
        assert result.reused == (y,)

    def test_empty_custom_registry_is_kept(self) -> None:
        registry = NodeRegistry()
        engine = Engine(registry=registry)
        assert engine.registry is registry

    def test_concurrent_renders(self) -> None:
        engine = Engine()
        x = engine.edit(AddNode("input_value", inputs={"value": 2}))
        outputs = [engine.edit(AddNode("power", inputs={"base": Connection(x), "exponent": n})) for n in range(8)]
        results: dict[int, float] = {}

        def render(index: int) -> None:
            results[index] = engine.request_render(outputs[index])

        threads = [threading.Thread(target=render, args=(i,)) for i in range(len(outputs))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == {n: 2.0**n for n in range(8)}
