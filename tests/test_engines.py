from __future__ import annotations

import functools
import sys
import types

import pytest

import prelutest
from prelutest.core import EngineConfig
from prelutest.engines import EngineManager, LiteRTEngine, engine_manager, register_litert_engines
from prelutest.exceptions import EngineLoadError


def test_manager_registers_and_creates(stub_engine) -> None:
    manager = EngineManager()
    manager.register("stub", functools.partial(stub_engine, shape=(3,)))
    engine = manager.create(EngineConfig("stub", options=(("slope", 0.5),)), num_threads=2, perturb_index=None)
    assert engine.slope == 0.5
    assert engine.num_threads == 2
    assert engine.perturb_index is None
    assert tuple(manager.names()) == ("stub",)


def test_manager_rejects_duplicates_and_unknown(stub_engine) -> None:
    manager = EngineManager()
    manager.register("stub", stub_engine)
    with pytest.raises(ValueError):
        manager.register("stub", stub_engine)
    manager.register("stub", stub_engine, replace=True)
    with pytest.raises(KeyError) as exc:
        manager.create(EngineConfig("other"))
    assert "stub" in str(exc.value)
    manager.unregister("stub")
    assert manager.factory("stub") is None


def test_bootstrap_registers_litert_engines() -> None:
    assert engine_manager.factory("litert") is LiteRTEngine
    accelerated = engine_manager.create(EngineConfig("xnnpack"), num_threads=3)
    assert isinstance(accelerated, LiteRTEngine)
    assert accelerated.accelerated
    assert accelerated.num_threads == 3
    assert accelerated.label == "accelerated"
    reference = engine_manager.create(EngineConfig("litert"))
    assert not reference.accelerated
    assert reference.label == "reference"


def test_register_litert_engines_on_fresh_manager() -> None:
    manager = EngineManager()
    register_litert_engines(manager)
    assert set(manager.names()) == {"litert", "xnnpack"}


def test_missing_runtime_is_a_load_error(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "ai_edge_litert", None)
    with pytest.raises(EngineLoadError) as exc:
        LiteRTEngine().load(b"")
    assert "ai-edge-litert" in str(exc.value)


def test_engine_methods_require_a_model() -> None:
    with pytest.raises(EngineLoadError):
        LiteRTEngine().allocate()


def test_plugins_loaded_from_environment(monkeypatch) -> None:
    calls = []
    module = types.ModuleType("prelutest_test_plugin")
    module.register = lambda: calls.append("registered")
    monkeypatch.setitem(sys.modules, "prelutest_test_plugin", module)
    monkeypatch.setenv("PRELUTEST_PLUGINS", "prelutest_test_plugin, ")
    monkeypatch.setattr(prelutest, "_BOOTSTRAPPED", False)
    prelutest.bootstrap()
    prelutest.bootstrap()
    assert calls == ["registered"]

