"""Execution engine exports."""
from .base import EngineFactory, EngineManager, ExecutionEngine, engine_manager
from .litert import LiteRTEngine, register_litert_engines

__all__ = [
    "EngineFactory",
    "EngineManager",
    "ExecutionEngine",
    "LiteRTEngine",
    "engine_manager",
    "register_litert_engines",
]
