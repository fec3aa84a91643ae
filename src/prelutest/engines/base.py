"""Execution engine abstractions."""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import numpy as np

from prelutest.core.models import EngineConfig

EngineFactory = Callable[..., "ExecutionEngine"]


class ExecutionEngine:
    """Narrow interface every engine exposes to the differential runner.

    The lifecycle is ``load`` -> ``allocate`` -> (``attach_accelerator``) ->
    ``set_input`` -> ``invoke`` -> ``get_output``. Failures are reported with
    the exception types from :mod:`prelutest.exceptions`.
    """

    name: str = ""
    accelerated: bool = False

    def load(self, model: bytes) -> None:
        raise NotImplementedError

    def input_count(self) -> int:
        raise NotImplementedError

    def output_count(self) -> int:
        raise NotImplementedError

    def input_shape(self) -> Tuple[int, ...]:
        raise NotImplementedError

    def allocate(self) -> None:
        raise NotImplementedError

    def attach_accelerator(self) -> None:
        raise NotImplementedError

    def set_input(self, values: np.ndarray) -> None:
        raise NotImplementedError

    def invoke(self) -> None:
        raise NotImplementedError

    def get_output(self) -> np.ndarray:
        raise NotImplementedError

    def close(self) -> None:
        """Release engine resources; engines without any may ignore this."""


class EngineManager:
    """Registry of engine factories keyed by name."""

    def __init__(self) -> None:
        self._factories: Dict[str, EngineFactory] = {}

    def register(self, name: str, factory: EngineFactory, *, replace: bool = False) -> None:
        if name in self._factories and not replace:
            raise ValueError(f"Engine '{name}' already registered")
        self._factories[name] = factory

    def unregister(self, name: str) -> None:
        self._factories.pop(name, None)

    def create(self, config: EngineConfig, **overrides: Any) -> ExecutionEngine:
        factory = self._factories.get(config.name)
        if factory is None:
            known = ", ".join(sorted(self._factories)) or "none"
            raise KeyError(f"No engine registered under {config.name!r} (known: {known})")
        options = config.option_dict()
        options.update({key: value for key, value in overrides.items() if value is not None})
        return factory(**options)

    def names(self) -> Iterable[str]:
        return tuple(self._factories)

    def factory(self, name: str) -> Optional[EngineFactory]:
        return self._factories.get(name)


engine_manager = EngineManager()
