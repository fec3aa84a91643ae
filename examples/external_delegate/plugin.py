"""Registers an engine backed by an external XNNPACK delegate library.

Usage:
    export PRELUTEST_PLUGINS=plugin
    export XNNPACK_DELEGATE_LIB=/path/to/libxnnpack_delegate.so
    PYTHONPATH=examples/external_delegate prelutest run --plan examples/external_delegate/plan.yaml
"""
from __future__ import annotations

import functools
import os

from prelutest.engines import LiteRTEngine, engine_manager


def register() -> None:
    library = os.environ.get("XNNPACK_DELEGATE_LIB")
    if not library:
        raise RuntimeError("XNNPACK_DELEGATE_LIB must point at the delegate shared library")
    engine_manager.register(
        "xnnpack-external",
        functools.partial(LiteRTEngine, accelerate=True, delegate_library=library),
        replace=True,
    )
