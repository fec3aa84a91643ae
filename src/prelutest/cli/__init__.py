"""Command line interface for prelutest."""
from .main import cli, main

__all__ = ["cli", "main"]
