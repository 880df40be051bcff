"""Command-line entry point for catalog migration."""

from .main import main

__all__ = ["main"]
